"""Providers backed by a probe report posted by the browser collector script."""

from collections.abc import Sequence
from typing import TypeVar

from device_guard.api.modules.devices.schema import (
    AudioReport,
    CanvasReport,
    FontReport,
    MediaDevicesReport,
    NavigatorReport,
    ProbeReport,
    ScreenReport,
    StorageReport,
    TimezoneReport,
    WebGLReport,
)
from device_guard.api.modules.devices.services.signals.providers import (
    GpuInfo,
    PluginInfo,
    ProbeUnavailable,
    ScreenInfo,
    SignalProviders,
    TimezoneInfo,
)


class ProbeFailed(Exception):
    """The browser reported that a probe raised."""


T = TypeVar("T")


def _require(section: T | None, name: str) -> T:
    if section is None:
        raise ProbeFailed(f"{name} was not reported")
    return section


class ReportScreenProvider:
    def __init__(self, report: ScreenReport | None):
        self._report = report

    def screen(self) -> ScreenInfo:
        report = _require(self._report, "screen")
        return ScreenInfo(
            width=report.width,
            height=report.height,
            color_depth=report.color_depth,
            avail_width=report.avail_width,
            avail_height=report.avail_height,
        )


class ReportTimezoneProvider:
    def __init__(self, report: TimezoneReport | None):
        self._report = report

    def timezone(self) -> TimezoneInfo:
        report = _require(self._report, "timezone")
        if not report.name:
            raise ProbeFailed("timezone name was not resolved")
        return TimezoneInfo(name=report.name, offset_minutes=report.offset_minutes)


class ReportNavigatorProvider:
    def __init__(self, report: NavigatorReport | None):
        self._report = report

    @property
    def _navigator(self) -> NavigatorReport:
        return _require(self._report, "navigator")

    def platform(self) -> str:
        return self._navigator.platform

    def language(self) -> str:
        return self._navigator.language

    def languages(self) -> Sequence[str]:
        return self._navigator.languages

    def hardware_concurrency(self) -> int:
        return self._navigator.hardware_concurrency

    def device_memory(self) -> float | None:
        return self._navigator.device_memory

    def plugins(self) -> Sequence[PluginInfo]:
        plugins = self._navigator.plugins
        if plugins is None:
            raise ProbeFailed("plugins were not reported")
        return [
            PluginInfo(name=p.name, filename=p.filename, description=p.description)
            for p in plugins
        ]

    def cookie_enabled(self) -> bool:
        value = self._navigator.cookie_enabled
        if value is None:
            raise ProbeFailed("cookie support was not reported")
        return value

    def do_not_track(self) -> str | None:
        return self._navigator.do_not_track

    def touch_support(self) -> bool:
        return self._navigator.touch_support

    def max_touch_points(self) -> int:
        return self._navigator.max_touch_points


class ReportGpuProvider:
    def __init__(self, report: WebGLReport | None):
        self._report = report

    def gpu_info(self) -> GpuInfo | None:
        report = _require(self._report, "webgl")
        if report.status == "unsupported":
            return None
        if report.status == "error":
            raise ProbeFailed("webgl probe raised")
        return GpuInfo(
            vendor=report.vendor,
            renderer=report.renderer,
            version=report.version,
        )


class ReportCanvasProbe:
    def __init__(self, report: CanvasReport | None):
        self._report = report

    def render(self) -> str:
        report = _require(self._report, "canvas")
        if report.status != "ok" or not report.data_url:
            raise ProbeFailed("canvas probe raised")
        return report.data_url


class ReportAudioProbe:
    def __init__(self, report: AudioReport | None):
        self._report = report

    async def sample(self) -> Sequence[float]:
        report = _require(self._report, "audio")
        if report.status == "unsupported":
            raise ProbeUnavailable("no audio context")
        if report.status == "timeout":
            raise TimeoutError("audio processing callback never fired")
        if report.status == "error":
            raise ProbeFailed("audio probe raised")
        return report.samples


class ReportFontProbe:
    def __init__(self, report: FontReport | None):
        self._report = report

    def measure(self, font_family: str) -> float:
        report = _require(self._report, "fonts")
        if report.status != "ok":
            raise ProbeFailed("font probe raised")
        try:
            return report.widths[font_family]
        except KeyError:
            raise ProbeFailed(f"no width reported for {font_family!r}") from None


class ReportStorageProvider:
    def __init__(self, report: StorageReport | None):
        self._report = report

    def local_storage(self) -> bool:
        return _require(self._report, "storage").local_storage

    def session_storage(self) -> bool:
        return _require(self._report, "storage").session_storage

    def indexed_db(self) -> bool:
        return _require(self._report, "storage").indexed_db


class ReportMediaDeviceProvider:
    def __init__(self, report: MediaDevicesReport | None):
        self._report = report

    async def device_kinds(self) -> Sequence[str]:
        report = _require(self._report, "media_devices")
        if report.status == "unsupported":
            raise ProbeUnavailable("media device enumeration is not supported")
        if report.status == "error":
            raise ProbeFailed("media device enumeration raised")
        return report.kinds


def providers_from_report(report: ProbeReport) -> SignalProviders:
    return SignalProviders(
        screen=ReportScreenProvider(report.screen),
        timezone=ReportTimezoneProvider(report.timezone),
        navigator=ReportNavigatorProvider(report.navigator),
        gpu=ReportGpuProvider(report.webgl),
        canvas=ReportCanvasProbe(report.canvas),
        audio=ReportAudioProbe(report.audio),
        fonts=ReportFontProbe(report.fonts),
        storage=ReportStorageProvider(report.storage),
        media=ReportMediaDeviceProvider(report.media_devices),
    )


__all__ = ("ProbeFailed", "providers_from_report")
