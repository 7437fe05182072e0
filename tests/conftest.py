import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

import pytest

from device_guard.api.modules.devices.services.signals.collector import (
    BASE_FONTS,
    CANDIDATE_FONTS,
)
from device_guard.api.modules.devices.services.signals.providers import (
    GpuInfo,
    PluginInfo,
    ScreenInfo,
    SignalProviders,
    TimezoneInfo,
)

BASE_WIDTHS = {"monospace": 100.0, "sans-serif": 110.0, "serif": 120.0}


class StubScreen:
    def screen(self) -> ScreenInfo:
        return ScreenInfo(
            width=1920, height=1080, color_depth=24, avail_width=1920, avail_height=1040
        )


class StubTimezone:
    def timezone(self) -> TimezoneInfo:
        return TimezoneInfo(name="Europe/Berlin", offset_minutes=-60)


class StubNavigator:
    def __init__(self, device_memory: float | None = 8, do_not_track: str | None = None):
        self._device_memory = device_memory
        self._do_not_track = do_not_track

    def platform(self) -> str:
        return "MacIntel"

    def language(self) -> str:
        return "en-US"

    def languages(self) -> Sequence[str]:
        return ["en-US", "en"]

    def hardware_concurrency(self) -> int:
        return 8

    def device_memory(self) -> float | None:
        return self._device_memory

    def plugins(self) -> Sequence[PluginInfo]:
        return [PluginInfo("PDF Viewer", "internal-pdf-viewer", "Portable Document Format")]

    def cookie_enabled(self) -> bool:
        return True

    def do_not_track(self) -> str | None:
        return self._do_not_track

    def touch_support(self) -> bool:
        return False

    def max_touch_points(self) -> int:
        return 0


class StubGpu:
    def gpu_info(self) -> GpuInfo | None:
        return GpuInfo(vendor="Google Inc.", renderer="ANGLE (Apple M1)", version="WebGL 1.0")


class StubCanvas:
    def render(self) -> str:
        return "data:image/png;base64,iVBORw0KGgo="


class StubAudio:
    def __init__(self, samples: Sequence[float] | None = None, delay: float = 0.0):
        self._samples = list(samples) if samples is not None else [-100.5, -99.25, -98.0]
        self._delay = delay
        self.cancelled = False

    async def sample(self) -> Sequence[float]:
        if self._delay:
            try:
                await asyncio.sleep(self._delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        return self._samples


class StubFonts:
    """Installed fonts change the width against every base family."""

    def __init__(self, installed: Iterable[str] = ("Arial", "Verdana"), partial: Iterable[str] = ()):
        self._installed = set(installed)
        self._partial = set(partial)

    def measure(self, font_family: str) -> float:
        if font_family in BASE_WIDTHS:
            return BASE_WIDTHS[font_family]
        font, _, base = font_family.partition(", ")
        if font in self._installed:
            return 150.0
        if font in self._partial and base != "monospace":
            return 150.0
        return BASE_WIDTHS[base]


class StubStorage:
    def local_storage(self) -> bool:
        return True

    def session_storage(self) -> bool:
        return True

    def indexed_db(self) -> bool:
        return False


class StubMedia:
    def __init__(self, kinds: Sequence[str] = ("audioinput", "videoinput", "audiooutput")):
        self._kinds = list(kinds)

    async def device_kinds(self) -> Sequence[str]:
        return self._kinds


class Exploding:
    """Every provider method raises."""

    def __getattr__(self, name: str):
        if name in ("sample", "device_kinds"):

            async def failing_async(*args, **kwargs):
                raise RuntimeError(f"{name} exploded")

            return failing_async

        def failing(*args, **kwargs):
            raise RuntimeError(f"{name} exploded")

        return failing


@pytest.fixture
def providers() -> SignalProviders:
    return SignalProviders(
        screen=StubScreen(),
        timezone=StubTimezone(),
        navigator=StubNavigator(),
        gpu=StubGpu(),
        canvas=StubCanvas(),
        audio=StubAudio(),
        fonts=StubFonts(),
        storage=StubStorage(),
        media=StubMedia(),
    )


@pytest.fixture
def exploding_providers() -> SignalProviders:
    broken = Exploding()
    return SignalProviders(
        screen=broken,
        timezone=broken,
        navigator=broken,
        gpu=broken,
        canvas=broken,
        audio=broken,
        fonts=broken,
        storage=broken,
        media=broken,
    )


def _font_widths(installed: Iterable[str]) -> dict[str, float]:
    installed = set(installed)
    widths = dict(BASE_WIDTHS)
    for font in CANDIDATE_FONTS:
        for base in BASE_FONTS:
            widths[f"{font}, {base}"] = 150.0 if font in installed else BASE_WIDTHS[base]
    return widths


@pytest.fixture
def full_report() -> dict:
    """Report as posted by the browser collector script."""
    return {
        "screen": {
            "width": 1920,
            "height": 1080,
            "color_depth": 24,
            "avail_width": 1920,
            "avail_height": 1040,
        },
        "timezone": {"name": "Europe/Berlin", "offset_minutes": -60},
        "navigator": {
            "platform": "MacIntel",
            "language": "en-US",
            "languages": ["en-US", "en"],
            "hardware_concurrency": 8,
            "device_memory": 8,
            "cookie_enabled": True,
            "do_not_track": None,
            "touch_support": False,
            "max_touch_points": 0,
            "plugins": [
                {
                    "name": "PDF Viewer",
                    "filename": "internal-pdf-viewer",
                    "description": "Portable Document Format",
                }
            ],
        },
        "webgl": {
            "status": "ok",
            "vendor": "Google Inc. (Apple)",
            "renderer": "ANGLE (Apple, Apple M1, OpenGL 4.1)",
            "version": "WebGL 1.0",
        },
        "canvas": {"status": "ok", "data_url": "data:image/png;base64,iVBORw0KGgo="},
        "audio": {"status": "ok", "samples": [-120.5 + i for i in range(40)]},
        "fonts": {"status": "ok", "widths": _font_widths(("Arial", "Helvetica"))},
        "storage": {"local_storage": True, "session_storage": True, "indexed_db": True},
        "media_devices": {
            "status": "ok",
            "kinds": ["audioinput", "videoinput", "audiooutput"],
        },
    }


class TickingClock:
    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(hours=1)):
        self._now = start or datetime(2024, 1, 1, tzinfo=UTC)
        self._step = step

    def __call__(self) -> datetime:
        now = self._now
        self._now += self._step
        return now


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()
