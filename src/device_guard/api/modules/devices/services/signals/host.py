"""Providers for non-browser Python clients (desktop agents, CLIs).

Only the environment data a plain interpreter can read is exposed; browser
only probes raise ``ProbeUnavailable`` and end up as sentinels.
"""

import locale
import os
import platform
from collections.abc import Sequence
from datetime import datetime

from device_guard.api.modules.devices.services.signals.providers import (
    GpuInfo,
    PluginInfo,
    ProbeUnavailable,
    ScreenInfo,
    SignalProviders,
    TimezoneInfo,
)


def _default_language() -> str:
    language, _ = locale.getlocale()
    if not language:
        raise ProbeUnavailable("locale is not configured")
    return language.replace("_", "-")


class HostNavigatorProvider:
    def platform(self) -> str:
        return f"{platform.system()} {platform.machine()}".strip()

    def language(self) -> str:
        return _default_language()

    def languages(self) -> Sequence[str]:
        return [_default_language()]

    def hardware_concurrency(self) -> int:
        count = os.cpu_count()
        if count is None:
            raise ProbeUnavailable("cpu count is unknown")
        return count

    def device_memory(self) -> float | None:
        try:
            total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
        except (AttributeError, ValueError, OSError):
            return None
        # browsers round down to a power of two in GiB
        gib = total / 1024**3
        bucket = 0.25
        while bucket * 2 <= gib and bucket < 8:
            bucket *= 2
        return bucket

    def plugins(self) -> Sequence[PluginInfo]:
        return []

    def cookie_enabled(self) -> bool:
        return False

    def do_not_track(self) -> str | None:
        return None

    def touch_support(self) -> bool:
        return False

    def max_touch_points(self) -> int:
        return 0


class HostTimezoneProvider:
    def timezone(self) -> TimezoneInfo:
        now = datetime.now().astimezone()
        offset = now.utcoffset()
        if offset is None:
            raise ProbeUnavailable("local timezone is unknown")
        # same sign convention as Date.getTimezoneOffset()
        return TimezoneInfo(
            name=now.tzname() or "UTC",
            offset_minutes=-int(offset.total_seconds() // 60),
        )


class _Unavailable:
    """Stands in for every browser-only probe."""

    def screen(self) -> ScreenInfo:
        raise ProbeUnavailable("no screen")

    def gpu_info(self) -> GpuInfo | None:
        return None

    def render(self) -> str:
        raise ProbeUnavailable("no drawing surface")

    async def sample(self) -> Sequence[float]:
        raise ProbeUnavailable("no audio context")

    def measure(self, font_family: str) -> float:
        raise ProbeUnavailable("no text layout")

    def local_storage(self) -> bool:
        return False

    def session_storage(self) -> bool:
        return False

    def indexed_db(self) -> bool:
        return False

    async def device_kinds(self) -> Sequence[str]:
        raise ProbeUnavailable("no media devices api")


def host_providers() -> SignalProviders:
    unavailable = _Unavailable()
    return SignalProviders(
        screen=unavailable,
        timezone=HostTimezoneProvider(),
        navigator=HostNavigatorProvider(),
        gpu=unavailable,
        canvas=unavailable,
        audio=unavailable,
        fonts=unavailable,
        storage=unavailable,
        media=unavailable,
    )


__all__ = ("HostNavigatorProvider", "HostTimezoneProvider", "host_providers")
