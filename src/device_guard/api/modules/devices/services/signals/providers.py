"""Probe interfaces the signal collector reads the environment through.

Each provider wraps one environment API (screen, navigator, rendering
contexts, audio stack, ...) so it can be stubbed in tests and replaced on
targets that are not a browser. Providers raise ``ProbeUnavailable`` when the
underlying API does not exist, and any other exception when it is broken.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


class ProbeUnavailable(Exception):
    """The environment does not expose the API behind a probe."""


@dataclass(frozen=True, slots=True)
class ScreenInfo:
    width: int
    height: int
    color_depth: int
    avail_width: int
    avail_height: int


@dataclass(frozen=True, slots=True)
class TimezoneInfo:
    name: str
    offset_minutes: int


@dataclass(frozen=True, slots=True)
class GpuInfo:
    vendor: str
    renderer: str
    version: str


@dataclass(frozen=True, slots=True)
class PluginInfo:
    name: str
    filename: str
    description: str


class ScreenInfoProvider(Protocol):
    def screen(self) -> ScreenInfo: ...


class TimezoneProvider(Protocol):
    def timezone(self) -> TimezoneInfo: ...


class NavigatorProvider(Protocol):
    def platform(self) -> str: ...

    def language(self) -> str: ...

    def languages(self) -> Sequence[str]: ...

    def hardware_concurrency(self) -> int: ...

    def device_memory(self) -> float | None: ...

    def plugins(self) -> Sequence[PluginInfo]: ...

    def cookie_enabled(self) -> bool: ...

    def do_not_track(self) -> str | None: ...

    def touch_support(self) -> bool: ...

    def max_touch_points(self) -> int: ...


class GPUInfoProvider(Protocol):
    def gpu_info(self) -> GpuInfo | None:
        """Return ``None`` when no hardware-accelerated context can be created."""
        ...


class CanvasProbe(Protocol):
    def render(self) -> str:
        """Draw the fixed test scene offscreen and serialize the pixel buffer."""
        ...


class AudioProbe(Protocol):
    async def sample(self) -> Sequence[float]:
        """Run oscillator -> analyser -> silent output and read frequency bins."""
        ...


class FontProbe(Protocol):
    def measure(self, font_family: str) -> float:
        """Width of the fixed probe string rendered with a CSS font stack."""
        ...


class StorageCapabilityProvider(Protocol):
    def local_storage(self) -> bool: ...

    def session_storage(self) -> bool: ...

    def indexed_db(self) -> bool: ...


class MediaDeviceProvider(Protocol):
    async def device_kinds(self) -> Sequence[str]:
        """Kinds of enumerated media devices, without requesting permission."""
        ...


@dataclass(slots=True)
class SignalProviders:
    screen: ScreenInfoProvider
    timezone: TimezoneProvider
    navigator: NavigatorProvider
    gpu: GPUInfoProvider
    canvas: CanvasProbe
    audio: AudioProbe
    fonts: FontProbe
    storage: StorageCapabilityProvider
    media: MediaDeviceProvider


__all__ = (
    "AudioProbe",
    "CanvasProbe",
    "FontProbe",
    "GPUInfoProvider",
    "GpuInfo",
    "MediaDeviceProvider",
    "NavigatorProvider",
    "PluginInfo",
    "ProbeUnavailable",
    "ScreenInfo",
    "ScreenInfoProvider",
    "SignalProviders",
    "StorageCapabilityProvider",
    "TimezoneInfo",
    "TimezoneProvider",
)
