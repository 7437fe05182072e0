import asyncio
import logging
from collections.abc import Callable, Mapping

from device_guard.api.modules.devices.schema import RawSignalSet, SignalValue
from device_guard.api.modules.devices.services.core.utils import format_number
from device_guard.api.modules.devices.services.signals.providers import (
    ProbeUnavailable,
    SignalProviders,
)

logger = logging.getLogger(__name__)

SCREEN_ERROR = "screen-error"
TIMEZONE_ERROR = "timezone-error"
NAVIGATOR_ERROR = "navigator-error"
UNAVAILABLE = "unavailable"
NO_WEBGL = "no-webgl"
WEBGL_ERROR = "webgl-error"
CANVAS_ERROR = "canvas-error"
NO_AUDIO_CONTEXT = "no-audio-context"
AUDIO_TIMEOUT = "audio-timeout"
AUDIO_ERROR = "audio-error"
FONT_ERROR = "font-error"
PLUGIN_ERROR = "plugin-error"
STORAGE_ERROR = "storage-error"
NO_MEDIA_DEVICES = "no-media-devices"
MEDIA_ERROR = "media-error"
DNT_UNSPECIFIED = "unspecified"

DEFAULT_AUDIO_TIMEOUT_SECONDS = 1.0
AUDIO_SAMPLE_BINS = 30

FONT_PROBE_TEXT = "mmmmmmmmmmlli"
FONT_PROBE_SIZE = "72px"
BASE_FONTS = ("monospace", "sans-serif", "serif")
CANDIDATE_FONTS = (
    "Arial",
    "Arial Black",
    "Arial Narrow",
    "Arial Unicode MS",
    "Book Antiqua",
    "Bookman Old Style",
    "Calibri",
    "Cambria",
    "Century",
    "Century Gothic",
    "Comic Sans MS",
    "Consolas",
    "Courier New",
    "Franklin Gothic Medium",
    "Garamond",
    "Georgia",
    "Helvetica",
    "Impact",
    "Lucida Console",
    "Lucida Sans Unicode",
    "Microsoft Sans Serif",
    "Palatino Linotype",
    "Segoe UI",
    "Tahoma",
    "Times",
    "Times New Roman",
    "Trebuchet MS",
    "Verdana",
)

_MEDIA_KEYS = ("media_devices", "audio_inputs", "video_inputs", "audio_outputs")
_SIGNAL_TYPES = (bool, int, float, str)

Probe = Callable[[], Mapping[str, SignalValue]]


def _reap_audio_task(task: asyncio.Future) -> None:
    # Retrieve the outcome of an abandoned sample so it is never reported as unhandled.
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Abandoned audio probe failed", exc_info=task.exception())


class SignalCollector:
    """Builds a complete RawSignalSet from fallible environment probes.

    Every probe runs behind its own failure boundary: a probe that raises is
    replaced by its sentinel string and the rest still run, so ``collect``
    never raises and never returns a set with a missing key.
    """

    def __init__(
        self,
        providers: SignalProviders,
        audio_timeout_seconds: float = DEFAULT_AUDIO_TIMEOUT_SECONDS,
    ):
        self._providers = providers
        self._audio_timeout = audio_timeout_seconds

    async def collect(self) -> RawSignalSet:
        values: dict[str, SignalValue] = {}

        values.update(self._run("screen", ("screen",), self._screen, SCREEN_ERROR))
        values.update(
            self._run("avail_screen", ("avail_screen",), self._avail_screen, SCREEN_ERROR)
        )
        values.update(
            self._run(
                "timezone",
                ("timezone", "timezone_offset"),
                self._timezone,
                TIMEZONE_ERROR,
            )
        )

        navigator = self._providers.navigator
        values.update(
            self._run(
                "platform",
                ("platform",),
                lambda: {"platform": navigator.platform()},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "language",
                ("language",),
                lambda: {"language": navigator.language()},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "languages",
                ("languages",),
                lambda: {"languages": ",".join(navigator.languages())},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "hardware_concurrency",
                ("hardware_concurrency",),
                lambda: {"hardware_concurrency": navigator.hardware_concurrency()},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "device_memory",
                ("device_memory",),
                self._device_memory,
                NAVIGATOR_ERROR,
                unavailable=UNAVAILABLE,
            )
        )

        values.update(
            self._run("webgl", ("webgl",), self._webgl, WEBGL_ERROR, unavailable=NO_WEBGL)
        )
        values.update(
            self._run(
                "canvas",
                ("canvas",),
                lambda: {"canvas": self._providers.canvas.render()},
                CANVAS_ERROR,
            )
        )
        values.update(self._run("fonts", ("fonts",), self._fonts, FONT_ERROR))
        values.update(self._run("plugins", ("plugins",), self._plugins, PLUGIN_ERROR))

        storage = self._providers.storage
        values.update(
            self._run(
                "local_storage",
                ("local_storage",),
                lambda: {"local_storage": bool(storage.local_storage())},
                STORAGE_ERROR,
            )
        )
        values.update(
            self._run(
                "session_storage",
                ("session_storage",),
                lambda: {"session_storage": bool(storage.session_storage())},
                STORAGE_ERROR,
            )
        )
        values.update(
            self._run(
                "indexed_db",
                ("indexed_db",),
                lambda: {"indexed_db": bool(storage.indexed_db())},
                STORAGE_ERROR,
            )
        )
        values.update(
            self._run(
                "cookie_enabled",
                ("cookie_enabled",),
                lambda: {"cookie_enabled": bool(navigator.cookie_enabled())},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "do_not_track",
                ("do_not_track",),
                self._do_not_track,
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "touch_support",
                ("touch_support",),
                lambda: {"touch_support": bool(navigator.touch_support())},
                NAVIGATOR_ERROR,
            )
        )
        values.update(
            self._run(
                "max_touch_points",
                ("max_touch_points",),
                lambda: {"max_touch_points": navigator.max_touch_points()},
                NAVIGATOR_ERROR,
            )
        )

        audio, media = await asyncio.gather(self._audio(), self._media())
        values.update(audio)
        values.update(media)

        return RawSignalSet(**values)

    @staticmethod
    def _run(
        name: str,
        keys: tuple[str, ...],
        probe: Probe,
        error: str,
        unavailable: str | None = None,
    ) -> dict[str, SignalValue]:
        try:
            result = probe()
            values = {key: result[key] for key in keys}
            for key, value in values.items():
                if not isinstance(value, _SIGNAL_TYPES):
                    raise TypeError(f"{key} probe returned {type(value).__name__}")
            return values
        except ProbeUnavailable:
            logger.debug("Signal probe %s is unavailable", name)
            return dict.fromkeys(keys, unavailable or error)
        except Exception:  # noqa: BLE001
            logger.debug("Signal probe %s failed", name, exc_info=True)
            return dict.fromkeys(keys, error)

    def _screen(self) -> dict[str, SignalValue]:
        info = self._providers.screen.screen()
        return {"screen": f"{info.width}x{info.height}x{info.color_depth}"}

    def _avail_screen(self) -> dict[str, SignalValue]:
        info = self._providers.screen.screen()
        return {"avail_screen": f"{info.avail_width}x{info.avail_height}"}

    def _timezone(self) -> dict[str, SignalValue]:
        info = self._providers.timezone.timezone()
        return {"timezone": info.name, "timezone_offset": info.offset_minutes}

    def _device_memory(self) -> dict[str, SignalValue]:
        memory = self._providers.navigator.device_memory()
        if memory is None:
            raise ProbeUnavailable("device memory is not exposed")
        return {"device_memory": memory}

    def _do_not_track(self) -> dict[str, SignalValue]:
        value = self._providers.navigator.do_not_track()
        return {"do_not_track": DNT_UNSPECIFIED if value is None else str(value)}

    def _webgl(self) -> dict[str, SignalValue]:
        info = self._providers.gpu.gpu_info()
        if info is None:
            raise ProbeUnavailable("no rendering context")
        return {"webgl": f"{info.vendor}|{info.renderer}|{info.version}"}

    def _fonts(self) -> dict[str, SignalValue]:
        probe = self._providers.fonts
        baselines = {base: probe.measure(base) for base in BASE_FONTS}
        installed = [
            font
            for font in CANDIDATE_FONTS
            if all(
                probe.measure(f"{font}, {base}") != width
                for base, width in baselines.items()
            )
        ]
        return {"fonts": ",".join(installed)}

    def _plugins(self) -> dict[str, SignalValue]:
        plugins = self._providers.navigator.plugins()
        return {
            "plugins": ";".join(
                f"{plugin.name}|{plugin.filename}|{plugin.description}"
                for plugin in plugins
            )
        }

    async def _audio(self) -> dict[str, SignalValue]:
        """Race the audio sampling against the fixed deadline."""
        try:
            task = asyncio.ensure_future(self._providers.audio.sample())
        except ProbeUnavailable:
            return {"audio": NO_AUDIO_CONTEXT}
        except Exception:  # noqa: BLE001
            logger.debug("Audio probe could not be started", exc_info=True)
            return {"audio": AUDIO_ERROR}

        done, _ = await asyncio.wait({task}, timeout=self._audio_timeout)
        if task not in done:
            task.cancel()
            task.add_done_callback(_reap_audio_task)
            logger.debug("Audio probe timed out after %.3fs", self._audio_timeout)
            return {"audio": AUDIO_TIMEOUT}

        try:
            samples = task.result()
            audio = ",".join(
                format_number(value) for value in list(samples)[:AUDIO_SAMPLE_BINS]
            )
        except ProbeUnavailable:
            return {"audio": NO_AUDIO_CONTEXT}
        except TimeoutError:
            return {"audio": AUDIO_TIMEOUT}
        except Exception:  # noqa: BLE001
            logger.debug("Audio probe failed", exc_info=True)
            return {"audio": AUDIO_ERROR}
        return {"audio": audio}

    async def _media(self) -> dict[str, SignalValue]:
        try:
            kinds = list(await self._providers.media.device_kinds())
        except ProbeUnavailable:
            return dict.fromkeys(_MEDIA_KEYS, NO_MEDIA_DEVICES)
        except Exception:  # noqa: BLE001
            logger.debug("Media device enumeration failed", exc_info=True)
            return dict.fromkeys(_MEDIA_KEYS, MEDIA_ERROR)
        return {
            "media_devices": len(kinds),
            "audio_inputs": kinds.count("audioinput"),
            "video_inputs": kinds.count("videoinput"),
            "audio_outputs": kinds.count("audiooutput"),
        }


__all__ = (
    "AUDIO_ERROR",
    "AUDIO_SAMPLE_BINS",
    "AUDIO_TIMEOUT",
    "BASE_FONTS",
    "CANDIDATE_FONTS",
    "CANVAS_ERROR",
    "FONT_ERROR",
    "FONT_PROBE_SIZE",
    "FONT_PROBE_TEXT",
    "MEDIA_ERROR",
    "NAVIGATOR_ERROR",
    "NO_AUDIO_CONTEXT",
    "NO_MEDIA_DEVICES",
    "NO_WEBGL",
    "PLUGIN_ERROR",
    "SCREEN_ERROR",
    "STORAGE_ERROR",
    "SignalCollector",
    "TIMEZONE_ERROR",
    "UNAVAILABLE",
    "WEBGL_ERROR",
)
