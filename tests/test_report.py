import pytest

from device_guard.api.modules.devices.schema import ProbeReport
from device_guard.api.modules.devices.services.signals import (
    SignalCollector,
    providers_from_report,
)
from device_guard.api.modules.devices.services.signals.collector import (
    AUDIO_ERROR,
    AUDIO_TIMEOUT,
    CANVAS_ERROR,
    FONT_ERROR,
    NAVIGATOR_ERROR,
    NO_AUDIO_CONTEXT,
    NO_MEDIA_DEVICES,
    NO_WEBGL,
    PLUGIN_ERROR,
    SCREEN_ERROR,
    STORAGE_ERROR,
    TIMEZONE_ERROR,
    UNAVAILABLE,
    WEBGL_ERROR,
)


async def _collect(report: dict):
    collector = SignalCollector(providers_from_report(ProbeReport.model_validate(report)))
    return await collector.collect()


async def test_full_report(full_report):
    signals = await _collect(full_report)

    assert signals.screen == "1920x1080x24"
    assert signals.timezone == "Europe/Berlin"
    assert signals.webgl == "Google Inc. (Apple)|ANGLE (Apple, Apple M1, OpenGL 4.1)|WebGL 1.0"
    assert signals.fonts == "Arial,Helvetica"
    assert len(signals.audio.split(",")) == 30
    assert signals.audio.split(",")[:2] == ["-120.5", "-119.5"]
    assert signals.device_memory == 8
    assert signals.indexed_db is True
    assert (signals.media_devices, signals.audio_inputs) == (3, 1)


async def test_empty_report_is_all_sentinels():
    signals = await _collect({})

    assert signals.screen == SCREEN_ERROR
    assert signals.timezone == TIMEZONE_ERROR
    assert signals.platform == NAVIGATOR_ERROR
    assert signals.webgl == WEBGL_ERROR
    assert signals.canvas == CANVAS_ERROR
    assert signals.audio == AUDIO_ERROR
    assert signals.fonts == FONT_ERROR
    assert signals.plugins == PLUGIN_ERROR
    assert signals.local_storage == STORAGE_ERROR
    assert signals.media_devices == "media-error"


@pytest.mark.parametrize(
    ("section", "value", "key", "expected"),
    [
        ("webgl", {"status": "unsupported"}, "webgl", NO_WEBGL),
        ("webgl", {"status": "error"}, "webgl", WEBGL_ERROR),
        ("canvas", {"status": "error"}, "canvas", CANVAS_ERROR),
        ("audio", {"status": "unsupported"}, "audio", NO_AUDIO_CONTEXT),
        ("audio", {"status": "timeout"}, "audio", AUDIO_TIMEOUT),
        ("audio", {"status": "error"}, "audio", AUDIO_ERROR),
        ("fonts", {"status": "error"}, "fonts", FONT_ERROR),
        ("fonts", {"status": "ok", "widths": {"monospace": 1.0}}, "fonts", FONT_ERROR),
        ("media_devices", {"status": "unsupported"}, "video_inputs", NO_MEDIA_DEVICES),
        ("timezone", {"name": None, "offset_minutes": 0}, "timezone", TIMEZONE_ERROR),
    ],
)
async def test_reported_section_status(full_report, section, value, key, expected):
    full_report[section] = value

    signals = await _collect(full_report)

    assert getattr(signals, key) == expected


async def test_navigator_gaps(full_report):
    full_report["navigator"].update(
        device_memory=None, plugins=None, cookie_enabled=None, do_not_track="1"
    )

    signals = await _collect(full_report)

    assert signals.device_memory == UNAVAILABLE
    assert signals.plugins == PLUGIN_ERROR
    assert signals.cookie_enabled == NAVIGATOR_ERROR
    assert signals.do_not_track == "1"


async def test_non_finite_audio_bins_are_kept(full_report):
    full_report["audio"]["samples"] = [None, -50.0]

    signals = await _collect(full_report)

    assert signals.audio == "null,-50"


@pytest.mark.parametrize(
    "screen",
    [
        {"width": -1, "height": 1080, "color_depth": 24, "avail_width": 1, "avail_height": 1},
        "1920x1080",
    ],
)
async def test_invalid_section_only_affects_its_own_signals(full_report, screen):
    full_report["screen"] = screen

    signals = await _collect(full_report)

    assert signals.screen == SCREEN_ERROR
    assert signals.avail_screen == SCREEN_ERROR
    assert signals.timezone == "Europe/Berlin"
    assert signals.device_memory == 8


async def test_unknown_key_in_section_drops_only_that_section(full_report):
    full_report["storage"]["surprise"] = 1

    signals = await _collect(full_report)

    assert signals.local_storage == STORAGE_ERROR
    assert signals.screen == "1920x1080x24"


def test_out_of_range_section_is_dropped(full_report):
    full_report["navigator"]["hardware_concurrency"] = 2048

    report = ProbeReport.model_validate(full_report)

    assert report.navigator is None
    assert report.screen is not None
