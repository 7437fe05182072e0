import json

from device_guard.api.modules.devices.services.public.collector import (
    build_collector_script,
)


def test_default_endpoint_is_json_encoded():
    endpoint = "/devices/it's \"quoted\"\n"

    script = build_collector_script(default_fingerprint_endpoint=endpoint)

    assert f"const endpoint = apiUrl || {json.dumps(endpoint)};" in script
    assert "it's \"quoted\"\n" not in script


def test_audio_timeout_is_injected():
    script = build_collector_script(audio_timeout_ms=250)

    assert "const AUDIO_TIMEOUT_MS = 250;" in script
    assert "const endpoint = apiUrl || \"/devices/fingerprint\";" in script
