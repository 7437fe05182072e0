import json

from device_guard.api.modules.devices.services.signals.collector import (
    AUDIO_SAMPLE_BINS,
    BASE_FONTS,
    CANDIDATE_FONTS,
    FONT_PROBE_SIZE,
    FONT_PROBE_TEXT,
)


def build_collector_script(
    audio_timeout_ms: int = 1000,
    default_fingerprint_endpoint: str = "/devices/fingerprint",
) -> str:
    return f"""(function(global) {{
  const BASE_FONTS = {json.dumps(list(BASE_FONTS))};
  const CANDIDATE_FONTS = {json.dumps(list(CANDIDATE_FONTS))};
  const PROBE_TEXT = {json.dumps(FONT_PROBE_TEXT)};
  const PROBE_SIZE = {json.dumps(FONT_PROBE_SIZE)};
  const AUDIO_TIMEOUT_MS = {int(audio_timeout_ms)};
  const AUDIO_BINS = {int(AUDIO_SAMPLE_BINS)};

  async function postJson(endpoint, body) {{
    const response = await fetch(endpoint, {{
      method: 'POST',
      headers: {{ 'Content-Type': 'application/json' }},
      body: JSON.stringify(body)
    }});

    if (!response.ok) {{
      const text = await response.text();
      throw new Error('Request failed: ' + response.status + ' ' + text);
    }}

    return response.json();
  }}

  function probeScreen() {{
    try {{
      return {{
        width: screen.width,
        height: screen.height,
        color_depth: screen.colorDepth,
        avail_width: screen.availWidth,
        avail_height: screen.availHeight
      }};
    }} catch (_) {{
      return null;
    }}
  }}

  function probeTimezone() {{
    try {{
      return {{
        name: Intl.DateTimeFormat().resolvedOptions().timeZone || null,
        offset_minutes: new Date().getTimezoneOffset()
      }};
    }} catch (_) {{
      return null;
    }}
  }}

  function probePlugins() {{
    try {{
      const plugins = [];
      for (let i = 0; i < navigator.plugins.length; i++) {{
        const p = navigator.plugins[i];
        plugins.push({{
          name: p.name || '',
          filename: p.filename || '',
          description: p.description || ''
        }});
      }}
      return plugins;
    }} catch (_) {{
      return null;
    }}
  }}

  function probeNavigator() {{
    try {{
      return {{
        platform: navigator.platform || '',
        language: navigator.language || '',
        languages: Array.isArray(navigator.languages) ? navigator.languages.slice(0, 50) : [],
        hardware_concurrency: navigator.hardwareConcurrency || 0,
        device_memory: navigator.deviceMemory || null,
        cookie_enabled: typeof navigator.cookieEnabled === 'boolean' ? navigator.cookieEnabled : null,
        do_not_track: navigator.doNotTrack == null ? null : String(navigator.doNotTrack),
        touch_support: 'ontouchstart' in global,
        max_touch_points: navigator.maxTouchPoints || 0,
        plugins: probePlugins()
      }};
    }} catch (_) {{
      return null;
    }}
  }}

  function probeWebGL() {{
    try {{
      const canvas = document.createElement('canvas');
      const gl = canvas.getContext('webgl') || canvas.getContext('experimental-webgl');
      if (!gl) return {{ status: 'unsupported' }};
      const dbg = gl.getExtension('WEBGL_debug_renderer_info');
      return {{
        status: 'ok',
        vendor: dbg ? String(gl.getParameter(dbg.UNMASKED_VENDOR_WEBGL)) : '',
        renderer: dbg ? String(gl.getParameter(dbg.UNMASKED_RENDERER_WEBGL)) : '',
        version: String(gl.getParameter(gl.VERSION) || '')
      }};
    }} catch (_) {{
      return {{ status: 'error' }};
    }}
  }}

  function probeCanvas() {{
    try {{
      const canvas = document.createElement('canvas');
      const ctx = canvas.getContext('2d');
      ctx.textBaseline = 'top';
      ctx.font = '14px Arial';
      ctx.fillStyle = '#f60';
      ctx.fillRect(125, 1, 62, 20);
      ctx.fillStyle = '#069';
      ctx.fillText('Device fingerprinting', 2, 15);
      ctx.fillStyle = 'rgba(102, 204, 0, 0.7)';
      ctx.fillText('Device fingerprinting', 4, 17);
      return {{ status: 'ok', data_url: canvas.toDataURL() }};
    }} catch (_) {{
      return {{ status: 'error' }};
    }}
  }}

  function probeAudio() {{
    const Ctx = global.AudioContext || global.webkitAudioContext;
    if (!Ctx) return Promise.resolve({{ status: 'unsupported' }});

    let context, oscillator;
    try {{
      context = new Ctx();
      oscillator = context.createOscillator();
      const analyser = context.createAnalyser();
      const gain = context.createGain();
      const processor = context.createScriptProcessor(4096, 1, 1);

      gain.gain.value = 0;
      oscillator.type = 'triangle';
      oscillator.frequency.value = 10000;
      oscillator.connect(analyser);
      analyser.connect(processor);
      processor.connect(gain);
      gain.connect(context.destination);
      oscillator.start(0);

      return new Promise((resolve) => {{
        let settled = false;
        const finish = (result) => {{
          if (settled) return;
          settled = true;
          try {{ oscillator.stop(); }} catch (_) {{}}
          try {{ context.close(); }} catch (_) {{}}
          resolve(result);
        }};

        let frames = 0;
        processor.onaudioprocess = () => {{
          if (frames++ <= 10) return;
          const bins = new Float32Array(analyser.frequencyBinCount);
          analyser.getFloatFrequencyData(bins);
          finish({{
            status: 'ok',
            samples: Array.from(bins.slice(0, AUDIO_BINS)).map(
              (v) => (Number.isFinite(v) ? v : null)
            )
          }});
        }};

        setTimeout(() => finish({{ status: 'timeout' }}), AUDIO_TIMEOUT_MS);
      }});
    }} catch (_) {{
      try {{ if (context) context.close(); }} catch (_) {{}}
      return Promise.resolve({{ status: 'error' }});
    }}
  }}

  function probeFonts() {{
    try {{
      const canvas = document.createElement('canvas');
      const ctx = canvas.getContext('2d');
      const widths = {{}};
      const measure = (family) => {{
        ctx.font = PROBE_SIZE + ' ' + family;
        widths[family] = ctx.measureText(PROBE_TEXT).width;
      }};
      BASE_FONTS.forEach(measure);
      CANDIDATE_FONTS.forEach((font) => {{
        BASE_FONTS.forEach((base) => measure(font + ', ' + base));
      }});
      return {{ status: 'ok', widths: widths }};
    }} catch (_) {{
      return {{ status: 'error' }};
    }}
  }}

  function probeStorage() {{
    const check = (fn) => {{
      try {{
        return !!fn();
      }} catch (_) {{
        return false;
      }}
    }};
    return {{
      local_storage: check(() => global.localStorage),
      session_storage: check(() => global.sessionStorage),
      indexed_db: check(() => global.indexedDB)
    }};
  }}

  async function probeMediaDevices() {{
    if (!navigator.mediaDevices || !navigator.mediaDevices.enumerateDevices) {{
      return {{ status: 'unsupported' }};
    }}
    try {{
      const devices = await navigator.mediaDevices.enumerateDevices();
      return {{ status: 'ok', kinds: devices.map((d) => d.kind) }};
    }} catch (_) {{
      return {{ status: 'error' }};
    }}
  }}

  async function collectReport() {{
    const [audio, mediaDevices] = await Promise.all([probeAudio(), probeMediaDevices()]);
    return {{
      screen: probeScreen(),
      timezone: probeTimezone(),
      navigator: probeNavigator(),
      webgl: probeWebGL(),
      canvas: probeCanvas(),
      audio: audio,
      fonts: probeFonts(),
      storage: probeStorage(),
      media_devices: mediaDevices
    }};
  }}

  async function collect(apiUrl) {{
    const endpoint = apiUrl || {json.dumps(default_fingerprint_endpoint)};
    const report = await collectReport();
    return postJson(endpoint, report);
  }}

  async function attach(body, apiUrl) {{
    const target = body || {{}};
    try {{
      const fingerprint = await collect(apiUrl);
      if (fingerprint && fingerprint.compositeHash) {{
        target.deviceFingerprint = {{
          compositeHash: fingerprint.compositeHash,
          signals: fingerprint.signals
        }};
      }}
    }} catch (_) {{
      // fingerprinting never blocks the request it is attached to
    }}
    return target;
  }}

  global.DeviceGuard = {{
    collectReport,
    collect,
    attach
  }};
}})(window);
"""
