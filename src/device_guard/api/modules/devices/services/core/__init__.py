from device_guard.api.modules.devices.services.core.utils import (
    format_number,
    mask_email,
    normalize_email,
    serialize_signal_value,
    truncate_hash,
)

__all__ = (
    "format_number",
    "mask_email",
    "normalize_email",
    "serialize_signal_value",
    "truncate_hash",
)
