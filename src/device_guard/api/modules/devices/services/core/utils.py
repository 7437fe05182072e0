import math

from device_guard.api.modules.devices.schema import SignalValue


def normalize_email(email: str) -> str:
    return email.strip().lower()


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part and the domain."""
    local, sep, domain = email.partition("@")
    if not sep:
        return email
    return local[:2] + "*" * max(0, len(local) - 2) + "@" + domain


def format_number(value: float | int | None) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def serialize_signal_value(value: SignalValue) -> str:
    if isinstance(value, str):
        return value
    return format_number(value)


def truncate_hash(fingerprint_hash: str, keep: int = 12) -> str:
    if len(fingerprint_hash) <= keep:
        return fingerprint_hash
    return fingerprint_hash[:keep] + "..."


__all__ = (
    "format_number",
    "mask_email",
    "normalize_email",
    "serialize_signal_value",
    "truncate_hash",
)
