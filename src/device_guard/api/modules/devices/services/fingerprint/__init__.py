from device_guard.api.modules.devices.services.fingerprint.composer import (
    CompositionResult,
    FingerprintComposer,
    RollingHashStrategy,
    Sha256Strategy,
    select_hash_strategy,
)

__all__ = (
    "CompositionResult",
    "FingerprintComposer",
    "RollingHashStrategy",
    "Sha256Strategy",
    "select_hash_strategy",
)
