from device_guard.api.modules.devices.services.fingerprint import FingerprintComposer
from device_guard.api.modules.devices.services.limits import (
    InMemoryDeviceRecordStore,
    LimitEnforcer,
    SessionGuard,
    SqlDeviceRecordStore,
)
from device_guard.api.modules.devices.services.signals import SignalCollector

__all__ = (
    "FingerprintComposer",
    "InMemoryDeviceRecordStore",
    "LimitEnforcer",
    "SessionGuard",
    "SignalCollector",
    "SqlDeviceRecordStore",
)
