from device_guard.api.modules.devices.services.limits.enforcer import (
    AccountLimitDecision,
    DecisionReason,
    DecisionState,
    LimitEnforcer,
    Remediation,
)
from device_guard.api.modules.devices.services.limits.session import SessionGuard
from device_guard.api.modules.devices.services.limits.store import (
    DeviceRecord,
    DeviceRecordStore,
    DeviceRecordSummary,
    InMemoryDeviceRecordStore,
    SqlDeviceRecordStore,
)

__all__ = (
    "AccountLimitDecision",
    "DecisionReason",
    "DecisionState",
    "DeviceRecord",
    "DeviceRecordStore",
    "DeviceRecordSummary",
    "InMemoryDeviceRecordStore",
    "LimitEnforcer",
    "Remediation",
    "SessionGuard",
    "SqlDeviceRecordStore",
)
