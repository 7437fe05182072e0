from device_guard.api.modules.devices.services.signals.collector import SignalCollector
from device_guard.api.modules.devices.services.signals.host import host_providers
from device_guard.api.modules.devices.services.signals.providers import (
    ProbeUnavailable,
    SignalProviders,
)
from device_guard.api.modules.devices.services.signals.report import (
    providers_from_report,
)

__all__ = (
    "ProbeUnavailable",
    "SignalCollector",
    "SignalProviders",
    "host_providers",
    "providers_from_report",
)
