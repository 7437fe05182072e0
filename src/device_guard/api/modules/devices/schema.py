import logging
from datetime import datetime
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    ValidatorFunctionWrapHandler,
    field_validator,
)
from pydantic.alias_generators import to_camel

from device_guard.api.common.schema import Pagination, PaginationParams

logger = logging.getLogger(__name__)

SignalValue = bool | int | float | str

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+$"


class RawSignalSet(BaseModel):
    """Every collected signal, in the order used for hash composition."""

    screen: SignalValue
    avail_screen: SignalValue
    timezone: SignalValue
    timezone_offset: SignalValue
    platform: SignalValue
    language: SignalValue
    languages: SignalValue
    hardware_concurrency: SignalValue
    device_memory: SignalValue
    webgl: SignalValue
    canvas: SignalValue
    audio: SignalValue
    fonts: SignalValue
    plugins: SignalValue
    local_storage: SignalValue
    session_storage: SignalValue
    indexed_db: SignalValue
    cookie_enabled: SignalValue
    do_not_track: SignalValue
    touch_support: SignalValue
    max_touch_points: SignalValue
    media_devices: SignalValue
    audio_inputs: SignalValue
    video_inputs: SignalValue
    audio_outputs: SignalValue

    model_config = ConfigDict(extra="forbid", frozen=True)

    def ordered_values(self) -> tuple[SignalValue, ...]:
        return tuple(getattr(self, key) for key in SIGNAL_KEYS)


SIGNAL_KEYS: tuple[str, ...] = tuple(RawSignalSet.model_fields)


# Raw probe outputs reported by the browser collector script.


class ScreenReport(BaseModel):
    width: int = Field(..., ge=0, le=100_000)
    height: int = Field(..., ge=0, le=100_000)
    color_depth: int = Field(..., ge=0, le=64)
    avail_width: int = Field(..., ge=0, le=100_000)
    avail_height: int = Field(..., ge=0, le=100_000)

    model_config = ConfigDict(extra="forbid")


class TimezoneReport(BaseModel):
    name: str | None = Field(default=None, max_length=128)
    offset_minutes: int = Field(..., ge=-900, le=900)

    model_config = ConfigDict(extra="forbid")


class PluginReport(BaseModel):
    name: str = Field(default="", max_length=256)
    filename: str = Field(default="", max_length=256)
    description: str = Field(default="", max_length=1024)

    model_config = ConfigDict(extra="forbid")


class NavigatorReport(BaseModel):
    platform: str = Field(default="", max_length=128)
    language: str = Field(default="", max_length=64)
    languages: list[str] = Field(default_factory=list, max_length=50)
    hardware_concurrency: int = Field(default=0, ge=0, le=1024)
    device_memory: float | None = Field(default=None, ge=0, le=1024)
    cookie_enabled: bool | None = None
    do_not_track: str | None = Field(default=None, max_length=32)
    touch_support: bool = False
    max_touch_points: int = Field(default=0, ge=0, le=256)
    plugins: list[PluginReport] | None = Field(default=None, max_length=200)

    model_config = ConfigDict(extra="forbid")


ProbeStatus = Literal["ok", "unsupported", "error"]


class WebGLReport(BaseModel):
    status: ProbeStatus = "ok"
    vendor: str = Field(default="", max_length=256)
    renderer: str = Field(default="", max_length=512)
    version: str = Field(default="", max_length=256)

    model_config = ConfigDict(extra="forbid")


class CanvasReport(BaseModel):
    status: ProbeStatus = "ok"
    data_url: str = Field(default="", max_length=262_144)

    model_config = ConfigDict(extra="forbid")


class AudioReport(BaseModel):
    status: Literal["ok", "unsupported", "error", "timeout"] = "ok"
    samples: list[float | None] = Field(default_factory=list, max_length=4096)

    model_config = ConfigDict(extra="forbid")


class FontReport(BaseModel):
    status: ProbeStatus = "ok"
    widths: dict[str, float] = Field(default_factory=dict, max_length=512)

    model_config = ConfigDict(extra="forbid")


class StorageReport(BaseModel):
    local_storage: bool = False
    session_storage: bool = False
    indexed_db: bool = False

    model_config = ConfigDict(extra="forbid")


class MediaDevicesReport(BaseModel):
    status: ProbeStatus = "ok"
    kinds: list[str] = Field(default_factory=list, max_length=256)

    model_config = ConfigDict(extra="forbid")


class ProbeReport(BaseModel):
    screen: ScreenReport | None = None
    timezone: TimezoneReport | None = None
    navigator: NavigatorReport | None = None
    webgl: WebGLReport | None = None
    canvas: CanvasReport | None = None
    audio: AudioReport | None = None
    fonts: FontReport | None = None
    storage: StorageReport | None = None
    media_devices: MediaDevicesReport | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_invalid_section(
        cls, value: Any, handler: ValidatorFunctionWrapHandler, info: ValidationInfo
    ) -> Any:
        # An unusable section reads as "not reported" and falls back to its sentinel.
        try:
            return handler(value)
        except ValidationError as exc:
            logger.debug("Dropping invalid %s report: %s", info.field_name, exc)
            return None


# External contract with the collaborating auth layer (camelCase on the wire).


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceFingerprint(_CamelModel):
    composite_hash: str | None = None
    signals: RawSignalSet
    collected_at: datetime
    error: str | None = None


class DeviceFingerprintPayload(_CamelModel):
    composite_hash: str | None = None
    # Checked against RawSignalSet when the hash is resolved.
    signals: dict[str, Any] | None = None
    collected_at: datetime | None = None
    error: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    @field_validator("collected_at", "error", mode="wrap")
    @classmethod
    def _drop_invalid_metadata(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> Any:
        try:
            return handler(value)
        except ValidationError:
            return None


class SignupCheckRequest(_CamelModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=EMAIL_PATTERN)
    device_fingerprint: DeviceFingerprintPayload | None = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    @field_validator("device_fingerprint", mode="wrap")
    @classmethod
    def _lenient_fingerprint(
        cls, value: Any, handler: ValidatorFunctionWrapHandler
    ) -> DeviceFingerprintPayload | None:
        # A broken fingerprint bypasses enforcement instead of failing the request.
        try:
            return handler(value)
        except ValidationError as exc:
            logger.warning("Ignoring malformed device fingerprint")
            logger.debug("Device fingerprint validation error: %s", exc)
            return None


class LoginCheckRequest(SignupCheckRequest):
    session_email: str | None = Field(
        default=None, min_length=3, max_length=320, pattern=EMAIL_PATTERN
    )


DecisionState = Literal["bypassed", "allowed", "denied"]


class DecisionResponse(_CamelModel):
    allowed: bool
    state: DecisionState
    reason: str | None = None
    account_count: int
    account_limit: int


class DenialResponse(_CamelModel):
    error: str
    message: str
    account_count: int | None = None
    account_limit: int | None = None
    existing_emails: list[str] = Field(default_factory=list)
    can_sign_in: bool = False
    can_sign_out: bool = False


class DeviceRecordResponse(BaseModel):
    fingerprint_hash: str
    account_count: int
    account_emails: list[str]
    first_seen_at: datetime
    last_seen_at: datetime


class DeviceRecordPaginationParams(PaginationParams):
    min_accounts: int | None = Field(default=None, ge=0)


class DeviceRecordListResponse(Pagination[DeviceRecordResponse]):
    pass


class DeviceViolationResponse(BaseModel):
    fingerprint_hash: str
    account_count: int
    first_seen_at: datetime
    last_seen_at: datetime
    days_between: int


class DeviceStatsResponse(BaseModel):
    total_devices: int
    unique_accounts: int
    total_registrations: int
    accounts_per_device: float
    account_limit: int
    violation_threshold: int
    potential_violations: list[DeviceViolationResponse]
