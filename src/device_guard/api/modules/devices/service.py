import logging
import math

from fastapi.responses import JSONResponse
from pydantic import ValidationError

from device_guard.api.modules.devices.schema import (
    DecisionResponse,
    DenialResponse,
    DeviceFingerprint,
    DeviceFingerprintPayload,
    DeviceRecordListResponse,
    DeviceRecordPaginationParams,
    DeviceRecordResponse,
    DeviceStatsResponse,
    DeviceViolationResponse,
    LoginCheckRequest,
    ProbeReport,
    RawSignalSet,
    SignupCheckRequest,
)
from device_guard.api.modules.devices.services.core import mask_email, truncate_hash
from device_guard.api.modules.devices.services.fingerprint import FingerprintComposer
from device_guard.api.modules.devices.services.limits import (
    AccountLimitDecision,
    DeviceRecordStore,
    LimitEnforcer,
    SessionGuard,
)
from device_guard.api.modules.devices.services.signals import (
    SignalCollector,
    providers_from_report,
)
from device_guard.settings import Config

logger = logging.getLogger(__name__)

LIMIT_REACHED_ERROR = "Account creation limit reached"
ALREADY_SIGNED_IN_ERROR = "Already signed in"

# Width of the fingerprint_hash columns.
MAX_HASH_LENGTH = 128

_SECONDS_PER_DAY = 60 * 60 * 24


class DeviceGuardFacadeService:
    def __init__(
        self,
        config: Config,
        composer: FingerprintComposer,
        enforcer: LimitEnforcer,
        session_guard: SessionGuard,
        store: DeviceRecordStore,
    ):
        self._config = config
        self._composer = composer
        self._enforcer = enforcer
        self._session_guard = session_guard
        self._store = store

    async def fingerprint(self, report: ProbeReport) -> DeviceFingerprint:
        collector = SignalCollector(
            providers_from_report(report),
            audio_timeout_seconds=self._config.devices.audio_timeout_ms / 1000,
        )
        signals = await collector.collect()
        fingerprint = self._composer.fingerprint(signals)
        if fingerprint.error:
            logger.warning("Device fingerprint composed without a hash")
        return fingerprint

    def resolve_hash(self, payload: DeviceFingerprintPayload | None) -> str | None:
        """Pick the hash a decision is keyed on.

        A payload without a usable composite hash yields ``None`` so
        enforcement is bypassed. With well-formed signals attached the hash is
        recomputed here and the recomputed value wins over the submitted one.
        Malformed signals are ignored and the submitted hash is kept.
        """
        if payload is None or payload.composite_hash is None:
            return None
        submitted = payload.composite_hash.strip()
        if not submitted:
            return None
        if len(submitted) > MAX_HASH_LENGTH:
            logger.warning(
                "Ignoring device hash longer than %d characters", MAX_HASH_LENGTH
            )
            return None
        if payload.signals is None or not self._config.devices.recompute_composite_hash:
            return submitted

        try:
            signals = RawSignalSet.model_validate(payload.signals)
        except ValidationError as exc:
            logger.warning(
                "Malformed signals for device %s, keeping submitted hash",
                truncate_hash(submitted),
            )
            logger.debug("Signal validation error: %s", exc)
            return submitted

        recomputed = self._composer.compose(signals).composite_hash
        if recomputed is None:
            return submitted
        if recomputed != submitted:
            logger.warning(
                "Submitted device hash %s does not match signals (%s)",
                truncate_hash(submitted),
                truncate_hash(recomputed),
            )
        return recomputed

    async def signup_check(
        self, payload: SignupCheckRequest
    ) -> DecisionResponse | JSONResponse:
        fingerprint_hash = self.resolve_hash(payload.device_fingerprint)
        try:
            decision = await self._enforcer.register(fingerprint_hash, payload.email)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to record device account, allowing signup")
            return self._to_response(self._enforcer.store_unavailable())

        if decision.allowed:
            return self._to_response(decision)
        return self._limit_denial(decision)

    async def login_check(
        self, payload: LoginCheckRequest
    ) -> DecisionResponse | JSONResponse:
        session_decision = self._session_guard.check(payload.session_email, payload.email)
        if session_decision is not None and not session_decision.allowed:
            logger.info("Sign-in refused while another session is active")
            return self._denial(
                DenialResponse(
                    error=ALREADY_SIGNED_IN_ERROR,
                    message=(
                        f"You are already signed in as {session_decision.session_email}. "
                        "Please sign out first to use a different account."
                    ),
                    can_sign_in=False,
                    can_sign_out=True,
                )
            )
        if session_decision is not None:
            return self._to_response(session_decision)

        fingerprint_hash = self.resolve_hash(payload.device_fingerprint)
        if not self._config.devices.enforce_on_login or fingerprint_hash is None:
            return DecisionResponse(
                allowed=True,
                state="bypassed" if fingerprint_hash is None else "allowed",
                reason=None,
                account_count=0,
                account_limit=self._enforcer.account_limit,
            )

        try:
            decision = await self._enforcer.check(fingerprint_hash, payload.email)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read device record, allowing sign-in")
            return self._to_response(self._enforcer.store_unavailable())

        if decision.allowed:
            return self._to_response(decision)
        return self._limit_denial(decision)

    async def records(
        self, params: DeviceRecordPaginationParams
    ) -> DeviceRecordListResponse:
        records, total = await self._store.page(
            limit=params.page_size,
            offset=params.offset,
            min_accounts=params.min_accounts,
        )
        return DeviceRecordListResponse(
            items=[
                DeviceRecordResponse(
                    fingerprint_hash=record.fingerprint_hash,
                    account_count=record.account_count,
                    account_emails=list(record.account_emails),
                    first_seen_at=record.first_seen_at,
                    last_seen_at=record.last_seen_at,
                )
                for record in records
            ],
            total=total,
            page=params.page,
            page_size=params.page_size,
        )

    async def stats(self) -> DeviceStatsResponse:
        devices = self._config.devices
        summary = await self._store.summary(
            threshold=devices.violation_threshold,
            limit=devices.violations_limit,
        )
        return DeviceStatsResponse(
            total_devices=summary.total_devices,
            unique_accounts=summary.unique_accounts,
            total_registrations=summary.total_registrations,
            accounts_per_device=summary.total_registrations
            / max(1, summary.total_devices),
            account_limit=self._enforcer.account_limit,
            violation_threshold=devices.violation_threshold,
            potential_violations=[
                DeviceViolationResponse(
                    fingerprint_hash=truncate_hash(record.fingerprint_hash),
                    account_count=record.account_count,
                    first_seen_at=record.first_seen_at,
                    last_seen_at=record.last_seen_at,
                    days_between=math.ceil(
                        (record.last_seen_at - record.first_seen_at).total_seconds()
                        / _SECONDS_PER_DAY
                    ),
                )
                for record in summary.violations
            ],
        )

    def _to_response(self, decision: AccountLimitDecision) -> DecisionResponse:
        return DecisionResponse(
            allowed=decision.allowed,
            state=decision.state.value,
            reason=decision.reason.value,
            account_count=decision.account_count,
            account_limit=decision.account_limit,
        )

    def _limit_denial(self, decision: AccountLimitDecision) -> JSONResponse:
        emails = decision.existing_emails
        if self._config.devices.mask_existing_emails:
            emails = [mask_email(email) for email in emails]
        return self._denial(
            DenialResponse(
                error=LIMIT_REACHED_ERROR,
                message=(
                    f"You have reached the maximum limit of {decision.account_limit} "
                    "accounts per device. Please sign in to one of your existing accounts."
                ),
                account_count=decision.account_count,
                account_limit=decision.account_limit,
                existing_emails=emails,
                can_sign_in=True,
            )
        )

    @staticmethod
    def _denial(body: DenialResponse) -> JSONResponse:
        return JSONResponse(
            content=body.model_dump(by_alias=True, mode="json"),
            status_code=403,
        )


__all__ = ("DeviceGuardFacadeService",)
