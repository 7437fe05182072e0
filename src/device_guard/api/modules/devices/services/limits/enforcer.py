import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from device_guard.api.modules.devices.services.core import normalize_email, truncate_hash
from device_guard.api.modules.devices.services.limits.store import DeviceRecordStore

logger = logging.getLogger(__name__)


class DecisionState(StrEnum):
    BYPASSED = "bypassed"
    ALLOWED = "allowed"
    DENIED = "denied"


class DecisionReason(StrEnum):
    NO_FINGERPRINT = "no_fingerprint"
    ALREADY_REGISTERED = "already_registered"
    REGISTERED = "registered"
    UNDER_LIMIT = "under_limit"
    LIMIT_REACHED = "limit_reached"
    ALREADY_SIGNED_IN = "already_signed_in"
    SESSION_ACTIVE = "session_active"
    STORE_UNAVAILABLE = "store_unavailable"


class Remediation(StrEnum):
    SIGN_IN = "sign_in"
    SIGN_OUT = "sign_out"


@dataclass(frozen=True, slots=True)
class AccountLimitDecision:
    allowed: bool
    state: DecisionState
    reason: DecisionReason
    account_count: int
    account_limit: int
    existing_emails: list[str] = field(default_factory=list)
    remediation: Remediation | None = None
    session_email: str | None = None


class LimitEnforcer:
    """Per-device account cap.

    The lookup and the append run inside one ``store.exclusive`` block, so
    concurrent signups carrying the same hash are decided one at a time and
    cannot overshoot the limit together.
    """

    def __init__(
        self,
        store: DeviceRecordStore,
        account_limit: int,
        clock: Callable[[], datetime] | None = None,
    ):
        if account_limit < 1:
            raise ValueError("account_limit must be at least 1")
        self._store = store
        self._account_limit = account_limit
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def account_limit(self) -> int:
        return self._account_limit

    def store_unavailable(self) -> AccountLimitDecision:
        """Fail-open decision for when the record store cannot be reached."""
        return self._bypass(DecisionReason.STORE_UNAVAILABLE)

    def _bypass(
        self, reason: DecisionReason = DecisionReason.NO_FINGERPRINT
    ) -> AccountLimitDecision:
        return AccountLimitDecision(
            allowed=True,
            state=DecisionState.BYPASSED,
            reason=reason,
            account_count=0,
            account_limit=self._account_limit,
        )

    def _deny(self, fingerprint_hash: str, emails: list[str]) -> AccountLimitDecision:
        logger.info(
            "Account limit reached for device %s (%d/%d)",
            truncate_hash(fingerprint_hash),
            len(emails),
            self._account_limit,
        )
        return AccountLimitDecision(
            allowed=False,
            state=DecisionState.DENIED,
            reason=DecisionReason.LIMIT_REACHED,
            account_count=len(emails),
            account_limit=self._account_limit,
            existing_emails=emails,
            remediation=Remediation.SIGN_IN,
        )

    async def register(
        self,
        fingerprint_hash: str | None,
        email: str,
    ) -> AccountLimitDecision:
        """Decide a signup attempt, recording the e-mail when allowed."""
        if not fingerprint_hash:
            logger.debug("No device fingerprint, skipping account limit")
            return self._bypass()

        email = normalize_email(email)
        async with self._store.exclusive(fingerprint_hash) as tx:
            record = await tx.get()
            emails = list(record.account_emails) if record else []

            if email in emails:
                return AccountLimitDecision(
                    allowed=True,
                    state=DecisionState.ALLOWED,
                    reason=DecisionReason.ALREADY_REGISTERED,
                    account_count=len(emails),
                    account_limit=self._account_limit,
                )

            if len(emails) >= self._account_limit:
                return self._deny(fingerprint_hash, emails)

            record = await tx.append(email, self._clock())

        logger.info(
            "Registered account on device %s (%d/%d)",
            truncate_hash(fingerprint_hash),
            record.account_count,
            self._account_limit,
        )
        return AccountLimitDecision(
            allowed=True,
            state=DecisionState.ALLOWED,
            reason=DecisionReason.REGISTERED,
            account_count=record.account_count,
            account_limit=self._account_limit,
        )

    async def check(
        self,
        fingerprint_hash: str | None,
        email: str,
    ) -> AccountLimitDecision:
        """Read-only variant of ``register``; never mutates the record."""
        if not fingerprint_hash:
            return self._bypass()

        email = normalize_email(email)
        record = await self._store.get(fingerprint_hash)
        emails = list(record.account_emails) if record else []

        if email in emails:
            reason = DecisionReason.ALREADY_REGISTERED
        elif len(emails) >= self._account_limit:
            return self._deny(fingerprint_hash, emails)
        else:
            reason = DecisionReason.UNDER_LIMIT
        return AccountLimitDecision(
            allowed=True,
            state=DecisionState.ALLOWED,
            reason=reason,
            account_count=len(emails),
            account_limit=self._account_limit,
        )


__all__ = (
    "AccountLimitDecision",
    "DecisionReason",
    "DecisionState",
    "LimitEnforcer",
    "Remediation",
)
