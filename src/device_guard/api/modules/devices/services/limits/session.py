from device_guard.api.modules.devices.services.core import normalize_email
from device_guard.api.modules.devices.services.limits.enforcer import (
    AccountLimitDecision,
    DecisionReason,
    DecisionState,
    Remediation,
)


class SessionGuard:
    """Refuses to switch an authenticated client to a different account."""

    def __init__(self, account_limit: int):
        self._account_limit = account_limit

    def check(
        self,
        session_email: str | None,
        requested_email: str,
    ) -> AccountLimitDecision | None:
        if not session_email:
            return None

        current = normalize_email(session_email)
        if current == normalize_email(requested_email):
            return AccountLimitDecision(
                allowed=True,
                state=DecisionState.ALLOWED,
                reason=DecisionReason.ALREADY_SIGNED_IN,
                account_count=0,
                account_limit=self._account_limit,
                session_email=current,
            )
        return AccountLimitDecision(
            allowed=False,
            state=DecisionState.DENIED,
            reason=DecisionReason.SESSION_ACTIVE,
            account_count=0,
            account_limit=self._account_limit,
            remediation=Remediation.SIGN_OUT,
            session_email=current,
        )


__all__ = ("SessionGuard",)
