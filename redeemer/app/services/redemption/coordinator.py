"""Redemption coordinator.

Runs one redemption end to end: input validation, per-code lock, record
checks, the invite call, the state transition, lock release and the audit
entry. The invite call is the only step that cannot be undone, so it happens
only while the lock is held and only after the record has been confirmed
unused.

Ordering per attempt:
1. validate email and code (no store access)
2. check invite credentials and resolve the store
3. acquire code_lock:{code} (SET NX PX) or fail InUse
4. read code:{code}; absent -> InvalidCode, unparsable -> CorruptRecord,
   used -> AlreadyUsed
5. send the invite; failure leaves the record unused
6. overwrite the record as used
7. release the lock (always)
8. append one operation log entry
"""

import re
from typing import Any, Optional

from redis.exceptions import RedisError

from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_log_context, get_logger
from redeemer.app.core.redis import get_redis
from redeemer.app.exceptions import (
    CodeAlreadyUsedError,
    InputValidationError,
    InvalidCodeError,
    RedeemerException,
    ServiceMisconfiguredError,
    StoreUnavailableError,
    UpstreamSendError,
)
from redeemer.app.providers import BaseInviteSender, InviteResult, get_invite_sender
from redeemer.app.services.operation_log import OperationLog

from .lock import RedemptionLock
from .models import RedemptionResult
from .registry import CodeRegistry, validate_code

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(raw: Any) -> str:
    """Return the trimmed email, or raise InputValidationError."""
    email = raw.strip() if isinstance(raw, str) else ""
    if not email or not EMAIL_PATTERN.match(email):
        raise InputValidationError("email", "Please enter a valid email address")
    return email


class RedemptionCoordinator:
    """Coordinates redemptions so each code triggers at most one invite.

    No in-process state is used for mutual exclusion; every instance of the
    service sharing the Redis store gets the same guarantee.
    """

    def __init__(
        self,
        redis_client: Optional[Any] = None,
        sender: Optional[BaseInviteSender] = None,
        account_id: Optional[str] = None,
        token: Optional[str] = None,
        lock_ttl_ms: Optional[int] = None,
    ) -> None:
        self._redis = redis_client
        self._sender = sender
        self._account_id = account_id
        self._token = token
        self._lock_ttl_ms = lock_ttl_ms

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    def _get_sender(self) -> BaseInviteSender:
        if self._sender is None:
            self._sender = get_invite_sender()
        return self._sender

    def _credentials(self) -> tuple[str, str]:
        account_id = self._account_id or settings.chatgpt_account_id
        token = self._token or settings.chatgpt_token
        if (not account_id or not token) and not settings.invite_mock_sender:
            logger.error("CHATGPT_ACCOUNT_ID / CHATGPT_TOKEN are not configured")
            raise ServiceMisconfiguredError("Service configuration error")
        return account_id, token

    async def redeem(self, code: Any, email: Any, ip: Optional[str] = None) -> RedemptionResult:
        """Redeem ``code`` for ``email``.

        Never raises for expected failures; every outcome is returned as a
        RedemptionResult carrying the error code and HTTP status.
        """
        try:
            email = validate_email(email)
            code = validate_code(code)
            account_id, token = self._credentials()
            redis = self._get_redis()
        except RedeemerException as exc:
            return RedemptionResult.from_error(exc)

        log_ctx = get_log_context(code=code, ip=ip)
        try:
            result = await self._redeem_locked(redis, code, email, account_id, token)
        except RedeemerException as exc:
            result = RedemptionResult.from_error(exc)
        except RedisError as exc:
            logger.error(f"Redis error during redemption: {exc}", extra=log_ctx)
            result = RedemptionResult.from_error(StoreUnavailableError("Redis is unavailable"))

        oplog = OperationLog(redis)
        if result.success:
            logger.info("Code redeemed", extra=log_ctx)
            await oplog.append("redeem_success", email=email, code=code, ip=ip)
        else:
            logger.info(f"Redemption failed: {result.error}", extra=log_ctx)
            await oplog.append("redeem_fail", email=email, code=code, ip=ip, reason=result.message)
        return result

    async def _redeem_locked(
        self,
        redis: Any,
        code: str,
        email: str,
        account_id: str,
        token: str,
    ) -> RedemptionResult:
        lock = RedemptionLock(redis, self._lock_ttl_ms)
        registry = CodeRegistry(redis)

        async with lock.hold(code):
            record = await registry.get(code)
            if record is None:
                raise InvalidCodeError(code)
            if record.used:
                raise CodeAlreadyUsedError(code)

            invite = await self._send_invite(email, account_id, token, code)
            if not invite.success:
                raise UpstreamSendError(invite.message, invite.data)

            try:
                await registry.mark_used(code, record, email)
            except RedisError as e:
                # The invite is out but the code still reads as unused.
                logger.error(
                    f"Invite sent to {email} but code state was not saved: {e}",
                    extra=get_log_context(code=code),
                )
                raise StoreUnavailableError(
                    "Invite was sent but the code state could not be saved, please contact the administrator"
                ) from e

        return RedemptionResult.succeeded(invite.message, invite.data)

    async def _send_invite(self, email: str, account_id: str, token: str, code: str) -> InviteResult:
        sender = self._get_sender()
        try:
            return await sender.send(email, account_id, token)
        except Exception as e:
            logger.exception(f"Invite sender raised: {e}", extra=get_log_context(code=code))
            return InviteResult(success=False, message=str(e) or "Failed to send invite")


_redemption_coordinator: Optional[RedemptionCoordinator] = None


def get_redemption_coordinator() -> RedemptionCoordinator:
    """Get the global redemption coordinator instance."""
    global _redemption_coordinator
    if _redemption_coordinator is None:
        _redemption_coordinator = RedemptionCoordinator()
    return _redemption_coordinator


def reset_redemption_coordinator() -> None:
    """Reset the global redemption coordinator instance."""
    global _redemption_coordinator
    _redemption_coordinator = None
