"""
Pre-call balance gate and call-completion charging.

The guard only reads the balance; the store's atomic deduction is the single
writer. Its checks shrink the race window between two concurrent calls but
cannot close it, which is why the deduction is keyed by the provider's
call id and enforced server-side.

Any failure to read the balance is treated as "unknown" and denies the call.
"""
import math
import asyncio
import logging
from typing import Optional

from drscale.core.config import (
    BALANCE_FETCH_TIMEOUT_SEC,
    CRITICAL_BALANCE_THRESHOLD,
)
from drscale.core.errors import AccountBlocked, InsufficientFunds, InvalidInput, UnknownBalance
from drscale.core.permissions import Permission
from drscale.core.security import AuthSession
from drscale.models.billing import BalanceStatus, CallAuthorization, DeductionResult, UserBalance
from drscale.services.balance_status import classify
from drscale.services.deduction import DeductionGateway
from drscale.services.pricing import build_estimate, estimate_cost
from drscale.storage.interface import BalanceStore

logger = logging.getLogger(__name__)


class BalanceGuard:
    def __init__(
        self,
        session: AuthSession,
        store: BalanceStore,
        gateway: DeductionGateway = None,
        critical_threshold: float = CRITICAL_BALANCE_THRESHOLD,
        fetch_timeout: float = BALANCE_FETCH_TIMEOUT_SEC,
    ):
        self.session = session
        self._store = store
        self._gateway = gateway or DeductionGateway(store)
        self.critical_threshold = critical_threshold
        self.fetch_timeout = fetch_timeout

    async def _fetch_balance(self) -> UserBalance:
        if not self.session.company_id:
            raise UnknownBalance("session has no company")
        try:
            bal = await asyncio.wait_for(
                self._store.get_balance(self.session.user_id, self.session.company_id),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            raise UnknownBalance(f"balance fetch timed out after {self.fetch_timeout}s")
        if bal is None:
            raise UnknownBalance("no balance record")
        return bal

    async def get_balance_status(self) -> Optional[BalanceStatus]:
        """Current status, re-read on every call. ``None`` means unknown."""
        self.session.require(Permission.VIEW_BALANCE)
        try:
            bal = await self._fetch_balance()
            return classify(bal.balance, bal.warning_threshold, self.critical_threshold)
        except Exception as e:
            logger.warning(f"Balance unknown for user={self.session.user_id}: {e}")
            return None

    async def check_sufficient_balance(self, estimated_cost: float) -> bool:
        if not isinstance(estimated_cost, (int, float)) or not math.isfinite(estimated_cost) or estimated_cost < 0:
            raise InvalidInput("estimated_cost must be a finite, non-negative number")
        status = await self.get_balance_status()
        if status is None or status.is_blocked:
            return False
        return status.balance >= estimated_cost

    async def authorize_call(self, expected_duration_sec: float, rate_per_minute: float = None) -> CallAuthorization:
        """Estimate the call and decide whether it may be placed."""
        self.session.require(Permission.PLACE_CALLS)
        estimate = build_estimate(expected_duration_sec, rate_per_minute)
        status = await self.get_balance_status()

        if status is None:
            reason = UnknownBalance.code
        elif status.is_blocked:
            reason = AccountBlocked.code
        elif status.balance < estimate.cost:
            reason = InsufficientFunds.code
        else:
            reason = None

        if reason:
            logger.info(f"Call denied for user={self.session.user_id}: {reason} (cost=${estimate.cost:.4f})")
        return CallAuthorization(allowed=reason is None, reason=reason, estimate=estimate, status=status)

    async def complete_call(
        self,
        call_id: str,
        duration_sec: float,
        rate_per_minute: float = None,
        call_status: str = "completed",
    ) -> DeductionResult:
        """Charge a finished call. Calls that did not complete, or cost nothing, are skipped."""
        self.session.require(Permission.PLACE_CALLS)
        cost = estimate_cost(duration_sec, rate_per_minute)
        if call_status != "completed" or cost <= 0:
            logger.info(f"Skipping charge for call={call_id}: status={call_status} cost={cost}")
            return DeductionResult(success=True, call_id=call_id, amount=0.0, skipped=True)

        return await self._gateway.deduct(self.session.user_id, self.session.company_id, call_id, cost)
