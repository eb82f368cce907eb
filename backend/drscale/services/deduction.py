import math
import logging

from drscale.core.config import DEDUCTION_MAX_RETRIES, DEDUCTION_BASE_DELAY_MS, DEDUCTION_MAX_DELAY_MS
from drscale.core.errors import AuthorizationError, DrScaleError, InvalidInput, TransactionFailed, TransientNetworkError
from drscale.models.billing import DeductionResult
from drscale.services.retry import is_permission_error, is_transient_error, with_retries
from drscale.storage.interface import BalanceStore

logger = logging.getLogger(__name__)


class DeductionGateway:
    """Client side of the atomic, per-call deduction.

    The store owns idempotency; this wrapper only guarantees that every
    attempt for a call carries the same ``call_id`` and that failures come
    back as a ``DeductionResult`` instead of a raw exception.
    """

    def __init__(
        self,
        store: BalanceStore,
        max_retries: int = DEDUCTION_MAX_RETRIES,
        base_delay_ms: int = DEDUCTION_BASE_DELAY_MS,
        max_delay_ms: int = DEDUCTION_MAX_DELAY_MS,
    ):
        self._store = store
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def deduct(self, user_id: str, company_id: str, call_id: str, amount: float) -> DeductionResult:
        if not call_id or not user_id or not company_id:
            return DeductionResult(success=False, call_id=call_id or "", amount=amount, error=InvalidInput.code)
        if not isinstance(amount, (int, float)) or not math.isfinite(amount) or amount < 0:
            return DeductionResult(success=False, call_id=call_id, amount=0.0, error=InvalidInput.code)

        attempts = 0

        async def attempt():
            nonlocal attempts
            attempts += 1
            return await self._store.deduct(user_id, company_id, call_id, amount)

        try:
            new_balance, duplicate = await with_retries(
                attempt,
                retries=self.max_retries,
                base_delay_ms=self.base_delay_ms,
                max_delay_ms=self.max_delay_ms,
                label=f"deduct call={call_id}",
            )
        except DrScaleError as e:
            logger.warning(f"Deduction rejected: call={call_id} user={user_id} reason={e.code}")
            return DeductionResult(success=False, call_id=call_id, amount=amount, error=e.code, attempts=attempts)
        except Exception as e:
            if is_permission_error(e):
                logger.warning(f"Deduction denied by store: call={call_id} user={user_id}: {e}")
                return DeductionResult(
                    success=False, call_id=call_id, amount=amount, error=AuthorizationError.code, attempts=attempts
                )
            code = TransientNetworkError.code if is_transient_error(e) else TransactionFailed.code
            logger.error(f"Deduction failed: call={call_id} user={user_id} after {attempts} attempt(s): {e}")
            return DeductionResult(success=False, call_id=call_id, amount=amount, error=code, attempts=attempts)

        if duplicate:
            logger.info(f"Deduction for call={call_id} already applied; balance={new_balance:.4f}")
        else:
            logger.info(
                f"Deducted ${amount:.4f} for call={call_id} user={user_id} "
                f"company={company_id} new_balance=${new_balance:.4f}"
            )
        return DeductionResult(
            success=True,
            call_id=call_id,
            amount=amount,
            new_balance=new_balance,
            duplicate=duplicate,
            attempts=attempts,
        )
