import re
import asyncio
import logging
import httpx
from pymongo.errors import ConnectionFailure, OperationFailure, PyMongoError

from drscale.core.config import DEDUCTION_MAX_RETRIES, DEDUCTION_BASE_DELAY_MS, DEDUCTION_MAX_DELAY_MS
from drscale.core.errors import AuthorizationError, DrScaleError, TransientNetworkError

logger = logging.getLogger(__name__)

# Network-ish symptoms worth another attempt
TRANSIENT_PATTERN = re.compile(r"HTTP2|CONNECTION|network|fetch|timeout", re.IGNORECASE)

# Unauthorized (13) and AuthenticationFailed (18); 8000 is Atlas's AtlasError for denied commands
PERMISSION_ERROR_CODES = {13, 18, 8000}
PERMISSION_PATTERN = re.compile(r"not authorized|permission denied|unauthorized", re.IGNORECASE)


def is_permission_error(exc: BaseException) -> bool:
    if isinstance(exc, AuthorizationError):
        return True
    if isinstance(exc, DrScaleError):
        return False
    if isinstance(exc, OperationFailure) and exc.code in PERMISSION_ERROR_CODES:
        return True
    if isinstance(exc, PermissionError):
        return True
    return bool(PERMISSION_PATTERN.search(str(exc)))


def is_transient_error(exc: BaseException) -> bool:
    if is_permission_error(exc):
        return False
    if isinstance(exc, TransientNetworkError):
        return True
    if isinstance(exc, DrScaleError):
        return False
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, (ConnectionFailure, httpx.TransportError)):
        return True
    if isinstance(exc, PyMongoError) and exc.has_error_label("TransientTransactionError"):
        return True
    return bool(TRANSIENT_PATTERN.search(str(exc)))


def backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> float:
    """Seconds to wait before retry number ``attempt + 1``."""
    return min(base_delay_ms * (2 ** attempt), max_delay_ms) / 1000


async def with_retries(
    fn,
    retries: int = DEDUCTION_MAX_RETRIES,
    base_delay_ms: int = DEDUCTION_BASE_DELAY_MS,
    max_delay_ms: int = DEDUCTION_MAX_DELAY_MS,
    label: str = "operation",
):
    """Await ``fn()``; retry transient failures with capped exponential backoff.

    Non-transient errors and the last transient one are re-raised unchanged.
    ``fn`` is called with no arguments, so any idempotency key must already
    be bound into it.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= retries or not is_transient_error(e):
                raise
            delay = backoff_delay(attempt, base_delay_ms, max_delay_ms)
            attempt += 1
            logger.warning(f"{label}: transient failure ({e}); retry {attempt}/{retries} in {delay:.2f}s")
            await asyncio.sleep(delay)
