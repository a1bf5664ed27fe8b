"""Retry classification and backoff for remote set writes."""
import logging
from typing import Any, Optional

import httpx
from tenacity import RetryCallState, wait_exponential

logger = logging.getLogger(__name__)

# Default backoff configuration (milliseconds)
DEFAULT_BASE_BACKOFF_MS = 750
DEFAULT_MAX_BACKOFF_MS = 60_000

# Postgres / PostgREST error codes
RETRYABLE_ERROR_CODES = frozenset({
    "08000",  # connection_exception
    "08001",  # sqlclient_unable_to_establish_sqlconnection
    "08003",  # connection_does_not_exist
    "08006",  # connection_failure
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "53300",  # too_many_connections
    "57014",  # query_canceled
    "57P01",  # admin_shutdown
    "57P02",  # crash_shutdown
    "57P03",  # cannot_connect_now
})

NON_RETRYABLE_ERROR_CODES = frozenset({
    "22P02",  # invalid_text_representation
    "23502",  # not_null_violation
    "23503",  # foreign_key_violation
    "23505",  # unique_violation
    "23514",  # check_violation
    "42501",  # insufficient_privilege
    "PGRST116",  # no rows for .single()
    "PGRST301",  # JWT expired / invalid
})


def validate_backoff_params(base_backoff_ms: float, max_backoff_ms: float) -> None:
    """
    Validate backoff parameters.

    Raises:
        ValueError: If any parameter is invalid
    """
    if base_backoff_ms <= 0:
        raise ValueError(f"base_backoff_ms must be positive, got {base_backoff_ms}")
    if max_backoff_ms <= 0:
        raise ValueError(f"max_backoff_ms must be positive, got {max_backoff_ms}")
    if base_backoff_ms > max_backoff_ms:
        raise ValueError(
            f"base_backoff_ms ({base_backoff_ms}) cannot exceed "
            f"max_backoff_ms ({max_backoff_ms})"
        )


def compute_backoff_ms(
    attempts: int,
    base_backoff_ms: float = DEFAULT_BASE_BACKOFF_MS,
    max_backoff_ms: float = DEFAULT_MAX_BACKOFF_MS,
) -> float:
    """
    Delay before the next attempt after `attempts` failed attempts.

    Exponential from base_backoff_ms, doubling per attempt, capped at
    max_backoff_ms. Non-decreasing in attempts.

    Examples:
        >>> compute_backoff_ms(1, 10, 50)
        10
        >>> compute_backoff_ms(3, 10, 50)
        40
        >>> compute_backoff_ms(10, 10, 50)
        50
    """
    validate_backoff_params(base_backoff_ms, max_backoff_ms)
    wait = wait_exponential(multiplier=base_backoff_ms, min=base_backoff_ms, max=max_backoff_ms)
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
    state.attempt_number = max(1, attempts)
    return wait(state)


def is_retryable_status(status: int) -> Optional[bool]:
    """Classify an HTTP status; None when the status says nothing."""
    if status in (408, 429):
        return True
    if status >= 500:
        return True
    if 400 <= status < 500:
        return False
    return None


def is_retryable_supabase_error(
    *,
    code: Optional[str] = None,
    status: Optional[int] = None,
) -> bool:
    """
    Determine whether a failed Supabase write should be retried.

    HTTP status wins when present, then the Postgres/PostgREST error code.
    Anything else is retryable, including network and timeout errors that
    only show up in the message; only a known status or code parks an
    operation.
    """
    if status is not None:
        by_status = is_retryable_status(status)
        if by_status is not None:
            return by_status

    if code:
        if code in NON_RETRYABLE_ERROR_CODES:
            return False
        if code in RETRYABLE_ERROR_CODES:
            return True

    return True


def _extract_status(exception: BaseException) -> Optional[int]:
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code
    status: Any = getattr(exception, "status", None) or getattr(exception, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(status, str) and status.isdigit():
        return int(status)
    return None


def is_retryable_error(exception: BaseException) -> bool:
    """
    Determine if an exception raised by a remote write is retryable.

    Transport-level failures (DNS, connect, read timeouts) are always
    retryable. Otherwise the exception's status and code are classified
    with is_retryable_supabase_error().
    """
    if isinstance(exception, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True

    code = getattr(exception, "code", None)
    return is_retryable_supabase_error(
        code=code if isinstance(code, str) else None,
        status=_extract_status(exception),
    )
