"""Retry policy for remote set writes."""

from backend.sync.retry import (
    DEFAULT_BASE_BACKOFF_MS,
    DEFAULT_MAX_BACKOFF_MS,
    compute_backoff_ms,
    is_retryable_error,
    is_retryable_supabase_error,
    validate_backoff_params,
)

__all__ = [
    "DEFAULT_BASE_BACKOFF_MS",
    "DEFAULT_MAX_BACKOFF_MS",
    "compute_backoff_ms",
    "is_retryable_error",
    "is_retryable_supabase_error",
    "validate_backoff_params",
]
