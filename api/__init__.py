"""
API package for set-sync.

This package contains:
- deps.py: FastAPI dependency providers for DI
- routers/: API route handlers
"""

# Re-export dependency providers for convenient access
from api.deps import (
    get_settings,
    get_supabase_client,
    get_supabase_client_required,
    get_operation_store,
    get_set_writer,
    get_set_operation_queue,
    get_set_persistence_service,
    get_session_repo,
    get_hydrate_session_use_case,
)

__all__ = [
    # Settings
    "get_settings",
    # Database
    "get_supabase_client",
    "get_supabase_client_required",
    # Set queue
    "get_operation_store",
    "get_set_writer",
    "get_set_operation_queue",
    "get_set_persistence_service",
    # Sessions
    "get_session_repo",
    "get_hydrate_session_use_case",
]
