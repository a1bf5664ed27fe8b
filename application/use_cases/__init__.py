"""
Application Use Cases for set-sync.

Use cases orchestrate domain logic and coordinate between ports/adapters.
Dependencies are injected via constructors for testability.

Usage:
    from application.use_cases import HydrateSessionUseCase

    use_case = HydrateSessionUseCase(session_repo=session_repo, queue=queue)
    result = await use_case.execute("session-1")
"""

from application.use_cases.hydrate_session import (
    HydrateSessionResult,
    HydrateSessionUseCase,
)

__all__ = [
    "HydrateSessionResult",
    "HydrateSessionUseCase",
]
