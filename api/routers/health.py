"""
Liveness endpoint for load balancers and uptime checks.

Does not touch Supabase or the set queue.
"""

from fastapi import APIRouter

router = APIRouter(
    tags=["Health"],
)


@router.get("/health")
def health():
    """Report that the process is up."""
    return {"status": "ok"}
