"""
Router package for set-sync.

This package contains all API routers organized by domain:
- health: Health check endpoint
- sets: Queue set edits and read hydrated sessions
- sync: Set queue status and manual flush
"""

from api.routers.health import router as health_router
from api.routers.sets import router as sets_router
from api.routers.sync import router as sync_router

__all__ = [
    "health_router",
    "sets_router",
    "sync_router",
]
