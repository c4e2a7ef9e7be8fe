"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from eventbook.api.routes import auth, events, reservations, users
from eventbook.core.config import get_settings

api_router = APIRouter(prefix=get_settings().API_PREFIX)
api_router.include_router(auth.router)
api_router.include_router(events.router)
api_router.include_router(reservations.router)
api_router.include_router(users.router)
