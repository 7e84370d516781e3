from cardhunt.api.admin import router as admin_router
from cardhunt.api.characters import router as characters_router
from cardhunt.api.health import router as health_router
from cardhunt.api.teams import router as teams_router

__all__ = [
    "admin_router",
    "characters_router",
    "health_router",
    "teams_router",
]
