# REST API routers
from .routes_agreements import router as agreements_router
from .routes_auth import router as auth_router
from .routes_dashboard import router as dashboard_router
from .routes_themes import router as themes_router

__all__ = [
    "agreements_router",
    "auth_router",
    "dashboard_router",
    "themes_router",
]
