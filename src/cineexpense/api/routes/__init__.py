"""API routes."""

from cineexpense.api.routes.admin import router as admin_router
from cineexpense.api.routes.departments import router as departments_router
from cineexpense.api.routes.expenses import router as expenses_router
from cineexpense.api.routes.health import router as health_router
from cineexpense.api.routes.notifications import router as notifications_router
from cineexpense.api.routes.reports import router as reports_router
from cineexpense.api.routes.users import router as users_router

__all__ = [
    "admin_router",
    "departments_router",
    "expenses_router",
    "health_router",
    "notifications_router",
    "reports_router",
    "users_router",
]
