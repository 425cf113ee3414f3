"""API routers."""

from memberhub.routers.admin import router as admin_router
from memberhub.routers.auth import router as auth_router
from memberhub.routers.committees import admin_router as committee_admin_router
from memberhub.routers.committees import router as committees_router
from memberhub.routers.users import router as users_router

__all__ = ["auth_router", "users_router", "committees_router", "committee_admin_router", "admin_router"]
