"""API routes."""

from .admin import router as admin_router
from .auth import router as auth_router
from .job_posts import router as job_posts_router
from .price_lists import router as price_lists_router
from .providers import router as providers_router
from .reviews import router as reviews_router
from .services import router as services_router
from .subscriptions import router as subscriptions_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "users_router",
    "providers_router",
    "admin_router",
    "job_posts_router",
    "subscriptions_router",
    "services_router",
    "price_lists_router",
    "reviews_router",
]
