from .auth import router as auth_router
from .time_requests import router as time_requests_router
from .usage import router as usage_router
from .users import router as users_router

__all__ = ["auth_router", "time_requests_router", "usage_router", "users_router"]
