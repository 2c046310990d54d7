from .admin import router as admin_router
from .assignments import router as assignments_router
from .auth import router as auth_router
from .chat import router as chat_router
from .directory import router as directory_router
from .lessons import router as lessons_router
from .notifications import router as notifications_router
from .pages import router as pages_router

# the pages router holds the catch-all route and goes last
routers = [
    auth_router,
    directory_router,
    assignments_router,
    chat_router,
    lessons_router,
    notifications_router,
    admin_router,
    pages_router,
]

__all__ = ["routers"]
