"""Routes package"""

from .location_socket import router as location_socket_router
from .review import router as review_router
from .users import router as users_router
from .walks import router as walks_router

__all__ = ["walks_router", "location_socket_router", "review_router", "users_router"]
