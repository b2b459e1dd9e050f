# API Routes

from .orders import router as orders_router
from .payments import router as payments_router
from .security import router as security_router

__all__ = ["orders_router", "payments_router", "security_router"]
