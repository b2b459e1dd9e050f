# Database modules

from .orders import order_db, OrderDatabase

__all__ = [
    "order_db",
    "OrderDatabase",
]
