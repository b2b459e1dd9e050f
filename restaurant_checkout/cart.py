"""Cart store for the checkout client"""

import logging
import math
from dataclasses import replace
from typing import Optional

from .models import CartItem
from .storage import CART_STORAGE_KEY, Storage

logger = logging.getLogger(__name__)

REQUIRED_ITEM_FIELDS = ("itemId", "name", "price", "quantity")


class CartStore:
    """
    Line items persisted to durable client storage.

    Every mutation rewrites the whole cart under CART_STORAGE_KEY. Storage
    write failures are logged and the in-memory cart stays authoritative.
    """

    def __init__(self, storage: Storage, key: str = CART_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._items: list[CartItem] = self._hydrate()

    @property
    def items(self) -> list[CartItem]:
        """Copy of the current line items"""
        return [replace(item) for item in self._items]

    def _hydrate(self) -> list[CartItem]:
        """Load the persisted cart, dropping anything malformed"""
        raw = self.storage.get(self.key)
        if raw is None:
            return []

        if not isinstance(raw, list):
            logger.warning("Stored cart is not a list, resetting it")
            self._remove_persisted()
            return []

        items = []
        for entry in raw:
            if not isinstance(entry, dict) or any(entry.get(f) is None for f in REQUIRED_ITEM_FIELDS):
                continue
            try:
                item = CartItem.from_dict(entry)
            except (TypeError, ValueError):
                continue
            if item.quantity > 0 and math.isfinite(item.price) and item.price >= 0:
                items.append(item)

        if len(items) != len(raw):
            logger.warning(f"Dropped {len(raw) - len(items)} malformed cart entries")
            self._items = items
            self._persist()

        return items

    def _persist(self) -> None:
        try:
            self.storage.set(self.key, [item.to_dict() for item in self._items])
        except OSError as e:
            logger.error(f"Failed to save cart: {e}")

    def _remove_persisted(self) -> None:
        try:
            self.storage.remove(self.key)
        except OSError as e:
            logger.error(f"Failed to clear stored cart: {e}")

    def _find(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self._items if item.item_id == item_id), None)

    def add(self, item: CartItem) -> None:
        """Add an item, accumulating quantity when the item is already present"""
        existing = self._find(item.item_id)

        if existing:
            existing.quantity += item.quantity
            if existing.quantity <= 0:
                self._items.remove(existing)
        elif item.quantity > 0:
            price = item.price
            if not math.isfinite(price) or price < 0:
                logger.warning(f"Invalid price {price!r} for {item.item_id}, storing 0")
                price = 0.0
            self._items.append(replace(item, price=price))

        self._persist()

    def set_quantity(self, item_id: str, quantity: int) -> None:
        """Set an item's quantity; zero or below removes it"""
        if quantity <= 0:
            self.remove(item_id)
            return

        existing = self._find(item_id)
        if existing:
            existing.quantity = quantity
            self._persist()

    def remove(self, item_id: str) -> None:
        self._items = [item for item in self._items if item.item_id != item_id]
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._remove_persisted()

    def reload(self) -> list[CartItem]:
        """Re-read the cart from storage"""
        self.storage.reload()
        self._items = self._hydrate()
        return self.items

    def subtotal(self) -> float:
        return sum(item.price * item.quantity for item in self._items)

    def count(self) -> int:
        return sum(item.quantity for item in self._items)

    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)
