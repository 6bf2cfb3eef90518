"""Client-side cart mirrored to the server.

The cart is always persisted locally. When a user is logged in on the
attached client, every mutation that changes the item count or the amount
pushes the whole cart to the server, replacing what was there. On login the
server copy replaces the local one. There is no merge: last writer wins.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import httpx

from . import schemas
from .client import ApiError, StorefrontClient

logger = logging.getLogger(__name__)


def product_stub(item: schemas.CartItem) -> schemas.ProductRead:
    """Rebuild a minimal product from a cart snapshot.

    Category, image and description are not part of the snapshot and are defaulted.
    """
    return schemas.ProductRead(
        id=item.product_id,
        name=item.name,
        category="",
        price=item.price,
        min_order_quantity=1,
        image_url=None,
        description=None,
        in_stock=True,
    )


def _line(product: schemas.ProductRead, quantity: int) -> schemas.CartItem:
    return schemas.CartItem(
        product_id=product.id,
        name=product.name,
        price=product.price,
        quantity=quantity,
        subtotal=product.price * quantity,
    )


class LocalCart:
    def __init__(self, path: Optional[Union[str, Path]] = None, client: Optional[StorefrontClient] = None):
        self.path = Path(path) if path else None
        self.client = client
        self.items: Dict[int, schemas.CartItem] = {}
        self._load_local()

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items.values())

    @property
    def total_amount(self) -> int:
        return sum(item.subtotal for item in self.items.values())

    def _totals(self):
        return self.total_items, self.total_amount

    # -------------------- mutations --------------------

    def add_to_cart(self, product: schemas.ProductRead, quantity: int) -> schemas.CartItem:
        before = self._totals()
        current = self.items.get(product.id)
        # never below the product's minimum order quantity
        new_quantity = max((current.quantity if current else 0) + quantity, product.min_order_quantity)
        item = self.items[product.id] = _line(product, new_quantity)
        self._changed(before)
        return item

    def remove_from_cart(self, product_id: int) -> None:
        before = self._totals()
        self.items.pop(product_id, None)
        self._changed(before)

    def update_quantity(self, product_id: int, quantity: int) -> None:
        item = self.items.get(product_id)
        if item is None:
            return
        if quantity < 1:
            self.remove_from_cart(product_id)
            return
        before = self._totals()
        self.items[product_id] = item.model_copy(update={"quantity": quantity, "subtotal": item.price * quantity})
        self._changed(before)

    def increment_quantity(self, product_id: int) -> None:
        item = self.items.get(product_id)
        if item is not None:
            self.update_quantity(product_id, item.quantity + 1)

    def decrement_quantity(self, product_id: int) -> None:
        item = self.items.get(product_id)
        if item is None or item.quantity <= 1:
            return
        self.update_quantity(product_id, item.quantity - 1)

    def clear_cart(self) -> None:
        before = self._totals()
        self.items = {}
        self._changed(before)

    # -------------------- persistence and sync --------------------

    def _changed(self, before) -> None:
        self._save_local()
        if self._totals() != before:
            self.sync_with_server()

    def _load_local(self) -> None:
        if not self.path or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text())
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            items = [schemas.CartItem.model_validate(raw) for raw in data.get("items", [])]
        except (TypeError, ValueError):
            logger.warning("ignoring unreadable local cart at %s", self.path)
            return
        self.items = {item.product_id: item for item in items}

    def _save_local(self) -> None:
        if not self.path:
            return
        payload = {"items": self._payload()}
        self.path.write_text(json.dumps(payload))

    def _payload(self) -> List[dict]:
        return [item.model_dump(by_alias=True) for item in self.items.values()]

    def sync_with_server(self) -> bool:
        """Push the whole cart if a user is logged in. Failures are logged, not raised."""
        if self.client is None or not self.client.user:
            return False
        try:
            self.client.push_cart(self._payload())
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("failed to sync cart with server: %s", e)
            return False
        return True

    def load_from_server(self) -> bool:
        """Replace the local cart with the server copy (called after login)."""
        if self.client is None or not self.client.user:
            return False
        try:
            raw_items = self.client.get_cart()
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("failed to load cart from server: %s", e)
            return False
        self.items = {}
        for raw in raw_items:
            # the server copy is authoritative, including quantities below the minimum
            snapshot = schemas.CartItem.model_validate(raw)
            self.items[snapshot.product_id] = _line(product_stub(snapshot), snapshot.quantity)
        self._save_local()
        return True
