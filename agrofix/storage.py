"""Persistence layer: one contract, an in-memory and a database implementation.

Both backends speak the pydantic schemas, so routes never see ORM rows.
Update/delete on a missing id returns None/False instead of raising.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from . import config, crud, schemas
from .db import open_session
from .utils import format_order_number


class Storage(ABC):
    # Users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[schemas.UserRecord]:
        pass

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[schemas.UserRecord]:
        pass

    @abstractmethod
    def create_user(self, user: schemas.UserCreate, password_hash: str, is_admin: bool = False) -> schemas.UserRecord:
        pass

    # Products
    @abstractmethod
    def get_products(self, category: Optional[str] = None, q: Optional[str] = None) -> List[schemas.ProductRead]:
        pass

    @abstractmethod
    def get_categories(self) -> List[str]:
        pass

    @abstractmethod
    def get_product(self, product_id: int) -> Optional[schemas.ProductRead]:
        pass

    @abstractmethod
    def create_product(self, product: schemas.ProductCreate) -> schemas.ProductRead:
        pass

    @abstractmethod
    def update_product(self, product_id: int, patch: schemas.ProductUpdate) -> Optional[schemas.ProductRead]:
        pass

    @abstractmethod
    def delete_product(self, product_id: int) -> bool:
        pass

    # Orders
    @abstractmethod
    def get_orders(self, status: Optional[str] = None, q: Optional[str] = None) -> List[schemas.OrderRead]:
        pass

    @abstractmethod
    def get_order(self, order_id: int) -> Optional[schemas.OrderRead]:
        pass

    @abstractmethod
    def get_order_by_number(self, order_number: str) -> Optional[schemas.OrderRead]:
        pass

    @abstractmethod
    def create_order(self, order: schemas.OrderCreate, user_id: Optional[int] = None, status: str = "Pending") -> schemas.OrderRead:
        pass

    @abstractmethod
    def update_order_status(self, order_id: int, status: str) -> Optional[schemas.OrderRead]:
        pass

    # Carts
    @abstractmethod
    def get_cart(self, user_id: int) -> Optional[schemas.CartRead]:
        pass

    @abstractmethod
    def update_cart(self, user_id: int, items: List[schemas.CartItem]) -> schemas.CartRead:
        pass


def _matches(value: Optional[str], needle: str) -> bool:
    return value is not None and needle.lower() in value.lower()


class MemStorage(Storage):
    """Dict-backed store; state lives as long as the instance."""

    def __init__(self):
        self._users: Dict[int, schemas.UserRecord] = {}
        self._products: Dict[int, schemas.ProductRead] = {}
        self._orders: Dict[int, schemas.OrderRead] = {}
        self._carts: Dict[int, schemas.CartRead] = {}
        self._user_id = 0
        self._product_id = 0
        self._order_id = 0
        self._cart_id = 0

    # Users
    def get_user(self, user_id):
        return self._users.get(user_id)

    def get_user_by_username(self, username):
        return next((u for u in self._users.values() if u.username == username), None)

    def create_user(self, user, password_hash, is_admin=False):
        if self.get_user_by_username(user.username):
            raise ValueError("Username already exists")
        self._user_id += 1
        record = schemas.UserRecord(
            **user.model_dump(exclude={"username", "password"}),
            id=self._user_id,
            username=user.username,
            is_admin=is_admin,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc),
        )
        self._users[record.id] = record
        return record

    # Products
    def get_products(self, category=None, q=None):
        products = list(self._products.values())
        if category:
            products = [p for p in products if p.category == category]
        if q:
            products = [p for p in products if _matches(p.name, q)]
        return products

    def get_categories(self):
        return sorted({p.category for p in self._products.values()})

    def get_product(self, product_id):
        return self._products.get(product_id)

    def create_product(self, product):
        self._product_id += 1
        created = schemas.ProductRead(id=self._product_id, **product.model_dump())
        self._products[created.id] = created
        return created

    def update_product(self, product_id, patch):
        existing = self._products.get(product_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=patch.changes())
        self._products[product_id] = updated
        return updated

    def delete_product(self, product_id):
        return self._products.pop(product_id, None) is not None

    # Orders
    def get_orders(self, status=None, q=None):
        orders = list(self._orders.values())
        if status:
            orders = [o for o in orders if o.status == status]
        if q:
            orders = [
                o for o in orders
                if any(_matches(v, q) for v in (o.order_number, o.buyer_name, o.business_name, o.email))
            ]
        return orders

    def get_order(self, order_id):
        return self._orders.get(order_id)

    def get_order_by_number(self, order_number):
        return next((o for o in self._orders.values() if o.order_number == order_number), None)

    def create_order(self, order, user_id=None, status="Pending"):
        if user_id is not None and user_id not in self._users:
            raise ValueError("foreign key violation: user does not exist")
        # max(id) + 1, same scheme as the database backend
        order_number = format_order_number(max(self._orders, default=0) + 1)
        self._order_id += 1
        created = schemas.OrderRead(
            **order.model_dump(exclude={"items"}),
            id=self._order_id,
            order_number=order_number,
            user_id=user_id,
            items=[item.model_copy() for item in order.items],
            status=status,
            created_at=datetime.now(timezone.utc),
        )
        self._orders[created.id] = created
        return created

    def update_order_status(self, order_id, status):
        existing = self._orders.get(order_id)
        if existing is None:
            return None
        updated = existing.model_copy(update={"status": status})
        self._orders[order_id] = updated
        return updated

    # Carts
    def get_cart(self, user_id):
        return self._carts.get(user_id)

    def update_cart(self, user_id, items):
        if user_id not in self._users:
            raise ValueError("foreign key violation: user does not exist")
        existing = self._carts.get(user_id)
        if existing is None:
            self._cart_id += 1
            cart_id = self._cart_id
        else:
            cart_id = existing.id
        cart = schemas.CartRead(
            id=cart_id,
            user_id=user_id,
            items=[item.model_copy() for item in items],
            updated_at=datetime.now(timezone.utc),
        )
        self._carts[user_id] = cart
        return cart


class DatabaseStorage(Storage):
    """SQLAlchemy-backed store bound to one session (one per request)."""

    def __init__(self, db: Session):
        self.db = db

    # Users
    def get_user(self, user_id):
        user = crud.get_user(self.db, user_id)
        return schemas.UserRecord.model_validate(user) if user else None

    def get_user_by_username(self, username):
        user = crud.get_user_by_username(self.db, username)
        return schemas.UserRecord.model_validate(user) if user else None

    def create_user(self, user, password_hash, is_admin=False):
        return schemas.UserRecord.model_validate(crud.create_user(self.db, user, password_hash, is_admin))

    # Products
    def get_products(self, category=None, q=None):
        return [schemas.ProductRead.model_validate(p) for p in crud.list_products(self.db, category, q)]

    def get_categories(self):
        return crud.list_categories(self.db)

    def get_product(self, product_id):
        product = crud.get_product(self.db, product_id)
        return schemas.ProductRead.model_validate(product) if product else None

    def create_product(self, product):
        return schemas.ProductRead.model_validate(crud.create_product(self.db, product))

    def update_product(self, product_id, patch):
        product = crud.update_product(self.db, product_id, patch)
        return schemas.ProductRead.model_validate(product) if product else None

    def delete_product(self, product_id):
        return crud.delete_product(self.db, product_id)

    # Orders
    def get_orders(self, status=None, q=None):
        return [schemas.OrderRead.model_validate(o) for o in crud.list_orders(self.db, status, q)]

    def get_order(self, order_id):
        order = crud.get_order(self.db, order_id)
        return schemas.OrderRead.model_validate(order) if order else None

    def get_order_by_number(self, order_number):
        order = crud.get_order_by_number(self.db, order_number)
        return schemas.OrderRead.model_validate(order) if order else None

    def create_order(self, order, user_id=None, status="Pending"):
        return schemas.OrderRead.model_validate(crud.create_order(self.db, order, user_id, status))

    def update_order_status(self, order_id, status):
        order = crud.update_order_status(self.db, order_id, status)
        return schemas.OrderRead.model_validate(order) if order else None

    # Carts
    def get_cart(self, user_id):
        cart = crud.get_cart(self.db, user_id)
        return schemas.CartRead.model_validate(cart) if cart else None

    def update_cart(self, user_id, items):
        return schemas.CartRead.model_validate(crud.update_cart(self.db, user_id, items))


# Process-wide store for the memory backend
memory_store = MemStorage()


def get_storage():
    """Request-scoped storage dependency, selected by STORAGE_BACKEND."""
    if not config.use_database():
        yield memory_store
        return
    db = open_session()
    try:
        yield DatabaseStorage(db)
    finally:
        db.close()
