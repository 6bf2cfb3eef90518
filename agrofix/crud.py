from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .utils import format_order_number


def _commit(db: Session, message: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ValueError(message) from e


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def get_user_by_username(db: Session, username: str) -> models.User | None:
    return db.query(models.User).filter(models.User.username == username).first()


def create_user(db: Session, user: schemas.UserCreate, password_hash: str, is_admin: bool = False) -> models.User:
    if get_user_by_username(db, user.username):
        raise ValueError("Username already exists")
    db_user = models.User(
        **user.model_dump(exclude={"username", "password"}),
        username=user.username,
        password_hash=password_hash,
        is_admin=is_admin,
    )
    db.add(db_user)
    _commit(db, "Username already exists")
    db.refresh(db_user)
    return db_user


# -------------------- Products --------------------

def list_products(db: Session, category: str | None = None, q: str | None = None) -> List[models.Product]:
    query = db.query(models.Product)
    if category:
        query = query.filter(models.Product.category == category)
    if q:
        query = query.filter(models.Product.name.ilike(f"%{q}%"))
    return query.order_by(models.Product.id).all()


def list_categories(db: Session) -> List[str]:
    rows = db.query(models.Product.category).distinct().order_by(models.Product.category).all()
    return [row[0] for row in rows]


def get_product(db: Session, product_id: int) -> models.Product | None:
    return db.get(models.Product, product_id)


def create_product(db: Session, product: schemas.ProductCreate) -> models.Product:
    db_product = models.Product(**product.model_dump())
    db.add(db_product)
    db.commit()
    db.refresh(db_product)
    return db_product


def update_product(db: Session, product_id: int, patch: schemas.ProductUpdate) -> models.Product | None:
    product = db.get(models.Product, product_id)
    if not product:
        return None
    for field, value in patch.changes().items():
        setattr(product, field, value)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> bool:
    product = db.get(models.Product, product_id)
    if not product:
        return False
    db.delete(product)
    db.commit()
    return True


# -------------------- Orders --------------------

def list_orders(db: Session, status: str | None = None, q: str | None = None) -> List[models.Order]:
    query = db.query(models.Order)
    if status:
        query = query.filter(models.Order.status == status)
    if q:
        pattern = f"%{q}%"
        query = query.filter(
            or_(
                models.Order.order_number.ilike(pattern),
                models.Order.buyer_name.ilike(pattern),
                models.Order.business_name.ilike(pattern),
                models.Order.email.ilike(pattern),
            )
        )
    return query.order_by(models.Order.id).all()


def get_order(db: Session, order_id: int) -> models.Order | None:
    return db.get(models.Order, order_id)


def get_order_by_number(db: Session, order_number: str) -> models.Order | None:
    return db.query(models.Order).filter(models.Order.order_number == order_number).first()


def next_order_number(db: Session, now: datetime | None = None) -> str:
    # max(id) + 1; computed outside the insert, so concurrent creators can collide
    max_id = db.query(func.max(models.Order.id)).scalar() or 0
    year = (now or datetime.now()).year
    return format_order_number(max_id + 1, year)


def create_order(db: Session, order: schemas.OrderCreate, user_id: Optional[int] = None, status: str = "Pending") -> models.Order:
    if user_id is not None and not db.get(models.User, user_id):
        raise ValueError("foreign key violation: user does not exist")

    data = order.model_dump(exclude={"items"})
    db_order = models.Order(
        **data,
        order_number=next_order_number(db),
        user_id=user_id,
        items=[item.model_dump(by_alias=True) for item in order.items],
        status=status,
    )
    db.add(db_order)
    _commit(db, "integrity error: order number already taken")
    db.refresh(db_order)
    return db_order


def update_order_status(db: Session, order_id: int, status: str) -> models.Order | None:
    order = db.get(models.Order, order_id)
    if not order:
        return None
    order.status = status
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


# -------------------- Carts --------------------

def get_cart(db: Session, user_id: int) -> models.Cart | None:
    return db.query(models.Cart).filter(models.Cart.user_id == user_id).first()


def update_cart(db: Session, user_id: int, items: List[schemas.CartItem]) -> models.Cart:
    payload = [item.model_dump(by_alias=True) for item in items]
    cart = get_cart(db, user_id)
    if cart is None:
        cart = models.Cart(user_id=user_id, items=payload)
    else:
        # wholesale replacement, never a merge
        cart.items = payload
        cart.updated_at = models.utcnow()
    db.add(cart)
    _commit(db, "foreign key violation: user does not exist")
    db.refresh(cart)
    return cart
