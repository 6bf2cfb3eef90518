"""Sample data for a fresh store: catalog, an admin account and one order."""
import logging
from datetime import datetime, timedelta, timezone

from . import schemas
from .auth import hash_password
from .storage import Storage

logger = logging.getLogger(__name__)

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin123"

SAMPLE_PRODUCTS = [
    schemas.ProductCreate(
        name="Tomatoes",
        category="Vegetables",
        price=2500,
        min_order_quantity=10,
        image_url="https://images.unsplash.com/photo-1518977676601-b53f82aba655",
        description="Fresh, ripe tomatoes",
    ),
    schemas.ProductCreate(
        name="Apples",
        category="Fruits",
        price=8000,
        min_order_quantity=20,
        image_url="https://images.unsplash.com/photo-1587049716454-0136927d45f3",
        description="Crisp, juicy apples",
    ),
    schemas.ProductCreate(
        name="Potatoes",
        category="Vegetables",
        price=1800,
        min_order_quantity=25,
        image_url="https://images.unsplash.com/photo-1590005354167-6da97870c757",
        description="Farm fresh potatoes",
    ),
    schemas.ProductCreate(
        name="Spinach",
        category="Leafy Greens",
        price=3500,
        min_order_quantity=5,
        image_url="https://images.unsplash.com/photo-1603833665858-e61d17a86224",
        description="Organic spinach leaves",
    ),
]


def line_item(product: schemas.ProductRead, quantity: int) -> schemas.OrderItem:
    return schemas.OrderItem(
        product_id=product.id,
        name=product.name,
        price=product.price,
        quantity=quantity,
        subtotal=product.price * quantity,
    )


def seed_admin(storage: Storage) -> schemas.UserRecord:
    existing = storage.get_user_by_username(ADMIN_USERNAME)
    if existing:
        return existing
    admin = storage.create_user(
        schemas.UserCreate(username=ADMIN_USERNAME, password=ADMIN_PASSWORD, full_name="Admin User"),
        hash_password(ADMIN_PASSWORD),
        is_admin=True,
    )
    logger.info("admin user created")
    return admin


def seed_products(storage: Storage) -> list[schemas.ProductRead]:
    products = storage.get_products()
    if products:
        return products
    products = [storage.create_product(p) for p in SAMPLE_PRODUCTS]
    logger.info("seeded %d products", len(products))
    return products


def seed_sample_order(storage: Storage, products: list[schemas.ProductRead]) -> schemas.OrderRead | None:
    if storage.get_orders() or len(products) < 2:
        return None
    delivery = datetime.now(timezone.utc) + timedelta(days=3)
    order = storage.create_order(
        schemas.OrderCreate(
            buyer_name="Sample Customer",
            business_name="Demo Restaurant",
            email="customer@example.com",
            phone="1234567890",
            delivery_address="123 Sample Street",
            city="Demo City",
            state="Sample State",
            pincode="123456",
            delivery_instructions="Leave at reception",
            preferred_delivery_date=delivery.isoformat(),
            items=[line_item(p, p.min_order_quantity) for p in products[:2]],
        ),
        status="In Progress",
    )
    logger.info("sample order %s created", order.order_number)
    return order


def seed_storage(storage: Storage) -> None:
    """Idempotent: each step only runs against an empty collection."""
    seed_admin(storage)
    products = seed_products(storage)
    seed_sample_order(storage, products)
