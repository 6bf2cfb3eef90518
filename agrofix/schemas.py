from datetime import datetime
from typing import Annotated, Literal, Optional, get_args

from pydantic import BaseModel, Field, PositiveInt, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .utils import clean_text

OrderStatus = Literal["Pending", "In Progress", "Out for Delivery", "Delivered"]
ORDER_STATUSES: tuple[str, ...] = get_args(OrderStatus)

# Money (minor units) and quantities; 2**53 fits SQLite INTEGER and JSON numbers exactly
MAX_AMOUNT = 2**53
Amount = Annotated[int, Field(gt=0, le=MAX_AMOUNT)]
Subtotal = Annotated[int, Field(ge=0, le=MAX_AMOUNT)]


class CamelModel(BaseModel):
    """JSON uses camelCase; python code and the ORM use snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# -------------------- Users --------------------

class UserProfile(CamelModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    preferred_address: Optional[str] = None
    preferred_city: Optional[str] = None
    preferred_state: Optional[str] = None
    preferred_pincode: Optional[str] = None


class UserCreate(UserProfile):
    # isAdmin is deliberately not a field: registration never grants admin
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("username")
    def strip_username(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class UserRead(UserProfile):
    id: int
    username: str
    is_admin: bool = False
    created_at: Optional[datetime] = None


class UserRecord(UserRead):
    """Stored user, including the password hash. Never returned by the API."""

    password_hash: str

    def public(self) -> UserRead:
        return UserRead(**self.model_dump(exclude={"password_hash"}))


class LoginRequest(CamelModel):
    username: str
    password: str


class AuthResponse(CamelModel):
    user: UserRead
    token: str


# -------------------- Products --------------------

class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    price: Amount
    min_order_quantity: Amount
    image_url: Optional[str] = None
    description: Optional[str] = None
    in_stock: bool = True

    @field_validator("description")
    def strip_markup(cls, v: Optional[str]):
        return clean_text(v)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    price: Optional[Amount] = None
    min_order_quantity: Optional[Amount] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    in_stock: Optional[bool] = None

    @field_validator("description")
    def strip_markup(cls, v: Optional[str]):
        return clean_text(v)

    def changes(self) -> dict:
        """Fields the client actually sent; explicit nulls only clear nullable columns."""
        nullable = {"image_url", "description"}
        return {
            k: v
            for k, v in self.model_dump(exclude_unset=True).items()
            if v is not None or k in nullable
        }


class ProductRead(CamelModel):
    id: int
    name: str
    category: str
    price: int
    min_order_quantity: int
    image_url: Optional[str] = None
    description: Optional[str] = None
    in_stock: bool = True


# -------------------- Line items (cart + order snapshots) --------------------

class OrderItem(CamelModel):
    product_id: PositiveInt
    name: str = Field(..., min_length=1)
    price: Amount
    quantity: Amount
    subtotal: Subtotal

    @model_validator(mode="after")
    def subtotal_matches(self):
        if self.subtotal != self.price * self.quantity:
            raise ValueError("subtotal must equal price x quantity")
        return self


CartItem = OrderItem


# -------------------- Orders --------------------

class OrderCreate(CamelModel):
    buyer_name: str = Field(..., min_length=1, max_length=200)
    business_name: Optional[str] = None
    email: str = Field(..., min_length=3, max_length=200)
    phone: str = Field(..., min_length=1, max_length=30)
    delivery_address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1, max_length=20)
    delivery_instructions: Optional[str] = None
    preferred_delivery_date: str
    items: list[OrderItem] = Field(..., min_length=1)
    total_amount: Optional[Subtotal] = None

    @field_validator("delivery_instructions")
    def strip_markup(cls, v: Optional[str]):
        return clean_text(v)

    @field_validator("preferred_delivery_date")
    def iso_date(cls, v: str):
        try:
            datetime.fromisoformat(v.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError("preferredDeliveryDate must be an ISO-8601 date")
        return v

    @model_validator(mode="after")
    def total_matches_items(self):
        computed = sum(item.subtotal for item in self.items)
        if computed > MAX_AMOUNT:
            raise ValueError(f"order total must not exceed {MAX_AMOUNT}")
        if self.total_amount is not None and self.total_amount != computed:
            raise ValueError("totalAmount must equal the sum of item subtotals")
        self.total_amount = computed
        return self


class OrderRead(CamelModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    buyer_name: str
    business_name: Optional[str] = None
    email: str
    phone: str
    delivery_address: str
    city: str
    state: str
    pincode: str
    delivery_instructions: Optional[str] = None
    preferred_delivery_date: str
    items: list[OrderItem]
    status: OrderStatus = "Pending"
    total_amount: int
    created_at: datetime


class OrderTracking(CamelModel):
    """Public projection of an order: no buyer details."""

    id: int
    order_number: str
    status: OrderStatus
    created_at: datetime
    preferred_delivery_date: str
    total_amount: int


class StatusUpdate(CamelModel):
    status: OrderStatus


# -------------------- Carts --------------------

class CartUpdate(CamelModel):
    items: list[CartItem]


class CartRead(CamelModel):
    id: Optional[int] = None
    user_id: int
    items: list[CartItem] = []
    updated_at: Optional[datetime] = None


# -------------------- Back office --------------------

class DashboardStats(CamelModel):
    total_sales: int
    order_count: int
    pending_orders: int
    product_count: int
    average_order_value: int
    status_counts: dict[str, int]
