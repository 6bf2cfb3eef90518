import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware
import uvicorn

from . import config, schemas
from .auth import (
    SESSION_MAX_AGE,
    authenticate,
    create_access_token,
    current_user,
    hash_password,
    login_session,
    logout_session,
    require_admin,
    require_user,
)
from .db import create_tables
from .seed import seed_storage
from .storage import Storage, get_storage
from .utils import format_currency, sanitize_input

logging.basicConfig(
    level=config.state.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if not existing. In production, use a migration tool.
    if config.use_database():
        create_tables()
    if config.state.seed_data:
        gen = get_storage()
        try:
            seed_storage(next(gen))
        finally:
            gen.close()
    yield


app = FastAPI(title="AgroFix Wholesale Storefront", lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=config.state.session_secret,
    max_age=SESSION_MAX_AGE,
    same_site="lax",
)


# -------------------- Error handling --------------------

def describe_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts) or "Invalid request data"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": describe_validation_errors(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

@app.post("/api/register", response_model=schemas.AuthResponse, status_code=201)
async def register(payload: schemas.UserCreate, request: Request, storage: Storage = Depends(get_storage)):
    # admin rights are never granted here, whatever the payload says
    try:
        user = storage.create_user(payload, hash_password(payload.password), is_admin=False)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    login_session(request, user)
    logger.info("registered user id=%s", user.id)
    return {"user": user.public(), "token": create_access_token(user)}


@app.post("/api/login", response_model=schemas.AuthResponse)
async def login(payload: schemas.LoginRequest, request: Request, storage: Storage = Depends(get_storage)):
    user = authenticate(storage, payload.username, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    login_session(request, user)
    return {"user": user.public(), "token": create_access_token(user)}


@app.post("/api/logout")
async def logout(request: Request):
    logout_session(request)
    return {"message": "Logged out successfully"}


@app.get("/api/user", response_model=schemas.UserRead)
async def get_current_user(user: schemas.UserRecord = Depends(require_user)):
    return user.public()


# -------------------- Products --------------------

@app.get("/api/products", response_model=List[schemas.ProductRead])
async def list_products(
    category: Optional[str] = Query(None, max_length=100),
    q: str = Query("", max_length=100),
    storage: Storage = Depends(get_storage),
):
    return storage.get_products(category=category or None, q=sanitize_input(q) or None)


@app.get("/api/products/categories", response_model=List[str])
async def list_categories(storage: Storage = Depends(get_storage)):
    return storage.get_categories()


@app.get("/api/products/{product_id}", response_model=schemas.ProductRead)
async def get_product(product_id: int, storage: Storage = Depends(get_storage)):
    product = storage.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/api/products", response_model=schemas.ProductRead, status_code=201)
async def create_product(
    payload: schemas.ProductCreate,
    admin: schemas.UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    product = storage.create_product(payload)
    logger.info("product %s created by %s", product.id, admin.username)
    return product


@app.put("/api/products/{product_id}", response_model=schemas.ProductRead)
async def update_product(
    product_id: int,
    payload: schemas.ProductUpdate,
    admin: schemas.UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    product = storage.update_product(product_id, payload)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("product %s updated by %s", product_id, admin.username)
    return product


@app.delete("/api/products/{product_id}")
async def delete_product(
    product_id: int,
    admin: schemas.UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    if not storage.delete_product(product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("product %s deleted by %s", product_id, admin.username)
    return {"message": "Product deleted successfully", "deleted": product_id}


# -------------------- Orders --------------------

@app.get("/api/orders", response_model=List[schemas.OrderRead])
async def list_orders(
    status: Optional[schemas.OrderStatus] = None,
    q: str = Query("", max_length=100),
    user: schemas.UserRecord = Depends(require_user),
    storage: Storage = Depends(get_storage),
):
    orders = storage.get_orders(status=status, q=sanitize_input(q) or None)
    if user.is_admin:
        return orders
    # regular users only see orders placed with their username as email
    return [o for o in orders if o.email == user.username]


@app.post("/api/orders", response_model=schemas.OrderRead, status_code=201)
async def create_order(
    payload: schemas.OrderCreate,
    user: Optional[schemas.UserRecord] = Depends(current_user),
    storage: Storage = Depends(get_storage),
):
    try:
        order = storage.create_order(payload, user_id=user.id if user else None)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(
        "order %s placed (%s, %d items, total %s)",
        order.order_number,
        f"user {user.id}" if user else "guest",
        len(order.items),
        format_currency(order.total_amount),
    )
    return order


@app.get("/api/orders/{order_id}", response_model=schemas.OrderRead)
async def get_order(
    order_id: int,
    user: schemas.UserRecord = Depends(require_user),
    storage: Storage = Depends(get_storage),
):
    order = storage.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not user.is_admin and order.email != user.username:
        raise HTTPException(status_code=403, detail="Unauthorized access to this order")
    return order


@app.put("/api/orders/{order_id}/status", response_model=schemas.OrderRead)
async def update_order_status(
    order_id: int,
    payload: schemas.StatusUpdate,
    admin: schemas.UserRecord = Depends(require_admin),
    storage: Storage = Depends(get_storage),
):
    order = storage.update_order_status(order_id, payload.status)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("order %s set to %r by %s", order.order_number, order.status, admin.username)
    return order


@app.get("/api/track/{order_number}", response_model=schemas.OrderTracking)
async def track_order(order_number: str, storage: Storage = Depends(get_storage)):
    order = storage.get_order_by_number(order_number.strip())
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# -------------------- Cart --------------------

@app.get("/api/cart", response_model=schemas.CartRead)
async def get_cart(user: schemas.UserRecord = Depends(require_user), storage: Storage = Depends(get_storage)):
    cart = storage.get_cart(user.id)
    return cart or schemas.CartRead(user_id=user.id, items=[])


@app.post("/api/cart", response_model=schemas.CartRead)
async def update_cart(
    payload: schemas.CartUpdate,
    user: schemas.UserRecord = Depends(require_user),
    storage: Storage = Depends(get_storage),
):
    try:
        return storage.update_cart(user.id, payload.items)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# -------------------- Back office --------------------

@app.get("/api/admin/stats", response_model=schemas.DashboardStats)
async def dashboard_stats(admin: schemas.UserRecord = Depends(require_admin), storage: Storage = Depends(get_storage)):
    orders = storage.get_orders()
    status_counts = {status: 0 for status in schemas.ORDER_STATUSES}
    for order in orders:
        status_counts[order.status] += 1
    total_sales = sum(o.total_amount for o in orders)
    return schemas.DashboardStats(
        total_sales=total_sales,
        order_count=len(orders),
        pending_orders=status_counts["Pending"],
        product_count=len(storage.get_products()),
        average_order_value=total_sales // len(orders) if orders else 0,
        status_counts=status_counts,
    )


def run():
    """Console entry point: serve the app with uvicorn on HOST:PORT."""
    uvicorn.run(app, host=config.state.host, port=config.state.port, log_level=config.state.log_level.lower())


if __name__ == "__main__":
    run()
