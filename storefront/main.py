import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import List, Optional

import jwt
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import config, crud, errors, lifecycle, models, schemas
from .auth import create_access_token, decode_access_token
from .db import Base, SessionLocal, engine, get_db
from .schemas import OrderStatus, Role
from .utils import sanitize_input

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if not existing. Defaults are seeded once here, not on read.
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        crud.ensure_defaults(db)
    finally:
        db.close()
    yield


app = FastAPI(title="Pickup Storefront", lifespan=lifespan)


@app.exception_handler(errors.StorefrontError)
async def storefront_error_handler(request: Request, exc: errors.StorefrontError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.kind, "message": exc.message},
    )


# -------------------- Session context --------------------

def get_current_user(authorization: Optional[str] = Header(default=None), db: Session = Depends(get_db)) -> models.User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="missing bearer token")
    token = authorization.split(None, 1)[1]
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="invalid token")
    user = crud.get_user(db, user_id)
    if not user or user.role != payload.get("role"):
        raise HTTPException(status_code=401, detail="invalid token")
    return user


def require_roles(*roles: Role):
    allowed = {r.value for r in roles}

    def dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail=f"forbidden: requires {' or '.join(sorted(allowed))}")
        return user

    return dependency


customer_only = require_roles(Role.customer)
staff_or_manager = require_roles(Role.staff, Role.manager)
manager_only = require_roles(Role.manager)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/auth/login", response_model=schemas.Token)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate(db, payload.username, payload.password, payload.role)
    token = create_access_token(user.id, user.role)
    return schemas.Token(access_token=token, user=schemas.UserRead.model_validate(user))


@app.get("/me", response_model=schemas.UserRead)
def get_me(current_user: models.User = Depends(get_current_user)):
    return current_user


# -------------------- Menu --------------------

@app.get("/menu", response_model=List[schemas.MenuItemRead])
def get_menu(db: Session = Depends(get_db)):
    return crud.list_menu_items(db)


@app.post("/menu", response_model=schemas.MenuItemRead, status_code=201)
def create_menu_item(item: schemas.MenuItemCreate, db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    return crud.create_menu_item(db, item)


@app.patch("/menu/{item_id}", response_model=schemas.MenuItemRead)
def update_menu_item(item_id: int, changes: schemas.MenuItemUpdate, db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    item = crud.update_menu_item(db, item_id, changes)
    if not item:
        raise HTTPException(status_code=404, detail="menu item not found")
    return item


@app.delete("/menu/{item_id}")
def delete_menu_item(item_id: int, db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    if not crud.delete_menu_item(db, item_id):
        raise HTTPException(status_code=404, detail="menu item not found")
    return {"deleted": item_id}


# -------------------- Cart (client-held, computed here) --------------------

def cart_response(cart: List[schemas.CartLine]) -> schemas.CartRead:
    return schemas.CartRead(items=cart, total=lifecycle.cart_total(cart))


@app.post("/cart/items", response_model=schemas.CartRead)
def add_to_cart(payload: schemas.CartAddRequest, db: Session = Depends(get_db), _: models.User = Depends(customer_only)):
    item = crud.get_menu_item(db, payload.menu_item_id)
    if not item:
        raise HTTPException(status_code=404, detail="menu item not found")
    return cart_response(lifecycle.add_to_cart(payload.cart, item))


@app.post("/cart/quantity", response_model=schemas.CartRead)
def update_cart_quantity(payload: schemas.CartQuantityRequest, _: models.User = Depends(customer_only)):
    return cart_response(lifecycle.update_quantity(payload.cart, payload.menu_item_id, payload.delta))


@app.delete("/cart/items/{menu_item_id}", response_model=schemas.CartRead)
def remove_from_cart(menu_item_id: int, payload: schemas.CartRemoveRequest, _: models.User = Depends(customer_only)):
    return cart_response(lifecycle.remove_from_cart(payload.cart, menu_item_id))


# -------------------- Orders --------------------

@app.post("/orders", response_model=schemas.OrderRead, status_code=201)
def checkout(payload: schemas.CheckoutRequest, db: Session = Depends(get_db), current_user: models.User = Depends(customer_only)):
    draft = lifecycle.build_order(
        payload.items,
        payload.pickup_time,
        payload.payment_method,
        crud.list_active_pickup_options(db),
    )
    return crud.create_order(db, current_user.id, draft)


@app.get("/orders", response_model=List[schemas.OrderRead])
def get_orders(status: Optional[OrderStatus] = Query(default=None), db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    if current_user.role == Role.customer.value:
        return crud.list_orders_for_user(db, current_user.id, status=status)
    return crud.list_orders(db, status=status)


@app.get("/orders/summary", response_model=schemas.StatusSummary)
def get_order_summary(db: Session = Depends(get_db), _: models.User = Depends(staff_or_manager)):
    return lifecycle.status_counts(crud.list_orders(db))


def visible_order(db: Session, order_id: int, user: models.User) -> models.Order:
    order = crud.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="order not found")
    if user.role == Role.customer.value and order.user_id != user.id:
        raise HTTPException(status_code=403, detail="forbidden")
    return order


@app.get("/orders/{order_id}", response_model=schemas.OrderRead)
def get_order(order_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return visible_order(db, order_id, current_user)


@app.get("/orders/{order_id}/transitions", response_model=schemas.TransitionsRead)
def get_order_transitions(order_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    order = visible_order(db, order_id, current_user)
    allowed = lifecycle.allowed_transitions(order.status, current_user.role)
    ordered = [s for s in OrderStatus if s in allowed]
    return {
        "status": order.status,
        "label": lifecycle.STATUS_LABELS[OrderStatus(order.status)],
        "terminal": lifecycle.is_terminal(order.status),
        "allowed": ordered,
    }


@app.post("/orders/{order_id}/status", response_model=schemas.OrderRead)
def advance_order(order_id: int, payload: schemas.StatusUpdate, db: Session = Depends(get_db), current_user: models.User = Depends(staff_or_manager)):
    order = crud.update_order_status(db, order_id, payload.status, current_user.role)
    if not order:
        raise HTTPException(status_code=404, detail="order not found")
    return order


@app.post("/orders/{order_id}/cancel", response_model=schemas.OrderRead)
def cancel_order(order_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(customer_only)):
    visible_order(db, order_id, current_user)
    return crud.update_order_status(db, order_id, OrderStatus.cancelled, current_user.role)


# -------------------- Business settings & pickup options --------------------

@app.get("/settings", response_model=schemas.BusinessSettingsRead)
def get_settings(db: Session = Depends(get_db)):
    return crud.get_business_settings(db)


@app.put("/settings", response_model=schemas.BusinessSettingsRead)
def update_settings(changes: schemas.BusinessSettingsUpdate, db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    return crud.update_business_settings(db, changes)


@app.get("/pickup-options", response_model=List[schemas.PickupTimeOptionRead])
def get_pickup_options(db: Session = Depends(get_db)):
    return crud.list_active_pickup_options(db)


@app.put("/pickup-options", response_model=List[schemas.PickupTimeOptionRead])
def replace_pickup_options(payload: schemas.PickupOptionsReplace, db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    # judge emptiness on what will actually be stored
    if not any(sanitize_input(text) for text in payload.options) and not config.allow_empty_pickup_options():
        raise HTTPException(status_code=400, detail="at least one pickup time option is required")
    return crud.replace_pickup_options(db, payload.options)


# -------------------- Stats --------------------

@app.get("/stats/daily", response_model=schemas.DailyStats)
def get_daily_stats(day: Optional[date] = Query(default=None, alias="date"), db: Session = Depends(get_db), _: models.User = Depends(manager_only)):
    tz = config.local_timezone()
    reference = day or datetime.now(tz).astimezone(tz).date()
    return lifecycle.daily_stats(crud.list_orders(db), reference, tz)
