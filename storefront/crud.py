import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import auth, errors, lifecycle, models, schemas
from .utils import sanitize_input, sanitize_optional

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {"open_time": "08:00", "close_time": "22:00", "is_open": True}
DEFAULT_PICKUP_OPTIONS = ["30分鐘後", "1小時後", "2小時後"]

# Business rule: menu prices stored rounded to 2 decimals, non-negative

def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@contextmanager
def committing(db: Session, action: str):
    """Commit on exit; roll back and surface ``PersistenceError`` on any store failure."""
    try:
        yield
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("%s failed: %s", action, e)
        raise errors.PersistenceError(f"{action} failed") from e


# -------------------- Users --------------------

def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    db_user = models.User(
        username=user.username,
        password_hash=auth.hash_password(user.password),
        role=schemas.Role(user.role).value,
        name=user.name,
        email=user.email,
    )
    with committing(db, "create user"):
        db.add(db_user)
    db.refresh(db_user)
    return db_user


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.get(models.User, user_id)


def authenticate(db: Session, username: str, password: str, role) -> models.User:
    candidates = (
        db.query(models.User)
        .filter(models.User.username == username, models.User.role == schemas.Role(role).value)
        .all()
    )
    matches = [u for u in candidates if auth.verify_password(password, u.password_hash)]
    if len(matches) != 1:
        logger.info("login rejected for %s as %s (%d matches)", username, schemas.Role(role).value, len(matches))
        raise errors.AuthenticationFailed("invalid username, password or role")
    logger.info("login ok for %s as %s", username, matches[0].role)
    return matches[0]


# -------------------- Menu --------------------

def list_menu_items(db: Session) -> List[models.MenuItem]:
    return (
        db.query(models.MenuItem)
        .order_by(models.MenuItem.category, models.MenuItem.name)
        .all()
    )


def get_menu_item(db: Session, item_id: int) -> Optional[models.MenuItem]:
    return db.get(models.MenuItem, item_id)


def create_menu_item(db: Session, item: schemas.MenuItemCreate) -> models.MenuItem:
    db_item = models.MenuItem(
        name=sanitize_input(item.name),
        price=round_amount(item.price),
        category=sanitize_input(item.category),
        description=sanitize_optional(item.description),
        available=item.available,
        image_url=item.image_url or None,
    )
    with committing(db, "create menu item"):
        db.add(db_item)
    db.refresh(db_item)
    logger.info("menu item %s created (%s, %s)", db_item.id, db_item.name, db_item.price)
    return db_item


def update_menu_item(db: Session, item_id: int, changes: schemas.MenuItemUpdate) -> Optional[models.MenuItem]:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return None
    fields = changes.model_dump(exclude_unset=True)
    for key, value in fields.items():
        if key in ("name", "category") and value is not None:
            value = sanitize_input(value)
        elif key == "description":
            value = sanitize_optional(value)
        elif key == "price" and value is not None:
            value = round_amount(value)
        if value is None and key in ("name", "category", "price", "available"):
            continue
        setattr(db_item, key, value)
    with committing(db, "update menu item"):
        db.add(db_item)
    db.refresh(db_item)
    logger.info("menu item %s updated: %s", item_id, sorted(fields))
    return db_item


def delete_menu_item(db: Session, item_id: int) -> bool:
    db_item = db.get(models.MenuItem, item_id)
    if not db_item:
        return False
    # order items keep their menu_item_id; history is not cascaded
    with committing(db, "delete menu item"):
        db.delete(db_item)
    logger.info("menu item %s deleted", item_id)
    return True


# -------------------- Orders --------------------

def _orders_query(db: Session):
    return (
        db.query(models.Order)
        .options(
            selectinload(models.Order.items).selectinload(models.OrderItem.menu_item),
            selectinload(models.Order.user),
        )
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
    )


def list_orders(db: Session, status: Optional[schemas.OrderStatus] = None) -> List[models.Order]:
    query = _orders_query(db)
    if status is not None:
        query = query.filter(models.Order.status == schemas.OrderStatus(status).value)
    return query.all()


def list_orders_for_user(db: Session, user_id: int, status: Optional[schemas.OrderStatus] = None) -> List[models.Order]:
    query = _orders_query(db).filter(models.Order.user_id == user_id)
    if status is not None:
        query = query.filter(models.Order.status == schemas.OrderStatus(status).value)
    return query.all()


def get_order(db: Session, order_id: int) -> Optional[models.Order]:
    return _orders_query(db).filter(models.Order.id == order_id).first()


def create_order(db: Session, user_id: int, draft: schemas.OrderDraft) -> models.Order:
    """Persist an order and all of its items in one transaction."""
    db_order = models.Order(
        user_id=user_id,
        total=draft.total,
        status=draft.status.value,
        pickup_time=draft.pickup_time,
        payment_method=draft.payment_method,
    )
    db_order.items = [
        models.OrderItem(menu_item_id=item.menu_item_id, quantity=item.quantity, price=item.price)
        for item in draft.items
    ]
    with committing(db, "create order"):
        db.add(db_order)
    logger.info("order %s created for user %s: %d items, total %s", db_order.id, user_id, len(draft.items), draft.total)
    return get_order(db, db_order.id)


def update_order_status(db: Session, order_id: int, status, actor_role) -> Optional[models.Order]:
    db_order = db.get(models.Order, order_id)
    if not db_order:
        return None
    current = schemas.OrderRead.model_validate(db_order)
    try:
        moved = lifecycle.transition(current, status, actor_role, now=datetime.now(timezone.utc))
    except errors.InvalidTransition as e:
        logger.info("order %s: rejected %s -> %s by %s (%s)", order_id, current.status.value, status, actor_role, e)
        raise

    # compare-and-swap on the prior status so a concurrent advance is not overwritten
    with committing(db, "update order status"):
        updated = (
            db.query(models.Order)
            .filter(models.Order.id == order_id, models.Order.status == current.status.value)
            .update({"status": moved.status.value, "updated_at": moved.updated_at}, synchronize_session=False)
        )
        if updated != 1:
            db.rollback()
            raise errors.InvalidTransition(f"order {order_id} changed status concurrently")
    logger.info("order %s: %s -> %s by %s", order_id, current.status.value, moved.status.value, schemas.Role(actor_role).value)
    db.expire_all()
    return get_order(db, order_id)


# -------------------- Business settings & pickup options --------------------

def _add_default_settings(db: Session) -> None:
    if db.query(models.BusinessSettings).first() is None:
        logger.info("no business settings found, creating default row")
        db.add(models.BusinessSettings(**DEFAULT_SETTINGS))


def ensure_defaults(db: Session) -> None:
    """Create the settings row and the default pickup options when missing. Idempotent.

    Pickup options are only seeded into an empty table here, at startup; reads
    never recreate them, so a manager's empty replacement sticks.
    """
    with committing(db, "ensure defaults"):
        _add_default_settings(db)
        if db.query(models.PickupTimeOption).first() is None:
            logger.info("no pickup time options found, creating defaults")
            db.add_all(models.PickupTimeOption(option_text=text, is_active=True) for text in DEFAULT_PICKUP_OPTIONS)


def get_business_settings(db: Session) -> models.BusinessSettings:
    settings = db.query(models.BusinessSettings).order_by(models.BusinessSettings.id).first()
    if settings is None:
        with committing(db, "create default business settings"):
            _add_default_settings(db)
        settings = db.query(models.BusinessSettings).order_by(models.BusinessSettings.id).first()
    return settings


def update_business_settings(db: Session, changes: schemas.BusinessSettingsUpdate) -> models.BusinessSettings:
    settings = get_business_settings(db)
    fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
    for key, value in fields.items():
        setattr(settings, key, value)
    with committing(db, "update business settings"):
        db.add(settings)
    db.refresh(settings)
    logger.info("business settings updated: %s", fields)
    return settings


def list_active_pickup_options(db: Session) -> List[models.PickupTimeOption]:
    return (
        db.query(models.PickupTimeOption)
        .filter(models.PickupTimeOption.is_active.is_(True))
        .order_by(models.PickupTimeOption.created_at, models.PickupTimeOption.id)
        .all()
    )


def replace_pickup_options(db: Session, texts: List[str]) -> List[models.PickupTimeOption]:
    current = db.query(models.PickupTimeOption).all()
    fresh = lifecycle.replace_pickup_options(current, [sanitize_input(t) for t in texts])
    with committing(db, "replace pickup options"):
        for option in current:
            db.delete(option)
        db.flush()
        db.add_all(models.PickupTimeOption(option_text=o.option_text, is_active=o.is_active) for o in fresh)
    logger.info("pickup options replaced: %s", [o.option_text for o in fresh])
    return list_active_pickup_options(db)
