"""Order lifecycle engine.

Pure functions over plain values: the order status state machine, cart
manipulation, checkout validation and the daily aggregate. Nothing here
touches the database; ``crud`` and ``main`` call in with data they loaded.
"""
import logging
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from . import errors
from .schemas import (
    CartLine,
    DailyStats,
    OrderDraft,
    OrderItemDraft,
    OrderStatus,
    PickupTimeOptionDraft,
    Role,
)

logger = logging.getLogger(__name__)

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset({OrderStatus.confirmed, OrderStatus.cancelled}),
    OrderStatus.confirmed: frozenset({OrderStatus.preparing}),
    OrderStatus.preparing: frozenset({OrderStatus.ready}),
    OrderStatus.ready: frozenset({OrderStatus.completed}),
    OrderStatus.completed: frozenset(),
    OrderStatus.cancelled: frozenset(),
}

ACTIVE_STATUSES = frozenset({OrderStatus.confirmed, OrderStatus.preparing, OrderStatus.ready})

STATUS_LABELS = {
    OrderStatus.pending: "待確認",
    OrderStatus.confirmed: "已確認",
    OrderStatus.preparing: "製作中",
    OrderStatus.ready: "可取餐",
    OrderStatus.completed: "已完成",
    OrderStatus.cancelled: "已取消",
}


def is_terminal(status) -> bool:
    return not TRANSITIONS[OrderStatus(status)]


def allowed_transitions(status, actor_role) -> frozenset[OrderStatus]:
    """Targets that ``transition`` would accept for this status and actor."""
    current = OrderStatus(status)
    allowed = TRANSITIONS[current]
    if Role(actor_role) is Role.customer:
        if current is not OrderStatus.pending:
            return frozenset()
        return allowed & {OrderStatus.cancelled}
    return allowed


def transition(order, target, actor_role, now: Optional[datetime] = None):
    """Return a copy of ``order`` moved to ``target``.

    ``order`` is a pydantic model carrying ``status`` and ``updated_at``.
    Raises ``InvalidTransition`` when the move is not in the table or the
    actor may not make it; customers can only cancel, and only while pending.
    """
    current = OrderStatus(order.status)
    target = OrderStatus(target)
    role = Role(actor_role)

    if target not in TRANSITIONS[current]:
        raise errors.InvalidTransition(f"cannot move order from {current.value} to {target.value}")
    if role is Role.customer and target is not OrderStatus.cancelled:
        raise errors.InvalidTransition("customers may only cancel orders")
    if role is Role.customer and current is not OrderStatus.pending:
        raise errors.InvalidTransition("customers may cancel only pending orders")

    return order.model_copy(update={"status": target, "updated_at": now or datetime.now(timezone.utc)})


def add_to_cart(cart: list[CartLine], menu_item) -> list[CartLine]:
    if not menu_item.available:
        raise errors.ItemUnavailable(f"menu item {menu_item.id} is not available")
    out = []
    merged = False
    for line in cart:
        if line.menu_item_id == menu_item.id:
            line = line.model_copy(update={"quantity": line.quantity + 1})
            merged = True
        out.append(line)
    if not merged:
        out.append(
            CartLine(menu_item_id=menu_item.id, name=menu_item.name, price=Decimal(menu_item.price), quantity=1)
        )
    return out


def update_quantity(cart: list[CartLine], menu_item_id: int, delta: int) -> list[CartLine]:
    """Shift a line's quantity by ``delta``; lines that reach zero or below are dropped."""
    out = []
    for line in cart:
        if line.menu_item_id == menu_item_id:
            quantity = line.quantity + delta
            if quantity <= 0:
                continue
            line = line.model_copy(update={"quantity": quantity})
        out.append(line)
    return out


def remove_from_cart(cart: list[CartLine], menu_item_id: int) -> list[CartLine]:
    return [line for line in cart if line.menu_item_id != menu_item_id]


def cart_total(cart: Iterable[CartLine]) -> Decimal:
    return sum((Decimal(line.price) * line.quantity for line in cart), Decimal("0"))


def build_order(cart: list[CartLine], pickup_time: Optional[str], payment_method: Optional[str], active_pickup_options) -> OrderDraft:
    if not cart:
        raise errors.EmptyCart("cart is empty")
    pickup_time = (pickup_time or "").strip()
    payment_method = (payment_method or "").strip()
    if not pickup_time or not payment_method:
        raise errors.MissingSelection("pickup time and payment method are required")
    active = {getattr(opt, "option_text", opt) for opt in active_pickup_options}
    if pickup_time not in active:
        raise errors.InvalidPickupTime(f"pickup time {pickup_time!r} is not an active option")
    for line in cart:
        if line.quantity <= 0:
            raise errors.InvalidQuantity(f"quantity for menu item {line.menu_item_id} must be positive")

    items = [
        OrderItemDraft(menu_item_id=line.menu_item_id, quantity=line.quantity, price=Decimal(line.price))
        for line in cart
    ]
    return OrderDraft(
        status=OrderStatus.pending,
        total=cart_total(cart),
        pickup_time=pickup_time,
        payment_method=payment_method,
        items=items,
    )


def local_date(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    # naive timestamps come back from SQLite and are stored as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


def daily_stats(orders, reference_date: date, tz: Optional[tzinfo] = None) -> DailyStats:
    count = pending = completed = 0
    revenue = Decimal("0")
    for order in orders:
        if local_date(order.created_at, tz) != reference_date:
            continue
        count += 1
        revenue += Decimal(order.total)
        status = OrderStatus(order.status)
        if status is OrderStatus.pending:
            pending += 1
        elif status is OrderStatus.completed:
            completed += 1
    return DailyStats(
        day=reference_date,
        count=count,
        revenue=revenue,
        pending_count=pending,
        completed_count=completed,
    )


def status_counts(orders) -> dict[str, int]:
    statuses = [OrderStatus(order.status) for order in orders]
    return {
        "pending": sum(1 for s in statuses if s is OrderStatus.pending),
        "active": sum(1 for s in statuses if s in ACTIVE_STATUSES),
    }


def replace_pickup_options(current_options, new_texts: Iterable[str]) -> list[PickupTimeOptionDraft]:
    """Replace-all: none of ``current_options`` survive, each text becomes an active option.

    An empty ``new_texts`` yields an empty option set, which leaves checkout
    with no valid pickup time.
    """
    fresh = [PickupTimeOptionDraft(option_text=text.strip()) for text in new_texts if text and text.strip()]
    if not fresh:
        logger.warning("pickup options replaced with an empty set (%d removed)", len(list(current_options)))
    return fresh
