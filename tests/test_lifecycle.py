from datetime import datetime, timezone
from decimal import Decimal

import pytest

from storefront import errors, lifecycle
from storefront.schemas import OrderRead, OrderStatus, Role

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "preparing"),
    ("preparing", "ready"),
    ("ready", "completed"),
}

EARLIER = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_order(status="pending", **overrides):
    fields = dict(
        id=1,
        user_id=7,
        total=Decimal("130"),
        status=status,
        pickup_time="30分鐘後",
        payment_method="現金",
        created_at=EARLIER,
        updated_at=EARLIER,
    )
    fields.update(overrides)
    return OrderRead(**fields)


@pytest.mark.parametrize("source", [s.value for s in OrderStatus])
@pytest.mark.parametrize("target", [s.value for s in OrderStatus])
def test_staff_transition_matrix(source, target):
    order = make_order(source)
    if (source, target) in ALLOWED:
        moved = lifecycle.transition(order, target, "staff")
        assert moved.status == OrderStatus(target)
    else:
        with pytest.raises(errors.InvalidTransition):
            lifecycle.transition(order, target, "staff")


@pytest.mark.parametrize("source", [s.value for s in OrderStatus])
@pytest.mark.parametrize("target", [s.value for s in OrderStatus])
def test_customer_transition_matrix(source, target):
    order = make_order(source)
    if (source, target) == ("pending", "cancelled"):
        assert lifecycle.transition(order, target, Role.customer).status is OrderStatus.cancelled
    else:
        with pytest.raises(errors.InvalidTransition):
            lifecycle.transition(order, target, Role.customer)


def test_transition_only_touches_status_and_updated_at():
    order = make_order("pending")
    now = datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)
    moved = lifecycle.transition(order, "confirmed", "staff", now=now)
    assert moved.updated_at == now
    assert moved.model_dump(exclude={"status", "updated_at"}) == order.model_dump(exclude={"status", "updated_at"})
    # input is left untouched
    assert order.status is OrderStatus.pending
    assert order.updated_at == EARLIER


def test_ready_to_completed_then_terminal():
    order = make_order("ready")
    done = lifecycle.transition(order, "completed", "staff")
    assert done.status is OrderStatus.completed
    with pytest.raises(errors.InvalidTransition):
        lifecycle.transition(done, "pending", "staff")


def test_customer_cannot_cancel_once_preparing():
    with pytest.raises(errors.InvalidTransition):
        lifecycle.transition(make_order("preparing"), "cancelled", "customer")


def test_manager_follows_staff_rows():
    assert lifecycle.transition(make_order("confirmed"), "preparing", "manager").status is OrderStatus.preparing


def test_allowed_transitions_agree_with_transition():
    for status in OrderStatus:
        for role in Role:
            allowed = lifecycle.allowed_transitions(status, role)
            for target in OrderStatus:
                if target in allowed:
                    lifecycle.transition(make_order(status.value), target, role)
                else:
                    with pytest.raises(errors.InvalidTransition):
                        lifecycle.transition(make_order(status.value), target, role)


def test_terminal_states():
    assert lifecycle.is_terminal("completed")
    assert lifecycle.is_terminal(OrderStatus.cancelled)
    assert not lifecycle.is_terminal("ready")


def test_status_counts():
    orders = [make_order(s) for s in ("pending", "pending", "confirmed", "preparing", "ready", "completed", "cancelled")]
    assert lifecycle.status_counts(orders) == {"pending": 2, "active": 3}


def test_every_status_has_a_label():
    assert set(lifecycle.STATUS_LABELS) == set(OrderStatus)
    assert lifecycle.STATUS_LABELS[OrderStatus.ready] == "可取餐"
