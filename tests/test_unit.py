from decimal import Decimal

import pytest

from storefront import crud, errors, lifecycle, models, schemas


def draft(total="80", items=(("1", 1, "50"), ("2", 1, "30"))):
    return schemas.OrderDraft(
        total=Decimal(total),
        pickup_time="30分鐘後",
        payment_method="現金",
        items=[schemas.OrderItemDraft(menu_item_id=int(i), quantity=q, price=Decimal(p)) for i, q, p in items],
    )


def test_create_menu_item_rounds_price(db_session):
    item = crud.create_menu_item(db_session, schemas.MenuItemCreate(name="拿鐵", price=Decimal("10.125"), category="咖啡"))
    assert item.id is not None
    assert item.price == Decimal("10.13")  # rounded half up
    assert item.available is True


def test_create_menu_item_sanitizes_text(db_session):
    item = crud.create_menu_item(
        db_session,
        schemas.MenuItemCreate(name="<i>Fish & Chips</i>", price=Decimal("5"), category="輕食", description="  "),
    )
    assert item.name == "Fish & Chips"
    assert item.description is None


def test_create_order_persists_items(db_session, make_user):
    user = make_user("amy", "customer")
    order = crud.create_order(db_session, user.id, draft())
    assert order.status == "pending"
    assert order.total == Decimal("80")
    assert [(i.menu_item_id, i.quantity, i.price) for i in order.items] == [(1, 1, Decimal("50")), (2, 1, Decimal("30"))]
    assert crud.list_orders_for_user(db_session, user.id)[0].id == order.id


def test_create_order_is_atomic(db_session):
    # unknown user violates the foreign key; neither the order nor its items land
    with pytest.raises(errors.PersistenceError):
        crud.create_order(db_session, 9999, draft())
    assert db_session.query(models.Order).count() == 0
    assert db_session.query(models.OrderItem).count() == 0


def test_update_order_status_refreshes_updated_at(db_session, make_user):
    user = make_user("amy", "customer")
    order = crud.create_order(db_session, user.id, draft())
    before = order.updated_at
    moved = crud.update_order_status(db_session, order.id, "confirmed", "staff")
    assert moved.status == "confirmed"
    assert moved.updated_at >= before
    assert moved.total == Decimal("80")


def test_update_order_status_unknown_order(db_session):
    assert crud.update_order_status(db_session, 404, "confirmed", "staff") is None


def test_update_order_status_compare_and_swap(db_session, make_user, monkeypatch):
    user = make_user("amy", "customer")
    order = crud.create_order(db_session, user.id, draft())
    real_transition = lifecycle.transition

    def racing_transition(current, target, role, now=None):
        # another staff member confirms the order between our read and our write
        db_session.query(models.Order).filter(models.Order.id == order.id).update(
            {"status": "confirmed"}, synchronize_session=False
        )
        return real_transition(current, target, role, now=now)

    monkeypatch.setattr(lifecycle, "transition", racing_transition)
    with pytest.raises(errors.InvalidTransition):
        crud.update_order_status(db_session, order.id, "cancelled", "staff")


def test_business_settings_default_row_materialized(db_session):
    db_session.query(models.BusinessSettings).delete()
    db_session.commit()
    settings = crud.get_business_settings(db_session)
    assert (settings.open_time, settings.close_time, settings.is_open) == ("08:00", "22:00", True)
    crud.get_business_settings(db_session)
    assert db_session.query(models.BusinessSettings).count() == 1


def test_update_business_settings_is_partial(db_session):
    settings = crud.update_business_settings(db_session, schemas.BusinessSettingsUpdate(open_time="09:30"))
    assert settings.open_time == "09:30"
    assert settings.close_time == "22:00"
    assert db_session.query(models.BusinessSettings).count() == 1


def test_list_orders_newest_first(db_session, make_user):
    user = make_user("amy", "customer")
    first = crud.create_order(db_session, user.id, draft())
    second = crud.create_order(db_session, user.id, draft())
    assert [o.id for o in crud.list_orders(db_session)] == [second.id, first.id]
