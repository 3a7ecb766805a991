from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # username is not unique on its own; login matches (username, password, role)
    username = Column(String(80), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    # 'customer', 'staff' or 'manager'; fixed at creation
    role = Column(String(20), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(320), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    orders = relationship("Order", back_populates="user")


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(80), nullable=False, index=True)
    description = Column(String(500), nullable=True)
    available = Column(Boolean, default=True, nullable=False)
    # data URL placeholder or external link
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # frozen at creation; never recomputed from the items
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    pickup_time = Column(String(80), nullable=False)
    payment_method = Column(String(40), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # weak reference: menu items are hard-deleted without touching history
    menu_item_id = Column(Integer, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # unit price snapshot taken when the item went into the cart
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship(
        "MenuItem",
        primaryjoin="foreign(OrderItem.menu_item_id) == MenuItem.id",
        viewonly=True,
    )


class BusinessSettings(Base):
    __tablename__ = "business_settings"

    id = Column(Integer, primary_key=True, index=True)
    open_time = Column(String(5), nullable=False, default="08:00")
    close_time = Column(String(5), nullable=False, default="22:00")
    is_open = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class PickupTimeOption(Base):
    __tablename__ = "pickup_time_options"

    id = Column(Integer, primary_key=True, index=True)
    option_text = Column(String(80), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
