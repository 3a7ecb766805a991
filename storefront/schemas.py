from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic.config import ConfigDict


class Role(str, Enum):
    customer = "customer"
    staff = "staff"
    manager = "manager"


class OrderStatus(str, Enum):
    pending = "pending"
    confirmed = "confirmed"
    preparing = "preparing"
    ready = "ready"
    completed = "completed"
    cancelled = "cancelled"


HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=1)
    role: Role


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=1, max_length=128)
    role: Role
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None)


class UserRead(BaseModel):
    id: int
    username: str
    role: Role
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal = Field(..., ge=0)
    category: str = Field(..., min_length=1, max_length=80)
    description: Optional[str] = Field(default=None, max_length=500)
    available: bool = True
    image_url: Optional[str] = None

    @field_validator("name", "category")
    def not_blank(cls, v: str):
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    price: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=80)
    description: Optional[str] = Field(default=None, max_length=500)
    available: Optional[bool] = None
    image_url: Optional[str] = None

    @field_validator("name", "category")
    def not_blank(cls, v: Optional[str]):
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v.strip() if v is not None else v


class MenuItemRead(BaseModel):
    id: int
    name: str
    price: Decimal
    category: str
    description: Optional[str] = None
    available: bool
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CartLine(BaseModel):
    """One cart row; ``price`` is the unit price captured when the item was added."""

    menu_item_id: int
    name: str = ""
    price: Decimal = Field(..., ge=0, decimal_places=2)
    quantity: int


class CartRead(BaseModel):
    items: list[CartLine]
    total: Decimal


class CartAddRequest(BaseModel):
    cart: list[CartLine] = []
    menu_item_id: PositiveInt


class CartQuantityRequest(BaseModel):
    cart: list[CartLine] = []
    menu_item_id: int
    delta: int


class CartRemoveRequest(BaseModel):
    cart: list[CartLine] = []


class CheckoutRequest(BaseModel):
    items: list[CartLine] = []
    pickup_time: Optional[str] = None
    payment_method: Optional[str] = None


class OrderItemDraft(BaseModel):
    menu_item_id: int
    quantity: PositiveInt
    price: Decimal = Field(..., ge=0, decimal_places=2)


class OrderDraft(BaseModel):
    status: OrderStatus = OrderStatus.pending
    total: Decimal
    pickup_time: str
    payment_method: str
    items: list[OrderItemDraft]


class OrderItemRead(BaseModel):
    id: int
    order_id: int
    menu_item_id: int
    quantity: int
    price: Decimal
    # None once the referenced menu item has been deleted
    menu_item: Optional[MenuItemRead] = None

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    user_id: int
    total: Decimal
    status: OrderStatus
    pickup_time: str
    payment_method: str
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead] = []
    user: Optional[UserRead] = None

    model_config = ConfigDict(from_attributes=True)


class StatusUpdate(BaseModel):
    status: OrderStatus


class TransitionsRead(BaseModel):
    status: OrderStatus
    label: str
    terminal: bool
    allowed: list[OrderStatus]


class StatusSummary(BaseModel):
    pending: int
    active: int


class BusinessSettingsRead(BaseModel):
    id: int
    open_time: str
    close_time: str
    is_open: bool
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BusinessSettingsUpdate(BaseModel):
    open_time: Optional[str] = Field(default=None, pattern=HHMM)
    close_time: Optional[str] = Field(default=None, pattern=HHMM)
    is_open: Optional[bool] = None


class PickupTimeOptionDraft(BaseModel):
    option_text: str
    is_active: bool = True


class PickupTimeOptionRead(BaseModel):
    id: int
    option_text: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class PickupOptionsReplace(BaseModel):
    options: list[str]


class DailyStats(BaseModel):
    day: date
    count: int
    revenue: Decimal
    pending_count: int
    completed_count: int
