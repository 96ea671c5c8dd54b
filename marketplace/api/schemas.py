"""
Pydantic schemas for backend responses.

This is the one place wire payloads are turned into typed objects. Enum
fields are normalized on the way in, so an unknown value arrives as None
instead of raising or leaking a raw string into the rest of the code.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from ..orders.normalize import (
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    raw_text,
    normalize_delivery_method,
    normalize_payment_method,
    normalize_payment_status,
    normalize_status,
)


class WireModel(BaseModel):
    """Accepts camelCase from the backend and snake_case from Python callers."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None


# ==================== Order Schemas ====================

class OrderItem(WireModel):
    item_id: str = Field(default='', alias='itemId')
    title: str = ''
    price: float = 0.0
    quantity: int = 1
    image: Optional[str] = None

    @field_validator('item_id', mode='before')
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return '' if v is None else str(v)

    @property
    def subtotal(self) -> float:
        return self.price * self.quantity


class Coordinates(WireModel):
    lat: float
    lng: float


class PickupDetails(WireModel):
    location_name: str = Field(default='', alias='locationName')
    address: Optional[str] = None
    note: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    preferred_time: Optional[datetime] = Field(default=None, alias='preferredTime')

    @field_validator('preferred_time', mode='before')
    @classmethod
    def _preferred_time(cls, v: Any) -> Optional[datetime]:
        return _parse_datetime(v)

    @property
    def maps_url(self) -> Optional[str]:
        if not self.coordinates:
            return None
        return f"https://www.google.com/maps?q={self.coordinates.lat},{self.coordinates.lng}"


class ShippingAddress(WireModel):
    address: str = ''
    city: str = ''
    postal_code: str = Field(default='', alias='postalCode')

    def one_line(self) -> str:
        return f"{self.address}, {self.city} {self.postal_code}".strip()


class BuyerContact(WireModel):
    full_name: str = Field(default='', alias='fullName')
    phone: str = ''


class Party(WireModel):
    """Buyer or seller as embedded in an order."""
    id: str = Field(default='', validation_alias=AliasChoices('id', '_id'))
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return '' if v is None else str(v)


class Order(WireModel):
    id: str = Field(validation_alias=AliasChoices('id', '_id'))
    status: Optional[OrderStatus] = None
    delivery_method: Optional[DeliveryMethod] = Field(default=None, alias='deliveryMethod')
    payment_method: Optional[PaymentMethod] = Field(default=None, alias='paymentMethod')
    # trimmed wire value, kept so unknown or blank methods still count as payable
    raw_payment_method: Optional[str] = Field(default=None, alias='rawPaymentMethod')
    payment_status: Optional[PaymentStatus] = Field(default=None, alias='paymentStatus')
    items: List[OrderItem] = Field(default_factory=list)
    total_price: float = Field(default=0.0, alias='totalPrice')
    buyer: Optional[Party] = None
    seller: Optional[Party] = None
    buyer_contact: Optional[BuyerContact] = Field(default=None, alias='buyerContact')
    shipping_address: Optional[ShippingAddress] = Field(default=None, alias='shippingAddress')
    pickup_details: Optional[PickupDetails] = Field(default=None, alias='pickupDetails')
    rejection_reason: Optional[str] = Field(default=None, alias='rejectionReason')
    buyer_received: bool = Field(default=False, alias='buyerReceived')
    seller_delivered: bool = Field(default=False, alias='sellerDelivered')
    created_at: Optional[datetime] = Field(default=None, alias='createdAt')

    @model_validator(mode='before')
    @classmethod
    def _capture_raw_method(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if 'rawPaymentMethod' not in data and 'raw_payment_method' not in data:
            raw = data.get('paymentMethod', data.get('payment_method'))
            data['rawPaymentMethod'] = raw_text(raw)
        return data

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return '' if v is None else str(v)

    @field_validator('status', mode='before')
    @classmethod
    def _status(cls, v: Any) -> Optional[OrderStatus]:
        return normalize_status(v)

    @field_validator('delivery_method', mode='before')
    @classmethod
    def _delivery(cls, v: Any) -> Optional[DeliveryMethod]:
        return normalize_delivery_method(v)

    @field_validator('payment_method', mode='before')
    @classmethod
    def _method(cls, v: Any) -> Optional[PaymentMethod]:
        return normalize_payment_method(v)

    @field_validator('payment_status', mode='before')
    @classmethod
    def _payment_status(cls, v: Any) -> Optional[PaymentStatus]:
        return normalize_payment_status(v)

    @field_validator('items', mode='before')
    @classmethod
    def _items(cls, v: Any) -> Any:
        return v or []

    @field_validator('buyer_received', 'seller_delivered', mode='before')
    @classmethod
    def _flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator('created_at', mode='before')
    @classmethod
    def _created_at(cls, v: Any) -> Optional[datetime]:
        return _parse_datetime(v)

    @property
    def display_status(self) -> OrderStatus:
        """Unknown statuses render as pending."""
        return self.status or OrderStatus.PENDING_SELLER_CONFIRMATION

    @property
    def short_id(self) -> str:
        return self.id[-8:]


# ==================== List Schemas ====================

class Pagination(WireModel):
    page: int = 1
    limit: int = 10
    total: int = 0
    total_pages: int = Field(default=0, alias='totalPages')


class StatusCounts(WireModel):
    pending_seller_confirmation: int = 0
    confirmed: int = 0
    completed: int = 0
    rejected: int = 0
    cancelled: int = 0

    def for_status(self, status: OrderStatus) -> int:
        return getattr(self, status.value)

    @classmethod
    def from_orders(cls, orders: List[Order]) -> 'StatusCounts':
        counts: Dict[str, int] = {}
        for order in orders:
            if order.status is not None:
                counts[order.status.value] = counts.get(order.status.value, 0) + 1
        return cls(**counts)


class OrderListResponse(WireModel):
    orders: List[Order] = Field(default_factory=list)
    pagination: Optional[Pagination] = None
    status_counts: Optional[StatusCounts] = Field(default=None, alias='statusCounts')

    @field_validator('orders', mode='before')
    @classmethod
    def _orders(cls, v: Any) -> Any:
        return v or []


class OrderDetailResponse(WireModel):
    order: Order


# ==================== Chat / Notification Schemas ====================

class ChatThread(WireModel):
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices('id', 'threadId', '_id'))

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, v: Any) -> Optional[str]:
        return None if v in (None, '') else str(v)


class Notification(WireModel):
    id: str
    type: str = 'system'
    title: str = ''
    message: str = ''
    timestamp: Optional[datetime] = None
    read: bool = False
    link: Optional[str] = None

    @field_validator('timestamp', mode='before')
    @classmethod
    def _timestamp(cls, v: Any) -> Optional[datetime]:
        return _parse_datetime(v)


class NotificationList(WireModel):
    notifications: List[Notification] = Field(default_factory=list)
    unread_count: int = Field(default=0, alias='unreadCount')
