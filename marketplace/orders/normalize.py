"""
Order enums and their normalizers.

The backend is not consistent about casing or whitespace, so every enum
coming off the wire goes through one of the normalize_* functions below.
They return the matching member or None; callers pick the fallback.
"""

from enum import Enum
from typing import Any, Optional, Type, TypeVar


class OrderStatus(str, Enum):
    PENDING_SELLER_CONFIRMATION = "pending_seller_confirmation"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    PROMPTPAY = "promptpay"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAID = "paid"
    NOT_REQUIRED = "not_required"


TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED,
    OrderStatus.REJECTED,
    OrderStatus.CANCELLED,
})

E = TypeVar('E', bound=Enum)


def clean(value: Any) -> Optional[str]:
    """Trim and lower-case; anything that is not a non-blank string is None."""
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str):
        return None
    lowered = value.strip().lower()
    return lowered or None


def raw_text(value: Any) -> Optional[str]:
    """
    Trimmed, lower-cased copy of a non-empty wire string.

    Unlike clean() a whitespace-only string survives as '', so it is still
    seen as a method that was sent.
    """
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str) or not value:
        return None
    return value.strip().lower()


def _normalize(enum_cls: Type[E], value: Any) -> Optional[E]:
    lowered = clean(value)
    if lowered is None:
        return None
    try:
        return enum_cls(lowered)
    except ValueError:
        return None


def normalize_status(value: Any) -> Optional[OrderStatus]:
    return _normalize(OrderStatus, value)


def normalize_delivery_method(value: Any) -> Optional[DeliveryMethod]:
    return _normalize(DeliveryMethod, value)


def normalize_payment_method(value: Any) -> Optional[PaymentMethod]:
    return _normalize(PaymentMethod, value)


def normalize_payment_status(value: Any) -> Optional[PaymentStatus]:
    return _normalize(PaymentStatus, value)
