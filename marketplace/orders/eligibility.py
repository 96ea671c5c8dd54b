"""
Action eligibility for an order.

Pure functions over already-normalized fields. They decide which badges and
buttons the buyer and seller views show; nothing here talks to the network.
"""

from dataclasses import dataclass
from typing import Optional

from .normalize import (
    TERMINAL_STATUSES,
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    raw_text,
)

PAYABLE_METHODS = frozenset({PaymentMethod.PROMPTPAY, PaymentMethod.TRANSFER})
AWAITING_PAYMENT_STATUSES = frozenset({PaymentStatus.AWAITING_PAYMENT, PaymentStatus.PENDING, None})
COMPLETE_PAYMENT_STATUSES = frozenset({PaymentStatus.PAYMENT_SUBMITTED, PaymentStatus.PAID})

STATUS_LABELS = {
    OrderStatus.PENDING_SELLER_CONFIRMATION: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.COMPLETED: "Completed",
    OrderStatus.REJECTED: "Rejected",
    OrderStatus.CANCELLED: "Cancelled",
}

PAYMENT_STATUS_LABELS = {
    PaymentStatus.PENDING: "Pending review",
    PaymentStatus.AWAITING_PAYMENT: "Awaiting payment",
    PaymentStatus.PAYMENT_SUBMITTED: "Payment submitted",
    PaymentStatus.PAID: "Paid",
}


@dataclass(frozen=True)
class OrderEligibility:
    """Derived flags for one order. Not stored by the backend."""
    requires_payment: bool
    awaiting_buyer_payment: bool
    payment_complete: bool
    can_mark_delivered: bool
    can_print_label: bool
    can_confirm: bool = False
    can_reject: bool = False
    can_make_payment: bool = False
    can_mark_received: bool = False
    waiting_for_payment: bool = False
    is_terminal: bool = False


def requires_payment(method: Optional[PaymentMethod], raw_method: Optional[str] = None) -> bool:
    """
    True for promptpay/transfer, and for any other non-empty method that is
    not cash. Unknown methods, blank ones included, are treated as payable.
    """
    if method is not None:
        return method in PAYABLE_METHODS
    raw = raw_text(raw_method)
    return raw is not None and raw != PaymentMethod.CASH.value


def derive(
    status: Optional[OrderStatus],
    payment_method: Optional[PaymentMethod],
    payment_status: Optional[PaymentStatus],
    delivery_method: Optional[DeliveryMethod] = None,
    raw_payment_method: Optional[str] = None,
    seller_delivered: bool = False,
    buyer_received: bool = False,
) -> OrderEligibility:
    needs_payment = requires_payment(payment_method, raw_payment_method)
    confirmed = status == OrderStatus.CONFIRMED

    awaiting = needs_payment and confirmed and payment_status in AWAITING_PAYMENT_STATUSES
    complete = payment_status in COMPLETE_PAYMENT_STATUSES
    outstanding = needs_payment and not complete
    pending = status == OrderStatus.PENDING_SELLER_CONFIRMATION

    return OrderEligibility(
        requires_payment=needs_payment,
        awaiting_buyer_payment=awaiting,
        payment_complete=complete,
        can_mark_delivered=confirmed and not seller_delivered and not outstanding,
        can_print_label=delivery_method == DeliveryMethod.DELIVERY,
        can_confirm=pending,
        can_reject=pending,
        can_make_payment=awaiting and not complete,
        can_mark_received=(
            confirmed
            and delivery_method == DeliveryMethod.PICKUP
            and not buyer_received
        ),
        waiting_for_payment=confirmed and not seller_delivered and outstanding,
        is_terminal=status in TERMINAL_STATUSES,
    )


def derive_eligibility(order) -> OrderEligibility:
    """Eligibility for a schemas.Order."""
    return derive(
        status=order.status,
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        delivery_method=order.delivery_method,
        raw_payment_method=order.raw_payment_method,
        seller_delivered=order.seller_delivered,
        buyer_received=order.buyer_received,
    )


def payment_inconsistent(eligibility: OrderEligibility) -> bool:
    """Both awaiting payment and payment complete: the backend sent contradictory data."""
    return eligibility.awaiting_buyer_payment and eligibility.payment_complete


def status_label(status: Optional[OrderStatus]) -> str:
    return STATUS_LABELS[status or OrderStatus.PENDING_SELLER_CONFIRMATION]


def payment_status_label(status: Optional[PaymentStatus]) -> Optional[str]:
    # no badge for not_required or unknown
    return PAYMENT_STATUS_LABELS.get(status)


def payment_method_label(method: Optional[PaymentMethod]) -> str:
    if method == PaymentMethod.PROMPTPAY:
        return "PromptPay"
    if method == PaymentMethod.TRANSFER:
        return "Bank transfer"
    return "Cash"
