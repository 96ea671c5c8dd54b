import itertools

import pytest

from marketplace.orders.normalize import (
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    normalize_delivery_method,
    normalize_payment_method,
    normalize_payment_status,
    normalize_status,
    raw_text,
)


@pytest.mark.parametrize("raw, expected", [
    ("confirmed", OrderStatus.CONFIRMED),
    ("  CONFIRMED ", OrderStatus.CONFIRMED),
    ("Pending_Seller_Confirmation", OrderStatus.PENDING_SELLER_CONFIRMATION),
    ("\tcancelled\n", OrderStatus.CANCELLED),
    ("Rejected", OrderStatus.REJECTED),
    ("completed", OrderStatus.COMPLETED),
])
def test_status_variants(raw, expected):
    assert normalize_status(raw) is expected


@pytest.mark.parametrize("raw", [None, "", "   ", "shipped", "pending", "confirmed!", 42, ["confirmed"], {}])
def test_status_unknown_is_none(raw):
    assert normalize_status(raw) is None


def test_status_idempotent_on_own_output():
    for raw in ["CONFIRMED", " rejected ", "garbage", None, ""]:
        once = normalize_status(raw)
        fed_back = once.value if once is not None else None
        assert normalize_status(fed_back) == once


def test_status_accepts_enum_member():
    assert normalize_status(OrderStatus.COMPLETED) is OrderStatus.COMPLETED


@pytest.mark.parametrize("raw, expected", [
    ("Cash", PaymentMethod.CASH),
    (" PROMPTPAY", PaymentMethod.PROMPTPAY),
    ("transfer ", PaymentMethod.TRANSFER),
    ("card", None),
    ("", None),
    (None, None),
])
def test_payment_method(raw, expected):
    assert normalize_payment_method(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("Awaiting_Payment", PaymentStatus.AWAITING_PAYMENT),
    ("PAID", PaymentStatus.PAID),
    ("payment_submitted", PaymentStatus.PAYMENT_SUBMITTED),
    ("not_required", PaymentStatus.NOT_REQUIRED),
    ("pending", PaymentStatus.PENDING),
    ("refunded", None),
])
def test_payment_status(raw, expected):
    assert normalize_payment_status(raw) == expected


def test_delivery_method():
    assert normalize_delivery_method(" Delivery") is DeliveryMethod.DELIVERY
    assert normalize_delivery_method("PICKUP") is DeliveryMethod.PICKUP
    assert normalize_delivery_method("courier") is None


GARBAGE = ["", "x", "shipped", "confirmed!", "con firmed", "null", "None", "0", "ยืนยัน", "\u200bconfirmed",
           "cash_on_delivery", "pending-seller-confirmation", "💳"]
CASINGS = [str, str.upper, str.lower, str.title, str.swapcase]
PADDINGS = [("", ""), ("  ", ""), ("", "\t\n"), (" \r\n", "   ")]


def variants(words):
    for word, case, (left, right) in itertools.product(words, CASINGS, PADDINGS):
        yield word, f"{left}{case(word)}{right}"


@pytest.mark.parametrize("word, raw", list(variants([s.value for s in OrderStatus] + GARBAGE)))
def test_status_sweep_total_and_idempotent(word, raw):
    result = normalize_status(raw)
    if word in {s.value for s in OrderStatus}:
        assert result is OrderStatus(word)
    else:
        assert result is None
    assert normalize_status(result.value if result is not None else None) == result


@pytest.mark.parametrize("word, raw", list(variants([m.value for m in PaymentMethod] + GARBAGE)))
def test_payment_method_sweep(word, raw):
    result = normalize_payment_method(raw)
    expected = PaymentMethod(word) if word in {m.value for m in PaymentMethod} else None
    assert result is expected


@pytest.mark.parametrize("raw, expected", [
    (" PromptPay ", "promptpay"),
    ("   ", ""),
    ("\t", ""),
    ("", None),
    (None, None),
    (3, None),
    (PaymentMethod.CASH, "cash"),
])
def test_raw_text_keeps_blank_strings(raw, expected):
    assert raw_text(raw) == expected
