from unittest.mock import MagicMock

import pytest

from marketplace.api.schemas import Order
from marketplace.auth.session import TOKEN_KEY
from marketplace.orders.actions import OrderActions
from marketplace.orders.client import ApiError

from conftest import order_payload


def order(**overrides):
    return Order.model_validate(order_payload(**overrides))


PENDING = dict(id='o1', status='pending_seller_confirmation')


@pytest.fixture
def api():
    """Client double; only the methods the actions call matter."""
    return MagicMock()


@pytest.fixture
def reload():
    return MagicMock()


@pytest.fixture
def actions(api, auth, notifier, reload):
    return OrderActions(api, notifier, on_success=reload, auth=auth)


class TestSellerActions:

    def test_confirm_success_reloads(self, actions, api, logged_in, notifier, reload):
        result = actions.confirm_order(order(**PENDING))
        assert result.ok
        api.confirm_order.assert_called_once_with('o1', token=logged_in.get_token())
        assert notifier.successes == ["Order confirmed successfully!"]
        reload.assert_called_once()
        assert not actions.is_busy('o1')

    def test_confirm_server_error_keeps_view(self, actions, api, logged_in, notifier, reload):
        api.confirm_order.side_effect = ApiError("Failed to confirm order", status_code=500)
        result = actions.confirm_order(order(**PENDING))
        assert not result.ok
        assert notifier.errors == ["Failed to confirm order"]
        reload.assert_not_called()
        assert not actions.is_busy('o1')

    def test_missing_token_short_circuits(self, actions, api, notifier, reload):
        result = actions.mark_delivered(order(id='o1'))
        assert not result.ok
        assert result.message == "Please login first"
        assert result.redirect == "/login?redirect=/seller/orders"
        api.mark_delivered.assert_not_called()
        reload.assert_not_called()

    def test_reject_prompts_before_request(self, actions, api, logged_in):
        order_of_calls = []
        api.reject_order.side_effect = lambda *a, **k: order_of_calls.append('request')

        def prompt(question):
            order_of_calls.append('prompt')
            return "Item broken"

        assert actions.reject_order(order(**PENDING), prompt=prompt).ok
        assert order_of_calls == ['prompt', 'request']
        api.reject_order.assert_called_once_with('o1', reason="Item broken", token=logged_in.get_token())

    def test_reject_cancelled_prompt_sends_no_reason(self, actions, api, logged_in):
        actions.reject_order(order(**PENDING), prompt=lambda q: None)
        api.reject_order.assert_called_once_with('o1', reason=None, token=logged_in.get_token())

    def test_business_error_message_is_shown_verbatim(self, actions, api, logged_in, notifier):
        api.mark_delivered.side_effect = ApiError("Pickup orders only", status_code=400)
        result = actions.mark_delivered(order(id='o1'))
        assert result.message == "Pickup orders only"
        assert notifier.errors == [result.message]

    def test_unauthorized_clears_session(self, actions, api, logged_in, store):
        api.confirm_order.side_effect = ApiError("Unauthorized", status_code=401)
        result = actions.confirm_order(order(**PENDING))
        assert result.message == "Session expired. Please login again"
        assert store.get(TOKEN_KEY) is None


class TestIneligibleOrdersAreRefused:

    @pytest.mark.parametrize("status", ['completed', 'rejected', 'cancelled'])
    def test_terminal_orders_never_reach_the_server(self, actions, api, logged_in, notifier, reload, status):
        closed = order(id='o9', status=status, paymentMethod='transfer', paymentStatus='pending')
        prompt = MagicMock()

        results = [
            actions.confirm_order(closed),
            actions.reject_order(closed, prompt=prompt),
            actions.mark_delivered(closed),
            actions.make_payment(closed),
            actions.mark_received(closed),
        ]

        assert not any(r.ok for r in results)
        assert {r.message for r in results} == {f"Order is already {status}"}
        for call in (api.confirm_order, api.reject_order, api.mark_delivered,
                     api.submit_payment, api.mark_received):
            call.assert_not_called()
        prompt.assert_not_called()
        reload.assert_not_called()

    def test_deliver_refused_while_payment_outstanding(self, actions, api, logged_in, notifier):
        unpaid = order(paymentMethod='promptpay', paymentStatus='awaiting_payment')
        result = actions.mark_delivered(unpaid)
        assert result.message == "Cannot mark as delivered. Buyer has not completed payment yet."
        api.mark_delivered.assert_not_called()

    def test_deliver_refused_twice(self, actions, api, logged_in):
        assert not actions.mark_delivered(order(sellerDelivered=True)).ok
        api.mark_delivered.assert_not_called()

    def test_confirm_refused_once_confirmed(self, actions, api, logged_in):
        result = actions.confirm_order(order(status='confirmed'))
        assert result.message == "Only pending orders can be confirmed"
        api.confirm_order.assert_not_called()

    def test_completed_promptpay_gets_no_payment_redirect(self, actions, api, logged_in):
        paid = order(status='completed', paymentMethod='promptpay', paymentStatus='paid')
        result = actions.make_payment(paid)
        assert not result.ok
        assert result.redirect is None

    def test_paid_transfer_is_not_resubmitted(self, actions, api, logged_in):
        result = actions.make_payment(order(paymentMethod='transfer', paymentStatus='paid'))
        assert result.message == "This order is not awaiting payment"
        api.submit_payment.assert_not_called()

    def test_received_refused_for_delivery_orders(self, actions, api, logged_in):
        assert not actions.mark_received(order(deliveryMethod='delivery')).ok
        api.mark_received.assert_not_called()


class TestBuyerActions:

    def test_promptpay_redirects_without_request(self, actions, api, logged_in):
        unpaid = order(id='o5', paymentMethod='promptpay', paymentStatus='awaiting_payment')
        result = actions.make_payment(unpaid)
        assert result.ok
        assert result.redirect == "/payment/o5"
        api.submit_payment.assert_not_called()

    def test_transfer_submits_notification(self, actions, api, logged_in, notifier, reload):
        result = actions.make_payment(order(id='o6', paymentMethod='transfer', paymentStatus='pending'))
        assert result.ok
        api.submit_payment.assert_called_once_with('o6', token=logged_in.get_token())
        assert notifier.successes == ["Payment submitted! Seller will verify shortly."]
        reload.assert_called_once()

    def test_cash_needs_no_payment(self, actions, api, logged_in):
        result = actions.make_payment(order(paymentMethod='cash'))
        assert result.message == "Payment is not required for this order"
        api.submit_payment.assert_not_called()

    def test_payment_requires_login(self, actions, api, notifier):
        result = actions.make_payment(order(paymentMethod='transfer'))
        assert result.redirect == "/login?redirect=/orders"
        assert notifier.errors == ["Please login to submit payment"]
        api.submit_payment.assert_not_called()

    def test_contact_seller_returns_thread(self, actions, api, logged_in, reload):
        api.create_chat_thread.return_value = MagicMock(id='th 1')
        result = actions.contact_seller(order())
        assert result.ok
        assert result.thread_id == 'th 1'
        assert result.redirect == "/chats?threadId=th%201"
        api.create_chat_thread.assert_called_once_with('seller-1', token=logged_in.get_token())
        reload.assert_not_called()

    def test_contact_seller_allowed_on_closed_orders(self, actions, api, logged_in):
        api.create_chat_thread.return_value = MagicMock(id='th2')
        assert actions.contact_seller(order(status='completed')).ok

    def test_contact_seller_without_seller(self, actions, api, logged_in, notifier):
        result = actions.contact_seller(order(seller=None))
        assert result.message == "Seller information unavailable"
        api.create_chat_thread.assert_not_called()

    def test_contact_seller_missing_thread_id(self, actions, api, logged_in, notifier):
        api.create_chat_thread.return_value = MagicMock(id=None)
        result = actions.contact_seller(order())
        assert not result.ok
        assert notifier.errors == ["Chat thread not available"]
        assert notifier.successes == []

    def test_mark_received(self, actions, api, logged_in, reload):
        assert actions.mark_received(order(id='o1')).ok
        api.mark_received.assert_called_once_with('o1', token=logged_in.get_token())
        reload.assert_called_once()

    def test_busy_flag_set_during_call(self, actions, api, logged_in):
        seen = []
        api.mark_received.side_effect = lambda *a, **k: seen.append(actions.is_busy('o1'))
        actions.mark_received(order(id='o1'))
        assert seen == [True]
        assert not actions.is_busy('o1')
