"""
Order mutations triggered by the buyer or the seller.

Every action is a single round trip that waits for the server: no local
state is patched. Failures become a notification and an ActionResult, they
are never raised to the caller. On success the on_success hook (usually
the list controller's reload) runs.

Actions take the Order, not just its id: an order whose derived eligibility
does not allow the action (terminal, still pending, payment outstanding)
is refused without a request.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Set
from urllib.parse import quote

from ..api.schemas import Order
from ..auth.session import AuthSession
from .client import ApiError, MarketplaceClient
from .eligibility import derive_eligibility, status_label
from .normalize import PaymentMethod

logger = logging.getLogger(__name__)

BUYER_ORDERS_PATH = "/orders"
SELLER_ORDERS_PATH = "/seller/orders"


class Notifier:
    """Transient user feedback. The default just logs."""

    def success(self, message: str) -> None:
        logger.info(message)

    def error(self, message: str) -> None:
        logger.warning(message)


@dataclass
class ActionResult:
    ok: bool
    message: str
    redirect: Optional[str] = None
    thread_id: Optional[str] = None


class OrderActions:
    """Confirm, reject, deliver, pay, receive and contact-seller actions."""

    def __init__(
        self,
        client: MarketplaceClient,
        notifier: Optional[Notifier] = None,
        on_success: Optional[Callable[[], None]] = None,
        auth: Optional[AuthSession] = None,
    ):
        self.client = client
        self.auth = auth or client.auth
        self.notifier = notifier or Notifier()
        self.on_success = on_success
        self._busy: Set[str] = set()
        self._lock = threading.Lock()

    def is_busy(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._busy

    def _fail(self, message: str, redirect: Optional[str] = None) -> ActionResult:
        self.notifier.error(message)
        return ActionResult(ok=False, message=message, redirect=redirect)

    def _refusal(self, order: Order, allowed: bool, message: str) -> Optional[str]:
        """Why this order may not take the action, or None if it may."""
        if derive_eligibility(order).is_terminal:
            return f"Order is already {status_label(order.status).lower()}"
        return None if allowed else message

    def _run(
        self,
        order_id: str,
        call: Callable[[str], object],
        success_message: str,
        fallback: str,
        return_path: str,
        login_message: str = "Please login first",
        reload: bool = True,
        refusal: Optional[str] = None,
    ) -> ActionResult:
        # token is read here, at call time, never cached
        token = self.auth.get_token()
        if not token:
            return self._fail(login_message, self.auth.login_redirect(return_path))

        if refusal:
            logger.info(f"Refused action on {order_id}: {refusal}")
            return self._fail(refusal)

        with self._lock:
            self._busy.add(order_id)
        try:
            call(token)
        except ApiError as e:
            logger.error(f"{fallback} ({order_id}): {e.message}")
            if e.is_unauthorized:
                self.auth.clear()
                return self._fail("Session expired. Please login again",
                                  self.auth.login_redirect(return_path))
            return self._fail(e.message or fallback)
        finally:
            with self._lock:
                self._busy.discard(order_id)

        self.notifier.success(success_message)
        if reload and self.on_success is not None:
            self.on_success()
        return ActionResult(ok=True, message=success_message)

    # ==================== Seller ====================

    def confirm_order(self, order: Order) -> ActionResult:
        flags = derive_eligibility(order)
        return self._run(
            order.id,
            lambda token: self.client.confirm_order(order.id, token=token),
            "Order confirmed successfully!",
            "Failed to confirm order",
            SELLER_ORDERS_PATH,
            refusal=self._refusal(order, flags.can_confirm, "Only pending orders can be confirmed"),
        )

    def reject_order(
        self,
        order: Order,
        reason: Optional[str] = None,
        prompt: Optional[Callable[[str], Optional[str]]] = None,
    ) -> ActionResult:
        """
        Reject an order. If `prompt` is given it is asked for the reason
        before anything else; a cancelled or blank answer means no reason.
        """
        flags = derive_eligibility(order)
        refusal = self._refusal(order, flags.can_reject, "Only pending orders can be rejected")
        if prompt is not None and refusal is None:
            reason = prompt("Please provide a reason for rejection (optional):")

        return self._run(
            order.id,
            lambda token: self.client.reject_order(order.id, reason=reason, token=token),
            "Order rejected",
            "Failed to reject order",
            SELLER_ORDERS_PATH,
            refusal=refusal,
        )

    def mark_delivered(self, order: Order) -> ActionResult:
        flags = derive_eligibility(order)
        if flags.waiting_for_payment:
            message = "Cannot mark as delivered. Buyer has not completed payment yet."
        else:
            message = "Order cannot be marked as delivered"
        return self._run(
            order.id,
            lambda token: self.client.mark_delivered(order.id, token=token),
            "Order marked as delivered!",
            "Failed to mark as delivered",
            SELLER_ORDERS_PATH,
            refusal=self._refusal(order, flags.can_mark_delivered, message),
        )

    # ==================== Buyer ====================

    def make_payment(self, order: Order) -> ActionResult:
        """PromptPay goes to the payment page; transfers notify the seller."""
        token = self.auth.get_token()
        if not token:
            self.auth.clear()
            return self._fail("Please login to submit payment",
                              self.auth.login_redirect(BUYER_ORDERS_PATH))

        flags = derive_eligibility(order)
        if not flags.requires_payment:
            return self._fail("Payment is not required for this order")
        refusal = self._refusal(order, flags.can_make_payment, "This order is not awaiting payment")
        if refusal:
            return self._fail(refusal)

        if order.payment_method == PaymentMethod.PROMPTPAY:
            return ActionResult(ok=True, message="Redirecting to payment",
                                redirect=f"/payment/{quote(order.id)}")

        return self._run(
            order.id,
            lambda token: self.client.submit_payment(order.id, token=token),
            "Payment submitted! Seller will verify shortly.",
            "Failed to submit payment",
            BUYER_ORDERS_PATH,
            login_message="Please login to submit payment",
        )

    def mark_received(self, order: Order) -> ActionResult:
        flags = derive_eligibility(order)
        return self._run(
            order.id,
            lambda token: self.client.mark_received(order.id, token=token),
            "Order marked as received",
            "Failed to confirm receipt",
            BUYER_ORDERS_PATH,
            refusal=self._refusal(order, flags.can_mark_received, "Order cannot be marked as received"),
        )

    def contact_seller(self, order: Order) -> ActionResult:
        """Open (or reuse) a chat thread with the order's seller."""
        seller_id = order.seller.id if order.seller else ''
        if not seller_id:
            return self._fail("Seller information unavailable")

        thread = {}

        def call(token: str) -> None:
            created = self.client.create_chat_thread(seller_id, token=token)
            if not created.id:
                raise ApiError("Chat thread not available")
            thread['id'] = created.id

        result = self._run(
            order.id,
            call,
            "Opening chat with seller",
            "Failed to start chat with seller",
            BUYER_ORDERS_PATH,
            login_message="Please login to contact the seller",
            reload=False,
        )
        if not result.ok:
            return result

        thread_id = thread['id']
        return ActionResult(ok=True, message=result.message,
                            redirect=f"/chats?threadId={quote(thread_id, safe='')}",
                            thread_id=thread_id)
