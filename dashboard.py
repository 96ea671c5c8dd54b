"""
Streamlit Dashboard for the Campus Marketplace.
Buyer "My Orders" and seller "Orders" pages on top of the marketplace package.
"""

import streamlit as st
import pandas as pd
import sys
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from marketplace.core.config import get_config
from marketplace.core.logging import setup_logging_from_config
from marketplace.orders.actions import OrderActions
from marketplace.orders.client import ApiError, create_client_from_config
from marketplace.orders.controller import ALL, OrderListController, buyer_orders, seller_orders
from marketplace.orders.eligibility import (
    payment_inconsistent,
    payment_method_label,
    payment_status_label,
    status_label,
)

config = get_config()
setup_logging_from_config(config)

st.set_page_config(
    page_title="Campus Marketplace",
    page_icon="🛍️",
    layout="wide",
    initial_sidebar_state="expanded"
)

STATUS_ICONS = {
    "pending_seller_confirmation": "🕒",
    "confirmed": "📦",
    "completed": "✅",
    "rejected": "❌",
    "cancelled": "⛔",
}


class ToastNotifier:
    """Notifier backed by st.toast."""

    def success(self, message: str) -> None:
        st.toast(message, icon="✅")

    def error(self, message: str) -> None:
        st.toast(message, icon="❌")


def get_state():
    """Client, controllers and actions live for the whole browser session."""
    if 'client' not in st.session_state:
        client = create_client_from_config()
        notifier = ToastNotifier()
        page_size = config.get_int('api', 'page_size', default=10)

        buyer = buyer_orders(client, notifier, page_size=page_size)
        seller = seller_orders(client, notifier, page_size=page_size)

        st.session_state.client = client
        st.session_state.buyer = buyer
        st.session_state.seller = seller
        st.session_state.buyer_actions = OrderActions(client, notifier, on_success=buyer.reload)
        st.session_state.seller_actions = OrderActions(client, notifier, on_success=seller.reload)
        buyer.load()
        seller.load()
    return st.session_state


def show_redirect(result):
    if result.redirect:
        base = config.api_base
        st.info(f"Continue at: {base}{result.redirect}")


def after_action(result):
    """Rerun on success so the reloaded rows replace the ones drawn above."""
    if result.redirect:
        show_redirect(result)
    elif result.ok:
        st.rerun()


def render_filters(controller: OrderListController, key: str):
    options = controller.filter_options()
    labels = [f"{label} ({count})" for _, label, count in options]
    values = [value for value, _, _ in options]
    current = controller.status_filter.value if controller.status_filter else ALL

    choice = st.radio(
        "Filter",
        values,
        index=values.index(current) if current in values else 0,
        format_func=lambda v: labels[values.index(v)],
        horizontal=True,
        key=f"{key}_filter",
        label_visibility="collapsed",
    )
    if choice != current:
        controller.set_filter(choice)
        st.rerun()


def render_pagination(controller: OrderListController, key: str):
    col1, col2, col3 = st.columns([1, 2, 1])
    with col1:
        if st.button("◀ Previous", key=f"{key}_prev", disabled=not controller.has_previous):
            controller.set_page(controller.page - 1)
            st.rerun()
    with col2:
        st.caption(f"Page {controller.page} of {max(controller.total_pages, 1)} · {controller.total} orders")
    with col3:
        if st.button("Next ▶", key=f"{key}_next", disabled=not controller.has_next):
            controller.set_page(controller.page + 1)
            st.rerun()


def render_items(order):
    if not order.items:
        return
    df = pd.DataFrame([
        {
            "Item": item.title,
            "Qty": item.quantity,
            "Price": item.price,
            "Subtotal": item.subtotal,
        }
        for item in order.items
    ])
    st.dataframe(
        df,
        use_container_width=True,
        hide_index=True,
        column_config={
            "Item": st.column_config.TextColumn("Item", width="large"),
            "Qty": st.column_config.NumberColumn("Qty", width="small"),
            "Price": st.column_config.NumberColumn("Price", format="%.2f THB"),
            "Subtotal": st.column_config.NumberColumn("Subtotal", format="%.2f THB"),
        }
    )


def render_delivery(order):
    if order.pickup_details:
        pickup = order.pickup_details
        st.markdown(f"📍 **Meetup point:** {pickup.location_name}")
        if pickup.address:
            st.caption(pickup.address)
        if pickup.preferred_time:
            st.caption(f"Preferred time: {pickup.preferred_time:%d %b %Y %H:%M}")
        if pickup.note:
            st.caption(f"Note: {pickup.note}")
        if pickup.maps_url:
            st.markdown(f"[Open in Google Maps]({pickup.maps_url})")
    elif order.shipping_address:
        st.markdown(f"🚚 **Ship to:** {order.shipping_address.one_line()}")


def order_header(order):
    status = order.display_status
    badges = f"{STATUS_ICONS[status.value]} {status_label(status)}"
    payment_badge = payment_status_label(order.payment_status)
    if payment_badge:
        badges += f" · 💳 {payment_badge}"
    created = f"{order.created_at:%d %b %Y %H:%M}" if order.created_at else "N/A"
    return f"Order #{order.short_id} · {badges} · {order.total_price:,.2f} THB · {created}"


def render_empty(controller: OrderListController):
    st.info(f"**No orders found**\n\n{controller.empty_message()}")


def render_stats(controller: OrderListController):
    counts = controller.status_counts
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("📦 Total", controller.filter_options()[0][2])
    with col2:
        st.metric("🕒 Pending", counts.pending_seller_confirmation)
    with col3:
        st.metric("📦 Confirmed", counts.confirmed)
    with col4:
        st.metric("✅ Completed", counts.completed)


# ==================== SIDEBAR ====================
state = get_state()
client = state.client

st.sidebar.title("🛍️ Campus Marketplace")
st.sidebar.markdown("---")

user = client.auth.current_user()
if user:
    st.sidebar.success(f"Logged in as {user.get('email', user.get('id', 'user'))}")
    if st.sidebar.button("Logout"):
        client.auth.clear()
        state.buyer.load()
        state.seller.load()
        st.rerun()
else:
    st.sidebar.error("Not logged in")
    token_input = st.sidebar.text_input("Bearer token", type="password")
    if st.sidebar.button("Save token") and token_input:
        client.auth.set_token(token_input.strip())
        state.buyer.load()
        state.seller.load()
        st.rerun()

st.sidebar.markdown("---")

page = st.sidebar.radio(
    "Navigation",
    ["🧾 My Orders", "🏪 Seller Orders"],
    label_visibility="collapsed"
)

show_notifications = st.sidebar.toggle("🔔 Notifications", value=False)


@st.fragment(run_every=config.get_float('notifications', 'poll_interval', default=30.0))
def notifications_panel():
    try:
        result = client.list_notifications()
    except ApiError as e:
        st.caption(f"⚠️ {e.message}")
        return
    st.caption(f"{result.unread_count} unread")
    for n in result.notifications[:10]:
        st.markdown(f"{'' if n.read else '🔵 '}**{n.title}**  \n{n.message}")
        if not n.read and st.button("Mark read", key=f"read_{n.id}"):
            try:
                client.mark_notification_read(n.id)
            except ApiError as e:
                st.toast(e.message, icon="❌")
            else:
                st.rerun(scope="fragment")
    if result.unread_count and st.button("Mark all as read"):
        try:
            client.mark_all_notifications_read()
        except ApiError as e:
            st.toast(e.message, icon="❌")
        else:
            st.rerun(scope="fragment")


if show_notifications and client.auth.is_authenticated():
    with st.sidebar:
        notifications_panel()


# ==================== BUYER ORDERS PAGE ====================
if page == "🧾 My Orders":
    controller: OrderListController = state.buyer
    actions: OrderActions = state.buyer_actions

    col1, col2 = st.columns([4, 1])
    with col1:
        st.title("🧾 My Orders")
        st.markdown("Manage and track your orders")
    with col2:
        if st.button("🔄 Refresh", use_container_width=True, disabled=controller.loading):
            controller.reload()
            st.rerun()

    if controller.login_redirect:
        st.warning(f"Please login first ({controller.login_redirect})")

    render_stats(controller)
    st.markdown("---")
    render_filters(controller, "buyer")

    rows = controller.rows()
    if controller.loading:
        st.info("Loading orders...")
    elif not rows:
        render_empty(controller)
    else:
        for row in rows:
            order, flags = row.order, row.eligibility
            with st.expander(order_header(order), expanded=False):
                seller_name = order.seller.name if order.seller and order.seller.name else "Unknown"
                st.caption(
                    f"Seller: {seller_name} · "
                    f"{order.delivery_method.value if order.delivery_method else 'unknown'} · "
                    f"{payment_method_label(order.payment_method)}"
                )
                if payment_inconsistent(flags):
                    st.warning("Payment state looks inconsistent; please refresh or contact support.")
                render_items(order)
                render_delivery(order)

                b1, b2, b3 = st.columns(3)
                with b1:
                    if flags.can_make_payment:
                        if st.button("💳 Make Payment", key=f"pay_{order.id}",
                                     disabled=actions.is_busy(order.id)):
                            after_action(actions.make_payment(order))
                with b2:
                    if flags.can_mark_received:
                        if st.button("📥 I received it", key=f"recv_{order.id}",
                                     disabled=actions.is_busy(order.id)):
                            after_action(actions.mark_received(order))
                with b3:
                    if st.button("💬 Contact Seller", key=f"chat_{order.id}",
                                 disabled=actions.is_busy(order.id)):
                        after_action(actions.contact_seller(order))

        render_pagination(controller, "buyer")


# ==================== SELLER ORDERS PAGE ====================
elif page == "🏪 Seller Orders":
    controller = state.seller
    actions = state.seller_actions

    col1, col2 = st.columns([4, 1])
    with col1:
        st.title("🏪 Orders")
        st.markdown("Confirm, reject and deliver orders from your shop")
    with col2:
        if st.button("🔄 Refresh", use_container_width=True, disabled=controller.loading):
            controller.reload()
            st.rerun()

    render_filters(controller, "seller")

    rows = controller.rows()
    if controller.loading:
        st.info("Loading orders...")
    elif not rows:
        render_empty(controller)
    else:
        for row in rows:
            order, flags = row.order, row.eligibility
            with st.expander(order_header(order), expanded=flags.can_confirm):
                contact = order.buyer_contact
                buyer_email = order.buyer.email if order.buyer else None
                st.markdown("**Buyer Information**")
                if contact:
                    st.caption(f"{contact.full_name} · {contact.phone}")
                if buyer_email:
                    st.caption(buyer_email)
                st.caption(
                    f"{'Self Pick-up' if order.delivery_method and order.delivery_method.value == 'pickup' else 'Delivery'}"
                    f" · {payment_method_label(order.payment_method)}"
                )
                if order.rejection_reason:
                    st.error(f"Rejection reason: {order.rejection_reason}")
                render_items(order)
                render_delivery(order)

                if flags.can_print_label:
                    st.markdown(f"🖨️ [Print Delivery Slip]({config.api_base}/seller/orders/{order.id}/label)")

                if flags.can_confirm:
                    reason = st.text_input("Rejection reason (optional)", key=f"reason_{order.id}")
                    c1, c2 = st.columns(2)
                    with c1:
                        if st.button("✅ Confirm Order", key=f"confirm_{order.id}", type="primary"):
                            after_action(actions.confirm_order(order))
                    with c2:
                        if st.button("❌ Reject Order", key=f"reject_{order.id}"):
                            after_action(actions.reject_order(order, reason=reason))

                if flags.can_mark_delivered:
                    if st.button("📦 Mark as delivered", key=f"deliver_{order.id}"):
                        after_action(actions.mark_delivered(order))
                elif flags.waiting_for_payment:
                    st.button("⏳ Waiting for payment", key=f"deliver_{order.id}", disabled=True)

                if order.seller_delivered:
                    st.success("You have confirmed delivery")
                if order.buyer_received and order.seller_delivered:
                    st.success("Both parties confirmed - Order completed")

        render_pagination(controller, "seller")
