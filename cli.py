"""
CLI for the Campus Marketplace client.
List orders, run buyer/seller order actions, or start the dashboard from the command line.
"""

import sys
import argparse
import time
from pathlib import Path

# Add project to path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def _bootstrap(args):
    """Load config, set up logging and return a client."""
    from marketplace.core.config import get_config
    from marketplace.core.logging import setup_logging_from_config
    from marketplace.orders.client import create_client_from_config

    config = get_config(args.config)
    setup_logging_from_config(config)
    return config, create_client_from_config()


class ConsoleNotifier:
    """Print notifications the way the UI would toast them."""

    def success(self, message):
        print(f"[OK] {message}")

    def error(self, message):
        print(f"[ERROR] {message}")


def _print_orders(controller):
    from marketplace.orders.eligibility import payment_method_label, payment_status_label, status_label

    if controller.login_redirect:
        print("[AUTH] Not logged in. Run: python cli.py auth login --token <JWT>")
        return

    options = "  ".join(f"{label} ({count})" for _, label, count in controller.filter_options())
    print(options)
    print()

    rows = controller.rows()
    if not rows:
        print("No orders found")
        print(f"   {controller.empty_message()}")
        return

    for row in rows:
        order, flags = row.order, row.eligibility
        badges = [status_label(order.status)]
        payment_badge = payment_status_label(order.payment_status)
        if payment_badge:
            badges.append(payment_badge)
        print(f"#{order.short_id}  [{' | '.join(badges)}]  {order.total_price:,.2f} THB  "
              f"{order.delivery_method.value if order.delivery_method else '?'} / "
              f"{payment_method_label(order.payment_method)}")
        for item in order.items[:3]:
            print(f"     {item.quantity} x {item.title} @ {item.price:,.2f}")
        if len(order.items) > 3:
            extra = len(order.items) - 3
            print(f"     +{extra} more item{'s' if extra > 1 else ''}")

        hints = []
        if flags.can_confirm:
            hints.append("confirm/reject")
        if flags.can_make_payment:
            hints.append("pay")
        if flags.can_mark_delivered and controller.scope.value == "seller":
            hints.append("deliver")
        if flags.waiting_for_payment and controller.scope.value == "seller":
            hints.append("waiting for payment")
        if flags.can_mark_received and controller.scope.value == "buyer":
            hints.append("received")
        if flags.can_print_label and controller.scope.value == "seller":
            hints.append("label")
        if hints:
            print(f"     actions: {', '.join(hints)}")

    print(f"\nPage {controller.page}/{max(controller.total_pages, 1)}  ({controller.total} orders)")


def cmd_orders(args):
    """List the buyer's orders."""
    from marketplace.orders.controller import buyer_orders

    config, client = _bootstrap(args)
    controller = buyer_orders(client, ConsoleNotifier(),
                              page_size=config.get_int('api', 'page_size', default=10))
    controller.load(status=args.status, page=args.page)
    _print_orders(controller)


def cmd_seller_orders(args):
    """List orders received by the seller."""
    from marketplace.orders.controller import seller_orders

    config, client = _bootstrap(args)
    controller = seller_orders(client, ConsoleNotifier(),
                               page_size=config.get_int('api', 'page_size', default=10))
    controller.load(status=args.status, page=args.page)
    _print_orders(controller)


def _actions(args):
    from marketplace.orders.actions import OrderActions

    _, client = _bootstrap(args)
    return client, OrderActions(client, ConsoleNotifier())


def _report(result):
    if result.redirect:
        print(f"   -> {result.redirect}")
    return 0 if result.ok else 1


def _fetch_order(fetch, order_id):
    """Load the order an action applies to; None after printing the error."""
    from marketplace.auth.session import AuthRequired
    from marketplace.orders.client import ApiError

    try:
        return fetch(order_id)
    except AuthRequired as e:
        print(f"[ERROR] {e.message}\n   -> {e.redirect}")
    except ApiError as e:
        print(f"[ERROR] {e.message}")
    return None


def _seller_action(args, run):
    client, actions = _actions(args)
    order = _fetch_order(client.get_seller_order, args.order_id)
    if order is None:
        return 1
    return _report(run(actions, order))


def _buyer_action(args, run):
    client, actions = _actions(args)
    order = _fetch_order(client.get_order, args.order_id)
    if order is None:
        return 1
    return _report(run(actions, order))


def cmd_confirm(args):
    return _seller_action(args, lambda actions, order: actions.confirm_order(order))


def cmd_reject(args):
    prompt = None if args.reason is not None else input
    return _seller_action(
        args, lambda actions, order: actions.reject_order(order, reason=args.reason, prompt=prompt))


def cmd_deliver(args):
    return _seller_action(args, lambda actions, order: actions.mark_delivered(order))


def cmd_received(args):
    return _buyer_action(args, lambda actions, order: actions.mark_received(order))


def cmd_pay(args):
    return _buyer_action(args, lambda actions, order: actions.make_payment(order))


def cmd_contact_seller(args):
    return _buyer_action(args, lambda actions, order: actions.contact_seller(order))


def cmd_notifications(args):
    """Show notifications, optionally polling until Ctrl+C."""
    from marketplace.notifications.poller import NotificationPoller

    config, client = _bootstrap(args)

    def show(result):
        print(f"\n[NOTIFICATIONS] {result.unread_count} unread")
        for n in result.notifications[:args.limit]:
            marker = " " if n.read else "*"
            print(f" {marker} {n.title}: {n.message}")

    poller = NotificationPoller(
        fetch=client.list_notifications,
        on_update=show,
        interval=config.get_float('notifications', 'poll_interval', default=30.0),
    )
    if not args.watch:
        return 0 if poller.poll_once() is not None else 1

    with poller:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\nStopped.")
    return 0


def cmd_auth_login(args):
    from marketplace.auth.session import is_token_expired

    _, client = _bootstrap(args)
    if is_token_expired(args.token):
        print("[ERROR] Token is malformed or already expired.")
        return 1
    client.auth.set_token(args.token)
    print("[OK] Token saved.")
    return 0


def cmd_auth_logout(args):
    _, client = _bootstrap(args)
    client.auth.clear()
    print("[OK] Logged out.")
    return 0


def cmd_auth_status(args):
    _, client = _bootstrap(args)
    user = client.auth.current_user()
    if not user:
        print("[AUTH] Not logged in.")
        return 1
    print(f"[AUTH] Logged in as {user.get('email', user.get('id', '?'))} (role: {user.get('role', '?')})")
    return 0


def cmd_dashboard(args):
    """Start the Streamlit dashboard."""
    import subprocess

    print("[DASHBOARD] Starting dashboard...")

    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        str(project_root / "dashboard.py"),
        "--server.port", str(args.port)
    ])


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Campus Marketplace CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py auth login --token <JWT>
  python cli.py orders --status confirmed
  python cli.py seller-orders --page 2
  python cli.py reject 65f0c2 --reason "Out of stock"
  python cli.py notifications --watch
        """
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    status_choices = ["all", "pending_seller_confirmation", "confirmed", "completed", "rejected", "cancelled"]

    orders_parser = subparsers.add_parser("orders", help="List my orders")
    orders_parser.add_argument("--status", choices=status_choices, default="all", help="Status filter")
    orders_parser.add_argument("--page", type=int, default=1, help="Page number")

    seller_parser = subparsers.add_parser("seller-orders", help="List orders received as a seller")
    seller_parser.add_argument("--status", choices=status_choices, default="all", help="Status filter")
    seller_parser.add_argument("--page", type=int, default=1, help="Page number")

    for name, help_text in [
        ("confirm", "Confirm a pending order (seller)"),
        ("deliver", "Mark an order as delivered (seller)"),
        ("pay", "Submit payment for an order (buyer)"),
        ("received", "Confirm a pickup order was received (buyer)"),
        ("contact-seller", "Open a chat with the order's seller (buyer)"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("order_id", help="Order ID")

    reject_parser = subparsers.add_parser("reject", help="Reject a pending order (seller)")
    reject_parser.add_argument("order_id", help="Order ID")
    reject_parser.add_argument("--reason", type=str, default=None, help="Rejection reason (prompted if omitted)")

    notif_parser = subparsers.add_parser("notifications", help="Show notifications")
    notif_parser.add_argument("--watch", action="store_true", help="Keep polling until Ctrl+C")
    notif_parser.add_argument("--limit", type=int, default=10, help="Max notifications to show")

    auth_parser = subparsers.add_parser("auth", help="Authentication commands")
    auth_subparsers = auth_parser.add_subparsers(dest="auth_command")
    login_parser = auth_subparsers.add_parser("login", help="Save a bearer token")
    login_parser.add_argument("--token", required=True, help="JWT issued by the backend")
    auth_subparsers.add_parser("logout", help="Forget the saved token")
    auth_subparsers.add_parser("status", help="Show who is logged in")

    dashboard_parser = subparsers.add_parser("dashboard", help="Start Streamlit dashboard")
    dashboard_parser.add_argument("--port", type=int, default=8501, help="Dashboard port")

    args = parser.parse_args(argv)

    commands = {
        "orders": cmd_orders,
        "seller-orders": cmd_seller_orders,
        "confirm": cmd_confirm,
        "reject": cmd_reject,
        "deliver": cmd_deliver,
        "pay": cmd_pay,
        "received": cmd_received,
        "contact-seller": cmd_contact_seller,
        "notifications": cmd_notifications,
        "dashboard": cmd_dashboard,
    }

    if args.command == "auth":
        auth_commands = {"login": cmd_auth_login, "logout": cmd_auth_logout, "status": cmd_auth_status}
        handler = auth_commands.get(args.auth_command)
        if handler is None:
            auth_parser.print_help()
            return 1
        return handler(args)

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main() or 0)
