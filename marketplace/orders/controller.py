"""
Paged order list state for the buyer and seller views.

Each load takes a generation number; a response is only committed if no
newer load started meanwhile, so a slow stale response cannot overwrite
the rows of a later filter or page. Rows are always replaced, never merged.
"""

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ..api.schemas import Order, OrderListResponse, StatusCounts
from ..auth.session import AuthSession
from .actions import BUYER_ORDERS_PATH, SELLER_ORDERS_PATH, Notifier
from .client import ApiError, MarketplaceClient
from .eligibility import OrderEligibility, derive_eligibility, status_label
from .normalize import OrderStatus, normalize_status

logger = logging.getLogger(__name__)

ALL = "all"

# status, page, limit, token
FetchPage = Callable[[Optional[str], int, int, str], OrderListResponse]


class ViewState(str, Enum):
    LOADING = "loading"
    LOADED = "loaded"
    EMPTY = "empty"


class Scope(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"


SCOPE_FILTERS = {
    Scope.BUYER: [
        OrderStatus.PENDING_SELLER_CONFIRMATION,
        OrderStatus.CONFIRMED,
        OrderStatus.COMPLETED,
        OrderStatus.REJECTED,
        OrderStatus.CANCELLED,
    ],
    Scope.SELLER: [
        OrderStatus.PENDING_SELLER_CONFIRMATION,
        OrderStatus.CONFIRMED,
        OrderStatus.COMPLETED,
    ],
}

SCOPE_PATHS = {
    Scope.BUYER: BUYER_ORDERS_PATH,
    Scope.SELLER: SELLER_ORDERS_PATH,
}

ALL_EMPTY_MESSAGES = {
    Scope.BUYER: "Start shopping to see your orders here",
    Scope.SELLER: "You haven't received any orders yet",
}

_UNCHANGED = object()


@dataclass(frozen=True)
class OrderRow:
    order: Order
    eligibility: OrderEligibility


def coerce_filter(status) -> Optional[OrderStatus]:
    """'all' and None mean no filter; anything else must be a known status."""
    if status is None or (isinstance(status, str) and status.strip().lower() == ALL):
        return None
    normalized = normalize_status(status)
    if normalized is None:
        raise ValueError(f"Unknown status filter: {status!r}")
    return normalized


class OrderListController:
    """Loading/Loaded/Empty state over one paged order list."""

    def __init__(
        self,
        fetch_page: FetchPage,
        auth: AuthSession,
        scope: Scope = Scope.BUYER,
        notifier: Optional[Notifier] = None,
        page_size: int = 10,
    ):
        self._fetch_page = fetch_page
        self.auth = auth
        self.scope = Scope(scope)
        self.notifier = notifier or Notifier()
        self.page_size = page_size

        self.status_filter: Optional[OrderStatus] = None
        self.page = 1
        self.total_pages = 0
        self.total = 0
        self.state = ViewState.LOADING
        self.status_counts = StatusCounts()
        self.login_redirect: Optional[str] = None
        self._rows: List[OrderRow] = []

        self._generation = 0
        self._lock = threading.Lock()

    @property
    def return_path(self) -> str:
        return SCOPE_PATHS[self.scope]

    @property
    def loading(self) -> bool:
        return self.state == ViewState.LOADING

    def rows(self) -> List[OrderRow]:
        with self._lock:
            return list(self._rows)

    def orders(self) -> List[Order]:
        return [row.order for row in self.rows()]

    # ==================== Loading ====================

    def load(self, status=_UNCHANGED, page: Optional[int] = None) -> bool:
        """
        Fetch a page and replace the rows.

        Returns True if this load's result (rows or failure) was committed,
        False if a newer load superseded it.
        """
        with self._lock:
            if status is not _UNCHANGED:
                self.status_filter = coerce_filter(status)
            if page is not None:
                self.page = max(1, int(page))
            self._generation += 1
            generation = self._generation
            self.state = ViewState.LOADING
            status_filter = self.status_filter
            page_number = self.page

        token = self.auth.get_token()
        if not token:
            redirect = self.auth.login_redirect(self.return_path)
            logger.info(f"No token, redirecting to {redirect}")
            return self._commit_failure(generation, None, redirect)

        try:
            response = self._fetch_page(
                status_filter.value if status_filter else None,
                page_number,
                self.page_size,
                token,
            )
        except ApiError as e:
            logger.error(f"Failed to load {self.scope.value} orders: {e.message}")
            return self._commit_failure(generation, "Failed to load orders")
        except Exception:
            # never leave the view stuck in LOADING
            logger.exception(f"Unexpected error loading {self.scope.value} orders")
            return self._commit_failure(generation, "Failed to load orders")

        return self._commit(generation, response)

    def _commit(self, generation: int, response: OrderListResponse) -> bool:
        rows = [OrderRow(order, derive_eligibility(order)) for order in response.orders]
        with self._lock:
            if generation != self._generation:
                logger.debug(f"Discarding stale response (generation {generation} < {self._generation})")
                return False
            self._rows = rows
            self.login_redirect = None
            if response.pagination:
                self.total_pages = response.pagination.total_pages
                self.total = response.pagination.total
            else:
                self.total_pages = 1 if rows else 0
                self.total = len(rows)
            self.status_counts = response.status_counts or StatusCounts.from_orders(response.orders)
            self.state = ViewState.LOADED if rows else ViewState.EMPTY
        return True

    def _commit_failure(self, generation: int, message: Optional[str], redirect: Optional[str] = None) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self._rows = []
            self.total = 0
            self.total_pages = 0
            self.state = ViewState.EMPTY
            self.login_redirect = redirect
        if message:
            self.notifier.error(message)
        return True

    def set_filter(self, status) -> bool:
        """Switch filter; always starts again from page 1."""
        return self.load(status=status, page=1)

    def set_page(self, page: int) -> bool:
        return self.load(page=page)

    def reload(self) -> bool:
        """Same filter and page again. Used after every successful mutation."""
        return self.load()

    def submit_load(self, executor: Executor, status=_UNCHANGED, page: Optional[int] = None) -> Future:
        return executor.submit(self.load, status, page)

    # ==================== View helpers ====================

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def filter_options(self) -> List[Tuple[str, str, int]]:
        """(value, label, count) for each filter tab, 'all' first."""
        counts = self.status_counts
        statuses = SCOPE_FILTERS[self.scope]
        all_count = sum(counts.for_status(s) for s in OrderStatus) or self.total
        options = [(ALL, "All", all_count)]
        for status in statuses:
            options.append((status.value, status_label(status), counts.for_status(status)))
        return options

    def empty_message(self) -> str:
        if self.status_filter is None:
            return ALL_EMPTY_MESSAGES[self.scope]
        return f"No {status_label(self.status_filter)} orders"


def buyer_orders(client: MarketplaceClient, notifier: Optional[Notifier] = None,
                 page_size: int = 10) -> OrderListController:
    return OrderListController(
        lambda status, page, limit, token: client.list_orders(status, page, limit, token=token),
        auth=client.auth,
        scope=Scope.BUYER,
        notifier=notifier,
        page_size=page_size,
    )


def seller_orders(client: MarketplaceClient, notifier: Optional[Notifier] = None,
                  page_size: int = 10) -> OrderListController:
    return OrderListController(
        lambda status, page, limit, token: client.list_seller_orders(status, page, limit, token=token),
        auth=client.auth,
        scope=Scope.SELLER,
        notifier=notifier,
        page_size=page_size,
    )
