"""
Campus Marketplace API Client.
Handles order listing and order mutations against the marketplace backend.
"""

import requests
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..api.schemas import (
    ChatThread,
    NotificationList,
    Order,
    OrderDetailResponse,
    OrderListResponse,
)
from ..auth.session import AuthSession

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50


class ApiError(Exception):
    """Non-2xx response, transport failure, or a payload that fails validation."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {}

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


def error_message(payload: Any, fallback: str) -> str:
    """Pick `error`, then `message`, from an error body."""
    if isinstance(payload, dict):
        for key in ('error', 'message'):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return fallback


class MarketplaceClient:
    """Client for the marketplace REST API."""

    def __init__(self, base_url: str, auth: AuthSession, timeout: int = 30, user_agent: str = "CampusMarketplace/1.0"):
        self.base_url = base_url.rstrip('/')
        self.auth = auth
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/json',
        })

    def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        fallback: str = "Request failed",
    ) -> Any:
        """
        Send one request with the bearer token and return the decoded body.

        The token is read from the auth session here unless the caller
        already holds one. Raises ApiError on anything but a 2xx.
        """
        if token is None:
            token = self.auth.require_token()

        url = f"{self.base_url}{endpoint}"
        headers = {'Authorization': f"Bearer {token}"}
        if json is not None:
            headers['Content-Type'] = 'application/json'

        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Marketplace API error: {method} {endpoint}: {e}")
            raise ApiError(fallback) from e

        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            message = error_message(payload, fallback)
            logger.warning(f"{method} {endpoint} -> {response.status_code}: {message}")
            raise ApiError(message, status_code=response.status_code,
                           payload=payload if isinstance(payload, dict) else None)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

    @staticmethod
    def _parse(model, data: Any, fallback: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed response for {model.__name__}: {e}")
            raise ApiError(fallback) from e

    @staticmethod
    def _list_params(status: Optional[str], page: int, limit: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {'page': page, 'limit': min(limit, MAX_PAGE_SIZE)}
        if status and status != 'all':
            params['status'] = status
        return params

    # ==================== Orders ====================

    def list_orders(self, status: Optional[str] = None, page: int = 1, limit: int = 10,
                    token: Optional[str] = None) -> OrderListResponse:
        """
        Fetch the buyer's orders.

        Args:
            status: Order status filter, or None/'all' for every status
            page: 1-based page number
            limit: Page size, capped at 50 by the backend

        Returns:
            OrderListResponse with orders, pagination and status counts
        """
        logger.info(f"Fetching buyer orders (status={status or 'all'}, page={page})")
        data = self._request('GET', '/api/orders', token=token,
                             params=self._list_params(status, page, limit),
                             fallback="Failed to load orders")
        result = self._parse(OrderListResponse, data, "Failed to load orders")
        logger.info(f"Retrieved {len(result.orders)} orders")
        return result

    def list_seller_orders(self, status: Optional[str] = None, page: int = 1, limit: int = 10,
                           token: Optional[str] = None) -> OrderListResponse:
        """Fetch orders received by the seller; same shape as list_orders."""
        logger.info(f"Fetching seller orders (status={status or 'all'}, page={page})")
        data = self._request('GET', '/api/seller/orders', token=token,
                             params=self._list_params(status, page, limit),
                             fallback="Failed to load orders")
        result = self._parse(OrderListResponse, data, "Failed to load orders")
        logger.info(f"Retrieved {len(result.orders)} seller orders")
        return result

    def get_order(self, order_id: str, token: Optional[str] = None) -> Order:
        data = self._request('GET', f"/api/orders/{quote(order_id)}", token=token,
                             fallback="Failed to load order")
        return self._parse(OrderDetailResponse, data, "Failed to load order").order

    def get_seller_order(self, order_id: str, token: Optional[str] = None) -> Order:
        data = self._request('GET', f"/api/seller/orders/{quote(order_id)}", token=token,
                             fallback="Failed to load order")
        return self._parse(OrderDetailResponse, data, "Failed to load order").order

    def confirm_order(self, order_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request('PATCH', f"/api/seller/orders/{quote(order_id)}/confirm", token=token,
                             fallback="Failed to confirm order")

    def reject_order(self, order_id: str, reason: Optional[str] = None,
                     token: Optional[str] = None) -> Dict[str, Any]:
        """Reject with an optional reason; a blank reason is left out of the body."""
        body: Dict[str, Any] = {}
        if reason and reason.strip():
            body['reason'] = reason.strip()
        return self._request('PATCH', f"/api/seller/orders/{quote(order_id)}/reject", token=token,
                             json=body, fallback="Failed to reject order")

    def mark_delivered(self, order_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request('POST', f"/api/seller/orders/{quote(order_id)}/delivered", token=token,
                             fallback="Failed to mark as delivered")

    def submit_payment(self, order_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        """Tell the seller a transfer was made. No body besides auth."""
        return self._request('POST', f"/api/orders/{quote(order_id)}/payment", token=token,
                             fallback="Failed to submit payment")

    def mark_received(self, order_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request('POST', f"/api/orders/{quote(order_id)}/buyer-received", token=token,
                             fallback="Failed to confirm receipt")

    # ==================== Chats ====================

    def create_chat_thread(self, seller_id: str, token: Optional[str] = None) -> ChatThread:
        data = self._request('POST', '/api/chats/threads', token=token,
                             json={'sellerId': seller_id},
                             fallback="Failed to start chat with seller")
        return self._parse(ChatThread, data or {}, "Failed to start chat with seller")

    # ==================== Notifications ====================

    def list_notifications(self, token: Optional[str] = None) -> NotificationList:
        data = self._request('GET', '/api/notifications', token=token,
                             fallback="Failed to load notifications")
        return self._parse(NotificationList, data, "Failed to load notifications")

    def mark_notification_read(self, notification_id: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request('PATCH', f"/api/notifications/{quote(notification_id)}/read", token=token,
                             fallback="Failed to mark notification as read")

    def mark_all_notifications_read(self, token: Optional[str] = None) -> Dict[str, Any]:
        return self._request('PATCH', '/api/notifications/read-all', token=token,
                             fallback="Failed to mark notifications as read")


def create_client_from_config() -> MarketplaceClient:
    """Build a client from config.yaml and the persisted session."""
    from ..core.config import get_config
    from ..auth.session import create_auth_session_from_config

    config = get_config()
    return MarketplaceClient(
        base_url=config.api_base,
        auth=create_auth_session_from_config(),
        timeout=config.get_int('api', 'timeout', default=30),
        user_agent=config.get('api', 'user_agent', default='CampusMarketplace/1.0'),
    )
