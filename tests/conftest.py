import base64
import json
import time
from unittest.mock import MagicMock

import pytest

from marketplace.auth.session import AuthSession, TokenStore
from marketplace.orders.client import MarketplaceClient


def make_jwt(exp_offset=3600, **claims):
    """Unsigned JWT with an exp `exp_offset` seconds from now."""
    def segment(data):
        raw = json.dumps(data).encode('utf-8')
        return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')

    payload = {'id': 'u1', 'email': 'buyer@ku.th', 'role': 'user'}
    payload.update(claims)
    if exp_offset is not None:
        payload['exp'] = int(time.time()) + exp_offset
    return f"{segment({'alg': 'HS256', 'typ': 'JWT'})}.{segment(payload)}.signature"


def order_payload(**overrides):
    data = {
        'id': 'ord-0000000001',
        'status': 'confirmed',
        'deliveryMethod': 'pickup',
        'paymentMethod': 'cash',
        'paymentStatus': 'not_required',
        'items': [{'itemId': 'it1', 'title': 'Calculus textbook', 'price': 250, 'quantity': 1}],
        'totalPrice': 250,
        'seller': {'id': 'seller-1', 'name': 'Nok'},
        'buyerContact': {'fullName': 'Somchai', 'phone': '0812345678'},
        'createdAt': '2024-11-02T08:30:00.000Z',
    }
    data.update(overrides)
    return data


def fake_response(status_code=200, body=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if body is None:
        response.content = b''
        response.json.side_effect = ValueError("no body")
    else:
        response.content = json.dumps(body).encode('utf-8')
        response.json.return_value = body
    return response


class RecordingNotifier:
    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def store(tmp_path):
    return TokenStore(tmp_path / "session.yaml")


@pytest.fixture
def auth(store):
    return AuthSession(store)


@pytest.fixture
def logged_in(auth):
    auth.set_token(make_jwt())
    return auth


@pytest.fixture
def client(auth):
    c = MarketplaceClient("http://api.test/", auth, timeout=5)
    c.session = MagicMock()
    return c


@pytest.fixture
def notifier():
    return RecordingNotifier()
