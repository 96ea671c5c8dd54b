"""
Authentication session management with token persistence.
Stores the bearer token in a YAML file and reads it back at call time,
so every request sees the latest login or logout.
"""

import base64
import json
import logging
import threading
import time
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

# Storage keys, primary first
TOKEN_KEY = "authentication"
LEGACY_TOKEN_KEY = "token"
USER_KEY = "user"


class AuthRequired(Exception):
    """Raised when an action needs a token and none is usable."""

    def __init__(self, redirect: str, message: str = "Please login first"):
        super().__init__(message)
        self.redirect = redirect
        self.message = message


class TokenStore:
    """
    Persistent key/value store backed by a YAML file.
    Every read goes to disk; there is no in-memory copy to go stale.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f"Session file unreadable, ignoring: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, *keys: str) -> None:
        with self._lock:
            data = self._read()
            changed = False
            for key in keys:
                if key in data:
                    del data[key]
                    changed = True
            if changed:
                self._write(data)

    def clear_auth(self) -> None:
        """Forget token, legacy token and cached user."""
        self.remove(TOKEN_KEY, LEGACY_TOKEN_KEY, USER_KEY)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode a JWT payload without verifying the signature.
    Only for reading claims; the backend verifies.
    """
    try:
        segment = token.split('.')[1]
    except (AttributeError, IndexError):
        return None
    if not segment:
        return None

    padded = segment + '=' * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded).decode('utf-8'))
    except (ValueError, UnicodeDecodeError) as e:
        logger.debug(f"Failed to decode JWT: {e}")
        return None
    return payload if isinstance(payload, dict) else None


def is_token_expired(token: str, now: Optional[float] = None) -> bool:
    """A token without a readable exp claim counts as expired."""
    payload = decode_jwt(token)
    if not payload or not payload.get('exp'):
        return True
    try:
        exp = float(payload['exp'])
    except (TypeError, ValueError):
        return True
    return (now if now is not None else time.time()) >= exp


class AuthSession:
    """
    Explicit auth context handed to the client and the actions.
    get_token() is the single accessor and hits the store every time.
    """

    def __init__(self, store: TokenStore, login_path: str = "/login"):
        self.store = store
        self.login_path = login_path

    def get_token(self) -> Optional[str]:
        token = self.store.get(TOKEN_KEY) or self.store.get(LEGACY_TOKEN_KEY)
        if not token:
            return None

        if is_token_expired(token):
            logger.info("Token expired, clearing authentication")
            self.store.clear_auth()
            return None

        return token

    def require_token(self, redirect_path: str = "/orders") -> str:
        token = self.get_token()
        if not token:
            raise AuthRequired(self.login_redirect(redirect_path))
        return token

    def is_authenticated(self) -> bool:
        return self.get_token() is not None

    def set_token(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        """Store under the primary key and drop the legacy one."""
        self.store.set(TOKEN_KEY, token)
        self.store.remove(LEGACY_TOKEN_KEY)
        if user is not None:
            self.store.set(USER_KEY, user)
        logger.info("Token saved")

    def clear(self) -> None:
        self.store.clear_auth()
        logger.info("Session cleared")

    def current_user(self) -> Optional[Dict[str, Any]]:
        token = self.get_token()
        if not token:
            return None
        return decode_jwt(token)

    def login_redirect(self, path: str) -> str:
        return f"{self.login_path}?redirect={quote(path, safe='/')}"


def create_auth_session_from_config() -> AuthSession:
    """Create AuthSession using the configured session file."""
    from ..core.config import get_config

    config = get_config()
    return AuthSession(
        store=TokenStore(config.session_path),
        login_path=config.get('auth', 'login_path', default='/login')
    )
