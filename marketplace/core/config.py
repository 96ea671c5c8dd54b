"""
Configuration loader for the Campus Marketplace client.
Uses YAML format for cleaner, more readable configuration.
"""

import yaml
import os
from pathlib import Path
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ['general', 'api', 'auth']


class Config:
    """Singleton configuration manager."""

    _instance: Optional['Config'] = None
    _data: dict = {}
    _project_root: Path = None

    def __new__(cls, config_path: Optional[str] = None) -> 'Config':
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._project_root = Path(__file__).resolve().parent.parent.parent
            instance._load(config_path)
            cls._instance = instance
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the cached instance so the next call reloads from disk."""
        cls._instance = None

    def _load(self, config_path: Optional[str] = None) -> None:
        """Load configuration from YAML file."""
        if config_path:
            path = Path(config_path)
        else:
            path = Path(os.environ.get('MARKETPLACE_CONFIG', self._project_root / "config.yaml"))

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            self._data = yaml.safe_load(f) or {}

        missing = [s for s in REQUIRED_SECTIONS if s not in self._data]
        if missing:
            raise ValueError(f"Missing required config sections: {missing}")

        logger.info(f"Configuration loaded from {path}")

    def get(self, *keys: str, default: Any = None) -> Any:
        """
        Get a nested config value.
        Example: config.get('api', 'timeout') -> config['api']['timeout']
        """
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_int(self, *keys: str, default: int = 0) -> int:
        """Get integer value."""
        value = self.get(*keys, default=default)
        return int(value) if value is not None else default

    def get_float(self, *keys: str, default: float = 0.0) -> float:
        """Get float value."""
        value = self.get(*keys, default=default)
        return float(value) if value is not None else default

    @property
    def api_base(self) -> str:
        """Backend base URL; MARKETPLACE_API_BASE wins over the file."""
        base = os.environ.get('MARKETPLACE_API_BASE') or self.get('api', 'base_url', default='http://localhost:8080')
        return base.rstrip('/')

    @property
    def data_dir(self) -> Path:
        """Get data directory path, creating if needed."""
        dir_name = self.get('general', 'data_dir', default='data')
        path = self._project_root / dir_name
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def session_path(self) -> Path:
        """Persisted token store location."""
        name = self.get('auth', 'session_file', default='session.yaml')
        return self.data_dir / name

    @property
    def log_path(self) -> Path:
        """Get log file path."""
        log_name = self.get('general', 'log_file', default='marketplace.log')
        return self._project_root / log_name


def get_config(config_path: Optional[str] = None) -> Config:
    """Get the global config instance."""
    return Config(config_path)
