"""
Logging for the marketplace client.

Console plus an optional rotating file, both on the root logger. The CLI
calls this once per command; the dashboard calls it on every Streamlit
rerun, so it has to be safe to repeat.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# chatty at DEBUG/INFO, capped at WARNING
NOISY_LOGGERS = ('urllib3', 'watchdog')


def setup_logging(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """
    Configure the root logger and return it.

    Args:
        log_file: Rotating log file; console only when None
        level: Level name; unknown names fall back to INFO
        max_bytes: Rotate once the file reaches this size
        backup_count: Rotated files kept next to the log
        quiet: Loggers held at WARNING or above
    """
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler()]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    return root_logger


def setup_logging_from_config(config) -> logging.Logger:
    """setup_logging with the `general` section of config.yaml."""
    return setup_logging(
        config.log_path,
        config.get('general', 'log_level', default='INFO'),
        max_bytes=config.get_int('general', 'log_max_bytes', default=5 * 1024 * 1024),
        backup_count=config.get_int('general', 'log_backup_count', default=3),
    )
