import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock

import pytest

from marketplace.core.logging import setup_logging, setup_logging_from_config


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    urllib3_level = logging.getLogger('urllib3').level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger('urllib3').setLevel(urllib3_level)


def test_repeated_setup_does_not_stack_handlers(tmp_path):
    log_file = tmp_path / "logs" / "marketplace.log"
    setup_logging(log_file, "DEBUG")
    root = setup_logging(log_file, "DEBUG")

    assert len(root.handlers) == 2
    assert sum(isinstance(h, RotatingFileHandler) for h in root.handlers) == 1
    logging.getLogger("marketplace.test").info("order loaded")
    for handler in root.handlers:
        handler.flush()
    assert "order loaded" in log_file.read_text(encoding='utf-8')


def test_console_only_and_unknown_level():
    root = setup_logging(None, "chatty")
    assert root.level == logging.INFO
    assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)


def test_noisy_loggers_capped_at_warning():
    setup_logging(None, "DEBUG")
    assert logging.getLogger('urllib3').level == logging.WARNING
    setup_logging(None, "ERROR")
    assert logging.getLogger('urllib3').level == logging.ERROR


def test_from_config_reads_general_section(tmp_path):
    values = {
        ('general', 'log_level'): 'WARNING',
        ('general', 'log_max_bytes'): 1024,
        ('general', 'log_backup_count'): 1,
    }
    config = MagicMock()
    config.log_path = tmp_path / "app.log"
    config.get.side_effect = lambda *keys, default=None: values.get(keys, default)
    config.get_int.side_effect = lambda *keys, default=0: int(values.get(keys, default))

    root = setup_logging_from_config(config)

    file_handler = next(h for h in root.handlers if isinstance(h, RotatingFileHandler))
    assert root.level == logging.WARNING
    assert file_handler.maxBytes == 1024
    assert file_handler.backupCount == 1
