import pytest
import yaml

from marketplace.core.config import Config, get_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.delenv('MARKETPLACE_API_BASE', raising=False)
    monkeypatch.delenv('MARKETPLACE_CONFIG', raising=False)
    Config.reset()
    yield
    Config.reset()


def write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding='utf-8')
    return path


BASE = {
    'general': {'log_level': 'DEBUG', 'data_dir': 'data'},
    'api': {'base_url': 'http://campus.test/', 'timeout': '15', 'page_size': 10},
    'auth': {'session_file': 'session.yaml', 'login_path': '/login'},
    'notifications': {'poll_interval': 30},
}


def test_loads_sections_and_typed_values(tmp_path):
    config = get_config(write_config(tmp_path, BASE))
    assert config.get('auth', 'login_path') == '/login'
    assert config.get_int('api', 'timeout') == 15
    assert config.get_float('notifications', 'poll_interval') == 30.0
    assert config.get('api', 'missing', default='x') == 'x'


def test_singleton_until_reset(tmp_path):
    first = get_config(write_config(tmp_path, BASE))
    assert get_config() is first
    Config.reset()
    assert get_config(write_config(tmp_path, BASE)) is not first


def test_api_base_strips_slash_and_env_wins(tmp_path, monkeypatch):
    config = get_config(write_config(tmp_path, BASE))
    assert config.api_base == 'http://campus.test'
    monkeypatch.setenv('MARKETPLACE_API_BASE', 'https://api.campus.example/')
    assert config.api_base == 'https://api.campus.example'


def test_config_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv('MARKETPLACE_CONFIG', str(write_config(tmp_path, BASE)))
    assert get_config().get('api', 'page_size') == 10


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_config(tmp_path / "nope.yaml")


def test_missing_sections(tmp_path):
    with pytest.raises(ValueError) as exc:
        get_config(write_config(tmp_path, {'general': {}}))
    assert 'api' in str(exc.value)
    assert Config._instance is None
