import pytest

from marketplace.core import config


def test_get_bool_parses_common_truthy_values() -> None:
    assert config._get_bool(' Yes ') is True
    assert config._get_bool('0') is False
    assert config._get_bool(None, default=True) is True


def test_get_list_splits_and_strips() -> None:
    assert config._get_list('http://a, ,http://b ', []) == ['http://a', 'http://b']
    assert config._get_list('', ['fallback']) == ['fallback']


def test_runtime_config_rejects_default_secret_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()


def test_runtime_config_rejects_negative_cancellation_window(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'CANCELLATION_WINDOW_MINUTES', -5)

    with pytest.raises(RuntimeError):
        config.validate_runtime_config()
