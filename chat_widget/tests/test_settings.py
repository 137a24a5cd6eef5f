import pytest
from pydantic import ValidationError as PydanticValidationError

from chat_widget.config.settings import DEFAULT_BASE_URL, WidgetSettings


def _clear_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in ("CHAT_WIDGET_BASE_URL", "CHAT_WIDGET_HTTP_TIMEOUT", "CHAT_WIDGET_FEEDBACK_ENABLED", "CHAT_WIDGET_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CHAT_WIDGET_CONFIG_FILE", str(tmp_path / "missing.yaml"))


def test_defaults(monkeypatch, tmp_path):
    _clear_env(monkeypatch, tmp_path)
    cfg = WidgetSettings()
    assert cfg.base_url == DEFAULT_BASE_URL
    assert cfg.http_timeout == 60.0
    assert cfg.feedback_enabled is True


def test_base_url_is_normalized(monkeypatch, tmp_path):
    _clear_env(monkeypatch, tmp_path)
    assert WidgetSettings(base_url="https://bot.example.com/").base_url == "https://bot.example.com"
    assert WidgetSettings(base_url="  ").base_url == DEFAULT_BASE_URL


def test_env_overrides(monkeypatch, tmp_path):
    _clear_env(monkeypatch, tmp_path)
    monkeypatch.setenv("CHAT_WIDGET_BASE_URL", "http://env.example:9000/")
    monkeypatch.setenv("CHAT_WIDGET_FEEDBACK_ENABLED", "false")
    cfg = WidgetSettings()
    assert cfg.base_url == "http://env.example:9000"
    assert cfg.feedback_enabled is False


def test_yaml_config_is_lowest_priority(monkeypatch, tmp_path):
    _clear_env(monkeypatch, tmp_path)
    config = tmp_path / "widget.yaml"
    config.write_text("base_url: http://yaml.example\nhttp_timeout: 5\n", encoding="utf-8")
    monkeypatch.setenv("CHAT_WIDGET_CONFIG_FILE", str(config))

    cfg = WidgetSettings()
    assert cfg.base_url == "http://yaml.example"
    assert cfg.http_timeout == 5.0

    monkeypatch.setenv("CHAT_WIDGET_HTTP_TIMEOUT", "7")
    assert WidgetSettings().http_timeout == 7.0


def test_log_level_is_normalized(monkeypatch, tmp_path):
    _clear_env(monkeypatch, tmp_path)
    assert WidgetSettings().log_level == "INFO"
    monkeypatch.setenv("CHAT_WIDGET_LOG_LEVEL", "debug")
    assert WidgetSettings().log_level == "DEBUG"

    with pytest.raises(PydanticValidationError):
        WidgetSettings(log_level="chatty")
