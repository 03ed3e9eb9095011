from constants import SETTINGS_DEFAULT
from services.settings import get_setting, load_settings


def test_defaults_without_env():
    assert load_settings({}) == dict(SETTINGS_DEFAULT)


def test_env_overrides_are_coerced():
    s = load_settings({
        "ENGINE_IDLE_TIMEOUT_SECONDS": "30",
        "FEISHU_VERIFY_REQUEST": "true",
        "LOG_LEVEL": "debug",
        "SOURCE_CONNECT_TIMEOUT_SECONDS": "soon",
        "SERVICE_NAME": "",
    })
    assert s["ENGINE_IDLE_TIMEOUT_SECONDS"] == 30
    assert s["FEISHU_VERIFY_REQUEST"] is True
    assert s["LOG_LEVEL"] == "debug"
    assert s["SOURCE_CONNECT_TIMEOUT_SECONDS"] == 10
    assert s["SERVICE_NAME"] == "bitable-sync"


def test_get_setting():
    assert get_setting({"a": 1}, "a") == 1
    assert get_setting({}, "a", "x") == "x"
