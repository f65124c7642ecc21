import json
import logging

import pytest
from pydantic import ValidationError

from bot_core.config.settings import BotSettings
from bot_core.core.app_context import AppContext
from bot_core.domain.exceptions import ConfigurationError, PlatformError
from bot_core.domain.platforms import PlatformConfig, get_platform_config
from bot_core.domain.session import Session, SessionKey
from bot_core.infrastructure.logging.logger import JsonFormatter


def test_session_key_composite():
    assert SessionKey("alisa", "u1").composite == "alisa:u1"


def test_session_record_roundtrip():
    session = Session(platform="vk", user_id="9", data={"x": [1, 2]}, last_seq=4, last_action="help")
    record = session.to_record()
    assert record["userId"] == "9"
    assert record["createdAt"].endswith("Z")
    assert Session.from_record(record) == session


def test_session_from_record_tolerates_missing_fields():
    session = Session.from_record({"platform": "vk", "userId": 9})
    assert session.user_id == "9"
    assert session.data == {}
    assert session.last_seq == -1


def test_platform_lookup_is_case_insensitive():
    cfg = get_platform_config("ALISA")
    assert cfg.name == "alisa"
    assert cfg.supports_round_trip is True
    assert get_platform_config("telegram").supports_round_trip is False


def test_unknown_platform():
    with pytest.raises(PlatformError) as exc:
        get_platform_config("icq")
    assert exc.value.code == "UNKNOWN_PLATFORM"
    assert isinstance(exc.value, ConfigurationError)


def test_app_context_register_platform():
    app = AppContext()
    app.register_platform(PlatformConfig("my_app", 600))
    assert app.get_platform("My_App").storage_type == 600


def test_app_context_get_text():
    assert AppContext.get_text("один") == "один"
    assert AppContext.get_text(["а", "б"]) in ("а", "б")
    assert AppContext.get_text(None) == ""


def test_settings_threshold_validation():
    with pytest.raises(ValidationError):
        BotSettings(intent_threshold=120)
    with pytest.raises(ValidationError):
        BotSettings(intent_threshold=95, high_confidence_threshold=90)


def test_settings_read_yaml_file(tmp_path, monkeypatch):
    config = tmp_path / "bot.yaml"
    config.write_text("intent_threshold: 60\nusers_table: Players\n", encoding="utf-8")
    monkeypatch.setenv("BOT_CONFIG_FILE", str(config))

    cfg = BotSettings()
    assert cfg.intent_threshold == 60
    assert cfg.users_table == "Players"


def test_json_formatter_merges_extra_and_redacts_user_text():
    record = logging.LogRecord("bot_core", logging.INFO, __file__, 1, "Dispatched request", None, None)
    record.extra = {"platform": "alisa", "text": "я" * 100}

    plain = json.loads(JsonFormatter().format(record))
    assert plain["msg"] == "Dispatched request"
    assert plain["platform"] == "alisa"
    assert plain["text"] == "я" * 100

    redacted = json.loads(JsonFormatter(redact=True).format(record))
    assert redacted["platform"] == "alisa"
    assert redacted["text"] == "я" * 64 + "…"
