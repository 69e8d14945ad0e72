from __future__ import annotations

from datetime import timedelta

import pytest
from pydantic import ValidationError

from city_assistant.config import AppConfig, LLMConfig, SessionConfig, load_config
from city_assistant.core.types import Channel


def test_defaults():
    config = AppConfig.default()
    assert config.city.name == "City of Doral"
    assert config.knowledge.context_limit == 5
    assert config.sessions.timeout_for(Channel.IVR) == timedelta(minutes=5)
    assert config.sessions.timeout_for(Channel.WEB) == timedelta(minutes=30)
    assert config.sessions.timeout_for(Channel.WHATSAPP) == timedelta(hours=24)
    assert config.llm.backend == "anthropic"


def test_short_reply_channels():
    llm = LLMConfig()
    assert llm.max_tokens_for(Channel.SMS) == 320
    assert llm.max_tokens_for(Channel.WEB) == 1000


def test_timeout_overrides_merge_with_defaults():
    sessions = SessionConfig(timeouts={"web": 600})
    assert sessions.timeout_for(Channel.WEB) == timedelta(minutes=10)
    assert sessions.timeout_for(Channel.IVR) == timedelta(minutes=5)


def test_non_positive_timeout_is_rejected():
    with pytest.raises(ValidationError):
        SessionConfig(timeouts={"ivr": 0})


def test_load_config_interpolates_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-test")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        """
data_dir: "{data}"
city:
  name: "City of Testville"
anthropic:
  api_key: "${{TEST_ANTHROPIC_KEY}}"
storage:
  db_path: "${{data_dir}}/assistant.db"
knowledge:
  refresh_cron: "0 2 * * *"
sessions:
  timeouts:
    sms: 3600
""".format(data=tmp_path / "data"),
        encoding="utf-8",
    )
    config = load_config(config_file, tmp_path / "missing.env")
    assert config.city.name == "City of Testville"
    assert config.anthropic.api_key == "sk-test"
    assert config.storage.db_path == f"{tmp_path / 'data'}/assistant.db"
    assert config.knowledge.refresh_cron == "0 2 * * *"
    assert config.sessions.timeout_for(Channel.SMS) == timedelta(hours=1)


def test_load_config_reads_dotenv(tmp_path, monkeypatch):
    monkeypatch.delenv("CITY_HALL_PHONE", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("CITY_HALL_PHONE=+15550001111\n", encoding="utf-8")
    config_file = tmp_path / "config.yaml"
    config_file.write_text('city:\n  transfer_phone: "${CITY_HALL_PHONE}"\n', encoding="utf-8")
    try:
        config = load_config(config_file, env_file)
        assert config.city.transfer_phone == "+15550001111"
    finally:
        monkeypatch.delenv("CITY_HALL_PHONE", raising=False)


def test_unset_variable_is_left_as_is(tmp_path, monkeypatch):
    monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text('openai:\n  api_key: "${NOT_SET_ANYWHERE}"\n', encoding="utf-8")
    assert load_config(config_file, tmp_path / "none.env").openai.api_key == "${NOT_SET_ANYWHERE}"


def test_empty_config_file_gives_defaults(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("", encoding="utf-8")
    assert load_config(config_file, tmp_path / "none.env").llm.model == LLMConfig().model


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / "none.env")
