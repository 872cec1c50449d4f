import pytest
from loguru import logger

from mathmentor import config
from mathmentor.config import API_KEY_CANDIDATES, load_settings, resolve_api_key
from tutoring_toolkit.orchestration.data_models import Language


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path / "secrets")
    for name in API_KEY_CANDIDATES:
        monkeypatch.delenv(name, raising=False)
    for name in ("LOG_LEVEL", "RETRY_MAX_ATTEMPTS", "RETRY_INITIAL_DELAY", "RETRY_MULTIPLIER", "DEFAULT_LANGUAGE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def warnings():
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(str(message)), level="WARNING")
    yield messages
    logger.remove(handler_id)


def test_first_non_empty_candidate_wins(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "")
    monkeypatch.setenv("GEMINI_API_KEY", "AIzaSy-gemini")
    monkeypatch.setenv("VITE_GEMINI_API_KEY", "AIzaSy-vite")

    assert resolve_api_key() == "AIzaSy-gemini"


def test_missing_key_is_none(warnings):
    assert resolve_api_key() is None
    assert any("No Gemini API key" in message for message in warnings)


def test_lowercase_l_typo_is_reported(monkeypatch, warnings):
    monkeypatch.setenv("API_KEY", "AlzaSyTypo")

    assert resolve_api_key() == "AlzaSyTypo"
    assert any("AlzaSy" in message for message in warnings)


def test_load_settings_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("API_KEY", "AIzaSy-key")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("RETRY_INITIAL_DELAY", "0.5")
    monkeypatch.setenv("MATHMENTOR_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("DEFAULT_LANGUAGE", "bm")

    settings = load_settings()

    assert settings.api_key == "AIzaSy-key"
    assert settings.log_level == "DEBUG"
    assert settings.retry_policy.max_attempts == 2
    assert settings.retry_policy.initial_delay == 0.5
    assert settings.retry_policy.multiplier == 1.5
    assert settings.state_path == tmp_path / "state.json"
    assert settings.default_language is Language.BM


def test_empty_secret_file_falls_through_to_next_candidate(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path)
    (tmp_path / "API_KEY").write_text("  \n")
    (tmp_path / "GEMINI_API_KEY").write_text("AIzaSy-from-file\n")

    assert resolve_api_key() == "AIzaSy-from-file"


def test_empty_secret_file_uses_environment(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "SECRETS_DIR", tmp_path)
    (tmp_path / "API_KEY").write_text("")
    monkeypatch.setenv("API_KEY", "AIzaSy-env")

    assert resolve_api_key() == "AIzaSy-env"
