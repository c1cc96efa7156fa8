import json

import pytest

from pdf_chat.config import ConfigurationError, Settings


def test_preferences_round_trip(tmp_path):
    path = tmp_path / "prefs.json"
    saved = Settings(preferences_path=path, concurrency=4, chat_model="models/gemini-x")
    saved.last_processed_file = "docs/a.pdf"
    saved.save_preferences()

    loaded = Settings(preferences_path=path).load_preferences()

    assert loaded.concurrency == 4
    assert loaded.chat_model == "models/gemini-x"
    assert loaded.last_processed_file == "docs/a.pdf"
    # the API key is never written to the preferences file
    assert "api_key" not in json.loads(path.read_text(encoding="utf-8"))


def test_unknown_keys_and_bad_files_keep_defaults(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps({"concurrency": 3, "api_base": "http://evil"}), encoding="utf-8")

    loaded = Settings(preferences_path=path).load_preferences()
    assert loaded.concurrency == 3
    assert loaded.api_base == Settings().api_base

    path.write_text("{broken", encoding="utf-8")
    assert Settings(preferences_path=path).load_preferences().concurrency == 10


def test_missing_preferences_file_is_fine(tmp_path):
    loaded = Settings(preferences_path=tmp_path / "absent.json").load_preferences()

    assert loaded.embedding_model == "models/text-embedding-004"


def test_api_key_comes_from_environment(monkeypatch):
    monkeypatch.setenv("PDF_CHAT_TEST_KEY", "from-env")

    config = Settings(api_key_env="PDF_CHAT_TEST_KEY")

    assert config.require_api_key() == "from-env"
    assert Settings(api_key="explicit", api_key_env="PDF_CHAT_TEST_KEY").resolve_api_key() == "explicit"


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("PDF_CHAT_TEST_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        Settings(api_key_env="PDF_CHAT_TEST_KEY").require_api_key()


def test_retry_options_are_bounded():
    options = Settings(retry_attempts=0, retry_initial_delay=0.5, retry_exp_base=3).retry_options()

    assert options.attempts == 1
    assert options.initial_delay == 0.5
    assert options.exp_base == 3
    assert options.http_status_codes == [429, 500, 503, 504]
