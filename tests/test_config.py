import json

from quest_translator.config import API_KEY_ENV, Settings, load_settings


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    settings = load_settings(str(tmp_path / "nope.json"))
    assert settings == Settings()


def test_invalid_json_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = tmp_path / "_settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(str(path)) == Settings()


def test_values_and_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)
    path = tmp_path / "_settings.json"
    path.write_text(json.dumps({
        "provider": "claude",
        "api_key": "sk-ant",
        "target_lang": "zh",
        "max_concurrency": 2,
        "retry_base_wait": 1.5,
        "dark_mode": True,
    }), encoding="utf-8")

    settings = load_settings(str(path))

    assert settings.provider == "claude"
    assert settings.api_key == "sk-ant"
    assert settings.target_lang == "zh"
    assert settings.provider_overrides() == {"max_concurrency": 2, "retry_base_wait": 1.5}


def test_env_fills_empty_key(tmp_path, monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "from-env")
    assert load_settings(str(tmp_path / "nope.json")).api_key == "from-env"
