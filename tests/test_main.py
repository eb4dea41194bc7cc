import json
from pathlib import Path

import main
from quest_translator.providers import ProviderConfig

from conftest import ScriptedProvider


def test_output_path():
    assert main.output_path(Path("q/intro.snbt"), None) == Path("q/intro.translated.snbt")
    assert main.output_path(Path("q/intro.snbt"), "out") == Path("out/intro.snbt")
    assert main.output_path(Path("q/lang/en_us.snbt"), "out") == Path("out/lang/en_us.snbt")


def test_main_translates_files(tmp_path, monkeypatch, capsys):
    settings = tmp_path / "_settings.json"
    settings.write_text(json.dumps({"provider": "google", "api_key": "k"}), encoding="utf-8")
    src = tmp_path / "intro.snbt"
    src.write_text('title: "Hello"\n', encoding="utf-8")
    out_dir = tmp_path / "out"

    created = {}

    def fake_create_provider(name, api_key, **kwargs):
        created.update(name=name, api_key=api_key, **kwargs)
        return ScriptedProvider(ProviderConfig(name=name, batch_size=10))

    monkeypatch.setattr(main, "create_provider", fake_create_provider)

    code = main.main([str(src), "-o", str(out_dir), "--settings", str(settings),
                      "--target-lang", "de"])

    assert code == 0
    assert created["name"] == "google"
    assert created["target_lang"] == "de"
    assert (out_dir / "intro.snbt").read_text(encoding="utf-8") == 'title: "HELLO"\n'
    assert "1 translated" in capsys.readouterr().out


def test_main_fails_without_api_key(tmp_path, monkeypatch):
    monkeypatch.delenv("QUEST_TRANSLATOR_API_KEY", raising=False)
    src = tmp_path / "intro.snbt"
    src.write_text('title: "Hello"\n', encoding="utf-8")
    code = main.main([str(src), "--settings", str(tmp_path / "missing.json")])
    assert code == 1


def test_main_copies_existing_lang_translation(tmp_path, monkeypatch):
    settings = tmp_path / "_settings.json"
    settings.write_text(json.dumps({"provider": "google", "api_key": "k"}), encoding="utf-8")
    lang = tmp_path / "lang"
    lang.mkdir()
    src = lang / "en_us.snbt"
    src.write_text('{\n\tquest.01.title: "Hello"\n}\n', encoding="utf-8")
    (lang / "de_de.snbt").write_text('{\n\tquest.01.title: "Hallo"\n}\n', encoding="utf-8")
    out_dir = tmp_path / "out"
    provider = ScriptedProvider(ProviderConfig(name="google", batch_size=10))
    monkeypatch.setattr(main, "create_provider", lambda name, api_key, **kwargs: provider)

    args = [str(src), "-o", str(out_dir), "--settings", str(settings), "--target-lang", "de"]
    assert main.main(args) == 0
    assert (out_dir / "lang" / "en_us.snbt").read_text(encoding="utf-8") == (
        '{\n\tquest.01.title: "Hallo"\n}\n')
    assert provider.calls == []

    assert main.main(args + ["--retranslate"]) == 0
    assert (out_dir / "lang" / "en_us.snbt").read_text(encoding="utf-8") == (
        '{\n\tquest.01.title: "HELLO"\n}\n')
    assert provider.calls == [{"quest.01.title": "Hello"}]
