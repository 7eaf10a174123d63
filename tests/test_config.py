import json
from pathlib import Path

import pytest

from fencemark.app import config


@pytest.fixture()
def config_file(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "fencemark.json"
    monkeypatch.setattr(config, "GLOBAL_CONFIG", path)
    return path


def test_defaults_without_config_file(config_file: Path) -> None:
    assert not config_file.exists()
    assert config.load_pygments_style() == "monokai"
    assert config.load_max_completion_options() == 10
    assert config.load_complete_on_typing() is True
    assert config.load_fence_language_aliases() == {}
    assert config.load_editor_font_size() == 12
    assert config.load_last_file() is None


def test_saved_values_are_merged(config_file: Path) -> None:
    config.save_pygments_style("friendly")
    config.save_complete_on_typing(False)
    config.save_fence_language_aliases({"py3": "python"})
    payload = json.loads(config_file.read_text(encoding="utf-8"))
    assert payload == {
        "pygments_style": "friendly",
        "complete_on_typing": False,
        "fence_language_aliases": {"py3": "python"},
    }
    assert config.load_pygments_style() == "friendly"
    assert config.load_complete_on_typing() is False
    assert config.load_fence_language_aliases() == {"py3": "python"}


def test_corrupt_config_falls_back_to_defaults(config_file: Path) -> None:
    config_file.write_text("{not json", encoding="utf-8")
    assert config.load_pygments_style() == "monokai"
    config.save_editor_font_size(15)
    assert config.load_editor_font_size() == 15


@pytest.mark.parametrize("raw, expected", [("abc", 10), (0, 1), (25, 25), ("7", 7)])
def test_max_completion_options_is_sanitized(config_file: Path, raw, expected: int) -> None:
    config_file.write_text(json.dumps({"max_completion_options": raw}), encoding="utf-8")
    assert config.load_max_completion_options() == expected


def test_malformed_aliases_are_skipped(config_file: Path) -> None:
    config_file.write_text(
        json.dumps({"fence_language_aliases": {"py3": "python", "bad": 3, " ": "js"}}), encoding="utf-8"
    )
    assert config.load_fence_language_aliases() == {"py3": "python"}


def test_debug_flag(monkeypatch) -> None:
    monkeypatch.setenv("FENCEMARK_DEBUG_CONTEXT", "1")
    assert config.debug_enabled("FENCEMARK_DEBUG_CONTEXT") is True
    monkeypatch.setenv("FENCEMARK_DEBUG_CONTEXT", "false")
    assert config.debug_enabled("FENCEMARK_DEBUG_CONTEXT") is False
