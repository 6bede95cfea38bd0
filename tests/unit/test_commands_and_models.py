# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from pathlib import Path

import pytest

from services.model_catalog import ModelCatalog, ModelChoice, display_name, load_model_list
from session.commands import clean_input, is_help, is_model_switch, is_reset


@pytest.mark.parametrize("utterance, cleaned", [
    ("Alice, what time is it", "what time is it"),
    ("alisa tell me a joke", "tell me a joke"),
    ("  ALICE,  hi  ", "hi"),
    ("alicia keys songs", "alicia keys songs"),
    ("ask alice", "ask alice"),
    ("", ""),
])
def test_clean_input_strips_leading_wake_word(utterance: str, cleaned: str) -> None:
    assert clean_input(utterance) == cleaned


def test_command_matching() -> None:
    assert is_help("Help!")
    assert is_help("what can you do?")
    assert not is_help("help me with my homework")

    assert is_reset("Reset.")
    assert is_reset("start over")
    assert not is_reset("reset my router")

    assert is_model_switch("Could you switch model please")
    assert is_model_switch("CHANGE MODEL")
    assert not is_model_switch("model switching theory")


def test_display_name_strips_free_suffix() -> None:
    assert display_name("openai/gpt-oss-20b:free") == "openai/gpt-oss-20b"
    assert display_name("anthropic/claude:FREE") == "anthropic/claude"
    assert display_name("mistral/large") == "mistral/large"


def test_load_model_list(tmp_path: Path) -> None:
    path = tmp_path / "models.txt"
    path.write_text("a/one 1000\n\nb/two   2000\nno-limit\na/one 5\nc/three lots\n", encoding="utf-8")

    assert load_model_list(path) == [
        ModelChoice("a/one", 1000),
        ModelChoice("b/two", 2000),
        ModelChoice("c/three", None),
    ]
    assert load_model_list(tmp_path / "missing.txt") == []


def _catalog(tmp_path: Path, default: str = "a/one") -> ModelCatalog:
    return ModelCatalog(
        list_path=tmp_path / "models.txt",
        state_path=tmp_path / "state" / "model_state.json",
        default_model_id=default,
    )


def test_catalog_without_list_uses_default(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, default="x/solo:free")

    assert catalog.current == ModelChoice("x/solo:free")
    assert catalog.switch_next() == ModelChoice("x/solo:free")
    assert not (tmp_path / "state" / "model_state.json").exists()


def test_catalog_rotates_and_persists(tmp_path: Path) -> None:
    (tmp_path / "models.txt").write_text("a/one 1\nb/two 2\n", encoding="utf-8")
    state_path = tmp_path / "state" / "model_state.json"

    catalog = _catalog(tmp_path, default="unknown/model")

    assert catalog.current.model_id == "a/one"
    assert json.loads(state_path.read_text(encoding="utf-8")) == {"current_model": "a/one"}

    assert catalog.switch_next().model_id == "b/two"
    assert catalog.switch_next().model_id == "a/one"
    catalog.switch_next()

    # A fresh process picks the persisted choice
    assert _catalog(tmp_path).current == ModelChoice("b/two", 2)


def test_catalog_accepts_plain_text_state(tmp_path: Path) -> None:
    (tmp_path / "models.txt").write_text("a/one 1\nb/two 2\n", encoding="utf-8")
    state_path = tmp_path / "state" / "model_state.json"
    state_path.parent.mkdir()
    state_path.write_text("b/two\n", encoding="utf-8")

    assert _catalog(tmp_path).current.model_id == "b/two"
