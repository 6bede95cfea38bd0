from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from observability.logger import log_event

_FREE_SUFFIX = re.compile(r":free$", re.IGNORECASE)


@dataclass(frozen=True)
class ModelChoice:
    model_id: str
    max_tokens: int | None = None


def display_name(model_id: str) -> str:
    """Model id as spoken to the user; drops the ':free' tier suffix."""
    return _FREE_SUFFIX.sub("", model_id) or model_id


def load_model_list(path: Path) -> list[ModelChoice]:
    """
    Parse '<model_id> <max_tokens>' lines.

    Blank lines and lines without a token limit are skipped; a repeated
    id keeps its first position.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return []

    seen: dict[str, ModelChoice] = {}
    for line in lines:
        fields = line.split(None, 1)
        if len(fields) < 2:
            continue
        model_id = fields[0].strip()
        try:
            max_tokens = int(fields[1].strip())
        except ValueError:
            max_tokens = 0
        if model_id and model_id not in seen:
            seen[model_id] = ModelChoice(model_id, max_tokens or None)
    return list(seen.values())


def _read_state(path: Path) -> str | None:
    try:
        contents = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    if not contents:
        return None

    try:
        data = json.loads(contents)
    except ValueError:
        # Older deployments stored the bare id
        return contents

    if isinstance(data, dict) and isinstance(data.get("current_model"), str):
        return data["current_model"]
    return contents


def _write_state(path: Path, model_id: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps({"current_model": model_id}, ensure_ascii=False), encoding="utf-8")
    tmp_path.replace(path)


class ModelCatalog:
    """
    Rotating list of models with the current choice persisted on disk.

    With an empty list the configured default id is used as-is and
    switching is a no-op.
    """

    def __init__(self, *, list_path: Path, state_path: Path, default_model_id: str) -> None:
        self._state_path = state_path
        self._models = load_model_list(list_path)
        self._current = ModelChoice(default_model_id)
        self.sync()

    @property
    def models(self) -> list[ModelChoice]:
        return list(self._models)

    @property
    def current(self) -> ModelChoice:
        return self._current

    def sync(self) -> ModelChoice:
        """Adopt the stored model when it is still listed, then persist the choice."""
        if not self._models:
            return self._current

        by_id = {m.model_id: m for m in self._models}
        stored = _read_state(self._state_path)
        if stored is not None and stored in by_id:
            self._current = by_id[stored]
        elif self._current.model_id in by_id:
            self._current = by_id[self._current.model_id]
        else:
            self._current = self._models[0]

        _write_state(self._state_path, self._current.model_id)
        return self._current

    def switch_next(self) -> ModelChoice:
        if not self._models:
            return self._current

        ids = [m.model_id for m in self._models]
        try:
            index = (ids.index(self._current.model_id) + 1) % len(ids)
        except ValueError:
            index = 0

        previous = self._current.model_id
        self._current = self._models[index]
        _write_state(self._state_path, self._current.model_id)
        log_event({
            "event_type": "MODEL_SWITCHED",
            "from_model": previous,
            "to_model": self._current.model_id,
        })
        return self._current
