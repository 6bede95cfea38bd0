"""
Durable per-session key-value storage on local disk.

Layout:
    <directory>/<YYYYmmdd_HHMMSS>_<safe_id>.json.gz   current format
    <directory>/<safe_id>.json                        legacy, read then migrated

Rules:
- Writes go to a temp file and are renamed into place
- The newest blob for a session wins when several exist
- Once a directory holds more than STORAGE_MAX_FILES blobs, blobs older
  than STORAGE_RETENTION_S are removed
- Unreadable blobs read as missing (logged)
"""

from __future__ import annotations

import gzip
import json
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from constants import (
    SESSION_ID_FALLBACK,
    STORAGE_BLOB_SUFFIX,
    STORAGE_GZIP_LEVEL,
    STORAGE_LEGACY_SUFFIX,
    STORAGE_MAX_FILES,
    STORAGE_RETENTION_S,
    STORAGE_TIMESTAMP_FORMAT,
)
from context.conversation import ConversationTurn, history_from_dicts, history_to_dicts
from observability.logger import log_event

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")
_TIMESTAMP_LEN = len("YYYYmmdd_HHMMSS")


def sanitize_session_id(session_id: str) -> str:
    return _UNSAFE.sub("_", session_id) or SESSION_ID_FALLBACK


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class FileSessionStore:
    """gzip JSON blobs, one per sanitized session id."""

    def __init__(
        self,
        directory: Path,
        *,
        clock: Callable[[], float] = time.time,
        max_files: int = STORAGE_MAX_FILES,
        retention_s: float = STORAGE_RETENTION_S,
    ) -> None:
        self._dir = directory
        self._clock = clock
        self._max_files = max_files
        self._retention_s = retention_s

    @property
    def directory(self) -> Path:
        return self._dir

    def get(self, key: str) -> Any | None:
        path = self._current_path(sanitize_session_id(key))
        if path is None:
            return None

        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            text = gzip.decompress(raw).decode("utf-8")
        except (OSError, EOFError):
            text = raw.decode("utf-8", errors="replace")

        try:
            return json.loads(text)
        except ValueError:
            log_event({
                "event_type": "STORE_UNREADABLE_BLOB",
                "directory": self._dir.name,
                "file": path.name,
            })
            return None

    def put(self, key: str, value: Any) -> None:
        safe_id = sanitize_session_id(key)
        self._dir.mkdir(parents=True, exist_ok=True)

        current = self._current_path(safe_id)
        legacy: Path | None = None
        if current is None:
            target = self._blob_path(safe_id, self._clock())
        elif current.name.endswith(STORAGE_BLOB_SUFFIX):
            target = current
        else:
            legacy = current
            target = self._blob_path(safe_id, _mtime(current, self._clock()))

        body = json.dumps(value, ensure_ascii=False).encode("utf-8")
        tmp_path = target.with_name(target.name + ".tmp")
        tmp_path.write_bytes(gzip.compress(body, compresslevel=STORAGE_GZIP_LEVEL))
        tmp_path.replace(target)

        if legacy is not None:
            legacy.unlink(missing_ok=True)
            log_event({
                "event_type": "STORE_LEGACY_MIGRATED",
                "directory": self._dir.name,
                "file": target.name,
            })

        self._prune()

    def delete(self, key: str) -> None:
        safe_id = sanitize_session_id(key)
        for path in self._blobs_for(safe_id):
            path.unlink(missing_ok=True)
        (self._dir / f"{safe_id}{STORAGE_LEGACY_SUFFIX}").unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _blob_path(self, safe_id: str, ts: float) -> Path:
        stamp = datetime.fromtimestamp(ts, tz=timezone.utc).strftime(STORAGE_TIMESTAMP_FORMAT)
        return self._dir / f"{stamp}_{safe_id}{STORAGE_BLOB_SUFFIX}"

    def _blobs_for(self, safe_id: str) -> list[Path]:
        if not self._dir.is_dir():
            return []
        tail = f"_{safe_id}{STORAGE_BLOB_SUFFIX}"
        return [
            p for p in self._dir.glob(f"*{tail}")
            if p.name[_TIMESTAMP_LEN:] == tail
        ]

    def _current_path(self, safe_id: str) -> Path | None:
        blobs = self._blobs_for(safe_id)
        if blobs:
            return max(blobs, key=lambda p: (_mtime(p, 0.0), p.name))

        legacy = self._dir / f"{safe_id}{STORAGE_LEGACY_SUFFIX}"
        if legacy.is_file():
            return legacy
        return None

    def _prune(self) -> None:
        blobs = list(self._dir.glob(f"*{STORAGE_BLOB_SUFFIX}"))
        if len(blobs) <= self._max_files:
            return

        threshold = self._clock() - self._retention_s
        removed = 0
        for path in blobs:
            if _mtime(path, threshold) < threshold:
                path.unlink(missing_ok=True)
                removed += 1

        log_event({
            "event_type": "STORE_PRUNED",
            "directory": self._dir.name,
            "files": len(blobs),
            "removed": removed,
        })


def _mtime(path: Path, default: float) -> float:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return default


class SessionRepository:
    """
    Conversation history and pending state for one deployment.

    Thin typed layer over two key-value stores; knows nothing about
    pending-record semantics.
    """

    def __init__(self, *, conversations: KeyValueStore, pending: KeyValueStore) -> None:
        self._conversations = conversations
        self._pending = pending

    def load_history(self, session_id: str) -> list[ConversationTurn]:
        return history_from_dicts(self._conversations.get(session_id))

    def save_history(self, session_id: str, history: list[ConversationTurn]) -> None:
        self._conversations.put(session_id, history_to_dicts(history))

    def clear_history(self, session_id: str) -> None:
        self._conversations.delete(session_id)

    def load_pending(self, session_id: str) -> Any | None:
        return self._pending.get(session_id)

    def save_pending(self, session_id: str, record: dict[str, Any]) -> None:
        self._pending.put(session_id, record)

    def clear_pending(self, session_id: str) -> None:
        self._pending.delete(session_id)
