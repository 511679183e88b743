"""Chat history files and the session index."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import io
import json
import logging
import os
from pathlib import Path
import pickle
import tempfile
from typing import Any

from platformdirs import PlatformDirs

from .exceptions import HistoryStoreError, SessionNotFoundError
from .models import Message, Session

LOGGER = logging.getLogger(__name__)

APP_NAME = "bubbletalk"
HISTORY_SUFFIX = ".history"


def default_data_dir(override: str = "") -> Path:
    """Return the per-user data directory, honouring a configured override."""
    if override.strip():
        return Path(override).expanduser()
    return Path(PlatformDirs(appname=APP_NAME, appauthor=False).user_data_path)


def _enforce_permissions(path: Path, mode: int = 0o600) -> None:
    """Set POSIX permissions on a file or directory; silently ignores failures."""
    if os.name != "posix":
        return
    try:
        path.chmod(mode)
    except OSError:
        pass


def _atomic_write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        _enforce_permissions(tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class _HistoryUnpickler(pickle.Unpickler):
    """Unpickler that only admits the datetime types history records carry."""

    _ALLOWED = {
        ("datetime", "datetime"): datetime,
        ("datetime", "timezone"): timezone,
        ("datetime", "timedelta"): timedelta,
    }

    def find_class(self, module: str, name: str) -> Any:
        allowed = self._ALLOWED.get((module, name))
        if allowed is None:
            raise pickle.UnpicklingError(f"Forbidden type in history file: {module}.{name}")
        return allowed


class HistoryStore:
    """Binary, per-session history files under ``<data_dir>/chats``."""

    def __init__(self, data_dir: Path) -> None:
        self.directory = data_dir / "chats"

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}{HISTORY_SUFFIX}"

    @staticmethod
    def encode(messages: list[Message]) -> bytes:
        records = [message.to_record() for message in messages]
        return pickle.dumps(records, protocol=pickle.HIGHEST_PROTOCOL)

    @staticmethod
    def decode(data: bytes) -> list[Message]:
        records = _HistoryUnpickler(io.BytesIO(data)).load()
        if not isinstance(records, list):
            raise ValueError("History payload is not a list.")
        messages: list[Message] = []
        for record in records:
            if not isinstance(record, dict):
                raise ValueError("History entry is not a record.")
            messages.append(Message.from_record(record))
        return messages

    def load_history(self, session_id: str) -> list[Message]:
        """Return the saved history, or an empty list when no file exists yet."""
        target = self.path_for(session_id)
        try:
            data = target.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise HistoryStoreError(f"Unable to read chat history {target}: {exc}") from exc
        if not data:
            return []
        try:
            messages = self.decode(data)
        except (pickle.UnpicklingError, EOFError, ValueError, KeyError, TypeError) as exc:
            raise HistoryStoreError(f"Unable to decode chat history {target}: {exc}") from exc
        LOGGER.info(
            "history.loaded",
            extra={"event": "history.loaded", "session_id": session_id, "count": len(messages)},
        )
        return messages

    def save_history(self, session_id: str, messages: list[Message]) -> Path:
        """Persist ``messages`` for ``session_id``, replacing any previous file."""
        target = self.path_for(session_id)
        try:
            payload = self.encode(messages)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise HistoryStoreError(f"Unable to encode chat history: {exc}") from exc
        try:
            _atomic_write(target, payload)
            _enforce_permissions(self.directory, 0o700)
        except OSError as exc:
            raise HistoryStoreError(f"Unable to write chat history {target}: {exc}") from exc
        LOGGER.info(
            "history.saved",
            extra={"event": "history.saved", "session_id": session_id, "count": len(messages)},
        )
        return target

    def delete_history(self, session_id: str) -> None:
        try:
            self.path_for(session_id).unlink(missing_ok=True)
        except OSError as exc:
            raise HistoryStoreError(f"Unable to delete chat history: {exc}") from exc


class SessionIndex:
    """JSON list of session descriptors kept next to the history files."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise HistoryStoreError(f"Unable to read session index {self.path}: {exc}") from exc
        if not isinstance(payload, list):
            raise HistoryStoreError(f"Session index {self.path} is malformed.")
        return [row for row in payload if isinstance(row, dict) and row.get("id")]

    def _write(self, rows: list[dict[str, Any]]) -> None:
        data = json.dumps(rows, ensure_ascii=False, indent=2, sort_keys=True)
        try:
            _atomic_write(self.path, data.encode("utf-8"))
        except OSError as exc:
            raise HistoryStoreError(f"Unable to write session index {self.path}: {exc}") from exc

    def list_sessions(self) -> list[Session]:
        """List known sessions, most recently updated first."""
        sessions = [Session.from_descriptor(row) for row in self._read()]
        return sorted(sessions, key=lambda item: item.updated_at, reverse=True)

    def contains(self, session_id: str) -> bool:
        return any(row["id"] == session_id for row in self._read())

    def get(self, session_id: str) -> Session:
        for row in self._read():
            if row["id"] == session_id:
                return Session.from_descriptor(row)
        raise SessionNotFoundError(f"No saved chat with id {session_id!r}.")

    def add(self, session: Session) -> None:
        rows = [row for row in self._read() if row["id"] != session.id]
        rows.append(session.descriptor())
        self._write(rows)

    def remove(self, session_id: str) -> None:
        rows = self._read()
        remaining = [row for row in rows if row["id"] != session_id]
        if len(remaining) == len(rows):
            raise SessionNotFoundError(f"No saved chat with id {session_id!r}.")
        self._write(remaining)
