"""Persistence backends for flow diagrams."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Dict, Iterable, Optional
from urllib.parse import quote

from pydantic import ValidationError

from .config import get_state_backend, get_state_location
from .models import FlowDiagram

_LOGGER = logging.getLogger(__name__)


class DiagramStateError(RuntimeError):
    """Raised when a persistence backend cannot be initialised, read or written."""


class DiagramStateStore:
    """Abstract interface for diagram persistence backends.

    Writes are per diagram so one mutation never rewrites the whole registry.
    """

    def save(self, diagram: FlowDiagram) -> None:
        raise NotImplementedError

    def load(self, operation_id: str) -> Optional[FlowDiagram]:
        raise NotImplementedError

    def load_all(self) -> Dict[str, FlowDiagram]:
        raise NotImplementedError

    def delete(self, operation_id: str) -> None:
        raise NotImplementedError

    def list_ids(self) -> Iterable[str]:
        raise NotImplementedError


def _decode(raw: str, origin: str) -> Optional[FlowDiagram]:
    try:
        return FlowDiagram.model_validate_json(raw)
    except ValidationError as exc:
        _LOGGER.warning("flowviz.state.malformed", extra={"origin": origin, "error": str(exc)})
        return None


class FileDiagramStateStore(DiagramStateStore):
    """Store each diagram as its own JSON document with atomic swaps."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = (root or get_state_location("file")).resolve()
        self._lock = threading.Lock()
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DiagramStateError(f"Cannot create diagram store at {self._root}: {exc}") from exc

    def _path(self, operation_id: str) -> Path:
        return self._root / f"{quote(operation_id, safe='-_.')}.json"

    def save(self, diagram: FlowDiagram) -> None:
        payload = diagram.model_dump_json()
        target = self._path(diagram.metadata.operation_id)
        with self._lock:
            tmp_path = target.with_suffix(".json.tmp")
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                tmp_path.replace(target)
            except OSError as exc:
                raise DiagramStateError(f"Failed to persist diagram {diagram.id}: {exc}") from exc

    def load(self, operation_id: str) -> Optional[FlowDiagram]:
        path = self._path(operation_id)
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            _LOGGER.warning("flowviz.state.unreadable", extra={"origin": str(path), "error": str(exc)})
            return None
        except OSError as exc:
            raise DiagramStateError(f"Failed to read diagram {operation_id}: {exc}") from exc
        return _decode(raw, str(path))

    def load_all(self) -> Dict[str, FlowDiagram]:
        diagrams: Dict[str, FlowDiagram] = {}
        for path in sorted(self._root.glob("*.json")):
            try:
                raw = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                _LOGGER.warning("flowviz.state.unreadable", extra={"origin": str(path), "error": str(exc)})
                continue
            diagram = _decode(raw, str(path))
            if diagram is not None:
                diagrams[diagram.metadata.operation_id] = diagram
        return diagrams

    def delete(self, operation_id: str) -> None:
        path = self._path(operation_id)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise DiagramStateError(f"Failed to delete diagram {operation_id}: {exc}") from exc

    def list_ids(self) -> Iterable[str]:
        return list(self.load_all().keys())


class SqliteDiagramStateStore(DiagramStateStore):
    """Embedded SQLite store; every write is a single upsert transaction."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = (path or get_state_location("sqlite")).resolve()
        self._lock = threading.Lock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
            with self._conn:
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS flow_diagrams (
                        operation_id TEXT PRIMARY KEY,
                        payload TEXT NOT NULL,
                        updated_at REAL NOT NULL
                    )
                    """
                )
        except (OSError, sqlite3.Error) as exc:
            raise DiagramStateError(f"Cannot open diagram database {self._path}: {exc}") from exc

    def save(self, diagram: FlowDiagram) -> None:
        payload = diagram.model_dump_json()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    """
                    INSERT INTO flow_diagrams (operation_id, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT (operation_id) DO UPDATE
                    SET payload = excluded.payload, updated_at = excluded.updated_at
                    """,
                    (diagram.metadata.operation_id, payload, time.time()),
                )
        except sqlite3.Error as exc:
            raise DiagramStateError(f"Failed to persist diagram {diagram.id}: {exc}") from exc

    def load(self, operation_id: str) -> Optional[FlowDiagram]:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT payload FROM flow_diagrams WHERE operation_id = ?", (operation_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise DiagramStateError(f"Failed to read diagram {operation_id}: {exc}") from exc
        if not row:
            return None
        return _decode(row[0], f"sqlite:{operation_id}")

    def load_all(self) -> Dict[str, FlowDiagram]:
        try:
            with self._lock:
                rows = self._conn.execute(
                    "SELECT operation_id, payload FROM flow_diagrams ORDER BY operation_id"
                ).fetchall()
        except sqlite3.Error as exc:
            raise DiagramStateError(f"Failed to read diagram database {self._path}: {exc}") from exc
        diagrams: Dict[str, FlowDiagram] = {}
        for operation_id, payload in rows:
            diagram = _decode(payload, f"sqlite:{operation_id}")
            if diagram is not None:
                diagrams[operation_id] = diagram
        return diagrams

    def delete(self, operation_id: str) -> None:
        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM flow_diagrams WHERE operation_id = ?", (operation_id,))
        except sqlite3.Error as exc:
            raise DiagramStateError(f"Failed to delete diagram {operation_id}: {exc}") from exc

    def list_ids(self) -> Iterable[str]:
        try:
            with self._lock:
                rows = self._conn.execute("SELECT operation_id FROM flow_diagrams").fetchall()
        except sqlite3.Error as exc:
            raise DiagramStateError(f"Failed to read diagram database {self._path}: {exc}") from exc
        return [row[0] for row in rows]

    def close(self) -> None:
        self._conn.close()


def get_store(backend: str | None = None) -> DiagramStateStore:
    """Return a store for ``backend`` (``file`` or ``sqlite``).

    Defaults to ``FLOWVIZ_STATE_BACKEND``; unknown names fall back to ``file``.
    """

    selected = (backend or get_state_backend()).lower()
    if selected == "sqlite":
        return SqliteDiagramStateStore()
    return FileDiagramStateStore()


__all__ = [
    "DiagramStateError",
    "DiagramStateStore",
    "FileDiagramStateStore",
    "SqliteDiagramStateStore",
    "get_store",
]
