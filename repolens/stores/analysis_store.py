"""Stores for analysis status, result documents and project state."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from ..errors import PersistenceError

_STORE_VERSION = 1


@dataclass
class StatusRecord:
    status: str
    progress: int
    current_step: str
    error: Optional[str] = None
    completed_at: Optional[datetime] = None


class AnalysisStore(Protocol):
    """Contract the orchestrator persists through."""

    def upsert_analysis_status(self, project_id: str, status: StatusRecord) -> None:
        ...

    def create_analysis_result(self, project_id: str, data: Dict[str, Any]) -> None:
        ...

    def update_project(self, project_id: str, *, status: str, last_analyzed_at: datetime) -> None:
        ...


class InMemoryAnalysisStore:
    """Keeps everything in process memory; records every status write."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.statuses: Dict[str, StatusRecord] = {}
        self.status_history: Dict[str, List[StatusRecord]] = {}
        self.results: Dict[str, List[Dict[str, Any]]] = {}
        self.projects: Dict[str, Dict[str, Any]] = {}

    def upsert_analysis_status(self, project_id: str, status: StatusRecord) -> None:
        with self._lock:
            self.statuses[project_id] = status
            self.status_history.setdefault(project_id, []).append(status)

    def create_analysis_result(self, project_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self.results.setdefault(project_id, []).append(data)

    def update_project(self, project_id: str, *, status: str, last_analyzed_at: datetime) -> None:
        with self._lock:
            self.projects[project_id] = {"status": status, "last_analyzed_at": last_analyzed_at}

    def latest_result(self, project_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            results = self.results.get(project_id)
            return results[-1] if results else None


class JsonAnalysisStore:
    """Writes one JSON document per project under a directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._lock = threading.Lock()

    def upsert_analysis_status(self, project_id: str, status: StatusRecord) -> None:
        payload = asdict(status)
        payload["completed_at"] = _timestamp(status.completed_at)
        payload["updated_at"] = _timestamp(datetime.now(UTC))
        self._update(project_id, lambda document: document.__setitem__("status", payload))

    def create_analysis_result(self, project_id: str, data: Dict[str, Any]) -> None:
        entry = {"created_at": _timestamp(datetime.now(UTC)), "data": data}
        self._update(project_id, lambda document: document.setdefault("results", []).append(entry))

    def update_project(self, project_id: str, *, status: str, last_analyzed_at: datetime) -> None:
        project = {"status": status, "last_analyzed_at": _timestamp(last_analyzed_at)}
        self._update(project_id, lambda document: document.__setitem__("project", project))

    def load(self, project_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._read(self._path(project_id))

    # ------------------------------------------------------------------
    # Internal helpers

    def _path(self, project_id: str) -> Path:
        return self._directory / f"{project_id}.json"

    def _update(self, project_id: str, mutate) -> None:  # type: ignore[no-untyped-def]
        path = self._path(project_id)
        with self._lock:
            document = self._read(path)
            mutate(document)
            document["version"] = _STORE_VERSION
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_suffix(".json.tmp")
                tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
                tmp_path.replace(path)
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceError(f"Failed to write {path}: {exc}") from exc

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt store document {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Corrupt store document {path}: expected a JSON object")
        if data.get("version") != _STORE_VERSION:
            raise PersistenceError(
                f"Store document {path} has version {data.get('version')!r}, expected {_STORE_VERSION}"
            )
        return data


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


__all__ = ["AnalysisStore", "InMemoryAnalysisStore", "JsonAnalysisStore", "StatusRecord"]
