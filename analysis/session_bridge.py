"""Rebuild a working dataset and goal from a persisted session snapshot"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel

from .csv_codec import parse
from .errors import FormatError
from .models import Dataset

logger = logging.getLogger(__name__)

SESSION_KEY = "mlSession"
PROJECTS_KEY = "userProjects"
PREVIEW_ROWS = 5


class SessionStore(ABC):
    """Minimal key-value interface over durable client-side storage"""

    @abstractmethod
    def get(self, key: str) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def clear(self, key: Optional[str] = None) -> None:
        pass


class MemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._data.clear()
        else:
            self._data.pop(key, None)


class JsonFileSessionStore(SessionStore):
    """Keeps every key in one JSON document on disk"""

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            logger.warning(f"Session file {self.path} is not valid JSON: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")

    def get(self, key: str) -> Any:
        return self._read().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._write({})
            return
        data = self._read()
        data.pop(key, None)
        self._write(data)


class SessionSnapshot(BaseModel):
    dataset: Optional[Dataset] = None
    goal_text: Optional[str] = None
    preview_rows: Optional[List[List[str]]] = None
    task_hint: Optional[str] = None
    source: Literal["preview", "project", "none"] = "none"

    @property
    def is_empty(self) -> bool:
        return self.dataset is None and not self.goal_text


def _text(value: Any, field: str) -> Optional[str]:
    """Stripped non-empty string, else None; other types are treated as absent"""
    if value is None:
        return None
    if not isinstance(value, str):
        logger.warning(f"Ignoring non-text {field} in persisted session ({type(value).__name__})")
        return None
    return value.strip() or None


def _table_from_columns(columns: Any, rows: Any, limit: Optional[int] = None) -> Optional[Dataset]:
    if not isinstance(columns, list) or not columns or not isinstance(rows, list):
        return None
    headers = [str(c) for c in columns]
    records = []
    for raw in rows[:limit] if limit else rows:
        if isinstance(raw, dict):
            records.append({h: raw.get(h, "") for h in headers})
        elif isinstance(raw, list):
            records.append({h: raw[i] if i < len(raw) else "" for i, h in enumerate(headers)})
    if not records:
        return None
    return Dataset(headers=headers, rows=records)


class SessionBridge:
    def __init__(self, store: SessionStore):
        self.store = store

    def load(self) -> SessionSnapshot:
        """Preview record first, then the most recent saved project, else empty"""
        snapshot = self._from_preview()
        if snapshot is not None:
            return snapshot
        snapshot = self._from_projects()
        if snapshot is not None:
            return snapshot
        logger.info("No persisted session found")
        return SessionSnapshot()

    def save(self, dataset: Dataset, goal_text: Optional[str] = None, file_name: Optional[str] = None) -> None:
        preview = dataset.head(PREVIEW_ROWS)
        self.store.set(SESSION_KEY, {
            "uploadedFile": {"name": file_name or "dataset.csv", "rowCount": dataset.row_count},
            "dataPreview": {
                "columns": list(preview.headers),
                "rows": [[row[h] for h in preview.headers] for row in preview.rows],
            },
            "userQuery": goal_text or "",
        })

    def _from_preview(self) -> Optional[SessionSnapshot]:
        record = self.store.get(SESSION_KEY)
        if not isinstance(record, dict):
            return None
        preview = record.get("dataPreview")
        if not isinstance(preview, dict):
            if preview is not None:
                logger.warning(f"Ignoring malformed dataPreview in session record ({type(preview).__name__})")
            preview = {}
        goal_text = _text(record.get("userQuery"), "userQuery")
        dataset = _table_from_columns(preview.get("columns"), preview.get("rows"), limit=PREVIEW_ROWS)
        if dataset is None:
            if goal_text:
                logger.info("Session record has a goal but no usable preview")
            return None
        logger.info(f"Restored preview with {dataset.row_count} rows from session record")
        return SessionSnapshot(
            dataset=dataset,
            goal_text=goal_text,
            preview_rows=[[row[h] for h in dataset.headers] for row in dataset.rows],
            source="preview",
        )

    def _from_projects(self) -> Optional[SessionSnapshot]:
        projects = self.store.get(PROJECTS_KEY)
        if not isinstance(projects, list):
            return None
        for project in projects:
            if not isinstance(project, dict):
                continue
            dataset = self._project_table(project)
            if dataset is None:
                continue
            logger.info(f"Restored {dataset.row_count} rows from saved project {project.get('id', '?')}")
            return SessionSnapshot(
                dataset=dataset,
                goal_text=_text(project.get("goal"), "goal") or _text(project.get("userQuery"), "userQuery"),
                task_hint=_text(project.get("taskType"), "taskType"),
                source="project",
            )
        return None

    def _project_table(self, project: Dict[str, Any]) -> Optional[Dataset]:
        raw = project.get("rawData")
        if isinstance(raw, dict):
            return _table_from_columns(raw.get("columns") or raw.get("headers"), raw.get("rows"))
        csv_text = project.get("csvText")
        if isinstance(csv_text, str):
            try:
                return parse(csv_text)
            except FormatError as e:
                logger.warning(f"Skipping saved project {project.get('id', '?')}: {e}")
        return None
