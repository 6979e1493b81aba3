"""In-memory index of extracted metadata, keyed by module."""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ..extractor import MetadataExtractor, fallback_record, has_declaration
from ..logging import get_logger
from ..models import (
    MODULE_STATUSES,
    PRIORITY_RANK,
    SEVERITY_RANK,
    FileMetadata,
    FixItem,
    MetadataRecord,
    TodoItem,
)
from ..scanner import discover_files

RECENT_WINDOW_DAYS = 7

_LOGGER = get_logger("stores.registry")


@dataclass
class LoadError:
    """A file (or directory) that could not be loaded."""

    file: str
    error: str

    def to_dict(self) -> Dict[str, str]:
        return {"file": self.file, "error": self.error}


@dataclass
class TrackedTodo(TodoItem):
    module: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["module"] = self.module
        return data


@dataclass
class TrackedFix(FixItem):
    module: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["module"] = self.module
        return data


@dataclass
class RegistrySummary:
    total_modules: int
    todo_count: int
    fix_count: int
    status_breakdown: Dict[str, int]
    recently_updated: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalModules": self.total_modules,
            "todoCount": self.todo_count,
            "fixCount": self.fix_count,
            "statusBreakdown": dict(self.status_breakdown),
            "recentlyUpdated": self.recently_updated,
        }


class IntrospectionRegistry:
    """Snapshot of every module's metadata with read-only queries on top.

    ``load_all`` builds a new snapshot off to the side and swaps it in whole,
    so readers see either the previous load or the next one. Loads on one
    instance are serialized; use separate instances for independent scans.
    """

    def __init__(self, extractor: MetadataExtractor | None = None) -> None:
        self._extractor = extractor or MetadataExtractor()
        self._modules: Dict[str, MetadataRecord] = {}
        self._errors: List[LoadError] = []
        self._loaded = False
        self._lock = threading.Lock()
        self._load_lock = threading.Lock()

    def _snapshot(self) -> Dict[str, MetadataRecord]:
        # Snapshots are never mutated after publication.
        with self._lock:
            return self._modules

    def _publish(self, modules: Dict[str, MetadataRecord], errors: List[LoadError], loaded: bool) -> None:
        with self._lock:
            self._modules = modules
            self._errors = errors
            self._loaded = loaded

    def register(self, record: MetadataRecord) -> None:
        with self._lock:
            modules = dict(self._modules)
            modules[record.module] = record
            self._modules = modules

    def load_all(
        self,
        src_dir: Path | str,
        *,
        include: Sequence[str] = ("**/*.ts", "**/*.tsx"),
        exclude: Sequence[str] = ("**/*.d.ts",),
        today: date | None = None,
    ) -> None:
        src_path = Path(src_dir)
        with self._load_lock:
            modules: Dict[str, MetadataRecord] = {}
            errors: List[LoadError] = []

            if not src_path.is_dir():
                message = f"Source directory does not exist: {src_path}"
                errors.append(LoadError(file=str(src_path), error=message))
                _LOGGER.debug(message)
                self._publish({}, errors, loaded=False)
                return

            for path in discover_files(src_path, include, exclude):
                try:
                    content = path.read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError) as exc:
                    errors.append(LoadError(file=str(path), error=str(exc)))
                    _LOGGER.debug("Error processing %s: %s", path, exc)
                    continue
                if not has_declaration(content):
                    record: MetadataRecord = fallback_record(path, src_path)
                else:
                    record = self._extractor.extract(content, path, src_path, today=today)
                modules[record.module] = record

            self._publish(modules, errors, loaded=True)
            _LOGGER.debug("Loaded %d module(s) from %s", len(modules), src_path)

    @property
    def errors(self) -> List[LoadError]:
        with self._lock:
            return list(self._errors)

    def clear_errors(self) -> None:
        with self._lock:
            self._errors = []

    def get(self, module: str) -> Optional[MetadataRecord]:
        return self._snapshot().get(module)

    def modules(self) -> List[MetadataRecord]:
        return list(self._snapshot().values())

    def full_modules(self) -> List[FileMetadata]:
        return _full_modules(self._snapshot())

    def all_todos(self) -> List[TrackedTodo]:
        return _all_todos(self._snapshot())

    def all_fixes(self) -> List[TrackedFix]:
        """Open fixes (anything not ``fixed``), most severe first."""
        return _all_fixes(self._snapshot())

    def recently_updated(self, days: int = RECENT_WINDOW_DAYS, today: date | None = None) -> List[FileMetadata]:
        return _recently_updated(self._snapshot(), days, today)

    def by_status(self, status: str) -> List[FileMetadata]:
        return [record for record in self.full_modules() if record.status == status]

    def by_tag(self, tag: str) -> List[FileMetadata]:
        return [record for record in self.full_modules() if tag in record.tags]

    def search(self, query: str) -> List[MetadataRecord]:
        needle = query.lower()
        return [
            record
            for record in self._snapshot().values()
            if needle in record.module.lower() or needle in record.description.lower()
        ]

    def summary(self, today: date | None = None) -> RegistrySummary:
        modules = self._snapshot()
        breakdown = {status: 0 for status in MODULE_STATUSES}
        for record in _full_modules(modules):
            breakdown[record.status] = breakdown.get(record.status, 0) + 1
        return RegistrySummary(
            total_modules=len(modules),
            todo_count=len(_all_todos(modules)),
            fix_count=len(_all_fixes(modules)),
            status_breakdown=breakdown,
            recently_updated=len(_recently_updated(modules, RECENT_WINDOW_DAYS, today)),
        )

    @property
    def size(self) -> int:
        return len(self._snapshot())

    def __len__(self) -> int:
        return self.size

    def clear(self) -> None:
        with self._lock:
            self._modules = {}
            self._loaded = False

    @property
    def is_loaded(self) -> bool:
        with self._lock:
            return self._loaded


def _full_modules(modules: Dict[str, MetadataRecord]) -> List[FileMetadata]:
    return [record for record in modules.values() if isinstance(record, FileMetadata)]


def _all_todos(modules: Dict[str, MetadataRecord]) -> List[TrackedTodo]:
    todos = [
        TrackedTodo(**_field_values(todo), module=record.module)
        for record in _full_modules(modules)
        for todo in record.todos
    ]
    todos.sort(key=lambda todo: PRIORITY_RANK.get(todo.priority, len(PRIORITY_RANK)))
    return todos


def _all_fixes(modules: Dict[str, MetadataRecord]) -> List[TrackedFix]:
    fixes = [
        TrackedFix(**_field_values(fix), module=record.module)
        for record in _full_modules(modules)
        for fix in record.fixes
        if fix.status != "fixed"
    ]
    fixes.sort(key=lambda fix: SEVERITY_RANK.get(fix.severity, len(SEVERITY_RANK)))
    return fixes


def _recently_updated(modules: Dict[str, MetadataRecord], days: int, today: date | None) -> List[FileMetadata]:
    cutoff = (today or date.today()) - timedelta(days=days)
    recent = []
    for record in _full_modules(modules):
        updated = _parse_date(record.updated_at)
        if updated is not None and updated >= cutoff:
            recent.append((updated, record))
    recent.sort(key=lambda item: item[0], reverse=True)
    return [record for _, record in recent]


def _field_values(item: Any) -> Dict[str, Any]:
    return {f.name: getattr(item, f.name) for f in fields(item)}


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


_SHARED_LOCK = threading.Lock()
_SHARED_REGISTRY: Optional[IntrospectionRegistry] = None


def get_registry() -> IntrospectionRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _SHARED_REGISTRY
    with _SHARED_LOCK:
        if _SHARED_REGISTRY is None:
            _SHARED_REGISTRY = IntrospectionRegistry()
        return _SHARED_REGISTRY


def reset_registry() -> IntrospectionRegistry:
    """Replace the process-wide registry with an empty instance."""
    global _SHARED_REGISTRY
    with _SHARED_LOCK:
        _SHARED_REGISTRY = IntrospectionRegistry()
        return _SHARED_REGISTRY


__all__ = [
    "IntrospectionRegistry",
    "LoadError",
    "RECENT_WINDOW_DAYS",
    "RegistrySummary",
    "TrackedFix",
    "TrackedTodo",
    "get_registry",
    "reset_registry",
]
