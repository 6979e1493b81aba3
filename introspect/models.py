"""Core data models shared across introspect components."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

TODO_PRIORITIES = ("critical", "high", "medium", "low")
TODO_STATUSES = ("pending", "in-progress", "blocked", "done")
FIX_SEVERITIES = ("critical", "major", "minor", "trivial")
FIX_STATUSES = ("open", "investigating", "fixed")
MODULE_STATUSES = ("stable", "beta", "experimental", "deprecated")

PRIORITY_RANK = {name: index for index, name in enumerate(TODO_PRIORITIES)}
SEVERITY_RANK = {name: index for index, name in enumerate(FIX_SEVERITIES)}

DEFAULT_DESCRIPTION = "No description"


@dataclass
class TodoItem:
    """Tracked work item declared in a module's metadata."""

    id: str
    description: str = DEFAULT_DESCRIPTION
    priority: str = "medium"
    status: str = "pending"
    created_at: str = ""
    assignee: Optional[str] = None
    target_version: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.assignee is not None:
            data["assignee"] = self.assignee
        if self.target_version is not None:
            data["targetVersion"] = self.target_version
        if self.tags:
            data["tags"] = list(self.tags)
        return data


@dataclass
class FixItem:
    """Known defect declared in a module's metadata."""

    id: str
    description: str = DEFAULT_DESCRIPTION
    severity: str = "minor"
    status: str = "open"
    created_at: str = ""
    resolved_at: Optional[str] = None
    related_todos: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.resolved_at is not None:
            data["resolvedAt"] = self.resolved_at
        if self.related_todos:
            data["relatedTodos"] = list(self.related_todos)
        return data


@dataclass
class ChangelogEntry:
    """Single version entry in a module changelog."""

    version: str = ""
    date: str = ""
    author: str = ""
    changes: List[str] = field(default_factory=list)
    breaking: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "date": self.date,
            "author": self.author,
            "changes": list(self.changes),
            "breaking": self.breaking,
        }


@dataclass
class DependencyInfo:
    """Import relationships of a module, declared or analyzed."""

    internal: List[str] = field(default_factory=list)
    external: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "internal": list(self.internal),
            "external": list(self.external),
            "types": list(self.types),
        }


@dataclass
class InternalMeta:
    """Tool-managed bookkeeping stored inside the declaration."""

    content_hash: str = ""
    last_validated: str = ""
    generated_deps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentHash": self.content_hash,
            "lastValidated": self.last_validated,
            "generatedDeps": list(self.generated_deps),
        }


@dataclass
class FileMetadata:
    """Full metadata record for a module."""

    module: str
    filename: str
    description: str = DEFAULT_DESCRIPTION
    responsibilities: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    dependencies: DependencyInfo = field(default_factory=DependencyInfo)
    status: str = "stable"
    created_at: str = ""
    updated_at: str = ""
    changelog: List[ChangelogEntry] = field(default_factory=list)
    todos: List[TodoItem] = field(default_factory=list)
    fixes: List[FixItem] = field(default_factory=list)
    meta: InternalMeta = field(default_factory=InternalMeta)
    notes: Optional[str] = None
    see_also: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "module": self.module,
            "filename": self.filename,
            "description": self.description,
            "responsibilities": list(self.responsibilities),
            "exports": list(self.exports),
            "dependencies": self.dependencies.to_dict(),
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "changelog": [entry.to_dict() for entry in self.changelog],
            "todos": [todo.to_dict() for todo in self.todos],
            "fixes": [fix.to_dict() for fix in self.fixes],
            "_meta": self.meta.to_dict(),
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if self.see_also:
            data["seeAlso"] = list(self.see_also)
        if self.tags:
            data["tags"] = list(self.tags)
        return data


@dataclass
class IndexMetadata:
    """Lightweight record for re-export-only modules and undeclared files."""

    module: str
    filename: str
    description: str = DEFAULT_DESCRIPTION
    reexports: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "module": self.module,
            "filename": self.filename,
            "description": self.description,
            "reexports": list(self.reexports),
        }


MetadataRecord = Union[FileMetadata, IndexMetadata]


def is_full_metadata(record: MetadataRecord) -> bool:
    """Return True when ``record`` is the full variant."""
    return isinstance(record, FileMetadata)


__all__ = [
    "ChangelogEntry",
    "DEFAULT_DESCRIPTION",
    "DependencyInfo",
    "FIX_SEVERITIES",
    "FIX_STATUSES",
    "FileMetadata",
    "FixItem",
    "IndexMetadata",
    "InternalMeta",
    "MODULE_STATUSES",
    "MetadataRecord",
    "PRIORITY_RANK",
    "SEVERITY_RANK",
    "TODO_PRIORITIES",
    "TODO_STATUSES",
    "TodoItem",
    "is_full_metadata",
]
