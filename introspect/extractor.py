"""Extraction of ``__metadata`` declarations from TypeScript syntax trees.

Only literal syntax is read: string and no-substitution template literals,
array literals, object literals with identifier keys and booleans. Anything
else (identifiers, calls, interpolated templates, computed keys, spreads) is
treated as absent rather than evaluated, so extraction stays purely syntactic.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from .analyzers.tree_sitter import (
    NodeKind,
    ParseOutcome,
    SourceParser,
    classify,
    named_children,
    node_text,
    string_value,
    unwrap_expression,
)
from .logging import get_logger
from .models import (
    DEFAULT_DESCRIPTION,
    FIX_SEVERITIES,
    FIX_STATUSES,
    MODULE_STATUSES,
    TODO_PRIORITIES,
    TODO_STATUSES,
    ChangelogEntry,
    DependencyInfo,
    FileMetadata,
    FixItem,
    IndexMetadata,
    InternalMeta,
    MetadataRecord,
    TodoItem,
)

METADATA_IDENTIFIER = "__metadata"
SOURCE_SUFFIXES = (".tsx", ".mts", ".cts", ".ts")

_DECLARATION_PATTERN = re.compile(r"\bexport\s+const\s+__metadata\b")
_DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}

_LOGGER = get_logger("extractor")


class FallbackReason(Enum):
    """Why a file produced the path-derived stub instead of its declaration."""

    NO_DECLARATION = "no-declaration"
    PARSE_FAILED = "parse-failed"
    DECLARATION_NOT_FOUND = "declaration-not-found"
    NOT_OBJECT_LITERAL = "not-object-literal"
    EXTRACTION_ERROR = "extraction-error"


@dataclass(frozen=True)
class Extracted:
    """A declaration was found and converted into a record."""

    record: MetadataRecord
    fields: FrozenSet[str] = frozenset()
    span: Tuple[int, int] = (0, 0)
    parsed: Optional[ParseOutcome] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Fallback:
    """No usable declaration; ``record`` is the path-derived stub."""

    record: IndexMetadata
    reason: FallbackReason
    detail: str = ""


ExtractionResult = Union[Extracted, Fallback]

# Python view of a literal: str, bool, list, dict or None for unsupported syntax.
LiteralValue = Any


def has_declaration(text: str) -> bool:
    return _DECLARATION_PATTERN.search(text) is not None


def module_key_for(file_path: Union[str, Path], source_root: Union[str, Path]) -> str:
    """Return the path-derived module key: relative path without source suffix."""
    relative = os.path.relpath(os.fspath(file_path), os.fspath(source_root))
    relative = relative.replace(os.sep, "/")
    for suffix in SOURCE_SUFFIXES:
        if relative.endswith(suffix):
            return relative[: -len(suffix)]
    return relative


def fallback_record(file_path: Union[str, Path], source_root: Union[str, Path]) -> IndexMetadata:
    return IndexMetadata(
        module=module_key_for(file_path, source_root),
        filename=os.path.basename(os.fspath(file_path)),
        description=DEFAULT_DESCRIPTION,
        reexports=[],
    )


class MetadataExtractor:
    """Locates the reserved declaration and rebuilds a typed record from it."""

    def __init__(self, parser: SourceParser | None = None) -> None:
        self.parser = parser or SourceParser()

    def extract(
        self,
        text: str,
        file_path: Union[str, Path],
        source_root: Union[str, Path],
        *,
        today: date | None = None,
    ) -> MetadataRecord:
        """Return the file's record; never raises."""
        return self.extract_result(text, file_path, source_root, today=today).record

    def extract_result(
        self,
        text: str,
        file_path: Union[str, Path],
        source_root: Union[str, Path],
        *,
        today: date | None = None,
        parsed: ParseOutcome | None = None,
    ) -> ExtractionResult:
        if not has_declaration(text):
            return Fallback(fallback_record(file_path, source_root), FallbackReason.NO_DECLARATION)

        try:
            return self._extract_declared(text, file_path, source_root, today, parsed)
        except Exception as exc:
            _LOGGER.debug("Failed to parse metadata from %s: %s", file_path, exc)
            return Fallback(
                fallback_record(file_path, source_root),
                FallbackReason.EXTRACTION_ERROR,
                f"{type(exc).__name__}: {exc}",
            )

    def _extract_declared(
        self,
        text: str,
        file_path: Union[str, Path],
        source_root: Union[str, Path],
        today: date | None,
        parsed: ParseOutcome | None,
    ) -> ExtractionResult:
        outcome = parsed if parsed is not None else self.parser.parse(text, os.fspath(file_path))
        root = outcome.root
        if root is None:
            return self._fallback(file_path, source_root, FallbackReason.PARSE_FAILED, outcome.error or "")

        located = find_declaration(root, outcome.source)
        if located is None:
            return self._fallback(
                file_path,
                source_root,
                FallbackReason.DECLARATION_NOT_FOUND,
                "no top-level export binds __metadata",
            )
        statement, value = located
        if value is None or classify(value) is not NodeKind.OBJECT:
            kind = value.type if value is not None else "nothing"
            return self._fallback(
                file_path,
                source_root,
                FallbackReason.NOT_OBJECT_LITERAL,
                f"__metadata is bound to {kind}, expected an object literal",
            )

        properties = _literal(value, outcome.source)
        record = _build_record(properties, file_path, source_root, today or date.today())
        return Extracted(
            record=record,
            fields=frozenset(properties),
            span=(statement.start_byte, statement.end_byte),
            parsed=outcome,
        )

    @staticmethod
    def _fallback(
        file_path: Union[str, Path],
        source_root: Union[str, Path],
        reason: FallbackReason,
        detail: str,
    ) -> Fallback:
        _LOGGER.debug("Using path-derived metadata for %s (%s: %s)", file_path, reason.value, detail)
        return Fallback(fallback_record(file_path, source_root), reason, detail)


def extract_metadata(
    text: str,
    file_path: Union[str, Path],
    source_root: Union[str, Path],
    *,
    today: date | None = None,
) -> MetadataRecord:
    return MetadataExtractor().extract(text, file_path, source_root, today=today)


def find_declaration(root, source: bytes):  # type: ignore[no-untyped-def]
    """Return ``(statement, value_node)`` for the top-level exported binding."""
    for statement in named_children(root):
        if statement.type != "export_statement":
            continue
        declaration = statement.child_by_field_name("declaration")
        if declaration is None or declaration.type not in _DECLARATION_TYPES:
            continue
        for declarator in named_children(declaration):
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is None or name.type != "identifier":
                continue
            if node_text(name, source) != METADATA_IDENTIFIER:
                continue
            value = declarator.child_by_field_name("value")
            return statement, unwrap_expression(value) if value is not None else None
    return None


def _literal(node, source: bytes) -> LiteralValue:  # type: ignore[no-untyped-def]
    kind = classify(node)
    if kind is NodeKind.STRING:
        return string_value(node, source)
    if kind is NodeKind.BOOLEAN:
        return node.type == "true"
    if kind is NodeKind.ARRAY:
        return [_literal(unwrap_expression(element), source) for element in named_children(node)]
    if kind is NodeKind.OBJECT:
        result: Dict[str, LiteralValue] = {}
        for prop in named_children(node):
            if prop.type != "pair":
                continue
            key = prop.child_by_field_name("key")
            value = prop.child_by_field_name("value")
            if key is None or value is None or key.type != "property_identifier":
                continue
            result[node_text(key, source)] = _literal(unwrap_expression(value), source)
        return result
    return None


def _build_record(
    props: Mapping[str, LiteralValue],
    file_path: Union[str, Path],
    source_root: Union[str, Path],
    today: date,
) -> MetadataRecord:
    module = _as_str(props.get("module")) or module_key_for(file_path, source_root)
    filename = _as_str(props.get("filename")) or os.path.basename(os.fspath(file_path))
    description = _as_str(props.get("description")) or DEFAULT_DESCRIPTION

    if "reexports" in props:
        return IndexMetadata(
            module=module,
            filename=filename,
            description=description,
            reexports=_as_str_list(props.get("reexports")),
        )

    today_text = today.isoformat()
    dependencies = _as_dict(props.get("dependencies"))
    meta = _as_dict(props.get("_meta"))
    return FileMetadata(
        module=module,
        filename=filename,
        description=description,
        responsibilities=_as_str_list(props.get("responsibilities")),
        exports=_as_str_list(props.get("exports")),
        dependencies=DependencyInfo(
            internal=_as_str_list(dependencies.get("internal")),
            external=_as_str_list(dependencies.get("external")),
            types=_as_str_list(dependencies.get("types")),
        ),
        status=_as_choice(props.get("status"), MODULE_STATUSES, "stable"),
        created_at=_as_str(props.get("createdAt")) or today_text,
        updated_at=_as_str(props.get("updatedAt")) or today_text,
        changelog=_changelog(props.get("changelog")),
        todos=_todos(props.get("todos"), today_text),
        fixes=_fixes(props.get("fixes"), today_text),
        meta=InternalMeta(
            content_hash=_as_str(meta.get("contentHash")) or "",
            last_validated=_as_str(meta.get("lastValidated")) or "",
            generated_deps=_as_str_list(meta.get("generatedDeps")),
        ),
        notes=_as_str(props.get("notes")),
        see_also=_as_str_list(props.get("seeAlso")),
        tags=_as_str_list(props.get("tags")),
    )


def _todos(value: LiteralValue, today_text: str) -> List[TodoItem]:
    todos: List[TodoItem] = []
    for item in _as_list(value):
        if not isinstance(item, dict):
            continue
        todo_id = _as_str(item.get("id"))
        if not todo_id:
            continue
        todos.append(
            TodoItem(
                id=todo_id,
                description=_as_str(item.get("description")) or DEFAULT_DESCRIPTION,
                priority=_as_choice(item.get("priority"), TODO_PRIORITIES, "medium"),
                status=_as_choice(item.get("status"), TODO_STATUSES, "pending"),
                created_at=_as_str(item.get("createdAt")) or today_text,
                assignee=_as_str(item.get("assignee")),
                target_version=_as_str(item.get("targetVersion")),
                tags=_as_str_list(item.get("tags")),
            )
        )
    return todos


def _fixes(value: LiteralValue, today_text: str) -> List[FixItem]:
    fixes: List[FixItem] = []
    for item in _as_list(value):
        if not isinstance(item, dict):
            continue
        fix_id = _as_str(item.get("id"))
        if not fix_id:
            continue
        fixes.append(
            FixItem(
                id=fix_id,
                description=_as_str(item.get("description")) or DEFAULT_DESCRIPTION,
                severity=_as_choice(item.get("severity"), FIX_SEVERITIES, "minor"),
                status=_as_choice(item.get("status"), FIX_STATUSES, "open"),
                created_at=_as_str(item.get("createdAt")) or today_text,
                resolved_at=_as_str(item.get("resolvedAt")),
                related_todos=_as_str_list(item.get("relatedTodos")),
            )
        )
    return fixes


def _changelog(value: LiteralValue) -> List[ChangelogEntry]:
    entries: List[ChangelogEntry] = []
    for item in _as_list(value):
        if not isinstance(item, dict):
            continue
        entries.append(
            ChangelogEntry(
                version=_as_str(item.get("version")) or "",
                date=_as_str(item.get("date")) or "",
                author=_as_str(item.get("author")) or "",
                changes=_as_str_list(item.get("changes")),
                breaking=item.get("breaking") is True,
            )
        )
    return entries


def _as_str(value: LiteralValue) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_list(value: LiteralValue) -> List[LiteralValue]:
    return value if isinstance(value, list) else []


def _as_dict(value: LiteralValue) -> Dict[str, LiteralValue]:
    return value if isinstance(value, dict) else {}


def _as_str_list(value: LiteralValue) -> List[str]:
    return [item for item in _as_list(value) if isinstance(item, str)]


def _as_choice(value: LiteralValue, choices: Tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value in choices:
        return value
    return default


__all__ = [
    "Extracted",
    "ExtractionResult",
    "Fallback",
    "FallbackReason",
    "METADATA_IDENTIFIER",
    "MetadataExtractor",
    "SOURCE_SUFFIXES",
    "extract_metadata",
    "fallback_record",
    "find_declaration",
    "has_declaration",
    "module_key_for",
]
