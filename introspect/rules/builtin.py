"""Built-in metadata rules."""

from __future__ import annotations

import re
from datetime import date
from typing import Iterator, List, Optional, Set

from ..analyzers.tree_sitter import node_text, walk
from ..extractor import Extracted, Fallback, FallbackReason
from ..hasher import fingerprint, has_changed
from ..models import FileMetadata, IndexMetadata
from .base import LintRule, RuleContext, RuleFinding

_TODO_COMMENT = re.compile(r"\b(TODO|FIXME|HACK|XXX)\b(?:\s*\(([^)]*)\))?\s*:", re.IGNORECASE)

# Fields an index record can carry; other required fields do not apply to it.
_INDEX_FIELDS = {"module", "filename", "description", "reexports"}


def _full_record(context: RuleContext) -> Optional[FileMetadata]:
    extraction = context.extraction
    if isinstance(extraction, Extracted) and isinstance(extraction.record, FileMetadata):
        return extraction.record
    return None


def check_required(context: RuleContext) -> Iterator[RuleFinding]:
    extraction = context.extraction
    if isinstance(extraction, Fallback) and extraction.reason is FallbackReason.NO_DECLARATION:
        yield RuleFinding("metadata/required", "Missing __metadata export", fixable=True)


def check_stale_hash(context: RuleContext) -> Iterator[RuleFinding]:
    record = _full_record(context)
    if record is None or not record.meta.content_hash:
        return
    stored = record.meta.content_hash
    if has_changed(context.content, stored, parsed=context.parsed):
        current = fingerprint(context.content, parsed=context.parsed)
        yield RuleFinding(
            "metadata/stale-hash",
            f"Content changed (hash: {current}) but metadata not updated (stored: {stored}). "
            "Update contentHash and updatedAt.",
            fixable=True,
        )


def check_required_fields(context: RuleContext) -> Iterator[RuleFinding]:
    extraction = context.extraction
    if not isinstance(extraction, Extracted):
        return
    required = list(context.config.required_fields)
    if isinstance(extraction.record, IndexMetadata):
        required = [name for name in required if name in _INDEX_FIELDS]
    missing = [name for name in required if name not in extraction.fields]
    if missing:
        yield RuleFinding(
            "metadata/required-fields",
            f"Missing required metadata fields: {', '.join(missing)}",
        )


def check_deps_mismatch(context: RuleContext) -> Iterator[RuleFinding]:
    record = _full_record(context)
    if record is None or "dependencies" not in context.extraction.fields:  # type: ignore[union-attr]
        return
    declared = set(record.dependencies.internal)
    missing = [dep for dep in context.dependencies.internal if dep not in declared]
    if missing:
        yield RuleFinding(
            "metadata/deps-mismatch",
            f"Undeclared internal dependencies: {', '.join(missing)}",
        )


def check_untracked_todos(context: RuleContext) -> Iterator[RuleFinding]:
    parsed = context.parsed
    root = parsed.root if parsed is not None else None
    if root is None:
        return

    span = context.extraction.span if isinstance(context.extraction, Extracted) else None
    known_ids = _tracked_ids(context)
    untracked_lines: List[int] = []
    for node in walk(root):
        if node.type != "comment":
            continue
        if span is not None and span[0] <= node.start_byte < span[1]:
            continue
        text = node_text(node, parsed.source)  # type: ignore[union-attr]
        match = _TODO_COMMENT.search(text)
        if match is None or _is_tracked(match, text, known_ids):
            continue
        untracked_lines.append(node.start_point[0] + 1)

    if untracked_lines:
        label = "line" if len(untracked_lines) == 1 else "lines"
        lines = ", ".join(str(line) for line in untracked_lines)
        yield RuleFinding(
            "metadata/untracked-todos",
            f"Found {len(untracked_lines)} inline TODO/FIXME comments not tracked in "
            f"metadata.todos ({label} {lines})",
        )


def _tracked_ids(context: RuleContext) -> Set[str]:
    record = _full_record(context)
    if record is None:
        return set()
    return {todo.id for todo in record.todos} | {fix.id for fix in record.fixes}


def _is_tracked(match: "re.Match[str]", text: str, known_ids: Set[str]) -> bool:
    """A `TODO(id):` comment names its id; bare markers may mention one anywhere."""
    if match.group(2) is not None:
        return match.group(2).strip() in known_ids
    return any(re.search(rf"(?<![\w-]){re.escape(todo_id)}(?![\w-])", text) for todo_id in known_ids)


def check_stale_update(context: RuleContext) -> Iterator[RuleFinding]:
    record = _full_record(context)
    if record is None:
        return
    updated = _parse_date(record.updated_at)
    if updated is None:
        return
    age = (context.today - updated).days
    if age > context.config.stale_days:
        yield RuleFinding(
            "metadata/stale-update",
            f"Last updated {age} days ago. Consider reviewing.",
        )


def check_empty_changelog(context: RuleContext) -> Iterator[RuleFinding]:
    record = _full_record(context)
    if record is not None and not record.changelog:
        yield RuleFinding("metadata/empty-changelog", "Changelog is empty")


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


BUILTIN_RULES = (
    LintRule(
        name="metadata/required",
        description="Require an __metadata export in every checked file",
        default_severity="error",
        evaluate=check_required,
        fixable=True,
    ),
    LintRule(
        name="metadata/stale-hash",
        description="Detect a stored contentHash that no longer matches the file",
        default_severity="error",
        evaluate=check_stale_hash,
        fixable=True,
    ),
    LintRule(
        name="metadata/required-fields",
        description="Require the configured metadata fields",
        default_severity="error",
        evaluate=check_required_fields,
    ),
    LintRule(
        name="metadata/deps-mismatch",
        description="Detect internal imports missing from declared dependencies",
        default_severity="warn",
        evaluate=check_deps_mismatch,
    ),
    LintRule(
        name="metadata/untracked-todos",
        description="Detect TODO/FIXME comments without a tracked todo or fix id",
        default_severity="warn",
        evaluate=check_untracked_todos,
    ),
    LintRule(
        name="metadata/stale-update",
        description="Detect an updatedAt date older than staleDays",
        default_severity="warn",
        evaluate=check_stale_update,
    ),
    LintRule(
        name="metadata/empty-changelog",
        description="Require at least one changelog entry",
        default_severity="off",
        evaluate=check_empty_changelog,
    ),
)

BUILTIN_RULE_NAMES = tuple(rule.name for rule in BUILTIN_RULES)


__all__ = ["BUILTIN_RULES", "BUILTIN_RULE_NAMES"]
