"""Content fingerprints for detecting drift between code and its stored metadata.

The stored value lives at ``__metadata._meta.contentHash``. It is located
through the syntax tree, so ``contentHash`` literals elsewhere in the file are
ordinary content and take part in the digest.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

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
from .extractor import find_declaration, has_declaration

_HASH_LENGTH = 16

_PARSER = SourceParser()


@dataclass(frozen=True)
class _HashField:
    source: bytes
    # Byte range of the value between the quotes; None when there is no field.
    span: Optional[Tuple[int, int]] = None
    value: Optional[str] = None


def _locate(
    content: str,
    parsed: Optional[ParseOutcome] = None,
    path: Optional[str] = None,
) -> _HashField:
    if not has_declaration(content):
        return _HashField(content.encode("utf-8"))
    outcome = parsed if parsed is not None else _PARSER.parse(content, path)
    root = outcome.root
    if root is None:
        return _HashField(content.encode("utf-8"))
    located = find_declaration(root, outcome.source)
    if located is None:
        return _HashField(outcome.source)
    meta = _property(located[1], "_meta", outcome.source)
    field = _property(meta, "contentHash", outcome.source)
    if field is None or classify(field) is not NodeKind.STRING:
        return _HashField(outcome.source)
    return _HashField(
        outcome.source,
        (field.start_byte + 1, field.end_byte - 1),
        string_value(field, outcome.source),
    )


def _property(node, name: str, source: bytes):  # type: ignore[no-untyped-def]
    """Return the unwrapped value of the last identifier-keyed ``name`` pair."""
    if node is None or classify(node) is not NodeKind.OBJECT:
        return None
    found = None
    for prop in named_children(node):
        if prop.type != "pair":
            continue
        key = prop.child_by_field_name("key")
        value = prop.child_by_field_name("value")
        if key is None or value is None or key.type != "property_identifier":
            continue
        if node_text(key, source) == name:
            found = unwrap_expression(value)
    return found


def fingerprint(
    content: str,
    *,
    parsed: Optional[ParseOutcome] = None,
    path: Optional[str] = None,
) -> str:
    """Return the content hash of ``content`` with its stored hash value blanked.

    Blanking the stored value makes the digest a fixed point: writing the
    returned value back into ``contentHash`` leaves the fingerprint unchanged.
    ``parsed`` reuses an existing parse of the same text.
    """
    located = _locate(content, parsed, path)
    source = located.source
    if located.span is not None:
        start, end = located.span
        source = source[:start] + source[end:]
    return hashlib.sha256(source).hexdigest()[:_HASH_LENGTH]


def extract_stored_hash(
    content: str,
    *,
    parsed: Optional[ParseOutcome] = None,
    path: Optional[str] = None,
) -> Optional[str]:
    """Return the declaration's ``_meta.contentHash`` value, or None when empty or absent."""
    return _locate(content, parsed, path).value or None


def has_changed(
    content: str,
    stored_hash: Optional[str],
    *,
    parsed: Optional[ParseOutcome] = None,
    path: Optional[str] = None,
) -> bool:
    if not stored_hash:
        return True
    return fingerprint(content, parsed=parsed, path=path) != stored_hash


def stamp(content: str, *, path: Optional[str] = None) -> str:
    """Rewrite the declaration's ``contentHash`` value with the current fingerprint.

    Content whose declaration has no ``_meta.contentHash`` string is returned
    unchanged.
    """
    located = _locate(content, path=path)
    if located.span is None:
        return content
    start, end = located.span
    source = located.source
    current = hashlib.sha256(source[:start] + source[end:]).hexdigest()[:_HASH_LENGTH]
    return (source[:start] + current.encode("ascii") + source[end:]).decode("utf-8")


@dataclass
class HashInfo:
    """Stored and recomputed fingerprints for one file."""

    path: Path
    current_hash: str
    stored_hash: Optional[str]

    @property
    def changed(self) -> bool:
        return self.stored_hash != self.current_hash


def get_hash_info(path: Path) -> HashInfo:
    content = path.read_text(encoding="utf-8")
    parsed = _PARSER.parse(content, str(path))
    return HashInfo(
        path=path,
        current_hash=fingerprint(content, parsed=parsed),
        stored_hash=extract_stored_hash(content, parsed=parsed),
    )


def hash_file(path: Path) -> str:
    return fingerprint(path.read_text(encoding="utf-8"), path=str(path))


__all__ = [
    "HashInfo",
    "extract_stored_hash",
    "fingerprint",
    "get_hash_info",
    "has_changed",
    "hash_file",
    "stamp",
]
