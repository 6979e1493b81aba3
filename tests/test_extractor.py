"""Tests for reading __metadata declarations out of TypeScript sources."""

from __future__ import annotations

from datetime import date

from introspect.extractor import (
    Extracted,
    Fallback,
    FallbackReason,
    MetadataExtractor,
    extract_metadata,
    has_declaration,
    module_key_for,
)
from introspect.models import FileMetadata, IndexMetadata

_TODAY = date(2025, 1, 20)
_SRC = "src"
_FILE = "src/utils/strings.ts"


def _extract(text: str, path: str = _FILE):  # type: ignore[no-untyped-def]
    return MetadataExtractor().extract_result(text, path, _SRC, today=_TODAY)


def test_module_key_strips_source_root_and_suffix() -> None:
    assert module_key_for("src/utils/strings.ts", "src") == "utils/strings"
    assert module_key_for("src/ui/Button.tsx", "src") == "ui/Button"
    assert module_key_for("src/index.ts", "src") == "index"


def test_has_declaration_requires_exported_binding() -> None:
    assert has_declaration("export const __metadata = {};")
    assert has_declaration("export   const\n__metadata = {};")
    assert not has_declaration("const __metadata = {};")
    assert not has_declaration("export const __metadataExtra = {};")


def test_file_without_declaration_falls_back_to_path_stub() -> None:
    result = _extract("export function slugify(value: string) { return value; }\n")

    assert isinstance(result, Fallback)
    assert result.reason is FallbackReason.NO_DECLARATION
    assert result.record == IndexMetadata(
        module="utils/strings",
        filename="strings.ts",
        description="No description",
        reexports=[],
    )


def test_full_declaration_is_extracted() -> None:
    source = """
export const __metadata = {
  module: 'utils/strings',
  filename: 'strings.ts',
  description: 'String helpers',
  responsibilities: ['Slugify titles', `Trim input`],
  exports: ['slugify'],
  dependencies: { internal: ['core/types'], external: ['lodash'], types: [] },
  status: 'beta',
  createdAt: '2024-12-01',
  updatedAt: '2025-01-10',
  changelog: [
    { version: '1.0.0', date: '2025-01-10', author: 'dev', changes: ['Initial'], breaking: true },
  ],
  todos: [{ id: 'T1', description: 'Handle unicode', priority: 'high', status: 'in-progress', createdAt: '2025-01-02' }],
  fixes: [{ id: 'F1', description: 'Drops hyphens', severity: 'major', status: 'investigating', createdAt: '2025-01-03' }],
  _meta: { contentHash: 'abc123', lastValidated: '2025-01-10', generatedDeps: ['core/types'] },
  tags: ['text'],
} as const;

export function slugify(value: string): string {
  return value.toLowerCase();
}
"""
    result = _extract(source)

    assert isinstance(result, Extracted)
    record = result.record
    assert isinstance(record, FileMetadata)
    assert record.module == "utils/strings"
    assert record.description == "String helpers"
    assert record.responsibilities == ["Slugify titles", "Trim input"]
    assert record.dependencies.internal == ["core/types"]
    assert record.dependencies.external == ["lodash"]
    assert record.status == "beta"
    assert record.created_at == "2024-12-01"
    assert record.changelog[0].breaking is True
    assert record.todos[0].priority == "high"
    assert record.todos[0].status == "in-progress"
    assert record.fixes[0].severity == "major"
    assert record.meta.content_hash == "abc123"
    assert record.tags == ["text"]
    assert "updatedAt" in result.fields
    assert "notes" not in result.fields
    start, end = result.span
    assert source.encode("utf-8")[start:end].startswith(b"export const __metadata")


def test_reexports_property_selects_index_variant() -> None:
    source = """
export const __metadata = {
  module: 'utils/index',
  filename: 'index.ts',
  description: 'Barrel',
  reexports: ['./strings', './numbers'],
};
export * from './strings';
"""
    result = _extract(source, "src/utils/index.ts")

    assert isinstance(result, Extracted)
    assert result.record == IndexMetadata(
        module="utils/index",
        filename="index.ts",
        description="Barrel",
        reexports=["./strings", "./numbers"],
    )


def test_missing_and_invalid_values_take_defaults() -> None:
    source = """
export const __metadata = {
  description: `built ${Date.now()}`,
  status: 'retired',
  todos: [
    { id: 'T1', priority: 'urgent', status: 'someday' },
    { description: 'no id, dropped' },
    'not an object',
  ],
  fixes: [{ id: 'F1', severity: 'catastrophic' }],
  exports: ['ok', 42, helper],
};
"""
    record = _extract(source).record

    assert isinstance(record, FileMetadata)
    assert record.module == "utils/strings"
    assert record.filename == "strings.ts"
    assert record.description == "No description"
    assert record.status == "stable"
    assert record.created_at == "2025-01-20"
    assert record.updated_at == "2025-01-20"
    assert [todo.id for todo in record.todos] == ["T1"]
    assert record.todos[0].priority == "medium"
    assert record.todos[0].status == "pending"
    assert record.todos[0].created_at == "2025-01-20"
    assert record.fixes[0].severity == "minor"
    assert record.fixes[0].status == "open"
    assert record.exports == ["ok"]


def test_satisfies_wrapper_is_unwrapped() -> None:
    source = "export const __metadata = { module: 'x', description: 'd' } satisfies Meta;\n"
    record = _extract(source).record
    assert isinstance(record, FileMetadata)
    assert record.module == "x"


def test_computed_keys_and_spreads_are_ignored() -> None:
    source = """
const base = { tags: ['a'] };
export const __metadata = {
  ...base,
  ['module']: 'computed',
  'description': 'quoted key',
  filename: 'strings.ts',
};
"""
    record = _extract(source).record
    assert isinstance(record, FileMetadata)
    assert record.module == "utils/strings"
    assert record.description == "No description"
    assert record.tags == []


def test_non_object_binding_falls_back() -> None:
    call = _extract("export const __metadata = getMetadata();\n")
    literal = _extract('export const __metadata = "nope";\n')

    for result in (call, literal):
        assert isinstance(result, Fallback)
        assert result.reason is FallbackReason.NOT_OBJECT_LITERAL
        assert result.record.module == "utils/strings"


def test_declaration_text_inside_comment_is_not_a_declaration() -> None:
    source = "// export const __metadata = { module: 'x' };\nexport const value = 1;\n"
    result = _extract(source)

    assert isinstance(result, Fallback)
    assert result.reason is FallbackReason.DECLARATION_NOT_FOUND


def test_nested_declaration_is_not_top_level() -> None:
    source = "namespace Inner {\n  export const __metadata = { module: 'inner' };\n}\n"
    result = _extract(source)
    assert isinstance(result, Fallback)


def test_extract_metadata_never_raises_on_garbage() -> None:
    record = extract_metadata("export const __metadata = {{{ ]]] ;;", _FILE, _SRC, today=_TODAY)
    assert record.module == "utils/strings"


def test_repeated_extraction_is_identical() -> None:
    source = "export const __metadata = { module: 'x', todos: [{ id: 'T1' }] } as const;\n"
    assert _extract(source) == _extract(source)
