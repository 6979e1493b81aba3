"""Tests for the in-memory metadata registry."""

from __future__ import annotations

import threading
import time
from pathlib import Path

from introspect.extractor import MetadataExtractor
from introspect.models import FileMetadata, IndexMetadata
from introspect.stores import IntrospectionRegistry, get_registry, reset_registry
from tests._fixtures.project_builder import TODAY, ProjectBuilder, full_metadata


def _load(project: ProjectBuilder, **kwargs: object) -> IntrospectionRegistry:
    registry = IntrospectionRegistry()
    registry.load_all(project.src, today=TODAY, **kwargs)  # type: ignore[arg-type]
    return registry


def test_declared_and_undeclared_files_are_both_registered(project: ProjectBuilder) -> None:
    project.write(
        {
            "a.ts": """
                export const __metadata = {
                  module: 'a',
                  filename: 'a.ts',
                  description: 'Module A',
                  status: 'stable',
                  updatedAt: '2025-01-15',
                  todos: [{ id: 'T1', description: 'Tighten types', priority: 'high', status: 'pending', createdAt: '2025-01-01' }],
                };
            """,
            "b.ts": "export const b = 2;\n",
        }
    )

    registry = _load(project)

    assert registry.is_loaded
    assert registry.size == 2
    assert len(registry) == 2
    assert isinstance(registry.get("a"), FileMetadata)
    assert registry.get("b") == IndexMetadata(module="b", filename="b.ts", description="No description")
    todos = registry.all_todos()
    assert [(todo.id, todo.module, todo.priority) for todo in todos] == [("T1", "a", "high")]
    summary = registry.summary(today=TODAY)
    assert summary.total_modules == 2
    assert summary.todo_count == 1
    assert summary.status_breakdown["stable"] == 1
    assert summary.recently_updated == 1


def test_unreadable_file_is_recorded_and_rest_loaded(project: ProjectBuilder) -> None:
    project.write({"a.ts": full_metadata("a"), "c.ts": full_metadata("c")})
    broken = project.write_bytes("b.ts", b"\xff\xfe\xfd")

    registry = _load(project)

    assert registry.is_loaded
    assert sorted(record.module for record in registry.modules()) == ["a", "c"]
    assert [error.file for error in registry.errors] == [str(broken)]
    assert registry.errors[0].to_dict()["file"] == str(broken)

    registry.clear_errors()
    assert registry.errors == []


def test_missing_directory_records_single_error(tmp_path: Path) -> None:
    registry = IntrospectionRegistry()
    registry.load_all(tmp_path / "missing")

    assert registry.is_loaded is False
    assert registry.size == 0
    assert len(registry.errors) == 1
    assert "does not exist" in registry.errors[0].error


def test_reload_replaces_previous_snapshot(project: ProjectBuilder) -> None:
    project.write({"a.ts": full_metadata("a"), "b.ts": full_metadata("b")})
    registry = _load(project)
    assert registry.size == 2

    project.path("b.ts").unlink()
    registry.load_all(project.src, today=TODAY)

    assert [record.module for record in registry.modules()] == ["a"]


def test_todos_ordered_by_priority_and_fixes_by_severity(project: ProjectBuilder) -> None:
    project.write(
        {
            "a.ts": full_metadata(
                "a",
                extra="""
                todos: [
                  { id: 'T-low', priority: 'low' },
                  { id: 'T-crit', priority: 'critical' },
                ],
                fixes: [
                  { id: 'F-trivial', severity: 'trivial' },
                  { id: 'F-done', severity: 'critical', status: 'fixed' },
                ],
                """,
            ),
            "b.ts": full_metadata(
                "b",
                extra="""
                todos: [{ id: 'T-med' }, { id: 'T-high', priority: 'high' }],
                fixes: [{ id: 'F-major', severity: 'major', status: 'investigating' }],
                """,
            ),
        }
    )

    registry = _load(project)

    assert [todo.id for todo in registry.all_todos()] == ["T-crit", "T-high", "T-med", "T-low"]
    assert [fix.id for fix in registry.all_fixes()] == ["F-major", "F-trivial"]
    assert registry.all_fixes()[0].to_dict()["module"] == "b"


def test_queries_by_status_tag_search_and_recency(project: ProjectBuilder) -> None:
    project.write(
        {
            "auth/login.ts": full_metadata("auth/login", status="beta", extra="tags: ['security'],"),
            "auth/session.ts": full_metadata("auth/session", updated_at="2024-12-01"),
            "ui/button.ts": full_metadata("ui/button", status="deprecated", updated_at="2025-01-19"),
            "ui/plain.ts": "export const plain = true;\n",
        }
    )

    registry = _load(project)

    assert [r.module for r in registry.by_status("beta")] == ["auth/login"]
    assert [r.module for r in registry.by_tag("security")] == ["auth/login"]
    assert sorted(r.module for r in registry.search("AUTH")) == ["auth/login", "auth/session"]
    assert [r.module for r in registry.search("module ui")] == ["ui/button"]
    assert [r.module for r in registry.recently_updated(today=TODAY)] == ["ui/button", "auth/login"]
    assert len(registry.full_modules()) == 3

    summary = registry.summary(today=TODAY)
    assert summary.total_modules == 4
    assert summary.status_breakdown == {"stable": 1, "beta": 1, "experimental": 0, "deprecated": 1}
    assert summary.to_dict()["recentlyUpdated"] == 2


class _SlowExtractor(MetadataExtractor):
    def extract(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        time.sleep(0.005)
        return super().extract(*args, **kwargs)


def test_readers_never_see_a_partial_reload(project: ProjectBuilder) -> None:
    project.write({"a.ts": full_metadata("a"), "b.ts": full_metadata("b"), "c.ts": full_metadata("c")})
    registry = IntrospectionRegistry(_SlowExtractor())
    registry.load_all(project.src, today=TODAY)
    done = threading.Event()

    def reload() -> None:
        for _ in range(5):
            registry.load_all(project.src, today=TODAY)
        done.set()

    worker = threading.Thread(target=reload)
    worker.start()
    seen = set()
    while True:
        seen.add(registry.summary(today=TODAY).total_modules)
        seen.add(len(registry.modules()))
        if done.is_set():
            break
    worker.join()

    assert seen == {3}
    assert registry.is_loaded


def test_include_and_exclude_patterns_are_honoured(project: ProjectBuilder) -> None:
    project.write({"a.ts": full_metadata("a"), "view.tsx": full_metadata("view"), "gen/x.ts": "export {};\n"})

    registry = _load(project, include=["**/*.ts"], exclude=["**/gen/**"])

    assert [r.module for r in registry.modules()] == ["a"]


def test_register_and_clear(project: ProjectBuilder) -> None:
    registry = IntrospectionRegistry()
    registry.register(IndexMetadata(module="x", filename="x.ts"))
    assert registry.get("x") is not None

    registry.clear()
    assert registry.size == 0
    assert registry.is_loaded is False


def test_shared_registry_handle() -> None:
    shared = get_registry()
    shared.register(IndexMetadata(module="x", filename="x.ts"))

    assert get_registry() is shared
    assert reset_registry().size == 0
    assert get_registry() is not shared


def test_fixes_sorted_by_severity_with_fixed_excluded(project: ProjectBuilder) -> None:
    project.write(
        {
            "a.ts": full_metadata(
                "a",
                extra="""
                fixes: [
                  { id: 'minor', severity: 'minor' },
                  { id: 'critical', severity: 'critical' },
                  { id: 'major', severity: 'major' },
                  { id: 'trivial', severity: 'trivial', status: 'fixed' },
                ],
                todos: [
                  { id: 'low', priority: 'low' },
                  { id: 'critical', priority: 'critical' },
                  { id: 'medium', priority: 'medium' },
                  { id: 'high', priority: 'high' },
                ],
                """,
            )
        }
    )

    registry = _load(project)

    assert [fix.id for fix in registry.all_fixes()] == ["critical", "major", "minor"]
    assert [fix.severity for fix in registry.all_fixes()] == ["critical", "major", "minor"]
    assert [todo.id for todo in registry.all_todos()] == ["critical", "high", "medium", "low"]
    assert registry.summary(today=TODAY).fix_count == 3
