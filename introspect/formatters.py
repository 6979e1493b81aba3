"""Renderers for lint results and registry reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader

from .stores.registry import RegistrySummary, TrackedFix, TrackedTodo
from .validator import ValidationResult

_TEMPLATES_DIR = Path(__file__).with_name("templates")
_RULE_WIDTH = 50


def _create_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


_ENV = _create_env()


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _pretty(result: ValidationResult) -> str:
    lines: List[str] = []
    for file_result in result.results:
        lines.append(file_result.relative_path)
        for error in file_result.errors:
            lines.append(f"   error  [{error.rule}] {error.message}")
        for warning in file_result.warnings:
            lines.append(f"   warn   [{warning.rule}] {warning.message}")
        lines.append("")

    lines.append("-" * _RULE_WIDTH)
    lines.append(
        f"Summary: {_plural(result.total_errors, 'error')}, {_plural(result.total_warnings, 'warning')}"
    )
    lines.append(f"   Files checked: {result.files_checked}")
    lines.append(f"   Files with issues: {result.files_with_issues}")
    if result.passed:
        lines.append("\nLinting passed")
    else:
        suffix = " (strict mode: warnings count as failures)" if result.strict_mode and not result.total_errors else ""
        lines.append(f"\nLinting failed{suffix}")
    return "\n".join(lines)


def _compact(result: ValidationResult) -> str:
    lines: List[str] = []
    for file_result in result.results:
        for error in file_result.errors:
            lines.append(f"{file_result.relative_path}: error [{error.rule}] {error.message}")
        for warning in file_result.warnings:
            lines.append(f"{file_result.relative_path}: warning [{warning.rule}] {warning.message}")
    status = "passed" if result.passed else "failed"
    lines.append(
        f"{result.files_checked} files, {result.total_errors} errors, {result.total_warnings} warnings: {status}"
    )
    return "\n".join(lines)


def _json(result: ValidationResult) -> str:
    return json.dumps(result.to_dict(), indent=2)


def _markdown(result: ValidationResult) -> str:
    return _ENV.get_template("lint.md.j2").render(result=result).rstrip() + "\n"


_VALIDATION_FORMATTERS: Dict[str, Callable[[ValidationResult], str]] = {
    "pretty": _pretty,
    "compact": _compact,
    "json": _json,
    "markdown": _markdown,
}


def format_validation(result: ValidationResult, fmt: str = "pretty") -> str:
    try:
        formatter = _VALIDATION_FORMATTERS[fmt]
    except KeyError as exc:
        raise ValueError(f"Unknown output format: {fmt}") from exc
    return formatter(result)


def format_summary(
    summary: RegistrySummary,
    fmt: str = "pretty",
    *,
    todos: Sequence[TrackedTodo] = (),
    fixes: Sequence[TrackedFix] = (),
) -> str:
    """Render the registry summary, optionally followed by todo and fix tables."""
    if fmt == "json":
        payload: Dict[str, Any] = {"summary": summary.to_dict()}
        if todos:
            payload["todos"] = [todo.to_dict() for todo in todos]
        if fixes:
            payload["fixes"] = [fix.to_dict() for fix in fixes]
        return json.dumps(payload, indent=2)
    if fmt == "markdown":
        template = _ENV.get_template("report.md.j2")
        return template.render(summary=summary, todos=list(todos), fixes=list(fixes)).rstrip() + "\n"

    lines = [
        f"Modules: {summary.total_modules}",
        f"Open todos: {summary.todo_count}",
        f"Open fixes: {summary.fix_count}",
        f"Updated in the last 7 days: {summary.recently_updated}",
        "Status:",
    ]
    lines.extend(f"   {status}: {count}" for status, count in summary.status_breakdown.items())
    if todos:
        lines.append("")
        lines.append(format_todos(todos, fmt))
    if fixes:
        lines.append("")
        lines.append(format_fixes(fixes, fmt))
    return "\n".join(lines)


def format_todos(todos: Sequence[TrackedTodo], fmt: str = "pretty") -> str:
    if fmt == "json":
        return json.dumps([todo.to_dict() for todo in todos], indent=2)
    if not todos:
        return "No todos"
    lines = ["Todos:"]
    for todo in todos:
        lines.append(f"   [{todo.priority}] {todo.id} ({todo.module}): {todo.description} <{todo.status}>")
    return "\n".join(lines)


def format_fixes(fixes: Sequence[TrackedFix], fmt: str = "pretty") -> str:
    if fmt == "json":
        return json.dumps([fix.to_dict() for fix in fixes], indent=2)
    if not fixes:
        return "No open fixes"
    lines = ["Fixes:"]
    for fix in fixes:
        lines.append(f"   [{fix.severity}] {fix.id} ({fix.module}): {fix.description} <{fix.status}>")
    return "\n".join(lines)


__all__ = ["format_fixes", "format_summary", "format_todos", "format_validation"]
