"""Helper utilities for constructing temporary TypeScript projects in tests."""

from __future__ import annotations

import textwrap
from datetime import date
from pathlib import Path
from typing import Any, Mapping

from introspect.config import IntrospectConfig


class ProjectBuilder:
    """Utility for writing sources into a throwaway project and configuring runs."""

    def __init__(self, tmp_path: Path) -> None:
        self.root = tmp_path / "project"
        self.src = self.root / "src"
        self.src.mkdir(parents=True)

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries under the source directory."""
        for relative, content in files.items():
            path = self.src / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def write_bytes(self, relative: str, payload: bytes) -> Path:
        path = self.src / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        return path

    def path(self, relative: str) -> Path:
        return self.src / relative

    def config(self, **overrides: Any) -> IntrospectConfig:
        """Return a config rooted at the project with ``src`` as source directory."""
        return IntrospectConfig(root=self.root, **overrides)


TODAY = date(2025, 1, 20)


def full_metadata(
    module: str,
    *,
    updated_at: str = "2025-01-15",
    status: str = "stable",
    extra: str = "",
) -> str:
    """Return an ``__metadata`` declaration carrying every default required field.

    ``extra`` is inserted verbatim as additional properties.
    """
    filename = module.rsplit("/", 1)[-1] + ".ts"
    lines = [
        "export const __metadata = {",
        f"  module: '{module}',",
        f"  filename: '{filename}',",
        f"  description: 'Module {module}',",
        f"  status: '{status}',",
        f"  updatedAt: '{updated_at}',",
    ]
    if extra:
        lines.append(textwrap.dedent(extra).strip("\n"))
    lines.append("} as const;")
    return "\n".join(lines) + "\n"


__all__ = ["ProjectBuilder", "TODAY", "full_metadata"]
