"""Metadata stub generation for files that do not declare ``__metadata`` yet."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union

from jinja2 import Environment, FileSystemLoader

from .analyzers.dependencies import DependencyAnalyzer
from .analyzers.tree_sitter import ParseOutcome, SourceParser, named_children, node_text
from .extractor import METADATA_IDENTIFIER, has_declaration, module_key_for
from .hasher import stamp
from .logging import get_logger

_TEMPLATES_DIR = Path(__file__).with_name("templates")
_STUB_TEMPLATE = "stub.ts.j2"
_DEFAULT_AUTHOR = "TODO"

_NAMED_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "function_signature",
    "class_declaration",
    "abstract_class_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
}
_BINDING_DECLARATIONS = {"lexical_declaration", "variable_declaration"}

_LOGGER = get_logger("generator")


def ts_string(value: str) -> str:
    """Quote ``value`` as a single-quoted TypeScript string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"


def ts_list(values: Iterable[str]) -> str:
    return ", ".join(ts_string(value) for value in values)


def _create_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["ts_string"] = ts_string
    env.filters["ts_list"] = ts_list
    return env


_ENV = _create_env()


def analyze_exports(parsed: ParseOutcome) -> List[str]:
    """Return the names a module exports at top level, in source order.

    ``export default`` contributes ``default``; ``export * from`` contributes
    nothing because the names are not visible syntactically.
    """
    root = parsed.root
    if root is None:
        return []
    names: List[str] = []
    for statement in named_children(root):
        if statement.type != "export_statement":
            continue
        for name in _exported_names(statement, parsed.source):
            if name != METADATA_IDENTIFIER and name not in names:
                names.append(name)
    return names


def _exported_names(statement, source: bytes) -> List[str]:  # type: ignore[no-untyped-def]
    if any(child.type == "default" for child in statement.children):
        return ["default"]
    declaration = statement.child_by_field_name("declaration")
    if declaration is not None:
        if declaration.type in _NAMED_DECLARATIONS:
            name = declaration.child_by_field_name("name")
            return [node_text(name, source)] if name is not None else []
        if declaration.type in _BINDING_DECLARATIONS:
            names = []
            for declarator in named_children(declaration):
                name = declarator.child_by_field_name("name")
                if declarator.type == "variable_declarator" and name is not None and name.type == "identifier":
                    names.append(node_text(name, source))
            return names
        return []
    names = []
    for clause in named_children(statement):
        if clause.type == "namespace_export":
            names.extend(node_text(child, source) for child in named_children(clause))
            continue
        if clause.type != "export_clause":
            continue
        for specifier in named_children(clause):
            if specifier.type != "export_specifier":
                continue
            exported = specifier.child_by_field_name("alias")
            if exported is None:
                exported = specifier.child_by_field_name("name")
            if exported is not None:
                names.append(node_text(exported, source))
    return names


def insert_metadata(parsed: ParseOutcome, stub: str) -> str:
    """Place ``stub`` after the last top-level import, or at the top of the file."""
    root = parsed.root
    offset = 0
    if root is not None:
        for statement in named_children(root):
            if statement.type == "import_statement":
                offset = statement.end_byte
    head = parsed.source[:offset].decode("utf-8").rstrip("\n")
    tail = parsed.source[offset:].decode("utf-8").lstrip("\n")
    block = stub.rstrip("\n") + "\n"
    if head:
        block = f"{head}\n\n{block}"
    return f"{block}\n{tail}" if tail else block


@dataclass
class GeneratedStub:
    """A file that received a generated declaration."""

    path: Path
    module: str
    content: str


class StubGenerator:
    """Writes path-derived ``__metadata`` declarations into undeclared files."""

    def __init__(
        self,
        src_dir: Union[str, Path],
        *,
        parser: SourceParser | None = None,
        author: str = _DEFAULT_AUTHOR,
        today: date | None = None,
    ) -> None:
        self.src_dir = Path(src_dir)
        self.parser = parser or SourceParser()
        self.dependency_analyzer = DependencyAnalyzer(self.parser)
        self.author = author
        self.today = today

    def render(self, content: str, file_path: Union[str, Path]) -> str:
        """Return ``content`` with a stamped declaration inserted."""
        path_hint = os.fspath(file_path)
        parsed = self.parser.parse(content, path_hint)
        dependencies = self.dependency_analyzer.analyze(parsed, file_path, self.src_dir)
        stub = _ENV.get_template(_STUB_TEMPLATE).render(
            module=module_key_for(file_path, self.src_dir),
            filename=os.path.basename(path_hint),
            exports=analyze_exports(parsed),
            dependencies=dependencies,
            author=self.author,
            today=(self.today or date.today()).isoformat(),
        )
        return stamp(insert_metadata(parsed, stub), path=path_hint)

    def generate_file(self, path: Union[str, Path], *, write: bool = True) -> Optional[GeneratedStub]:
        """Generate a declaration for ``path``; None when it already has one."""
        path = Path(path)
        content = path.read_text(encoding="utf-8")
        if has_declaration(content):
            _LOGGER.debug("Skipping %s: already declares __metadata", path)
            return None
        updated = self.render(content, path)
        if write:
            path.write_text(updated, encoding="utf-8")
        _LOGGER.debug("Generated metadata stub for %s", path)
        return GeneratedStub(path=path, module=module_key_for(path, self.src_dir), content=updated)


__all__ = [
    "GeneratedStub",
    "StubGenerator",
    "analyze_exports",
    "insert_metadata",
    "ts_list",
    "ts_string",
]
