"""Import and re-export analysis over TypeScript syntax trees."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .tree_sitter import ParseOutcome, SourceParser, named_children, string_value, walk
from ..logging import get_logger
from ..models import DependencyInfo

_STRIPPED_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs", ".tsx", ".ts")

_LOGGER = get_logger("analyzers.dependencies")


class DependencyAnalyzer:
    """Derives internal, external and type-only dependencies from a syntax tree."""

    def __init__(self, parser: SourceParser | None = None) -> None:
        self.parser = parser or SourceParser()

    def analyze(
        self,
        parsed: ParseOutcome,
        file_path: Union[str, Path, None] = None,
        src_dir: Union[str, Path, None] = None,
    ) -> DependencyInfo:
        root = parsed.root
        if root is None:
            return DependencyInfo()

        internal: Set[str] = set()
        external: Set[str] = set()
        types: Set[str] = set()
        from_module = _module_path(file_path, src_dir)

        for node in walk(root):
            specifier, type_only, dynamic = _specifier_of(node, parsed.source)
            if specifier is None:
                continue
            if specifier.startswith("."):
                resolved = resolve_internal(from_module, specifier)
                (types if type_only else internal).add(resolved)
            elif not dynamic:
                package = package_name(specifier)
                if package:
                    external.add(package)

        return DependencyInfo(
            internal=sorted(internal),
            external=sorted(external),
            types=sorted(types),
        )

    def analyze_source(
        self,
        text: str,
        file_path: Union[str, Path, None] = None,
        src_dir: Union[str, Path, None] = None,
    ) -> DependencyInfo:
        path_hint = str(file_path) if file_path is not None else None
        return self.analyze(self.parser.parse(text, path_hint), file_path, src_dir)

    @staticmethod
    def graph(modules: Iterable[Tuple[str, DependencyInfo]]) -> Dict[str, List[str]]:
        """Map each module to the internal modules it uses (runtime and type-only)."""
        result: Dict[str, List[str]] = {}
        for module, info in modules:
            uses: List[str] = []
            for dep in [*info.internal, *info.types]:
                if dep not in uses:
                    uses.append(dep)
            result[module] = uses
        return result


@dataclass
class DependencyGraph:
    """Project-wide view of internal module usage."""

    uses: Dict[str, List[str]] = field(default_factory=dict)
    used_by: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_uses(cls, uses: Dict[str, List[str]]) -> "DependencyGraph":
        used_by: Dict[str, List[str]] = {module: [] for module in uses}
        for module, deps in uses.items():
            for dep in deps:
                users = used_by.get(dep)
                if users is not None and module not in users:
                    users.append(module)
        return cls(uses=dict(uses), used_by=used_by)

    def get_uses(self, module: str) -> List[str]:
        return list(self.uses.get(module, []))

    def get_used_by(self, module: str) -> List[str]:
        return list(self.used_by.get(module, []))

    def unused_modules(self) -> List[str]:
        """Modules nobody imports, excluding index entry points."""
        return [
            module
            for module, users in self.used_by.items()
            if not users and posixpath.basename(module) != "index"
        ]

    def find_cycles(self) -> List[List[str]]:
        cycles: List[List[str]] = []
        seen_keys: Set[Tuple[str, ...]] = set()
        visited: Set[str] = set()

        def _dfs(module: str, path: List[str], on_path: Set[str]) -> None:
            if module in on_path:
                cycle = path[path.index(module) :] + [module]
                key = tuple(sorted(set(cycle)))
                if key not in seen_keys:
                    seen_keys.add(key)
                    cycles.append(cycle)
                return
            if module in visited:
                return
            visited.add(module)
            on_path.add(module)
            path.append(module)
            for dep in self.uses.get(module, []):
                if dep in self.uses:
                    _dfs(dep, path, on_path)
            path.pop()
            on_path.discard(module)

        for module in self.uses:
            if module not in visited:
                _dfs(module, [], set())
        return cycles


def build_dependency_graph(
    src_dir: Union[str, Path],
    files: Sequence[Path] | None = None,
    *,
    include: Sequence[str] = ("**/*.ts", "**/*.tsx"),
    exclude: Sequence[str] = ("**/*.d.ts",),
    analyzer: DependencyAnalyzer | None = None,
) -> DependencyGraph:
    """Analyze the sources under ``src_dir`` and return the internal usage graph."""
    from ..extractor import module_key_for
    from ..scanner import discover_files

    src_path = Path(src_dir)
    if files is None:
        files = discover_files(src_path, include, exclude)
    analyzer = analyzer or DependencyAnalyzer()
    pairs: List[Tuple[str, DependencyInfo]] = []
    for path in files:
        module = module_key_for(path, src_path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            _LOGGER.warning("Failed to analyze %s: %s", path, exc)
            pairs.append((module, DependencyInfo()))
            continue
        pairs.append((module, analyzer.analyze_source(text, path, src_path)))
    return DependencyGraph.from_uses(DependencyAnalyzer.graph(pairs))


def resolve_internal(from_module: Optional[str], specifier: str) -> str:
    """Resolve a relative specifier to a module key, dropping script suffixes."""
    base = posixpath.dirname(from_module) if from_module else ""
    resolved = posixpath.normpath(posixpath.join(base, specifier))
    for suffix in _STRIPPED_SUFFIXES:
        if resolved.endswith(suffix):
            resolved = resolved[: -len(suffix)]
            break
    return resolved


def package_name(specifier: str) -> str:
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2])
    return parts[0]


def _module_path(file_path: Union[str, Path, None], src_dir: Union[str, Path, None]) -> Optional[str]:
    if file_path is None:
        return None
    path = Path(file_path)
    if src_dir is not None:
        try:
            return path.resolve().relative_to(Path(src_dir).resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _specifier_of(node, source: bytes) -> Tuple[Optional[str], bool, bool]:  # type: ignore[no-untyped-def]
    """Return ``(specifier, type_only, dynamic)`` for import-like nodes."""
    node_type = node.type
    if node_type in {"import_statement", "export_statement"}:
        source_node = node.child_by_field_name("source")
        if source_node is None and node_type == "import_statement":
            for child in named_children(node):
                if child.type == "import_require_clause":
                    source_node = child.child_by_field_name("source")
        if source_node is None:
            return None, False, False
        type_only = any(child.type == "type" and not child.is_named for child in node.children)
        return string_value(source_node, source), type_only, False
    if node_type == "call_expression":
        function = node.child_by_field_name("function")
        if function is None or function.type != "import":
            return None, False, False
        arguments = node.child_by_field_name("arguments")
        first = next(named_children(arguments), None) if arguments is not None else None
        if first is None:
            return None, False, False
        return string_value(first, source), False, True
    return None, False, False


__all__ = [
    "DependencyAnalyzer",
    "DependencyGraph",
    "build_dependency_graph",
    "package_name",
    "resolve_internal",
]
