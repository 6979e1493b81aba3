"""Syntax tree adapters and source analyzers."""

from .dependencies import DependencyAnalyzer, DependencyGraph, build_dependency_graph
from .tree_sitter import NodeKind, ParseOutcome, SourceParser

__all__ = [
    "DependencyAnalyzer",
    "DependencyGraph",
    "NodeKind",
    "ParseOutcome",
    "SourceParser",
    "build_dependency_graph",
]
