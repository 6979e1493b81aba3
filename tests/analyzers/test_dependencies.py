"""Tests for import analysis and the module dependency graph."""

from __future__ import annotations

from introspect.analyzers.dependencies import (
    DependencyAnalyzer,
    DependencyGraph,
    build_dependency_graph,
    package_name,
    resolve_internal,
)
from tests._fixtures.project_builder import ProjectBuilder


def _analyze(source: str, path: str = "src/features/cart/service.ts"):  # type: ignore[no-untyped-def]
    return DependencyAnalyzer().analyze_source(source, path, "src")


def test_classifies_internal_external_and_type_imports() -> None:
    info = _analyze(
        """
import { formatPrice } from '../../utils/format';
import { CartItem } from './model.js';
import type { User } from '../../core/user';
import React from 'react';
import { Injectable } from '@nestjs/common/decorators';
import debounce from 'lodash/debounce';
import './polyfills';
export { helper } from './helpers';
export type { Money } from '../../core/money';
"""
    )

    assert info.internal == [
        "features/cart/helpers",
        "features/cart/model",
        "features/cart/polyfills",
        "utils/format",
    ]
    assert info.external == ["@nestjs/common", "lodash", "react"]
    assert info.types == ["core/money", "core/user"]


def test_dynamic_imports_count_only_when_relative() -> None:
    info = _analyze(
        """
export async function load() {
  const { Chart } = await import('./chart');
  const lib = await import('chart.js');
  return [Chart, lib];
}
"""
    )

    assert info.internal == ["features/cart/chart"]
    assert info.external == []


def test_import_require_clause_is_recognized() -> None:
    info = _analyze("import legacy = require('./legacy');\nimport fs = require('fs');\n")
    assert info.internal == ["features/cart/legacy"]
    assert info.external == ["fs"]


def test_duplicate_imports_are_reported_once() -> None:
    info = _analyze(
        "import { a } from './shared';\nimport { b } from './shared';\nimport x from 'react';\nimport y from 'react';\n"
    )
    assert info.internal == ["features/cart/shared"]
    assert info.external == ["react"]


def test_local_export_without_source_is_ignored() -> None:
    info = _analyze("const a = 1;\nexport { a };\nexport default a;\n")
    assert info.internal == []
    assert info.external == []
    assert info.types == []


def test_resolve_internal_and_package_name() -> None:
    assert resolve_internal("features/cart/service.ts", "../shared/./util.ts") == "features/shared/util"
    assert resolve_internal(None, "./x.mjs") == "x"
    assert package_name("@scope/pkg/deep/path") == "@scope/pkg"
    assert package_name("pkg/sub") == "pkg"


def test_graph_merges_runtime_and_type_dependencies() -> None:
    analyzer = DependencyAnalyzer()
    info = analyzer.analyze_source("import { a } from './a';\nimport type { B } from './b';\nimport type { A } from './a';\n", "src/m.ts", "src")

    assert DependencyAnalyzer.graph([("m", info)]) == {"m": ["a", "b"]}


def test_dependency_graph_queries() -> None:
    graph = DependencyGraph.from_uses(
        {
            "a": ["b"],
            "b": ["a"],
            "c": ["a", "missing"],
            "d": [],
            "index": ["c"],
        }
    )

    assert graph.get_uses("c") == ["a", "missing"]
    assert sorted(graph.get_used_by("a")) == ["b", "c"]
    assert graph.get_used_by("unknown") == []
    assert graph.unused_modules() == ["d"]
    assert graph.find_cycles() == [["a", "b", "a"]]


def test_build_dependency_graph_from_project(project: ProjectBuilder) -> None:
    project.write(
        {
            "app.ts": "import { run } from './core/run';\nimport type { Opts } from './core/types';\n",
            "core/run.ts": "import { helper } from '../util/helper';\nexport const run = helper;\n",
            "core/types.ts": "export interface Opts { name: string }\n",
            "util/helper.ts": "import { run } from '../core/run';\nexport const helper = () => run;\n",
            "types.d.ts": "declare const x: number;\n",
        }
    )

    graph = build_dependency_graph(project.src)

    assert sorted(graph.uses) == ["app", "core/run", "core/types", "util/helper"]
    assert graph.get_uses("app") == ["core/run", "core/types"]
    assert graph.get_used_by("core/run") == ["app", "util/helper"]
    assert graph.unused_modules() == ["app"]
    assert len(graph.find_cycles()) == 1
    assert set(graph.find_cycles()[0]) == {"core/run", "util/helper"}
