from __future__ import annotations

from pathlib import Path

import pytest

from introspect.rules import RuleRegistry, reset_rule_registry
from introspect.stores import reset_registry
from tests._fixtures.project_builder import ProjectBuilder


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture
def rule_registry() -> RuleRegistry:
    """A fresh registry holding only the built-in rules."""
    return RuleRegistry()


@pytest.fixture(autouse=True)
def _isolated_shared_registries() -> None:
    reset_rule_registry()
    reset_registry()
