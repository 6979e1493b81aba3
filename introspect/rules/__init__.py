"""Lint rules and the registry that runs them."""

from .base import (
    LintRule,
    RuleContext,
    RuleFinding,
    RuleRegistry,
    SeverityFinding,
    create_rule,
    get_rule_registry,
    load_plugin_rules,
    reset_rule_registry,
)
from .builtin import BUILTIN_RULE_NAMES, BUILTIN_RULES

__all__ = [
    "BUILTIN_RULES",
    "BUILTIN_RULE_NAMES",
    "LintRule",
    "RuleContext",
    "RuleFinding",
    "RuleRegistry",
    "SeverityFinding",
    "create_rule",
    "get_rule_registry",
    "load_plugin_rules",
    "reset_rule_registry",
]
