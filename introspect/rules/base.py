"""Rule registry: named metadata policies evaluated per file."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import date
from importlib import metadata
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Mapping, Optional

from ..analyzers.tree_sitter import ParseOutcome
from ..extractor import ExtractionResult
from ..logging import get_logger
from ..models import DependencyInfo

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..config import IntrospectConfig

_ENTRY_POINT_GROUP = "introspect.rules"

_LOGGER = get_logger("rules")


@dataclass
class RuleFinding:
    """A single issue reported by a rule; severity is applied by the registry."""

    rule: str
    message: str
    fixable: bool = False


@dataclass
class SeverityFinding:
    """A finding paired with the severity it was reported at."""

    rule: str
    message: str
    fixable: bool
    severity: str


@dataclass
class RuleContext:
    """Everything a rule may inspect for one file.

    ``extraction`` tells rules whether a declaration was read or the fallback
    stub was used; ``dependencies`` is the analyzer's view of actual imports.
    """

    file_path: Path
    relative_path: str
    content: str
    extraction: ExtractionResult
    parsed: Optional[ParseOutcome]
    dependencies: DependencyInfo
    config: "IntrospectConfig"
    today: date = field(default_factory=date.today)

    @property
    def record(self):  # type: ignore[no-untyped-def]
        return self.extraction.record


RuleEvaluator = Callable[[RuleContext], Optional[Iterable[RuleFinding]]]


@dataclass
class LintRule:
    """A named policy and the evaluator implementing it."""

    name: str
    description: str
    default_severity: str
    evaluate: RuleEvaluator
    fixable: bool = False
    docs: Optional[str] = None

    @property
    def category(self) -> str:
        return self.name.split("/", 1)[0] if "/" in self.name else ""


def create_rule(
    name: str,
    description: str,
    evaluate: RuleEvaluator,
    *,
    default_severity: str = "warn",
    fixable: bool = False,
    docs: Optional[str] = None,
) -> LintRule:
    """Build a rule with the usual defaults for custom policies."""
    return LintRule(
        name=name,
        description=description,
        default_severity=default_severity,
        evaluate=evaluate,
        fixable=fixable,
        docs=docs,
    )


class RuleRegistry:
    """Mutable mapping of rule names to rules, seeded with the built-ins."""

    def __init__(self, *, include_builtins: bool = True) -> None:
        self._rules: Dict[str, LintRule] = {}
        if include_builtins:
            self._load_builtins()

    def register(self, rule: LintRule) -> "RuleRegistry":
        if not isinstance(rule, LintRule):
            raise TypeError(f"Expected a LintRule, got {type(rule).__name__}")
        self._rules[rule.name] = rule
        return self

    def unregister(self, name: str) -> None:
        self._rules.pop(name, None)

    def get(self, name: str) -> Optional[LintRule]:
        return self._rules.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def names(self) -> List[str]:
        return list(self._rules)

    def rules(self) -> List[LintRule]:
        return list(self._rules.values())

    def rules_by_category(self, category: str) -> List[LintRule]:
        prefix = f"{category}/"
        return [rule for rule in self._rules.values() if rule.name.startswith(prefix)]

    def reset(self) -> None:
        """Drop custom registrations and restore the built-in rules."""
        self._rules.clear()
        self._load_builtins()

    def resolve_severity(self, rule: LintRule, severities: Mapping[str, str]) -> str:
        return severities.get(rule.name, rule.default_severity)

    def run(self, context: RuleContext, severities: Mapping[str, str] | None = None) -> List[SeverityFinding]:
        """Evaluate every enabled rule against ``context``.

        Rules resolved to ``off`` are skipped without being called. A rule that
        raises is reported as an error finding under its own name.
        """
        if severities is None:
            severities = context.config.rules
        findings: List[SeverityFinding] = []
        for rule in list(self._rules.values()):
            severity = self.resolve_severity(rule, severities)
            if severity == "off":
                continue
            try:
                produced = list(rule.evaluate(context) or ())
            except Exception as exc:
                _LOGGER.debug("Rule %s failed on %s: %s", rule.name, context.relative_path, exc, exc_info=True)
                findings.append(
                    SeverityFinding(
                        rule=rule.name,
                        message=f"Rule failed: {type(exc).__name__}: {exc}",
                        fixable=False,
                        severity="error",
                    )
                )
                continue
            for finding in produced:
                findings.append(
                    SeverityFinding(
                        rule=finding.rule or rule.name,
                        message=finding.message,
                        fixable=finding.fixable,
                        severity=severity,
                    )
                )
        return findings

    def _load_builtins(self) -> None:
        from .builtin import BUILTIN_RULES

        for rule in BUILTIN_RULES:
            self.register(rule)


_SHARED_LOCK = threading.Lock()
_SHARED_REGISTRY: Optional[RuleRegistry] = None


def get_rule_registry() -> RuleRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _SHARED_REGISTRY
    with _SHARED_LOCK:
        if _SHARED_REGISTRY is None:
            _SHARED_REGISTRY = RuleRegistry()
        return _SHARED_REGISTRY


def reset_rule_registry() -> RuleRegistry:
    """Replace the process-wide registry with a fresh built-ins-only instance."""
    global _SHARED_REGISTRY
    with _SHARED_LOCK:
        _SHARED_REGISTRY = RuleRegistry()
        return _SHARED_REGISTRY


def load_plugin_rules(registry: RuleRegistry) -> List[str]:
    """Register rules published under the ``introspect.rules`` entry point group.

    An entry point may resolve to a ``LintRule``, an iterable of rules, or a
    zero-argument factory returning either. Returns the registered names.
    """
    registered: List[str] = []
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load rule entry point '{entry.name}': {exc}") from exc
        for rule in _coerce_rules(entry.name, loaded):
            registry.register(rule)
            registered.append(rule.name)
    return registered


def _coerce_rules(name: str, obj: object) -> List[LintRule]:
    if isinstance(obj, LintRule):
        return [obj]
    if callable(obj) and not isinstance(obj, type):
        return _coerce_rules(name, obj())
    if isinstance(obj, Iterable) and not isinstance(obj, (str, bytes)):
        rules = list(obj)
        if all(isinstance(rule, LintRule) for rule in rules):
            return rules
    raise TypeError(f"Rule entry point '{name}' must provide a LintRule, an iterable of them, or a factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    try:
        entry_points = metadata.entry_points()
    except Exception:  # pragma: no cover - broken distribution metadata
        return []

    if hasattr(entry_points, "select"):
        return entry_points.select(group=_ENTRY_POINT_GROUP)  # type: ignore[return-value]

    return entry_points.get(_ENTRY_POINT_GROUP, [])  # type: ignore[return-value]


__all__ = [
    "LintRule",
    "RuleContext",
    "RuleEvaluator",
    "RuleFinding",
    "RuleRegistry",
    "SeverityFinding",
    "create_rule",
    "get_rule_registry",
    "load_plugin_rules",
    "reset_rule_registry",
]
