"""Lint orchestration: resolve targets, extract, analyze and run rules per file."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .analyzers.dependencies import DependencyAnalyzer
from .analyzers.tree_sitter import SourceParser
from .config import IntrospectConfig
from .extractor import MetadataExtractor
from .logging import get_logger
from .models import DependencyInfo
from .rules import RuleContext, RuleRegistry, get_rule_registry
from .scanner import SourceDirectoryError, discover_files, expand_targets

READ_ERROR_RULE = "system/read-error"
ANALYSIS_ERROR_RULE = "system/analysis-error"


@dataclass
class LintError:
    rule: str
    message: str
    fixable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule, "message": self.message, "fixable": self.fixable}


@dataclass
class LintWarning:
    rule: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"rule": self.rule, "message": self.message}


@dataclass
class FileResult:
    """Findings for one checked file."""

    file: str
    relative_path: str
    errors: List[LintError] = field(default_factory=list)
    warnings: List[LintWarning] = field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.errors or self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "relativePath": self.relative_path,
            "errors": [error.to_dict() for error in self.errors],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


@dataclass
class ValidationResult:
    """Aggregate outcome of a lint run.

    ``passed`` requires zero errors; with ``strict_mode`` it also requires
    zero warnings. Warnings are never relabelled as errors in the report.
    """

    results: List[FileResult] = field(default_factory=list)
    total_errors: int = 0
    total_warnings: int = 0
    files_checked: int = 0
    files_with_issues: int = 0
    strict_mode: bool = False

    @property
    def passed(self) -> bool:
        if self.total_errors:
            return False
        return not (self.strict_mode and self.total_warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "filesChecked": self.files_checked,
            "filesWithIssues": self.files_with_issues,
            "totalErrors": self.total_errors,
            "totalWarnings": self.total_warnings,
            "strictMode": self.strict_mode,
            "results": [result.to_dict() for result in self.results],
        }


class Validator:
    """Runs the enabled rules over a source tree or an explicit file list."""

    def __init__(
        self,
        config: IntrospectConfig,
        *,
        rule_registry: RuleRegistry | None = None,
        parser: SourceParser | None = None,
        today: date | None = None,
    ) -> None:
        self.config = config
        self.rule_registry = rule_registry if rule_registry is not None else get_rule_registry()
        self.parser = parser or SourceParser()
        self.extractor = MetadataExtractor(self.parser)
        self.dependency_analyzer = DependencyAnalyzer(self.parser)
        self.today = today
        self.logger = get_logger("validator")

    def resolve_targets(self, files: Optional[Iterable[Path | str]] = None) -> List[Path]:
        if files is not None:
            return expand_targets(
                [Path(item) for item in files],
                self.config.include,
                self.config.exclude,
            )
        src_path = self.config.source_path
        if not src_path.is_dir():
            raise SourceDirectoryError(f"Source directory not found: {src_path}")
        return discover_files(src_path, self.config.include, self.config.exclude)

    def validate(self, files: Optional[Iterable[Path | str]] = None) -> ValidationResult:
        targets = self.resolve_targets(files)
        self.logger.debug("Checking %d file(s)", len(targets))

        if self.config.jobs > 1 and len(targets) > 1:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
                file_results = list(pool.map(self.lint_file, targets))
        else:
            file_results = [self.lint_file(path) for path in targets]

        result = ValidationResult(files_checked=len(targets), strict_mode=self.config.strict_mode)
        for file_result in file_results:
            if not file_result.has_issues:
                continue
            result.results.append(file_result)
            result.files_with_issues += 1
            result.total_errors += len(file_result.errors)
            result.total_warnings += len(file_result.warnings)

        self.logger.debug(
            "Checked %d file(s): %d error(s), %d warning(s)",
            result.files_checked,
            result.total_errors,
            result.total_warnings,
        )
        return result

    def lint_file(self, path: Path | str) -> FileResult:
        path = Path(path)
        file_result = FileResult(file=str(path), relative_path=self._relative_path(path))

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self.logger.debug("Failed to read %s: %s", path, exc)
            file_result.errors.append(LintError(READ_ERROR_RULE, f"Could not read file: {exc}"))
            return file_result

        src_path = self.config.source_path
        parsed = self.parser.parse(content, os.fspath(path))
        today = self.today or date.today()
        extraction = self.extractor.extract_result(content, path, src_path, today=today, parsed=parsed)
        try:
            dependencies = self.dependency_analyzer.analyze(parsed, path, src_path)
        except Exception as exc:
            self.logger.debug("Dependency analysis failed for %s: %s", path, exc)
            file_result.errors.append(
                LintError(ANALYSIS_ERROR_RULE, f"Dependency analysis failed: {type(exc).__name__}: {exc}")
            )
            dependencies = DependencyInfo()

        context = RuleContext(
            file_path=path,
            relative_path=file_result.relative_path,
            content=content,
            extraction=extraction,
            parsed=parsed,
            dependencies=dependencies,
            config=self.config,
            today=today,
        )
        for finding in self.rule_registry.run(context, self.config.rules):
            if finding.severity == "error":
                file_result.errors.append(LintError(finding.rule, finding.message, finding.fixable))
            else:
                file_result.warnings.append(LintWarning(finding.rule, finding.message))
        return file_result

    def _relative_path(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.config.root.resolve()).as_posix()
        except ValueError:
            return path.as_posix()


def validate(
    config: IntrospectConfig,
    *,
    rule_registry: RuleRegistry | None = None,
    today: date | None = None,
) -> ValidationResult:
    return Validator(config, rule_registry=rule_registry, today=today).validate()


def lint_files(
    files: Sequence[Path | str],
    config: IntrospectConfig,
    *,
    rule_registry: RuleRegistry | None = None,
    today: date | None = None,
) -> ValidationResult:
    return Validator(config, rule_registry=rule_registry, today=today).validate(files)


__all__ = [
    "ANALYSIS_ERROR_RULE",
    "FileResult",
    "LintError",
    "LintWarning",
    "READ_ERROR_RULE",
    "ValidationResult",
    "Validator",
    "lint_files",
    "validate",
]
