"""FastAPI application entrypoint for introspect service mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import ConfigError, IntrospectConfig, load_config
from ..rules import RuleRegistry
from ..scanner import SourceDirectoryError
from ..stores import IntrospectionRegistry
from ..validator import ValidationResult, Validator


class LintRequest(BaseModel):
    path: str
    files: Optional[List[str]] = None
    strict: Optional[bool] = None


class LintIssue(BaseModel):
    rule: str
    message: str
    fixable: bool = False


class LintFileResponse(BaseModel):
    file: str
    relative_path: str
    errors: List[LintIssue]
    warnings: List[LintIssue]


class LintResponse(BaseModel):
    passed: bool
    strict_mode: bool
    files_checked: int
    files_with_issues: int
    total_errors: int
    total_warnings: int
    results: List[LintFileResponse]


class SummaryRequest(BaseModel):
    path: str


class SummaryResponse(BaseModel):
    total_modules: int
    todo_count: int
    fix_count: int
    status_breakdown: Dict[str, int]
    recently_updated: int
    errors: List[Dict[str, str]] = []


class HealthResponse(BaseModel):
    status: str


def _default_rule_registry() -> RuleRegistry:
    return RuleRegistry()


def create_app(
    rule_registry_factory: Callable[[], RuleRegistry] = _default_rule_registry,
) -> FastAPI:
    """Create the FastAPI application exposing lint and report operations."""

    app = FastAPI(title="Introspect Service", version="1.0.0")

    async def get_rule_registry() -> RuleRegistry:
        # A registry per request keeps concurrent scans independent.
        return rule_registry_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post("/lint", response_model=LintResponse)
    async def lint(
        payload: LintRequest,
        rule_registry: RuleRegistry = Depends(get_rule_registry),
    ) -> LintResponse:
        def _run_lint() -> ValidationResult:
            config = _load(payload.path, strict_mode=payload.strict)
            validator = Validator(config, rule_registry=rule_registry)
            files = [_resolve(config, item) for item in payload.files] if payload.files else None
            return validator.validate(files)

        result = await asyncio.get_running_loop().run_in_executor(None, _run_lint)
        return _lint_response(result)

    @app.post("/report/summary", response_model=SummaryResponse)
    async def report_summary(payload: SummaryRequest) -> SummaryResponse:
        def _run_summary() -> SummaryResponse:
            config = _load(payload.path)
            registry = IntrospectionRegistry()
            registry.load_all(config.source_path, include=config.include, exclude=config.exclude)
            if not registry.is_loaded:
                raise SourceDirectoryError(f"Source directory not found: {config.source_path}")
            summary = registry.summary()
            return SummaryResponse(
                total_modules=summary.total_modules,
                todo_count=summary.todo_count,
                fix_count=summary.fix_count,
                status_breakdown=summary.status_breakdown,
                recently_updated=summary.recently_updated,
                errors=[error.to_dict() for error in registry.errors],
            )

        return await asyncio.get_running_loop().run_in_executor(None, _run_summary)

    @app.exception_handler(SourceDirectoryError)
    async def source_dir_handler(_: Any, exc: SourceDirectoryError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ConfigError)
    async def config_error_handler(_: Any, exc: ConfigError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def _load(path: str, **overrides: Any) -> IntrospectConfig:
    target = Path(path)
    if not target.exists():
        raise SourceDirectoryError(f"Project path not found: {path}")
    return load_config(target, **overrides)


def _resolve(config: IntrospectConfig, item: str) -> Path:
    candidate = Path(item)
    return candidate if candidate.is_absolute() else config.root / candidate


def _lint_response(result: ValidationResult) -> LintResponse:
    return LintResponse(
        passed=result.passed,
        strict_mode=result.strict_mode,
        files_checked=result.files_checked,
        files_with_issues=result.files_with_issues,
        total_errors=result.total_errors,
        total_warnings=result.total_warnings,
        results=[
            LintFileResponse(
                file=file_result.file,
                relative_path=file_result.relative_path,
                errors=[LintIssue(rule=e.rule, message=e.message, fixable=e.fixable) for e in file_result.errors],
                warnings=[LintIssue(rule=w.rule, message=w.message) for w in file_result.warnings],
            )
            for file_result in result.results
        ],
    )


def run_service(host: str = "0.0.0.0", port: int = 8000) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app()
    uvicorn.run(app, host=host, port=port)


__all__ = ["create_app", "run_service"]
