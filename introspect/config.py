"""Configuration loading for introspect (.introspect.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .logging import get_logger

CONFIG_FILENAMES = (".introspect.yml", ".introspect.yaml", "introspect.config.json")

SEVERITIES = ("error", "warn", "off")
OUTPUT_FORMATS = ("pretty", "compact", "json", "markdown")

DEFAULT_INCLUDE = ["**/*.ts", "**/*.tsx"]
DEFAULT_EXCLUDE = [
    "**/*.d.ts",
    "**/index.ts",
    "**/*.test.ts",
    "**/*.spec.ts",
    "**/*.test.tsx",
    "**/*.spec.tsx",
    "**/__tests__/**",
    "**/__mocks__/**",
    "**/test/**",
    "**/tests/**",
    "**/testing/**",
    "**/*.fixture.ts",
    "**/*.mock.ts",
    "**/testUtils.ts",
    "**/test-utils.ts",
    "**/setup.ts",
    "**/setupTests.ts",
    "**/jest.setup.ts",
    "**/vitest.setup.ts",
    "**/jest.config.ts",
    "**/vitest.config.ts",
    "**/webpack.config.ts",
    "**/rollup.config.ts",
    "**/vite.config.ts",
    "**/*.generated.ts",
    "**/generated/**",
]
DEFAULT_REQUIRED_FIELDS = ["module", "filename", "description", "updatedAt", "status"]

DEFAULT_RULES: Dict[str, str] = {
    "metadata/required": "error",
    "metadata/stale-hash": "error",
    "metadata/required-fields": "error",
    "metadata/deps-mismatch": "warn",
    "metadata/untracked-todos": "warn",
    "metadata/stale-update": "warn",
    "metadata/empty-changelog": "off",
}

_KEY_ALIASES = {
    "srcDir": "src_dir",
    "staleDays": "stale_days",
    "requiredFields": "required_fields",
    "strictMode": "strict_mode",
    "outputFormat": "output_format",
}


_LOGGER = get_logger("config")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is invalid."""


@dataclass
class IntrospectConfig:
    """Resolved settings for a lint or report run."""

    root: Path = field(default_factory=Path.cwd)
    src_dir: str = "src"
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    rules: Dict[str, str] = field(default_factory=dict)
    stale_days: int = 30
    required_fields: List[str] = field(default_factory=lambda: list(DEFAULT_REQUIRED_FIELDS))
    strict_mode: bool = False
    output_format: str = "pretty"
    jobs: int = 1

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        merged = dict(DEFAULT_RULES)
        merged.update(self.rules or {})
        self.rules = merged
        self.validate()

    @property
    def source_path(self) -> Path:
        return self.root / self.src_dir

    def severity(self, rule: str, default: str = "off") -> str:
        return self.rules.get(rule, default)

    def validate(self) -> None:
        for rule, severity in self.rules.items():
            if severity not in SEVERITIES:
                raise ConfigError(
                    f"Invalid severity {severity!r} for rule {rule!r}; expected one of {', '.join(SEVERITIES)}"
                )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"Invalid outputFormat {self.output_format!r}; expected one of {', '.join(OUTPUT_FORMATS)}"
            )
        if isinstance(self.stale_days, bool) or not isinstance(self.stale_days, int) or self.stale_days < 0:
            raise ConfigError(f"staleDays must be a non-negative integer, got {self.stale_days!r}")
        if isinstance(self.jobs, bool) or not isinstance(self.jobs, int) or self.jobs < 1:
            raise ConfigError(f"jobs must be a positive integer, got {self.jobs!r}")
        if not isinstance(self.src_dir, str) or not self.src_dir:
            raise ConfigError("srcDir must be a non-empty string")


def find_config_file(directory: Path) -> Optional[Path]:
    for name in CONFIG_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | str | None = None, **overrides: Any) -> IntrospectConfig:
    """Load configuration from ``path`` (a directory or a file).

    A directory without a configuration file yields defaults rooted at that
    directory. An explicit file path that does not exist raises ``ConfigError``.
    Keyword ``overrides`` take precedence over values read from disk.
    """
    target = Path(path).expanduser() if path is not None else Path.cwd()

    if target.is_dir():
        root = target.resolve()
        config_file = find_config_file(root)
    elif target.exists():
        config_file = target.resolve()
        root = config_file.parent
    else:
        raise ConfigError(f"Configuration file not found: {target}")

    data: Dict[str, Any] = {}
    if config_file is not None:
        data = _read_config(config_file)

    values = _normalise_keys(data)
    values.update({key: value for key, value in overrides.items() if value is not None})
    return config_from_mapping(values, root=root)


def config_from_mapping(data: Mapping[str, Any], *, root: Path) -> IntrospectConfig:
    values = _normalise_keys(data)
    unknown = sorted(set(values) - _FIELDS)
    if unknown:
        _LOGGER.debug("Ignoring unsupported configuration keys: %s", ", ".join(unknown))

    kwargs: Dict[str, Any] = {"root": root}
    if "src_dir" in values:
        kwargs["src_dir"] = values["src_dir"]
    for key in ("include", "exclude", "required_fields"):
        if key in values:
            kwargs[key] = _as_str_list(values[key], key)
    if "rules" in values:
        rules = values["rules"]
        if rules is None:
            rules = {}
        if not isinstance(rules, dict):
            raise ConfigError("rules must be a mapping of rule name to severity")
        kwargs["rules"] = {str(name): _severity(value) for name, value in rules.items()}
    for key in ("stale_days", "jobs", "output_format"):
        if key in values:
            kwargs[key] = values[key]
    if "strict_mode" in values:
        strict = values["strict_mode"]
        if not isinstance(strict, bool):
            raise ConfigError(f"strictMode must be a boolean, got {strict!r}")
        kwargs["strict_mode"] = strict
    return IntrospectConfig(**kwargs)


_FIELDS = {
    "src_dir",
    "include",
    "exclude",
    "rules",
    "stale_days",
    "required_fields",
    "strict_mode",
    "output_format",
    "jobs",
}


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _normalise_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {_KEY_ALIASES.get(str(key), str(key)): value for key, value in data.items()}


def _severity(value: Any) -> str:
    # YAML reads a bare `off` as False.
    if value is False:
        return "off"
    if isinstance(value, str):
        return value.strip().lower()
    return str(value)


def _as_str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    raise ConfigError(f"{key} must be a list of strings")


__all__ = [
    "CONFIG_FILENAMES",
    "ConfigError",
    "DEFAULT_RULES",
    "IntrospectConfig",
    "OUTPUT_FORMATS",
    "SEVERITIES",
    "config_from_mapping",
    "find_config_file",
    "load_config",
]
