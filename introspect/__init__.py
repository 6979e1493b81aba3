"""Extraction and validation of ``__metadata`` declarations in TypeScript sources."""

from .config import ConfigError, IntrospectConfig, load_config
from .extractor import Extracted, Fallback, FallbackReason, MetadataExtractor, extract_metadata
from .generator import StubGenerator
from .hasher import fingerprint, has_changed
from .models import FileMetadata, IndexMetadata, MetadataRecord, is_full_metadata
from .rules import LintRule, RuleRegistry, create_rule, get_rule_registry, reset_rule_registry
from .scanner import SourceDirectoryError
from .stores import IntrospectionRegistry, get_registry, reset_registry
from .validator import ValidationResult, Validator, lint_files, validate

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Extracted",
    "Fallback",
    "FallbackReason",
    "FileMetadata",
    "IndexMetadata",
    "IntrospectConfig",
    "IntrospectionRegistry",
    "LintRule",
    "MetadataExtractor",
    "MetadataRecord",
    "RuleRegistry",
    "SourceDirectoryError",
    "StubGenerator",
    "ValidationResult",
    "Validator",
    "create_rule",
    "extract_metadata",
    "fingerprint",
    "get_registry",
    "get_rule_registry",
    "has_changed",
    "is_full_metadata",
    "lint_files",
    "load_config",
    "reset_registry",
    "reset_rule_registry",
    "validate",
]
