"""Queryable stores over extracted metadata."""

from .registry import (
    IntrospectionRegistry,
    LoadError,
    RegistrySummary,
    TrackedFix,
    TrackedTodo,
    get_registry,
    reset_registry,
)

__all__ = [
    "IntrospectionRegistry",
    "LoadError",
    "RegistrySummary",
    "TrackedFix",
    "TrackedTodo",
    "get_registry",
    "reset_registry",
]
