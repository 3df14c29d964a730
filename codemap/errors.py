"""Exceptions raised by the code-mapping engine."""

from __future__ import annotations


class CodeMapError(RuntimeError):
    """Base class for every error surfaced by codemap."""


class CodebaseNotFoundError(CodeMapError):
    """Raised when the codebase root is missing or is not a readable directory."""


class NotInitializedError(CodeMapError):
    """Raised when a task is mapped before ``initialize`` has run."""


class GraphNotBuiltError(CodeMapError):
    """Raised when changes are predicted before the dependency graph exists."""


class SemanticIndexUnavailableError(CodeMapError):
    """Raised when the mapping step has no analysed semantic index to query."""


class SourceParseError(CodeMapError):
    """Raised when a source file contains syntax errors."""


class ConfigError(CodeMapError):
    """Raised when the configuration file cannot be written or a key is unknown."""


__all__ = [
    "CodeMapError",
    "CodebaseNotFoundError",
    "ConfigError",
    "GraphNotBuiltError",
    "NotInitializedError",
    "SemanticIndexUnavailableError",
    "SourceParseError",
]
