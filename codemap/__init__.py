"""codemap: map natural-language tasks onto JavaScript/TypeScript code."""

from .engine import CodeMappingEngine
from .config import EngineConfig
from .errors import (
    CodeMapError,
    CodebaseNotFoundError,
    ConfigError,
    GraphNotBuiltError,
    NotInitializedError,
    SemanticIndexUnavailableError,
    SourceParseError,
)
from .models import Task

__version__ = "1.0.0"

__all__ = [
    "CodeMapError",
    "CodeMappingEngine",
    "CodebaseNotFoundError",
    "ConfigError",
    "EngineConfig",
    "GraphNotBuiltError",
    "NotInitializedError",
    "SemanticIndexUnavailableError",
    "SourceParseError",
    "Task",
    "__version__",
]
