"""Configuration paths and engine defaults for codemap."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

BASE_DIR = Path(os.environ.get("CODEMAP_HOME", str(Path.home() / ".codemap"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_EXCLUDE_DIRS: List[str] = ["node_modules", ".git", "dist", "build"]
DEFAULT_FILE_EXTENSIONS: List[str] = [".js", ".jsx", ".ts", ".tsx"]
DEFAULT_STOP_WORDS: List[str] = ["the", "and", "or", "to", "a", "in", "of", "for", "on", "with"]

# camelCase spellings used by existing callers of the engine
_CAMEL_ALIASES: Dict[str, str] = {
    "indexDepth": "index_depth",
    "excludeDirs": "exclude_dirs",
    "fileExtensions": "file_extensions",
    "similarityThreshold": "similarity_threshold",
    "maxResults": "max_results",
    "weightTitle": "weight_title",
    "weightDescription": "weight_description",
    "weightKeywords": "weight_keywords",
    "minTokenLength": "min_token_length",
    "stopWords": "stop_words",
    "keywordCount": "keyword_count",
    "impactThreshold": "impact_threshold",
    "maxImpactedFiles": "max_impacted_files",
    "maxDepth": "max_depth",
    "includeNodeModules": "include_node_modules",
}


@dataclass
class EngineConfig:
    """Tunable settings shared by every engine component."""

    # indexer
    index_depth: int = 3
    exclude_dirs: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    file_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_FILE_EXTENSIONS))
    # semantic analyzer
    similarity_threshold: float = 0.7
    min_token_length: int = 3
    stop_words: List[str] = field(default_factory=lambda: list(DEFAULT_STOP_WORDS))
    keyword_count: int = 5
    # mapping algorithm
    max_results: int = 10
    weight_title: float = 0.3
    weight_description: float = 0.4
    weight_keywords: float = 0.3
    # change predictor
    impact_threshold: float = 0.5
    max_impacted_files: int = 20
    # dependency analyzer
    max_depth: int = 3
    include_node_modules: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "EngineConfig":
        """Build a config from a plain mapping, ignoring unknown keys."""
        return cls().merged(**dict(data or {}))

    def merged(self, **overrides: Any) -> "EngineConfig":
        """Return a copy with *overrides* applied (camelCase keys accepted)."""
        known = {f.name for f in fields(self)}
        updates: Dict[str, Any] = {}
        for key, value in overrides.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown engine setting '%s'", key)
                continue
            if value is None:
                continue
            if name in ("exclude_dirs", "file_extensions", "stop_words"):
                value = list(value)
            updates[name] = value
        return replace(self, **updates)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def setting_name(key: str) -> Optional[str]:
    """Return the canonical field name for *key*, or None if unknown."""
    name = _CAMEL_ALIASES.get(key, key)
    if name in {f.name for f in fields(EngineConfig)}:
        return name
    return None
