"""Codebase indexer: walks a source tree and records files, functions and classes."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import EngineConfig
from .errors import CodebaseNotFoundError, SourceParseError
from .models import CodeIndex, FileEntry, IndexSearchResult
from .parser import SourceParser

logger = logging.getLogger(__name__)


def _iso_timestamp(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat()


class CodebaseIndexer:
    """Build a :class:`CodeIndex` from a directory of JS/TS sources."""

    def __init__(self, config: Optional[EngineConfig] = None, parser: Optional[SourceParser] = None):
        self.config = config or EngineConfig()
        self.parser = parser or SourceParser()
        self.code_index = CodeIndex()

    def index_codebase(self, root_path: str | Path) -> CodeIndex:
        """Scan *root_path* and return a fresh index.

        Raises :class:`CodebaseNotFoundError` when the root is missing or is
        not a readable directory.
        """
        root = os.path.normpath(os.path.abspath(str(root_path)))
        if not os.path.isdir(root) or not os.access(root, os.R_OK | os.X_OK):
            raise CodebaseNotFoundError(f"Codebase path not found or not readable: {root}")

        self.code_index = CodeIndex()
        logger.info("Indexing codebase at %s", root)
        self._index_directory(root, depth=0)
        self.code_index.update_metadata(indexed_at=datetime.now(timezone.utc).isoformat())

        meta = self.code_index.metadata
        logger.info(
            "Indexed %d files, %d functions, %d classes",
            meta.total_files, meta.total_functions, meta.total_classes,
        )
        return self.code_index

    def _index_directory(self, dir_path: str, depth: int) -> None:
        if depth > self.config.index_depth:
            return
        try:
            entries = sorted(os.scandir(dir_path), key=lambda e: e.name)
        except OSError as exc:
            logger.warning("Error reading directory %s: %s", dir_path, exc)
            return

        extensions = {ext.lower() for ext in self.config.file_extensions}
        for entry in entries:
            try:
                if entry.is_dir():
                    if entry.name in self.config.exclude_dirs:
                        continue
                    self._index_directory(entry.path, depth + 1)
                elif entry.is_file() and os.path.splitext(entry.name)[1].lower() in extensions:
                    self._index_new_file(entry.path)
            except OSError as exc:
                logger.warning("Error reading %s: %s", entry.path, exc)

    def index_file(self, file_path: str | Path) -> Optional[FileEntry]:
        """Index one file into the current index.

        Returns the new entry, or None when the file could not be read.
        A file already present in the index is replaced.
        """
        path = os.path.normpath(os.path.abspath(str(file_path)))
        entry = self._read_entry(path)
        if entry is None:
            return None
        self.code_index.remove_file(path)
        self.code_index.add_file(entry)
        self.code_index.update_metadata()
        return entry

    def _index_new_file(self, path: str) -> None:
        # scan path: the index is fresh and metadata is updated once at the end
        entry = self._read_entry(path)
        if entry is not None:
            self.code_index.add_file(entry)

    def _read_entry(self, path: str) -> Optional[FileEntry]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
            stat = os.stat(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Error indexing file %s: %s", path, exc)
            return None

        name = os.path.basename(path)
        entry = FileEntry(
            path=path,
            name=name,
            extension=os.path.splitext(name)[1],
            size=len(content.encode("utf-8")),
            last_modified=_iso_timestamp(stat.st_mtime),
        )

        try:
            parsed = self.parser.parse(path, content)
            entry.functions, entry.classes = self.parser.extract_definitions(parsed)
        except SourceParseError as exc:
            logger.warning("Error parsing file %s: %s", path, exc)

        logger.debug(
            "Indexed %s (%d functions, %d classes)",
            path, len(entry.functions), len(entry.classes),
        )
        return entry

    def search_index(
        self,
        file_name: Optional[str] = None,
        function_name: Optional[str] = None,
        class_name: Optional[str] = None,
    ) -> IndexSearchResult:
        """Case-insensitive substring search over the current index."""
        result = IndexSearchResult()
        if file_name:
            needle = file_name.lower()
            result.files = [f for f in self.code_index.files if needle in f.name.lower()]
        if function_name:
            needle = function_name.lower()
            result.functions = [f for f in self.code_index.functions if needle in f.name.lower()]
        if class_name:
            needle = class_name.lower()
            result.classes = [c for c in self.code_index.classes if needle in c.name.lower()]
        return result
