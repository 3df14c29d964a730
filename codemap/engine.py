"""Engine facade coordinating indexing, analysis, mapping and prediction."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from .change_predictor import ChangePredictor
from .config import EngineConfig
from .dependency import DependencyAnalyzer, DependencyGraph
from .errors import GraphNotBuiltError, NotInitializedError
from .indexer import CodebaseIndexer
from .mapping import MappingAlgorithm
from .models import (
    ChangeImpact,
    CodeIndex,
    Dependency,
    MappingResult,
    ModificationPlan,
    ModificationSuggestions,
    SemanticIndex,
    SimilarElement,
    SuggestedChange,
    Task,
)
from .parser import SourceParser
from .semantic import DEFAULT_SEARCH_TYPES, SemanticAnalyzer

logger = logging.getLogger(__name__)

TaskLike = Union[Task, Mapping[str, Any]]


class CodeMappingEngine:
    """Owns one code index, semantic index and dependency graph.

    Every public call holds the instance lock, so a query never sees a
    half-rebuilt state.  Use one engine per codebase.
    """

    def __init__(self, config: Optional[EngineConfig] = None, **overrides: Any):
        base = config or EngineConfig()
        self.config = base.merged(**overrides) if overrides else base
        self._lock = threading.RLock()

        parser = SourceParser()
        self.indexer = CodebaseIndexer(self.config, parser)
        self.semantic_analyzer = SemanticAnalyzer(self.config)
        self.dependency_analyzer = DependencyAnalyzer(self.config, parser)
        self.mapping_algorithm = MappingAlgorithm(self.config, self.semantic_analyzer)
        self.change_predictor = ChangePredictor(self.config)

        self.codebase_path: Optional[str] = None
        self._code_index: Optional[CodeIndex] = None
        self._dependency_graph: Optional[DependencyGraph] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._code_index is not None

    @property
    def code_index(self) -> Optional[CodeIndex]:
        return self._code_index

    @property
    def semantic_index(self) -> SemanticIndex:
        return self.semantic_analyzer.semantic_index

    @property
    def dependency_graph(self) -> Optional[DependencyGraph]:
        return self._dependency_graph

    def initialize(self, codebase_path: Union[str, Path]) -> Dict[str, int]:
        """Index *codebase_path*, analyse it, and build the dependency graph.

        Returns summary counts.  Raises
        :class:`~codemap.errors.CodebaseNotFoundError` for a bad root.
        """
        with self._lock:
            logger.info("Initializing code mapping engine for %s", codebase_path)
            code_index = self.indexer.index_codebase(codebase_path)
            self.semantic_analyzer.analyze_codebase(code_index)
            graph = self.dependency_analyzer.build_dependency_graph(code_index)

            self.codebase_path = os.path.normpath(os.path.abspath(str(codebase_path)))
            self._code_index = code_index
            self._dependency_graph = graph
            return self._summary()

    def refresh_file(self, file_path: Union[str, Path]) -> Dict[str, int]:
        """Re-index one file and rebuild the derived indexes without rescanning.

        A file that no longer exists is dropped from the index.
        """
        with self._lock:
            self._require_initialized()
            path = os.path.normpath(os.path.abspath(str(file_path)))
            if os.path.isfile(path):
                self.indexer.index_file(path)
            else:
                logger.info("Removing %s from the index", path)
                self.indexer.code_index.remove_file(path)
                self.indexer.code_index.update_metadata()

            code_index = self.indexer.code_index
            self.semantic_analyzer.analyze_codebase(code_index)
            self._dependency_graph = self.dependency_analyzer.build_dependency_graph(code_index)
            self._code_index = code_index
            return self._summary()

    def _summary(self) -> Dict[str, int]:
        meta = self._code_index.metadata
        graph_meta = self._dependency_graph.metadata
        return {
            "files": meta.total_files,
            "functions": meta.total_functions,
            "classes": meta.total_classes,
            "nodes": graph_meta.node_count,
            "edges": graph_meta.edge_count,
        }

    def _require_initialized(self) -> None:
        if self._code_index is None:
            raise NotInitializedError("Code mapping engine not initialized. Call initialize() first.")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def map_task_to_code(self, task: TaskLike) -> List[MappingResult]:
        with self._lock:
            self._require_initialized()
            return self.mapping_algorithm.map_task(task, self._code_index, self._dependency_graph)

    def predict_changes(self, mapping_results: Sequence[MappingResult]) -> ChangeImpact:
        with self._lock:
            if self._dependency_graph is None:
                raise GraphNotBuiltError("Dependency graph not built. Call initialize() first.")
            return self.change_predictor.predict_changes(mapping_results, self._dependency_graph)

    def generate_code_modification_suggestions(self, task: TaskLike) -> ModificationSuggestions:
        with self._lock:
            if not isinstance(task, Task):
                task = Task.from_dict(dict(task))
            mapping_results = self.map_task_to_code(task)
            change_impact = self.predict_changes(mapping_results)

            suggestions = [
                SuggestedChange(
                    file_path=result.code_element.file_path,
                    location=result.code_element.location,
                    suggestion=f"Implement {task.title} here",
                )
                for result in mapping_results
            ]
            plan = ModificationPlan(
                files_to_modify=list(change_impact.files_to_modify),
                suggested_changes=suggestions,
                potential_impact=len(change_impact.impact_analysis.impacted_files),
            )
            return ModificationSuggestions(
                mapping_results=mapping_results,
                change_impact=change_impact,
                modification_plan=plan,
            )

    def search(
        self,
        query: str,
        limit: int = 10,
        types: Sequence[str] = DEFAULT_SEARCH_TYPES,
        threshold: Optional[float] = None,
    ) -> List[SimilarElement]:
        with self._lock:
            self._require_initialized()
            return self.semantic_analyzer.find_similar_elements(
                query, limit=limit, types=types, threshold=threshold
            )

    def node_dependencies(
        self,
        node_id: str,
        direction: str = "outgoing",
        types: Optional[Sequence[str]] = None,
        depth: int = 1,
        max_results: int = 100,
    ) -> List[Dependency]:
        with self._lock:
            if self._dependency_graph is None:
                raise GraphNotBuiltError("Dependency graph not built. Call initialize() first.")
            return self._dependency_graph.get_node_dependencies(
                node_id, direction=direction, types=types, depth=depth, max_results=max_results
            )
