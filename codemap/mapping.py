"""Map a task onto code elements.

Three semantic queries (title, description, keywords) are fused into one
ranked list, then re-ranked with the task's declared dependencies against
each element's one-hop neighbourhood in the dependency graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .config import EngineConfig
from .errors import SemanticIndexUnavailableError
from .models import (
    CodeElement,
    CodeIndex,
    LineRange,
    MappingResult,
    MappingScore,
    SimilarElement,
    Task,
    TaskRef,
)
from .semantic import SemanticAnalyzer

logger = logging.getLogger(__name__)

TITLE_THRESHOLD_FACTOR = 0.8
DESCRIPTION_THRESHOLD_FACTOR = 1.0
KEYWORDS_THRESHOLD_FACTOR = 0.9

DEPENDENCY_MATCH_BONUS = 0.1
SIMILARITY_SHARE = 0.8
DEPENDENCY_SHARE = 0.2


@dataclass
class RankedElement:
    element: SimilarElement
    similarity: float
    weight: float
    dependency_score: float = 0.0
    final_score: Optional[float] = None

    @property
    def score(self) -> float:
        return self.similarity if self.final_score is None else self.final_score


def confidence_for(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.6:
        return "medium"
    return "low"


class MappingAlgorithm:
    """Ranks code elements for a task using an injected semantic analyzer."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        semantic_analyzer: Optional[SemanticAnalyzer] = None,
    ):
        self.config = config or EngineConfig()
        self.semantic_analyzer = semantic_analyzer

    def map_task(
        self,
        task: Union[Task, Mapping[str, Any]],
        code_index: Optional[CodeIndex],
        dependency_graph: Any,
        semantic_analyzer: Optional[SemanticAnalyzer] = None,
    ) -> List[MappingResult]:
        """Return the best code locations for *task*, best first.

        ``code_index`` is accepted for symmetry with the other components;
        the ranking reads only the analyzer's semantic index and the graph.
        Raises :class:`SemanticIndexUnavailableError` when no analysed
        semantic index is available.
        """
        if not isinstance(task, Task):
            task = Task.from_dict(dict(task))
        analyzer = semantic_analyzer or self.semantic_analyzer
        if analyzer is None or not analyzer.is_analyzed:
            raise SemanticIndexUnavailableError(
                "Semantic analyzer not available. Initialize the code mapping engine first."
            )

        logger.info("Mapping task '%s' to code...", task.title)
        candidates = self._search(task, analyzer)
        ranked = self._rank_by_dependencies(candidates, dependency_graph, task)
        results = [self._to_result(r, task) for r in ranked[: self.config.max_results]]
        logger.debug("Task '%s' mapped to %d elements", task.title, len(results))
        return results

    # ------------------------------------------------------------------

    def _search(self, task: Task, analyzer: SemanticAnalyzer) -> List[RankedElement]:
        threshold = self.config.similarity_threshold
        queries: Sequence[Tuple[str, float, float]] = (
            (task.title, TITLE_THRESHOLD_FACTOR, self.config.weight_title),
            (task.description, DESCRIPTION_THRESHOLD_FACTOR, self.config.weight_description),
            (" ".join(task.keywords), KEYWORDS_THRESHOLD_FACTOR, self.config.weight_keywords),
        )
        result_sets = []
        for text, factor, weight in queries:
            if not text.strip():
                continue
            hits = analyzer.find_similar_elements(text, threshold=threshold * factor)
            result_sets.append((hits, weight))
        return combine_search_results(result_sets)

    def _rank_by_dependencies(
        self,
        candidates: List[RankedElement],
        dependency_graph: Any,
        task: Task,
    ) -> List[RankedElement]:
        traverse = getattr(dependency_graph, "get_node_dependencies", None)
        # without declared dependencies the final score stays the similarity
        if not callable(traverse) or not task.dependencies:
            return candidates

        for candidate in candidates:
            neighbour_ids = [dep.id for dep in traverse(candidate.element.item.id) or []]
            matches = sum(
                1
                for wanted in task.dependencies
                for found in neighbour_ids
                if wanted in found or found in wanted
            )
            candidate.dependency_score = matches * DEPENDENCY_MATCH_BONUS
            candidate.final_score = (
                candidate.similarity * SIMILARITY_SHARE
                + candidate.dependency_score * DEPENDENCY_SHARE
            )

        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    @staticmethod
    def _to_result(ranked: RankedElement, task: Task) -> MappingResult:
        item = ranked.element.item
        return MappingResult(
            task=TaskRef(id=task.id, title=task.title, type=task.type),
            code_element=CodeElement(
                type=ranked.element.type,
                name=item.name,
                file_path=item.file_path,
                location=item.loc or LineRange(0, 0),
            ),
            mapping=MappingScore(
                similarity=ranked.similarity,
                dependency_score=ranked.dependency_score,
                final_score=ranked.score,
                confidence=confidence_for(ranked.score),
            ),
        )


def combine_search_results(
    result_sets: Sequence[Tuple[List[SimilarElement], float]],
) -> List[RankedElement]:
    """Merge weighted result sets by element key.

    An element hit by several queries gets the weighted average of its
    similarities; its weight is the sum of the contributing weights.
    """
    combined: Dict[str, RankedElement] = {}
    for hits, weight in result_sets:
        for hit in hits:
            existing = combined.get(hit.key)
            if existing is None:
                combined[hit.key] = RankedElement(element=hit, similarity=hit.similarity, weight=weight)
                continue
            total = existing.weight + weight
            if total > 0:
                existing.similarity = (existing.similarity * existing.weight + hit.similarity * weight) / total
            existing.weight = total

    merged = list(combined.values())
    merged.sort(key=lambda r: r.similarity, reverse=True)
    return merged
