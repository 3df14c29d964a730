"""Predict the blast radius of the changes implied by a set of mapping results."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import EngineConfig
from .models import (
    ChangeImpact,
    ChangePlan,
    Dependency,
    EdgeType,
    ElementToModify,
    ImpactAnalysis,
    ImpactedFile,
    ImpactedNode,
    ImpactSummary,
    MappingResult,
    MergedImpact,
    PlannedChange,
    element_node_id,
)

logger = logging.getLogger(__name__)

EDGE_FACTORS: Dict[EdgeType, float] = {
    EdgeType.CALLS: 1.5,
    EdgeType.IMPORTS: 1.2,
    EdgeType.REQUIRES: 1.2,
    EdgeType.CONTAINS: 0.8,
}

CONFIDENCE_FACTORS: Dict[str, float] = {
    "high": 1.2,
    "medium": 1.0,
    "low": 0.8,
}

FALLBACK_DEPTH = 2

PRIMARY_DESCRIPTION = "Modify this file directly to implement the feature"
SECONDARY_DESCRIPTION = "Check whether this file needs to be adapted"
DEPENDENCY_DESCRIPTION = "Verify that its dependencies still work"


def node_weight(dependency: Dependency, confidence: Optional[str]) -> float:
    """Weight of one traversal hit as seen from an element of *confidence*."""
    weight = 1.0
    if dependency.depth:
        weight /= dependency.depth
    if dependency.edge is not None:
        weight *= EDGE_FACTORS.get(dependency.edge.type, 1.0)
    return weight * CONFIDENCE_FACTORS.get(confidence or "", 1.0)


def risk_level(total_impact_score: float, impacted_file_count: int) -> str:
    if total_impact_score > 50 or impacted_file_count > 20:
        return "high"
    if total_impact_score > 20 or impacted_file_count > 10:
        return "medium"
    return "low"


@dataclass
class _Accumulator:
    """Merges traversal hits from many source elements."""

    nodes: Dict[str, ImpactedNode] = field(default_factory=dict)
    files: Dict[str, ImpactedFile] = field(default_factory=dict)

    def add(self, hit: Dependency, element: ElementToModify) -> None:
        weight = node_weight(hit, element.confidence)

        node = self.nodes.get(hit.id)
        if node is None:
            self.nodes[hit.id] = ImpactedNode(id=hit.id, node=hit.node, weight=weight, sources=[element.id])
        else:
            node.weight += weight
            node.sources.append(element.id)

        path = getattr(hit.node, "owner_path", None)
        if not path:
            return
        owner = self.files.get(path)
        if owner is None:
            self.files[path] = ImpactedFile(path=path, weight=weight, elements=[hit.id])
        elif hit.id not in owner.elements:
            owner.elements.append(hit.id)
            owner.weight += weight

    def ranked_nodes(self) -> List[ImpactedNode]:
        return sorted(self.nodes.values(), key=lambda n: n.weight, reverse=True)

    def ranked_files(self) -> List[ImpactedFile]:
        return sorted(self.files.values(), key=lambda f: f.weight, reverse=True)

    def total(self) -> float:
        return sum(n.weight for n in self.nodes.values())


class ChangePredictor:
    """Turns mapping results into a weighted impact report and change plan."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def predict_changes(
        self,
        mapping_results: Sequence[MappingResult],
        dependency_graph: Any,
    ) -> ChangeImpact:
        logger.info("Predicting code changes impact for %d mapped elements", len(mapping_results))

        files_to_modify: List[str] = []
        elements: List[ElementToModify] = []
        for result in mapping_results:
            code = result.code_element
            if code.file_path not in files_to_modify:
                files_to_modify.append(code.file_path)
            elements.append(ElementToModify(
                id=element_node_id(code.type, code.file_path, code.name),
                type=code.type,
                name=code.name,
                file_path=code.file_path,
                confidence=result.mapping.confidence,
            ))

        analyses = [(element, self.analyze_element(element, dependency_graph)) for element in elements]
        merged = self.merge_impact(analyses)
        plan = self.generate_change_plan(merged, files_to_modify)

        logger.info(
            "Impact: %d impacted files, total score %.2f, risk %s",
            len(merged.impacted_files), merged.total_impact_score, plan.impact_summary.risk_level,
        )
        return ChangeImpact(
            files_to_modify=files_to_modify,
            code_elements_to_modify=elements,
            impact_analysis=merged,
            change_plan=plan,
        )

    @staticmethod
    def analyze_element(element: ElementToModify, dependency_graph: Any) -> ImpactAnalysis:
        """Impact of one element, degrading gracefully with the graph's capabilities."""
        impact_analysis = getattr(dependency_graph, "get_impact_analysis", None)
        if callable(impact_analysis):
            return impact_analysis(element.id)

        traverse = getattr(dependency_graph, "get_node_dependencies", None)
        if not callable(traverse):
            logger.debug("Graph offers no traversal; zero impact for %s", element.id)
            return ImpactAnalysis(node_id=element.id, node=element)

        impacted = traverse(element.id, direction="incoming", depth=FALLBACK_DEPTH)
        dependencies = traverse(element.id, direction="outgoing", depth=FALLBACK_DEPTH)
        return ImpactAnalysis(
            node_id=element.id,
            node=element,
            impacted_nodes=impacted,
            dependency_nodes=dependencies,
            impact_score=len(impacted),
            dependency_score=len(dependencies),
        )

    @staticmethod
    def merge_impact(analyses: Sequence[tuple]) -> MergedImpact:
        """Combine per-element analyses into weighted, ranked node and file lists."""
        impacted = _Accumulator()
        dependencies = _Accumulator()
        for element, analysis in analyses:
            for hit in analysis.impacted_nodes or []:
                impacted.add(hit, element)
            for hit in analysis.dependency_nodes or []:
                dependencies.add(hit, element)

        return MergedImpact(
            impacted_nodes=impacted.ranked_nodes(),
            dependency_nodes=dependencies.ranked_nodes(),
            impacted_files=impacted.ranked_files(),
            dependency_files=dependencies.ranked_files(),
            total_impact_score=impacted.total(),
            total_dependency_score=dependencies.total(),
        )

    def generate_change_plan(self, merged: MergedImpact, files_to_modify: Sequence[str]) -> ChangePlan:
        primary = set(files_to_modify)
        threshold = self.config.impact_threshold
        limit = self.config.max_impacted_files

        secondary = [
            f.path for f in merged.impacted_files
            if f.path not in primary and f.weight >= threshold
        ][:limit]
        to_verify = [
            f.path for f in merged.dependency_files
            if f.path not in primary and f.weight >= threshold
        ][: limit // 2]

        return ChangePlan(
            primary_changes=[
                PlannedChange(path, "modify", "high", PRIMARY_DESCRIPTION) for path in files_to_modify
            ],
            secondary_changes=[
                PlannedChange(path, "check", "medium", SECONDARY_DESCRIPTION) for path in secondary
            ],
            dependency_checks=[
                PlannedChange(path, "verify", "low", DEPENDENCY_DESCRIPTION) for path in to_verify
            ],
            impact_summary=ImpactSummary(
                direct_changes=len(files_to_modify),
                potential_impact=len(secondary),
                dependencies_to_verify=len(to_verify),
                total_impact_score=merged.total_impact_score,
                risk_level=risk_level(merged.total_impact_score, len(merged.impacted_files)),
            ),
        )
