"""Dependency graph and the analyzer that builds it from a code index.

Edges point from the dependent element to the element it depends on:

- ``function/class -> file``   ``contains``
- ``method -> class``          ``memberOf``
- ``file -> file``             ``imports`` / ``requires``
- ``function/method -> function`` ``calls``
"""

from __future__ import annotations

import json
import logging
import os
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .config import EngineConfig
from .errors import SourceParseError
from .models import (
    ClassNode,
    CodeIndex,
    Dependency,
    Edge,
    EdgeType,
    FileNode,
    FunctionNode,
    GraphMetadata,
    ImpactAnalysis,
    MethodNode,
    Node,
    NodeType,
    class_node_id,
    file_node_id,
    function_node_id,
    method_node_id,
    to_plain,
)
from .parser import ParsedSource, Scope, SourceParser

logger = logging.getLogger(__name__)

DIRECTIONS = ("outgoing", "incoming", "both")


class DependencyGraph:
    """Directed, typed, weighted multigraph keyed by string node ids.

    At most one edge exists per ``(source, target, type)``; adding it again
    accumulates its weight.
    """

    def __init__(self, max_depth: int = 3):
        self.max_depth = max_depth
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []
        self.metadata = GraphMetadata()
        self._edge_index: Dict[Tuple[str, str, EdgeType], Edge] = {}
        self._outgoing: Dict[str, List[Edge]] = defaultdict(list)
        self._incoming: Dict[str, List[Edge]] = defaultdict(list)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> None:
        self.nodes[node.id] = node

    def add_edge(
        self,
        source: str,
        target: str,
        edge_type: EdgeType | str,
        **metadata: Any,
    ) -> Optional[Edge]:
        """Add or reinforce an edge.

        Returns None (and adds nothing) when either endpoint is unknown.
        """
        if source not in self.nodes or target not in self.nodes:
            return None
        edge_type = EdgeType(edge_type)
        key = (source, target, edge_type)
        weight = metadata.pop("weight", 1)

        existing = self._edge_index.get(key)
        if existing is not None:
            existing.metadata.update(metadata)
            existing.metadata["weight"] = existing.weight + weight
            return existing

        edge = Edge(source=source, target=target, type=edge_type, metadata={"weight": weight, **metadata})
        self.edges.append(edge)
        self._edge_index[key] = edge
        self._outgoing[source].append(edge)
        self._incoming[target].append(edge)
        return edge

    def get_edge(self, source: str, target: str, edge_type: EdgeType | str) -> Optional[Edge]:
        return self._edge_index.get((source, target, EdgeType(edge_type)))

    def remove_file(self, path: str) -> int:
        """Drop every node owned by *path* and all incident edges.

        Prunes this graph in place and returns the number of nodes removed.
        Call edges elsewhere are not re-resolved, so
        :meth:`CodeMappingEngine.refresh_file` rebuilds the graph instead.
        """
        doomed = {node_id for node_id, node in self.nodes.items() if node.owner_path == path}
        if not doomed:
            return 0
        for node_id in doomed:
            del self.nodes[node_id]
        self.edges = [e for e in self.edges if e.source not in doomed and e.target not in doomed]
        self._reindex_edges()
        self.update_metadata()
        return len(doomed)

    def _reindex_edges(self) -> None:
        self._edge_index = {}
        self._outgoing = defaultdict(list)
        self._incoming = defaultdict(list)
        for edge in self.edges:
            self._edge_index[edge.key] = edge
            self._outgoing[edge.source].append(edge)
            self._incoming[edge.target].append(edge)

    def update_metadata(self, created_at: Optional[str] = None) -> None:
        self.metadata = GraphMetadata(
            created_at=created_at or self.metadata.created_at,
            node_count=len(self.nodes),
            edge_count=len(self.edges),
        )

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def _adjacent(self, node_id: str, direction: str) -> Iterable[Tuple[Edge, str]]:
        if direction in ("outgoing", "both"):
            for edge in self._outgoing.get(node_id, ()):
                yield edge, edge.target
        if direction in ("incoming", "both"):
            for edge in self._incoming.get(node_id, ()):
                yield edge, edge.source

    def get_node_dependencies(
        self,
        node_id: str,
        direction: str = "outgoing",
        types: Optional[Iterable[EdgeType | str]] = None,
        depth: int = 1,
        max_results: int = 100,
    ) -> List[Dependency]:
        """Depth-first walk from *node_id*.

        Each reachable node is reported once, at the depth where the walk
        first met it, never beyond *depth* hops and never more than
        *max_results* entries.  ``direction="both"`` follows edges either
        way and steps to the opposite endpoint.
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
        if node_id not in self.nodes or depth < 1 or max_results < 1:
            return []

        allowed = {EdgeType(t) for t in types} if types else None
        visited: Set[str] = {node_id}
        found: List[Dependency] = []

        # one (depth, remaining edges) frame per open node
        stack: List[Tuple[int, Iterator[Tuple[Edge, str]]]] = [
            (0, iter(self._adjacent(node_id, direction)))
        ]
        while stack:
            current_depth, adjacent = stack[-1]
            step = next(adjacent, None)
            if step is None:
                stack.pop()
                continue
            edge, neighbour = step
            if allowed is not None and edge.type not in allowed:
                continue
            if neighbour in visited or neighbour not in self.nodes:
                continue
            visited.add(neighbour)
            found.append(Dependency(
                id=neighbour,
                node=self.nodes[neighbour],
                edge=edge,
                depth=current_depth + 1,
            ))
            if len(found) >= max_results:
                break
            if current_depth + 1 < depth:
                stack.append((current_depth + 1, iter(self._adjacent(neighbour, direction))))
        return found

    def get_impact_analysis(self, node_id: str, max_depth: Optional[int] = None) -> ImpactAnalysis:
        """Structural impact of *node_id*: who depends on it, what it depends on.

        Scores are plain counts of the two traversals.
        """
        depth = self.max_depth if max_depth is None else max_depth
        impacted = self.get_node_dependencies(node_id, direction="incoming", depth=depth)
        dependencies = self.get_node_dependencies(node_id, direction="outgoing", depth=depth)
        return ImpactAnalysis(
            node_id=node_id,
            node=self.nodes.get(node_id),
            impacted_nodes=impacted,
            dependency_nodes=dependencies,
            impact_score=len(impacted),
            dependency_score=len(dependencies),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": {node_id: to_plain(node) for node_id, node in self.nodes.items()},
            "edges": [to_plain(edge) for edge in self.edges],
            "metadata": to_plain(self.metadata),
        }


class DependencyAnalyzer:
    """Builds a :class:`DependencyGraph` from a :class:`CodeIndex`."""

    def __init__(self, config: Optional[EngineConfig] = None, parser: Optional[SourceParser] = None):
        self.config = config or EngineConfig()
        self.parser = parser or SourceParser()
        self.dependency_graph = DependencyGraph(max_depth=self.config.max_depth)

    def build_dependency_graph(self, code_index: CodeIndex) -> DependencyGraph:
        logger.info("Building dependency graph...")
        graph = DependencyGraph(max_depth=self.config.max_depth)
        self.dependency_graph = graph

        self._add_elements(graph, code_index)

        function_ids: Dict[str, str] = {}
        for func in code_index.functions:
            if func.name != "anonymous":
                function_ids[func.name] = function_node_id(func.file_path, func.name)

        for entry in code_index.files:
            parsed = self._parse_file(entry.path)
            if parsed is None:
                continue
            self._add_module_edges(graph, parsed)
            self._add_call_edges(graph, parsed, function_ids)

        graph.update_metadata(created_at=datetime.now(timezone.utc).isoformat())
        logger.info(
            "Dependency graph built. %d nodes, %d edges.",
            graph.metadata.node_count, graph.metadata.edge_count,
        )
        return graph

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @staticmethod
    def _add_elements(graph: DependencyGraph, code_index: CodeIndex) -> None:
        for entry in code_index.files:
            graph.add_node(FileNode(
                id=file_node_id(entry.path),
                name=entry.name,
                path=entry.path,
                size=entry.size,
                last_modified=entry.last_modified,
            ))

        for func in code_index.functions:
            node_id = function_node_id(func.file_path, func.name)
            graph.add_node(FunctionNode(
                id=node_id,
                name=func.name,
                file_path=func.file_path,
                params=list(func.params),
                loc=func.loc,
            ))
            graph.add_edge(node_id, file_node_id(func.file_path), EdgeType.CONTAINS)

        for cls in code_index.classes:
            class_id = class_node_id(cls.file_path, cls.name)
            graph.add_node(ClassNode(
                id=class_id,
                name=cls.name,
                file_path=cls.file_path,
                methods=list(cls.methods),
                loc=cls.loc,
            ))
            graph.add_edge(class_id, file_node_id(cls.file_path), EdgeType.CONTAINS)

            for method in cls.methods:
                method_id = method_node_id(cls.file_path, cls.name, method.name)
                graph.add_node(MethodNode(
                    id=method_id,
                    name=method.name,
                    class_name=cls.name,
                    file_path=cls.file_path,
                    params=list(method.params),
                    loc=method.loc,
                ))
                graph.add_edge(method_id, class_id, EdgeType.MEMBER_OF)

    # ------------------------------------------------------------------
    # Edges from source
    # ------------------------------------------------------------------

    def _parse_file(self, path: str) -> Optional[ParsedSource]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Error reading %s for dependency analysis: %s", path, exc)
            return None
        try:
            return self.parser.parse(path, content)
        except SourceParseError as exc:
            logger.warning("Error analyzing dependencies for file %s: %s", path, exc)
            return None

    def _add_module_edges(self, graph: DependencyGraph, parsed: ParsedSource) -> None:
        source_id = file_node_id(parsed.path)
        for ref in self.parser.extract_module_references(parsed):
            resolved = self.resolve_import_path(ref.specifier, parsed.path)
            if resolved is None:
                continue
            edge = graph.add_edge(source_id, file_node_id(resolved), ref.kind, specifier=ref.specifier)
            if edge is None:
                logger.debug("Unresolved %s '%s' in %s", ref.kind.value, ref.specifier, parsed.path)

    def _add_call_edges(
        self,
        graph: DependencyGraph,
        parsed: ParsedSource,
        function_ids: Dict[str, str],
    ) -> None:
        for call in self.parser.extract_call_sites(parsed):
            callee_id = function_ids.get(call.callee)
            if callee_id is None or call.scope is None or not call.scope.is_named:
                continue
            graph.add_edge(_caller_id(parsed.path, call.scope), callee_id, EdgeType.CALLS, weight=1)

    # ------------------------------------------------------------------
    # Module resolution
    # ------------------------------------------------------------------

    def resolve_import_path(self, specifier: str, importing_file: str) -> Optional[str]:
        """Map a module specifier to an absolute file path.

        Relative specifiers resolve against the importing file's directory,
        absolute ones pass through.  Bare specifiers resolve only when
        ``include_node_modules`` is set.  A target that does not exist on
        disk is returned as the literal joined path.
        """
        if specifier.startswith("."):
            base = os.path.normpath(os.path.join(os.path.dirname(importing_file), specifier))
        elif specifier.startswith("/"):
            base = os.path.normpath(specifier)
        elif self.config.include_node_modules and not specifier.startswith("node_modules/"):
            return self._resolve_package(specifier, importing_file)
        else:
            return None
        return self._probe(base) or base

    def _probe(self, base: str) -> Optional[str]:
        if os.path.isfile(base):
            return base
        for ext in self.config.file_extensions:
            candidate = base + ext
            if os.path.isfile(candidate):
                return candidate
        for ext in self.config.file_extensions:
            candidate = os.path.join(base, "index" + ext)
            if os.path.isfile(candidate):
                return candidate
        return None

    def _resolve_package(self, specifier: str, importing_file: str) -> Optional[str]:
        directory = os.path.dirname(importing_file)
        while True:
            package_dir = os.path.join(directory, "node_modules", specifier)
            resolved = self._probe_package(os.path.normpath(package_dir))
            if resolved is not None:
                return resolved
            parent = os.path.dirname(directory)
            if parent == directory:
                return None
            directory = parent

    def _probe_package(self, package_dir: str) -> Optional[str]:
        if os.path.isdir(package_dir):
            main = _package_main(package_dir)
            if main:
                resolved = self._probe(os.path.normpath(os.path.join(package_dir, main)))
                if resolved is not None:
                    return resolved
        return self._probe(package_dir)


def _caller_id(file_path: str, scope: Scope) -> str:
    if scope.kind == NodeType.METHOD.value:
        return method_node_id(file_path, scope.class_name or "", scope.name or "")
    return function_node_id(file_path, scope.name or "")


def _package_main(package_dir: str) -> Optional[str]:
    manifest = os.path.join(package_dir, "package.json")
    if not os.path.isfile(manifest):
        return None
    try:
        with open(manifest, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring unreadable %s: %s", manifest, exc)
        return None
    main = data.get("main") if isinstance(data, dict) else None
    return main if isinstance(main, str) else None
