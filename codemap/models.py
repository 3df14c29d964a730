"""Core data models shared by indexing, analysis, mapping and prediction."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class NodeType(str, Enum):
    FILE = "file"
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"


class EdgeType(str, Enum):
    CONTAINS = "contains"
    MEMBER_OF = "memberOf"
    IMPORTS = "imports"
    REQUIRES = "requires"
    CALLS = "calls"


def to_plain(value: Any) -> Any:
    """Convert dataclasses / enums into JSON-compatible builtins."""
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return to_plain(asdict(value))
    if isinstance(value, dict):
        return {str(to_plain(k)): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Code index
# ---------------------------------------------------------------------------

@dataclass
class LineRange:
    start: int
    end: int


@dataclass
class MethodEntry:
    name: str
    params: List[str]
    loc: LineRange


@dataclass
class FunctionEntry:
    name: str
    params: List[str]
    loc: LineRange
    code: str
    file_path: str = ""


@dataclass
class ClassEntry:
    name: str
    methods: List[MethodEntry]
    loc: LineRange
    code: str
    file_path: str = ""


@dataclass
class FileEntry:
    path: str
    name: str
    extension: str
    size: int
    last_modified: Optional[str] = None
    functions: List[FunctionEntry] = field(default_factory=list)
    classes: List[ClassEntry] = field(default_factory=list)


@dataclass
class IndexMetadata:
    indexed_at: Optional[str] = None
    total_files: int = 0
    total_functions: int = 0
    total_classes: int = 0


@dataclass
class CodeIndex:
    """Files, functions and classes found by one indexer run."""

    files: List[FileEntry] = field(default_factory=list)
    functions: List[FunctionEntry] = field(default_factory=list)
    classes: List[ClassEntry] = field(default_factory=list)
    metadata: IndexMetadata = field(default_factory=IndexMetadata)

    def add_file(self, entry: FileEntry) -> None:
        self.files.append(entry)
        self.functions.extend(entry.functions)
        self.classes.extend(entry.classes)

    def get_file(self, path: str) -> Optional[FileEntry]:
        for entry in self.files:
            if entry.path == path:
                return entry
        return None

    def remove_file(self, path: str) -> bool:
        """Drop *path* and its global function/class entries."""
        before = len(self.files)
        self.files = [f for f in self.files if f.path != path]
        self.functions = [f for f in self.functions if f.file_path != path]
        self.classes = [c for c in self.classes if c.file_path != path]
        return len(self.files) != before

    def update_metadata(self, indexed_at: Optional[str] = None) -> None:
        self.metadata = IndexMetadata(
            indexed_at=indexed_at or self.metadata.indexed_at,
            total_files=len(self.files),
            total_functions=len(self.functions),
            total_classes=len(self.classes),
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class IndexSearchResult:
    files: List[FileEntry] = field(default_factory=list)
    functions: List[FunctionEntry] = field(default_factory=list)
    classes: List[ClassEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------

def file_node_id(path: str) -> str:
    return f"file:{path}"


def function_node_id(file_path: str, name: str) -> str:
    return f"function:{file_path}:{name}"


def class_node_id(file_path: str, name: str) -> str:
    return f"class:{file_path}:{name}"


def method_node_id(file_path: str, class_name: str, method_name: str) -> str:
    return f"method:{file_path}:{class_name}.{method_name}"


def element_node_id(element_type: str, file_path: str, name: str) -> str:
    """Graph id of an indexed element given its type tag."""
    if element_type == NodeType.FILE:
        return file_node_id(file_path)
    return f"{NodeType(element_type).value}:{file_path}:{name}"


@dataclass
class FileNode:
    id: str
    name: str
    path: str
    size: int = 0
    last_modified: Optional[str] = None
    type: NodeType = field(default=NodeType.FILE, init=False)

    @property
    def owner_path(self) -> str:
        return self.path


@dataclass
class FunctionNode:
    id: str
    name: str
    file_path: str
    params: List[str] = field(default_factory=list)
    loc: Optional[LineRange] = None
    type: NodeType = field(default=NodeType.FUNCTION, init=False)

    @property
    def owner_path(self) -> str:
        return self.file_path


@dataclass
class ClassNode:
    id: str
    name: str
    file_path: str
    methods: List[MethodEntry] = field(default_factory=list)
    loc: Optional[LineRange] = None
    type: NodeType = field(default=NodeType.CLASS, init=False)

    @property
    def owner_path(self) -> str:
        return self.file_path


@dataclass
class MethodNode:
    id: str
    name: str
    class_name: str
    file_path: str
    params: List[str] = field(default_factory=list)
    loc: Optional[LineRange] = None
    type: NodeType = field(default=NodeType.METHOD, init=False)

    @property
    def owner_path(self) -> str:
        return self.file_path


Node = Union[FileNode, FunctionNode, ClassNode, MethodNode]


@dataclass
class Edge:
    source: str
    target: str
    type: EdgeType
    metadata: Dict[str, Any] = field(default_factory=lambda: {"weight": 1})

    @property
    def key(self) -> tuple:
        return (self.source, self.target, self.type)

    @property
    def weight(self) -> float:
        return self.metadata.get("weight", 1)


@dataclass
class GraphMetadata:
    created_at: Optional[str] = None
    node_count: int = 0
    edge_count: int = 0


@dataclass
class Dependency:
    """One node reached while traversing the graph."""

    id: str
    node: Node
    edge: Edge
    depth: int


@dataclass
class ImpactAnalysis:
    node_id: str
    node: Any
    impacted_nodes: List[Dependency] = field(default_factory=list)
    dependency_nodes: List[Dependency] = field(default_factory=list)
    impact_score: float = 0
    dependency_score: float = 0


# ---------------------------------------------------------------------------
# Semantic index
# ---------------------------------------------------------------------------

@dataclass
class Keyword:
    term: str
    tfidf: float


@dataclass
class SemanticEntry:
    id: str
    type: NodeType
    name: str
    file_path: str
    tokens: List[str] = field(default_factory=list)
    vector: Dict[str, float] = field(default_factory=dict)
    keywords: List[Keyword] = field(default_factory=list)
    params: List[str] = field(default_factory=list)
    methods: List[str] = field(default_factory=list)
    loc: Optional[LineRange] = None


@dataclass
class SemanticIndex:
    files: Dict[str, SemanticEntry] = field(default_factory=dict)
    functions: Dict[str, SemanticEntry] = field(default_factory=dict)
    classes: Dict[str, SemanticEntry] = field(default_factory=dict)

    def entries(self, group: str) -> Dict[str, SemanticEntry]:
        return getattr(self, group)

    def __len__(self) -> int:
        return len(self.files) + len(self.functions) + len(self.classes)


@dataclass
class SimilarElement:
    type: NodeType
    item: SemanticEntry
    similarity: float

    @property
    def key(self) -> str:
        return f"{self.type.value}:{self.item.file_path}:{self.item.name}"


# ---------------------------------------------------------------------------
# Tasks and mapping results
# ---------------------------------------------------------------------------

@dataclass
class Task:
    id: str
    title: str = ""
    description: str = ""
    type: str = ""
    keywords: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or "",
            description=data.get("description") or "",
            type=data.get("type") or "",
            keywords=list(data.get("keywords") or []),
            dependencies=list(data.get("dependencies") or []),
        )


@dataclass
class TaskRef:
    id: str
    title: str
    type: str


@dataclass
class CodeElement:
    type: NodeType
    name: str
    file_path: str
    location: LineRange = field(default_factory=lambda: LineRange(0, 0))


@dataclass
class MappingScore:
    similarity: float
    dependency_score: float
    final_score: float
    confidence: str


@dataclass
class MappingResult:
    task: TaskRef
    code_element: CodeElement
    mapping: MappingScore

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


# ---------------------------------------------------------------------------
# Change prediction
# ---------------------------------------------------------------------------

@dataclass
class ElementToModify:
    id: str
    type: NodeType
    name: str
    file_path: str
    confidence: str


@dataclass
class ImpactedNode:
    id: str
    node: Any
    weight: float
    sources: List[str] = field(default_factory=list)


@dataclass
class ImpactedFile:
    path: str
    weight: float
    elements: List[str] = field(default_factory=list)


@dataclass
class MergedImpact:
    impacted_nodes: List[ImpactedNode] = field(default_factory=list)
    dependency_nodes: List[ImpactedNode] = field(default_factory=list)
    impacted_files: List[ImpactedFile] = field(default_factory=list)
    dependency_files: List[ImpactedFile] = field(default_factory=list)
    total_impact_score: float = 0.0
    total_dependency_score: float = 0.0


@dataclass
class PlannedChange:
    file_path: str
    change_type: str
    priority: str
    description: str


@dataclass
class ImpactSummary:
    direct_changes: int
    potential_impact: int
    dependencies_to_verify: int
    total_impact_score: float
    risk_level: str


@dataclass
class ChangePlan:
    primary_changes: List[PlannedChange]
    secondary_changes: List[PlannedChange]
    dependency_checks: List[PlannedChange]
    impact_summary: ImpactSummary


@dataclass
class ChangeImpact:
    files_to_modify: List[str]
    code_elements_to_modify: List[ElementToModify]
    impact_analysis: MergedImpact
    change_plan: ChangePlan

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)


@dataclass
class SuggestedChange:
    file_path: str
    location: LineRange
    suggestion: str


@dataclass
class ModificationPlan:
    files_to_modify: List[str]
    suggested_changes: List[SuggestedChange]
    potential_impact: int


@dataclass
class ModificationSuggestions:
    mapping_results: List[MappingResult]
    change_impact: ChangeImpact
    modification_plan: ModificationPlan

    def to_dict(self) -> Dict[str, Any]:
        return to_plain(self)
