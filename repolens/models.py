"""Core data models shared across repolens components."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

FRAMEWORK_TYPES = ("frontend", "backend", "fullstack", "library", "tool")
API_CALL_TYPES = ("http", "graphql", "websocket", "grpc")
DATABASE_TYPES = ("sql", "nosql", "cache", "search")
DEPENDENCY_TYPES = ("production", "development", "peer", "optional")
ENV_VAR_TYPES = ("api_key", "database_url", "api_endpoint", "secret", "config")
NODE_TYPES = ("service", "api", "database", "external", "framework", "file")
EDGE_TYPES = ("api_call", "database_connection", "dependency", "file_import", "framework_usage")

_FIELD_ALIASES = {
    "total_api_calls": "totalAPICalls",
}


@dataclass(frozen=True)
class FileEntry:
    """A file or directory found while scanning a workspace."""

    path: str
    relative_path: str
    name: str
    extension: str
    size: int
    is_directory: bool = False


@dataclass
class DetectedFramework:
    name: str
    type: str
    confidence: float
    version: Optional[str] = None
    evidence: List[str] = field(default_factory=list)


@dataclass
class APICallSignal:
    type: str
    file: str
    line: int
    confidence: float
    method: Optional[str] = None
    endpoint: Optional[str] = None
    framework: Optional[str] = None


@dataclass
class DatabaseConnectionSignal:
    type: str
    database: str
    file: str
    line: int
    confidence: float
    connection_string: Optional[str] = None


@dataclass
class LibraryDependency:
    name: str
    version: Optional[str]
    type: str
    source: str
    manifest: Optional[str] = None


@dataclass
class EnvironmentVariableUsage:
    name: str
    possible_type: str
    used_in: List[str] = field(default_factory=list)
    declared: bool = False


# ----------------------------------------------------------------------
# Graph


@dataclass(frozen=True)
class FrameworkNodeMeta:
    kind: ClassVar[str] = "framework"

    framework_type: str
    confidence: float
    version: Optional[str] = None


@dataclass(frozen=True)
class ServiceNodeMeta:
    kind: ClassVar[str] = "service"

    files: Tuple[str, ...] = ()
    inferred: bool = False


@dataclass(frozen=True)
class ApiNodeMeta:
    kind: ClassVar[str] = "api"

    endpoint: str
    methods: Tuple[str, ...] = ()
    call_count: int = 0


@dataclass(frozen=True)
class DatabaseNodeMeta:
    kind: ClassVar[str] = "database"

    database: str
    database_type: str
    connection_count: int = 0


@dataclass(frozen=True)
class ExternalNodeMeta:
    kind: ClassVar[str] = "external"

    library: str
    version: Optional[str] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class FileNodeMeta:
    kind: ClassVar[str] = "file"

    path: str


NodeMetadata = Union[
    FrameworkNodeMeta,
    ServiceNodeMeta,
    ApiNodeMeta,
    DatabaseNodeMeta,
    ExternalNodeMeta,
    FileNodeMeta,
]


@dataclass(frozen=True)
class ApiCallEdgeMeta:
    kind: ClassVar[str] = "api_call"

    methods: Tuple[str, ...] = ()
    call_sites: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DatabaseEdgeMeta:
    kind: ClassVar[str] = "database_connection"

    call_sites: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DependencyEdgeMeta:
    kind: ClassVar[str] = "dependency"

    version: Optional[str] = None


@dataclass(frozen=True)
class FileImportEdgeMeta:
    kind: ClassVar[str] = "file_import"

    rule: str


@dataclass(frozen=True)
class FrameworkUsageEdgeMeta:
    kind: ClassVar[str] = "framework_usage"


EdgeMetadata = Union[
    ApiCallEdgeMeta,
    DatabaseEdgeMeta,
    DependencyEdgeMeta,
    FileImportEdgeMeta,
    FrameworkUsageEdgeMeta,
]


@dataclass
class GraphNode:
    id: str
    label: str
    type: str
    metadata: NodeMetadata
    group: str

    def __post_init__(self) -> None:
        if self.metadata.kind != self.type:
            raise ValueError(f"Node {self.id} of type {self.type} carries {self.metadata.kind} metadata")


@dataclass
class GraphEdge:
    id: str
    source: str
    target: str
    type: str
    weight: float
    metadata: EdgeMetadata
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if self.metadata.kind != self.type:
            raise ValueError(f"Edge {self.id} of type {self.type} carries {self.metadata.kind} metadata")


@dataclass
class GraphStatistics:
    total_nodes: int = 0
    total_edges: int = 0
    nodes_by_type: Dict[str, int] = field(default_factory=dict)
    edges_by_type: Dict[str, int] = field(default_factory=dict)
    avg_degree: float = 0.0
    clusters: int = 0


@dataclass
class DependencyGraph:
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    statistics: GraphStatistics = field(default_factory=GraphStatistics)


# ----------------------------------------------------------------------
# Jobs and results


class JobState(str, Enum):
    PENDING = "pending"
    CLONING = "cloning"
    SCANNING = "scanning"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


_FORWARD_ORDER = (
    JobState.PENDING,
    JobState.CLONING,
    JobState.SCANNING,
    JobState.ANALYZING,
    JobState.GENERATING,
    JobState.COMPLETED,
)


def can_transition(current: JobState, target: JobState) -> bool:
    """Return True when ``current -> target`` is a legal job transition.

    Jobs move one stage forward at a time and may fail from any
    non-terminal state. Terminal states accept nothing.
    """
    if current.terminal:
        return False
    if target is JobState.FAILED:
        return True
    index = _FORWARD_ORDER.index(current)
    return index + 1 < len(_FORWARD_ORDER) and _FORWARD_ORDER[index + 1] is target


@dataclass
class AnalysisJob:
    id: str
    project_id: str
    state: JobState = JobState.PENDING
    progress: int = 0
    current_step: str = "Queued"
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempt: int = 1
    cancelled: bool = False


@dataclass(frozen=True)
class ProgressEvent:
    project_id: str
    job_id: str
    status: str
    progress: int
    current_step: str
    error: Optional[str] = None


@dataclass
class ProjectSummary:
    project_type: str
    primary_language: str
    stack: str
    confidence: float
    description: str = ""
    frameworks: List[str] = field(default_factory=list)
    build_tools: List[str] = field(default_factory=list)
    databases: List[str] = field(default_factory=list)


@dataclass
class ImportantFiles:
    entry: List[str] = field(default_factory=list)
    configuration: List[str] = field(default_factory=list)
    documentation: List[str] = field(default_factory=list)
    tests: List[str] = field(default_factory=list)
    build: List[str] = field(default_factory=list)


@dataclass
class StructureReport:
    total_files: int = 0
    total_size: int = 0
    total_lines: int = 0
    language_distribution: Dict[str, int] = field(default_factory=dict)
    file_type_distribution: Dict[str, int] = field(default_factory=dict)
    directories: List[str] = field(default_factory=list)
    important_files: ImportantFiles = field(default_factory=ImportantFiles)
    configuration_files: List[str] = field(default_factory=list)
    documentation_files: List[str] = field(default_factory=list)
    test_files: int = 0
    project_type: str = "Unknown"
    project_type_confidence: float = 0.0


@dataclass
class Metrics:
    total_files: int = 0
    total_lines: int = 0
    total_api_calls: int = 0
    total_database_connections: int = 0
    total_dependencies: int = 0
    total_frameworks: int = 0
    complexity_score: int = 0
    maintainability_index: float = 0.0
    technical_debt_ratio: float = 0.0


@dataclass
class AnalysisResult:
    """The document handed to persistence once a job completes."""

    summary: ProjectSummary
    structure: StructureReport
    frameworks: List[DetectedFramework] = field(default_factory=list)
    dependencies: List[LibraryDependency] = field(default_factory=list)
    api_calls: List[APICallSignal] = field(default_factory=list)
    database_connections: List[DatabaseConnectionSignal] = field(default_factory=list)
    environment_variables: List[EnvironmentVariableUsage] = field(default_factory=list)
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)
    metrics: Metrics = field(default_factory=Metrics)

    def to_dict(self) -> Dict[str, Any]:
        return to_document(self)


def to_document(value: Any) -> Any:
    """Render dataclasses as JSON-ready camelCase mappings.

    Only dataclass field names are converted; keys of plain dicts (language
    names, node types) are left as they are.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            _camel(item.name): to_document(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, dict):
        return {key: to_document(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_document(item) for item in value]
    return value


def _camel(name: str) -> str:
    if name in _FIELD_ALIASES:
        return _FIELD_ALIASES[name]
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


__all__ = [
    "APICallSignal",
    "AnalysisJob",
    "AnalysisResult",
    "ApiCallEdgeMeta",
    "ApiNodeMeta",
    "DatabaseConnectionSignal",
    "DatabaseEdgeMeta",
    "DatabaseNodeMeta",
    "DependencyEdgeMeta",
    "DependencyGraph",
    "DetectedFramework",
    "EnvironmentVariableUsage",
    "ExternalNodeMeta",
    "FileEntry",
    "FileImportEdgeMeta",
    "FileNodeMeta",
    "FrameworkNodeMeta",
    "FrameworkUsageEdgeMeta",
    "GraphEdge",
    "GraphNode",
    "GraphStatistics",
    "ImportantFiles",
    "JobState",
    "LibraryDependency",
    "Metrics",
    "ProgressEvent",
    "ProjectSummary",
    "ServiceNodeMeta",
    "StructureReport",
    "can_transition",
    "to_document",
]
