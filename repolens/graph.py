"""Dependency graph assembly from detected frameworks and extracted signals."""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .analyzers.classifier import classify
from .logging import get_logger
from .models import (
    APICallSignal,
    ApiCallEdgeMeta,
    ApiNodeMeta,
    DatabaseConnectionSignal,
    DatabaseEdgeMeta,
    DatabaseNodeMeta,
    DependencyEdgeMeta,
    DependencyGraph,
    DetectedFramework,
    EdgeMetadata,
    ExternalNodeMeta,
    FileEntry,
    FileImportEdgeMeta,
    FrameworkNodeMeta,
    GraphEdge,
    GraphNode,
    GraphStatistics,
    LibraryDependency,
    NodeMetadata,
    ServiceNodeMeta,
)

_LOGGER = get_logger("graph")

SERVICE_KEYWORDS = ("service", "controller", "handler", "api", "route", "model", "repository", "dao")
ROOT_MARKERS = ("src", "lib", "app", "services", "api", "controllers")
_TRIVIAL_SEGMENTS = frozenset({"src", "lib", "app", ".", ""})

MAJOR_LIBRARIES = (
    "react",
    "vue",
    "angular",
    "express",
    "fastify",
    "nestjs",
    "django",
    "flask",
    "fastapi",
    "spring-boot",
    "rails",
    "axios",
    "mongoose",
    "sequelize",
    "typeorm",
    "prisma",
    "redis",
    "kafka",
    "rabbitmq",
    "elasticsearch",
)

# (left keyword, right keyword): a service whose name holds the left keyword
# is linked to one whose name holds the right keyword.
RELATED_SERVICE_RULES: Tuple[Tuple[str, str], ...] = (
    ("api", "service"),
    ("controller", "service"),
    ("auth", "user"),
    ("auth", "account"),
)

API_EDGE_WEIGHT = 1.0
DATABASE_EDGE_WEIGHT = 1.0
DEPENDENCY_EDGE_WEIGHT = 0.5
RELATED_SERVICE_WEIGHT = 0.3

_SCHEME_AND_HOST = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://[^/?#]*")
_UUID = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_SLUG = re.compile(r"[^a-z0-9]+")


def normalize_endpoint(endpoint: str) -> str:
    """Reduce an endpoint to a grouping key.

    Protocol, host, query string and fragment are dropped; numeric segments
    become ``:id`` and UUID segments ``:uuid``. Applying it twice is a no-op.
    """
    value = _SCHEME_AND_HOST.sub("", endpoint.strip())
    value = value.split("?", 1)[0].split("#", 1)[0]
    segments: List[str] = []
    for segment in value.split("/"):
        if not segment:
            continue
        if segment.isdigit():
            segments.append(":id")
        elif _UUID.match(segment):
            segments.append(":uuid")
        else:
            segments.append(segment)
    return "/" + "/".join(segments)


def service_name_for(relative_path: str) -> str:
    """Derive the service a file belongs to from its directory path."""
    directories = relative_path.split("/")[:-1]
    for index, part in enumerate(directories):
        if part in ROOT_MARKERS and index + 1 < len(directories):
            return directories[index + 1]
    for part in directories:
        if part not in _TRIVIAL_SEGMENTS:
            return part
    return "main"


def is_service_file(relative_path: str) -> bool:
    info = classify(relative_path)
    if not info.is_code or info.is_test:
        return False
    lowered = relative_path.lower()
    return any(keyword in lowered for keyword in SERVICE_KEYWORDS)


def _slug(value: str) -> str:
    return _SLUG.sub("_", value.lower()).strip("_") or "root"


class DependencyGraphBuilder:
    """Builds a fresh node and edge set for every call to :meth:`build`."""

    def build(
        self,
        *,
        frameworks: Sequence[DetectedFramework] = (),
        files: Sequence[FileEntry] = (),
        api_calls: Sequence[APICallSignal] = (),
        database_connections: Sequence[DatabaseConnectionSignal] = (),
        dependencies: Sequence[LibraryDependency] = (),
    ) -> DependencyGraph:
        state = _GraphState()

        for framework in frameworks:
            state.add_node(
                "framework",
                framework.name,
                framework.name,
                FrameworkNodeMeta(
                    framework_type=framework.type,
                    confidence=framework.confidence,
                    version=framework.version,
                ),
                group="frameworks",
            )

        service_index = self._add_services(state, files, api_calls, database_connections)
        self._add_api_nodes(state, api_calls, service_index)
        self._add_database_nodes(state, database_connections, service_index)
        self._add_dependency_nodes(state, dependencies)
        self._add_related_services(state)

        graph = DependencyGraph(nodes=state.nodes, edges=state.edges)
        graph.statistics = compute_statistics(graph.nodes, graph.edges)
        _LOGGER.debug(
            "Built graph with %d nodes and %d edges",
            graph.statistics.total_nodes,
            graph.statistics.total_edges,
        )
        return graph

    # ------------------------------------------------------------------
    # Stages

    @staticmethod
    def _add_services(
        state: "_GraphState",
        files: Sequence[FileEntry],
        api_calls: Sequence[APICallSignal],
        database_connections: Sequence[DatabaseConnectionSignal],
    ) -> Dict[str, str]:
        """Create service nodes and return the file -> service node id index."""
        groups: Dict[str, List[str]] = defaultdict(list)
        for entry in files:
            if entry.is_directory or not is_service_file(entry.relative_path):
                continue
            groups[service_name_for(entry.relative_path)].append(entry.relative_path)

        detected = set(groups)
        grouped_files = {path for paths in groups.values() for path in paths}
        signal_files = [call.file for call in api_calls] + [conn.file for conn in database_connections]
        for path in dict.fromkeys(signal_files):
            if path not in grouped_files:
                groups[service_name_for(path)].append(path)
                grouped_files.add(path)

        index: Dict[str, str] = {}
        for name in sorted(groups):
            node_id = state.add_node(
                "service",
                name,
                name,
                ServiceNodeMeta(files=tuple(sorted(groups[name])), inferred=name not in detected),
                group="services",
            )
            for path in groups[name]:
                index[path] = node_id
        return index

    @staticmethod
    def _add_api_nodes(
        state: "_GraphState",
        api_calls: Sequence[APICallSignal],
        service_index: Dict[str, str],
    ) -> None:
        by_endpoint: Dict[str, List[APICallSignal]] = defaultdict(list)
        for call in api_calls:
            # Calls without a literal endpoint (GraphQL documents) group by call type.
            key = normalize_endpoint(call.endpoint) if call.endpoint else (call.type or "unknown")
            by_endpoint[key].append(call)

        for endpoint, calls in by_endpoint.items():
            methods = tuple(sorted({call.method for call in calls if call.method}))
            api_id = state.add_node(
                "api",
                endpoint,
                endpoint,
                ApiNodeMeta(endpoint=endpoint, methods=methods, call_count=len(calls)),
                group="apis",
            )
            per_service: Dict[str, List[APICallSignal]] = defaultdict(list)
            for call in calls:
                per_service[service_index[call.file]].append(call)
            for service_id, service_calls in per_service.items():
                service_methods = tuple(sorted({call.method for call in service_calls if call.method}))
                state.add_edge(
                    service_id,
                    api_id,
                    "api_call",
                    API_EDGE_WEIGHT,
                    ApiCallEdgeMeta(
                        methods=service_methods,
                        call_sites=tuple(f"{call.file}:{call.line}" for call in service_calls),
                    ),
                    label=service_methods[0] if len(service_methods) == 1 else "API Call",
                )

    @staticmethod
    def _add_database_nodes(
        state: "_GraphState",
        connections: Sequence[DatabaseConnectionSignal],
        service_index: Dict[str, str],
    ) -> None:
        by_database: Dict[Tuple[str, str], List[DatabaseConnectionSignal]] = defaultdict(list)
        for conn in connections:
            by_database[(conn.database, conn.type)].append(conn)

        for (database, db_type), conns in by_database.items():
            db_id = state.add_node(
                "database",
                f"{database}:{db_type}",
                database,
                DatabaseNodeMeta(database=database, database_type=db_type, connection_count=len(conns)),
                group="databases",
            )
            per_service: Dict[str, List[DatabaseConnectionSignal]] = defaultdict(list)
            for conn in conns:
                per_service[service_index[conn.file]].append(conn)
            for service_id, service_conns in per_service.items():
                state.add_edge(
                    service_id,
                    db_id,
                    "database_connection",
                    DATABASE_EDGE_WEIGHT,
                    DatabaseEdgeMeta(
                        call_sites=tuple(f"{conn.file}:{conn.line}" for conn in service_conns)
                    ),
                    label="DB Connection",
                )

    @staticmethod
    def _add_dependency_nodes(state: "_GraphState", dependencies: Sequence[LibraryDependency]) -> None:
        services = state.node_ids("service")
        for dep in dependencies:
            lowered = dep.name.lower()
            if not any(library in lowered for library in MAJOR_LIBRARIES):
                continue
            if state.has_node("external", dep.name):
                continue
            dep_id = state.add_node(
                "external",
                dep.name,
                dep.name,
                ExternalNodeMeta(library=dep.name, version=dep.version, source=dep.source),
                group="dependencies",
            )
            # Every service is linked; manifests do not say which service uses what.
            for service_id in services:
                state.add_edge(
                    service_id,
                    dep_id,
                    "dependency",
                    DEPENDENCY_EDGE_WEIGHT,
                    DependencyEdgeMeta(version=dep.version),
                    label="Uses",
                )

    @staticmethod
    def _add_related_services(state: "_GraphState") -> None:
        services = [node for node in state.nodes if node.type == "service"]
        for index, first in enumerate(services):
            for second in services[index + 1 :]:
                rule = _related_rule(first.label, second.label)
                if rule is not None:
                    source, target = (first, second) if rule[0] == "forward" else (second, first)
                    state.add_edge(
                        source.id,
                        target.id,
                        "file_import",
                        RELATED_SERVICE_WEIGHT,
                        FileImportEdgeMeta(rule=rule[1]),
                        label="Imports",
                    )


def _related_rule(first: str, second: str) -> Optional[Tuple[str, str]]:
    a, b = first.lower(), second.lower()
    for left, right in RELATED_SERVICE_RULES:
        if left in a and right in b:
            return "forward", f"{left}->{right}"
        if left in b and right in a:
            return "reverse", f"{left}->{right}"
    return None


def compute_statistics(nodes: Sequence[GraphNode], edges: Sequence[GraphEdge]) -> GraphStatistics:
    degrees: Counter[str] = Counter()
    adjacency: Dict[str, Set[str]] = {node.id: set() for node in nodes}
    for edge in edges:
        degrees[edge.source] += 1
        degrees[edge.target] += 1
        adjacency.setdefault(edge.source, set()).add(edge.target)
        adjacency.setdefault(edge.target, set()).add(edge.source)

    avg_degree = round(sum(degrees.values()) / len(degrees), 2) if degrees else 0.0

    return GraphStatistics(
        total_nodes=len(nodes),
        total_edges=len(edges),
        nodes_by_type=dict(Counter(node.type for node in nodes)),
        edges_by_type=dict(Counter(edge.type for edge in edges)),
        avg_degree=avg_degree,
        clusters=count_clusters(adjacency),
    )


def count_clusters(adjacency: Dict[str, Set[str]]) -> int:
    """Count connected components with an iterative depth-first traversal."""
    visited: Set[str] = set()
    clusters = 0
    for start in adjacency:
        if start in visited:
            continue
        clusters += 1
        stack = [start]
        visited.add(start)
        while stack:
            current = stack.pop()
            for neighbour in adjacency[current]:
                if neighbour not in visited:
                    visited.add(neighbour)
                    stack.append(neighbour)
    return clusters


class _GraphState:
    """Node and edge accumulator with deterministic, collision-free ids."""

    _PREFIXES = {
        "framework": "framework",
        "service": "service",
        "api": "api",
        "database": "db",
        "external": "dep",
        "file": "file",
    }

    def __init__(self) -> None:
        self.nodes: List[GraphNode] = []
        self.edges: List[GraphEdge] = []
        self._ids: Dict[Tuple[str, str], str] = {}
        self._taken: Set[str] = set()

    def has_node(self, node_type: str, key: str) -> bool:
        return (node_type, key) in self._ids

    def node_ids(self, node_type: str) -> List[str]:
        return [node.id for node in self.nodes if node.type == node_type]

    def add_node(
        self,
        node_type: str,
        key: str,
        label: str,
        metadata: NodeMetadata,
        *,
        group: str,
    ) -> str:
        existing = self._ids.get((node_type, key))
        if existing is not None:
            return existing
        base = f"{self._PREFIXES[node_type]}_{_slug(key)}"
        node_id = base
        suffix = 2
        while node_id in self._taken:
            node_id = f"{base}_{suffix}"
            suffix += 1
        self._ids[(node_type, key)] = node_id
        self._taken.add(node_id)
        self.nodes.append(GraphNode(id=node_id, label=label, type=node_type, metadata=metadata, group=group))
        return node_id

    def add_edge(
        self,
        source: str,
        target: str,
        edge_type: str,
        weight: float,
        metadata: EdgeMetadata,
        *,
        label: Optional[str] = None,
    ) -> None:
        if source not in self._taken or target not in self._taken:
            raise ValueError(f"Edge {source} -> {target} references an unknown node")
        self.edges.append(
            GraphEdge(
                id=f"edge_{len(self.edges) + 1}",
                source=source,
                target=target,
                type=edge_type,
                weight=weight,
                metadata=metadata,
                label=label,
            )
        )


__all__ = [
    "DependencyGraphBuilder",
    "MAJOR_LIBRARIES",
    "RELATED_SERVICE_RULES",
    "compute_statistics",
    "count_clusters",
    "is_service_file",
    "normalize_endpoint",
    "service_name_for",
]
