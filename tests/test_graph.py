"""Tests for dependency graph construction."""

from __future__ import annotations

import pytest

from repolens.graph import (
    DependencyGraphBuilder,
    compute_statistics,
    count_clusters,
    is_service_file,
    normalize_endpoint,
    service_name_for,
)
from repolens.models import (
    APICallSignal,
    ApiNodeMeta,
    DatabaseConnectionSignal,
    DetectedFramework,
    LibraryDependency,
    ServiceNodeMeta,
)
from tests._fixtures.repo_builder import file_entry


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("/api/users/123", "/api/users/:id"),
        ("/api/users/456", "/api/users/:id"),
        ("https://api.example.com/v1/orders/42?expand=items#top", "/v1/orders/:id"),
        ("/files/3f2504e0-4f89-11d3-9a0c-0305e82c3301/meta", "/files/:uuid/meta"),
        ("http://localhost:8080", "/"),
        ("api/health/", "/api/health"),
    ],
)
def test_normalize_endpoint(raw: str, expected: str) -> None:
    normalized = normalize_endpoint(raw)

    assert normalized == expected
    assert normalize_endpoint(normalized) == normalized


def test_service_name_for() -> None:
    assert service_name_for("src/services/userService.js") == "services"
    assert service_name_for("src/api/orders/controller.ts") == "api"
    assert service_name_for("backend/handlers/user.go") == "backend"
    assert service_name_for("src/userController.js") == "main"
    assert service_name_for("handler.py") == "main"


def test_is_service_file() -> None:
    assert is_service_file("src/services/userService.js")
    assert is_service_file("app/models.py")
    assert not is_service_file("src/services/userService.test.js")
    assert not is_service_file("docs/api.md")
    assert not is_service_file("src/components/Button.jsx")


def _build():  # type: ignore[no-untyped-def]
    files = [
        file_entry("src/api/userController.js"),
        file_entry("src/services/userService.js"),
        file_entry("src/auth/authHandler.js"),
        file_entry("src/components/Button.jsx"),
        file_entry("scripts/sync.js"),
    ]
    api_calls = [
        APICallSignal(type="http", file="src/api/userController.js", line=3, confidence=0.95, method="GET", endpoint="/api/users/123", framework="fetch"),
        APICallSignal(type="http", file="src/services/userService.js", line=5, confidence=0.9, method="POST", endpoint="/api/users/456", framework="axios"),
        APICallSignal(type="http", file="scripts/sync.js", line=1, confidence=0.9, endpoint="https://api.example.com/users?page=2", framework="fetch"),
        APICallSignal(type="graphql", file="src/api/userController.js", line=9, confidence=0.8, method="QUERY", framework="graphql"),
    ]
    connections = [
        DatabaseConnectionSignal(type="sql", database="PostgreSQL", file="src/services/userService.js", line=2, confidence=0.8),
    ]
    dependencies = [
        LibraryDependency(name="express", version="^4.18.2", type="production", source="npm"),
        LibraryDependency(name="lodash", version="4.17.21", type="production", source="npm"),
    ]
    frameworks = [DetectedFramework(name="Express.js", type="backend", confidence=1.0)]
    return DependencyGraphBuilder().build(
        frameworks=frameworks,
        files=files,
        api_calls=api_calls,
        database_connections=connections,
        dependencies=dependencies,
    )


def test_graph_nodes_and_edges() -> None:
    graph = _build()
    nodes = {node.id: node for node in graph.nodes}

    assert graph.statistics.nodes_by_type == {
        "framework": 1,
        "service": 4,
        "api": 3,
        "database": 1,
        "external": 1,
    }
    assert graph.statistics.edges_by_type == {
        "api_call": 4,
        "database_connection": 1,
        "dependency": 4,
        "file_import": 1,
    }

    users_api = nodes["api_api_users_id"]
    assert users_api.label == "/api/users/:id"
    assert isinstance(users_api.metadata, ApiNodeMeta)
    assert users_api.metadata.methods == ("GET", "POST")
    assert users_api.metadata.call_count == 2

    scripts = nodes["service_scripts"]
    assert isinstance(scripts.metadata, ServiceNodeMeta)
    assert scripts.metadata.inferred is True
    assert nodes["service_services"].metadata.inferred is False
    assert "dep_lodash" not in nodes

    related = [edge for edge in graph.edges if edge.type == "file_import"]
    assert [(edge.source, edge.target) for edge in related] == [("service_api", "service_services")]


def test_graphql_calls_without_endpoint_are_grouped_by_type() -> None:
    graph = _build()
    nodes = {node.id: node for node in graph.nodes}

    graphql = nodes["api_graphql"]
    assert graphql.label == "graphql"
    assert graphql.metadata.methods == ("QUERY",)
    assert graphql.metadata.call_count == 1
    edges = [edge for edge in graph.edges if edge.target == "api_graphql"]
    assert [(edge.source, edge.type, edge.label) for edge in edges] == [("service_api", "api_call", "QUERY")]
    assert edges[0].metadata.call_sites == ("src/api/userController.js:9",)


def test_every_edge_references_existing_nodes() -> None:
    graph = _build()
    ids = {node.id for node in graph.nodes}

    assert len(ids) == len(graph.nodes)
    assert len({edge.id for edge in graph.edges}) == len(graph.edges)
    for edge in graph.edges:
        assert edge.source in ids
        assert edge.target in ids


def test_statistics_clusters_and_degree() -> None:
    stats = _build().statistics

    assert stats.total_nodes == 10
    assert stats.total_edges == 10
    # The framework node has no edges and forms its own component.
    assert stats.clusters == 2
    assert stats.avg_degree == 2.22


def test_empty_graph() -> None:
    graph = DependencyGraphBuilder().build()

    assert graph.nodes == []
    assert graph.edges == []
    assert graph.statistics.clusters == 0
    assert graph.statistics.avg_degree == 0.0


def test_builder_is_stateless_between_runs() -> None:
    first = _build()
    second = _build()

    assert [node.id for node in first.nodes] == [node.id for node in second.nodes]
    assert len(second.edges) == len(first.edges)


def test_count_clusters_and_statistics_helpers() -> None:
    adjacency = {"a": {"b"}, "b": {"a"}, "c": set(), "d": {"e"}, "e": {"d"}}

    assert count_clusters(adjacency) == 3
    assert compute_statistics([], []).total_nodes == 0
