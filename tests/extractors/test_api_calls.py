"""Tests for API call extraction."""

from __future__ import annotations

import textwrap

from repolens.extractors.api_calls import (
    APICallExtractor,
    dedupe_api_calls,
    is_dynamic_literal,
    normalize_method,
)
from repolens.extractors.syntax import SYNTAX_CONFIDENCE
from repolens.models import APICallSignal
from tests._fixtures.repo_builder import file_entry


def _extract(relative_path: str, source: str) -> list[APICallSignal]:
    content = textwrap.dedent(source).lstrip("\n")
    return APICallExtractor().extract(file_entry(relative_path), content)


def test_template_literal_fetch_is_not_captured() -> None:
    calls = _extract(
        "src/api.js",
        """
        async function load(id) {
          await fetch('/api/users');
          await fetch(`/api/users/${id}`);
          await fetch("/api/posts", { method: "POST" });
        }
        """,
    )

    assert [(call.line, call.endpoint) for call in calls] == [(2, "/api/users"), (4, "/api/posts")]
    assert all(call.framework == "fetch" for call in calls)
    assert all(call.confidence == SYNTAX_CONFIDENCE for call in calls)
    assert calls[1].method == "POST"


def test_static_template_literal_without_interpolation_is_kept() -> None:
    calls = _extract("src/api.ts", "fetch(`/api/health`);\n")

    assert [(call.endpoint, call.confidence) for call in calls] == [("/api/health", 0.9)]


def test_escaped_quote_stays_inside_the_literal() -> None:
    calls = _extract("src/a.js", "fetch('/api/it\\'s');\n")

    assert [(call.line, call.endpoint, call.confidence) for call in calls] == [
        (1, "/api/it\\'s", SYNTAX_CONFIDENCE)
    ]


def test_python_escaped_quote_stays_inside_the_literal() -> None:
    calls = _extract("app/client.py", "requests.get('https://api.example.com/it\\'s')\n")

    assert [call.endpoint for call in calls] == ["https://api.example.com/it\\'s"]


def test_axios_and_websocket_calls() -> None:
    calls = _extract(
        "src/client.ts",
        """
        import axios from 'axios';
        export const create = (data) => axios.post('/api/items', data);
        export const remove = () => axios.delete("/api/items/1");
        const socket = new WebSocket('wss://stream.example.com/feed');
        """,
    )

    by_endpoint = {call.endpoint: call for call in calls}
    assert by_endpoint["/api/items"].method == "POST"
    assert by_endpoint["/api/items"].framework == "axios"
    assert by_endpoint["/api/items"].line == 2
    assert by_endpoint["/api/items/1"].method == "DELETE"
    assert by_endpoint["wss://stream.example.com/feed"].type == "websocket"


def test_graphql_tagged_template() -> None:
    calls = _extract(
        "src/queries.js",
        """
        const GET_USERS = gql`
          query GetUsers { users { id } }
        `;
        """,
    )

    assert len(calls) == 1
    assert calls[0].type == "graphql"
    assert calls[0].method == "QUERY"
    assert calls[0].endpoint is None


def test_python_requests_calls() -> None:
    calls = _extract(
        "app/clients.py",
        """
        import requests

        def get_users():
            return requests.get("https://api.example.com/users", timeout=5)

        def create_user(payload):
            return requests.post('https://api.example.com/users', json=payload)
        """,
    )

    assert [(call.method, call.line) for call in calls] == [("GET", 4), ("POST", 7)]
    assert all(call.confidence == 0.85 for call in calls)
    assert all(call.framework == "requests" for call in calls)


def test_go_net_http_calls() -> None:
    calls = _extract(
        "cmd/main.go",
        """
        resp, err := http.Get("http://inventory:8080/items")
        req, _ := http.NewRequest("PUT", "http://inventory:8080/items/1", body)
        del, _ := http.NewRequestWithContext(ctx, http.MethodDelete, "http://inventory:8080/items/2", nil)
        """,
    )

    assert [(call.method, call.endpoint) for call in calls] == [
        ("GET", "http://inventory:8080/items"),
        ("PUT", "http://inventory:8080/items/1"),
        ("DELETE", "http://inventory:8080/items/2"),
    ]


def test_java_rest_template() -> None:
    calls = _extract(
        "src/main/java/UserClient.java",
        'User user = restTemplate.getForObject("http://users/api/users/1", User.class);\n',
    )

    assert [(call.method, call.framework) for call in calls] == [("GET", "resttemplate")]


def test_ruby_interpolated_url_is_skipped() -> None:
    calls = _extract(
        "lib/client.rb",
        """
        HTTParty.get("https://api.example.com/users/#{id}")
        HTTParty.post('https://api.example.com/users')
        """,
    )

    assert [(call.method, call.endpoint) for call in calls] == [("POST", "https://api.example.com/users")]


def test_extractor_supports_known_languages_only() -> None:
    extractor = APICallExtractor()

    assert extractor.supports(file_entry("src/app.tsx"))
    assert extractor.supports(file_entry("app/main.py"))
    assert not extractor.supports(file_entry("README.md"))
    assert not extractor.supports(file_entry("styles/site.css"))


def test_normalize_method() -> None:
    assert normalize_method("getForObject") == "GET"
    assert normalize_method("PostForm") == "POST"
    assert normalize_method("mutation") == "MUTATION"
    assert normalize_method("exchange") is None
    assert normalize_method(None) is None


def test_is_dynamic_literal() -> None:
    assert is_dynamic_literal("/users/${id}", "`", "javascript")
    assert not is_dynamic_literal("/users/${id}", "'", "javascript")
    assert is_dynamic_literal("/users/#{id}", '"', "ruby")
    assert is_dynamic_literal("/users/$id", '"', "php")
    assert not is_dynamic_literal("/users/$id", "'", "php")


def test_dedupe_keeps_highest_confidence_and_method() -> None:
    regex = APICallSignal(type="http", file="a.js", line=3, confidence=0.9, method="PUT", endpoint="/x", framework="fetch")
    syntax = APICallSignal(type="http", file="a.js", line=3, confidence=0.95, endpoint="/x", framework="fetch")
    other = APICallSignal(type="http", file="a.js", line=4, confidence=0.9, endpoint="/x", framework="fetch")

    deduped = dedupe_api_calls([regex, other, syntax])

    assert [(call.line, call.confidence, call.method) for call in deduped] == [(3, 0.95, "PUT"), (4, 0.9, None)]
