"""Regex families that locate outbound API calls per language."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from ..models import APICallSignal, FileEntry
from .base import SignalExtractor, language_of, line_of
from .syntax import FetchCallCollector

_HTTP_VERBS = "get|post|put|delete|patch|head|options"
# String literal bodies skip backslash escapes, so \' does not end a '...' literal.
_QUOTED = r"(?P<q>['\"`])(?P<url>(?:\\.|(?!(?P=q)).)*?)(?P=q)"
_PY_QUOTED = r"(?P<q>['\"])(?P<url>(?:\\.|(?!(?P=q)).)*?)(?P=q)"
_DQ = r"\"(?P<url>(?:\\.|[^\"\\\n])*)\""

_OPTION_METHOD = re.compile(r"""\bmethod\s*:\s*['"`](\w+)['"`]""")
_RUBY_INTERPOLATION = re.compile(r"#\{")
_PHP_VARIABLE = re.compile(r"\$\w|\{\$")

_VERB_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("options", "OPTIONS"),
    ("patch", "PATCH"),
    ("post", "POST"),
    ("put", "PUT"),
    ("delete", "DELETE"),
    ("head", "HEAD"),
    ("get", "GET"),
)


@dataclass(frozen=True)
class ApiPattern:
    """One regex family member.

    ``method`` is used when the regex has no ``method`` group; with
    ``method_from_options`` an inline ``method: 'X'`` option overrides it.
    """

    regex: Pattern[str]
    type: str
    framework: str
    confidence: float
    method: Optional[str] = None
    method_from_options: bool = False
    requires_url: bool = True


def _p(pattern: str, flags: int = 0) -> Pattern[str]:
    return re.compile(pattern, flags)


PATTERNS: Dict[str, Tuple[ApiPattern, ...]] = {
    "javascript": (
        ApiPattern(_p(r"\bfetch\s*\(\s*" + _QUOTED), "http", "fetch", 0.9, method_from_options=True),
        ApiPattern(_p(rf"\baxios\.(?P<method>{_HTTP_VERBS})\s*\(\s*" + _QUOTED), "http", "axios", 0.9),
        ApiPattern(
            _p(r"\baxios\s*\(\s*\{[^}]*?\burl\s*:\s*" + _QUOTED),
            "http",
            "axios",
            0.9,
            method="GET",
            method_from_options=True,
        ),
        ApiPattern(_p(r"\$\.(?P<method>ajax|get|post|getJSON)\s*\(\s*" + _QUOTED), "http", "jquery", 0.85),
        ApiPattern(
            _p(r"\.open\s*\(\s*['\"](?P<method>GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)['\"]\s*,\s*" + _QUOTED),
            "http",
            "xhr",
            0.85,
        ),
        ApiPattern(
            _p(r"\bgql\s*`[^`]*?\b(?P<method>query|mutation|subscription)\b[^`]*`"),
            "graphql",
            "graphql",
            0.8,
            requires_url=False,
        ),
        ApiPattern(_p(r"\bnew\s+WebSocket\s*\(\s*" + _QUOTED), "websocket", "websocket", 0.9),
        ApiPattern(_p(r"\bio\s*\(\s*" + _QUOTED), "websocket", "socket.io", 0.8),
        ApiPattern(
            _p(r"\bnew\s+\w+Client\s*\(\s*" + _QUOTED + r"\s*,\s*grpc\.credentials"),
            "grpc",
            "grpc",
            0.8,
        ),
    ),
    "python": (
        ApiPattern(_p(rf"\brequests\.(?P<method>{_HTTP_VERBS})\s*\(\s*" + _PY_QUOTED), "http", "requests", 0.85),
        ApiPattern(_p(rf"\bhttpx\.(?P<method>{_HTTP_VERBS})\s*\(\s*" + _PY_QUOTED), "http", "httpx", 0.85),
        ApiPattern(_p(r"\burlopen\s*\(\s*" + _PY_QUOTED), "http", "urllib", 0.85, method="GET"),
        ApiPattern(_p(rf"\bsession\.(?P<method>{_HTTP_VERBS})\s*\(\s*" + _PY_QUOTED), "http", "aiohttp", 0.85),
        ApiPattern(_p(r"\bwebsockets\.connect\s*\(\s*" + _PY_QUOTED), "websocket", "websockets", 0.85),
        ApiPattern(
            _p(r"\bgrpc\.(?:aio\.)?(?:insecure|secure)_channel\s*\(\s*" + _PY_QUOTED),
            "grpc",
            "grpc",
            0.85,
        ),
    ),
    "java": (
        ApiPattern(
            _p(
                r"\brestTemplate\.(?P<method>getForObject|getForEntity|postForObject|postForEntity"
                r"|patchForObject|put|delete|exchange)\s*\(\s*" + _DQ
            ),
            "http",
            "resttemplate",
            0.8,
        ),
        ApiPattern(
            _p(r"HttpRequest\.newBuilder\s*\([^;]*?URI\.create\s*\(\s*" + _DQ),
            "http",
            "httpclient",
            0.8,
        ),
        ApiPattern(
            _p(r"new\s+Request\.Builder\s*\(\s*\)\s*\.url\s*\(\s*" + _DQ),
            "http",
            "okhttp",
            0.8,
        ),
        ApiPattern(
            _p(rf"\.(?P<method>{_HTTP_VERBS})\s*\(\s*\)\s*\.uri\s*\(\s*" + _DQ),
            "http",
            "webclient",
            0.8,
        ),
    ),
    "go": (
        ApiPattern(_p(r"\bhttp\.(?P<method>Get|Post|Head|PostForm)\s*\(\s*" + _DQ), "http", "net/http", 0.85),
        ApiPattern(
            _p(
                r"\bhttp\.NewRequest(?:WithContext)?\s*\(\s*(?:\w+\s*,\s*)?"
                r"(?:\"(?P<method>[A-Za-z]+)\"|http\.Method(?P<method_const>\w+))\s*,\s*" + _DQ
            ),
            "http",
            "net/http",
            0.85,
        ),
        ApiPattern(
            _p(r"\bgrpc\.(?:Dial|DialContext|NewClient)\s*\(\s*(?:\w+\s*,\s*)?" + _DQ),
            "grpc",
            "grpc",
            0.85,
        ),
        ApiPattern(
            _p(r"\bwebsocket\.DefaultDialer\.Dial\s*\(\s*" + _DQ),
            "websocket",
            "gorilla/websocket",
            0.85,
        ),
    ),
    "ruby": (
        ApiPattern(_p(r"\bHTTParty\.(?P<method>get|post|put|delete|patch)\s*\(?\s*" + _PY_QUOTED), "http", "httparty", 0.8),
        ApiPattern(_p(r"\bFaraday\.(?P<method>get|post|put|delete|patch)\s*\(?\s*" + _PY_QUOTED), "http", "faraday", 0.8),
        ApiPattern(
            _p(r"\bNet::HTTP\.(?P<method>get_response|get|post_form)\s*\(\s*URI(?:\.parse)?\s*\(?\s*" + _PY_QUOTED),
            "http",
            "net/http",
            0.8,
        ),
    ),
    "php": (
        ApiPattern(_p(r"\bHttp::(?P<method>get|post|put|delete|patch)\s*\(\s*" + _PY_QUOTED), "http", "laravel-http", 0.8),
        ApiPattern(
            _p(r"->request\s*\(\s*['\"](?P<method>(?i:get|post|put|delete|patch))['\"]\s*,\s*" + _PY_QUOTED),
            "http",
            "guzzle",
            0.8,
        ),
        ApiPattern(_p(r"\bcurl_init\s*\(\s*" + _PY_QUOTED), "http", "curl", 0.8),
    ),
}


def normalize_method(raw: str | None) -> Optional[str]:
    """Map client method names (``getForObject``, ``PostForm``) onto HTTP verbs."""
    if not raw:
        return None
    lowered = raw.lower()
    if lowered in {"query", "mutation", "subscription"}:
        return lowered.upper()
    for prefix, verb in _VERB_PREFIXES:
        if lowered.startswith(prefix):
            return verb
    return None


def is_dynamic_literal(value: str, quote: str | None, language: str) -> bool:
    """Return True when a string literal interpolates runtime values."""
    if quote == "`" and "${" in value:
        return True
    if language == "ruby" and quote == '"' and _RUBY_INTERPOLATION.search(value):
        return True
    if language == "php" and quote == '"' and _PHP_VARIABLE.search(value):
        return True
    return False


def dedupe_api_calls(signals: Iterable[APICallSignal]) -> List[APICallSignal]:
    """Keep the highest-confidence signal per (file, line, endpoint), in first-seen order.

    A winner without a method inherits the method of the signal it replaced.
    """
    best: Dict[Tuple[str, int, Optional[str]], APICallSignal] = {}
    for signal in signals:
        key = (signal.file, signal.line, signal.endpoint)
        current = best.get(key)
        if current is None:
            best[key] = signal
        elif signal.confidence > current.confidence:
            best[key] = signal if signal.method else replace(signal, method=current.method)
        elif current.method is None and signal.method:
            best[key] = replace(current, method=signal.method)
    return list(best.values())


class APICallExtractor(SignalExtractor[APICallSignal]):
    """Finds HTTP, GraphQL, WebSocket and gRPC calls in source files."""

    kind = "api_calls"

    def __init__(self, syntax: FetchCallCollector | None = None) -> None:
        self._syntax = syntax if syntax is not None else FetchCallCollector()

    def supports(self, entry: FileEntry) -> bool:
        return language_of(entry) in PATTERNS

    def extract(self, entry: FileEntry, content: str) -> List[APICallSignal]:
        language = language_of(entry)
        if language is None or language not in PATTERNS:
            return []

        signals: List[APICallSignal] = []
        for pattern in PATTERNS[language]:
            for match in pattern.regex.finditer(content):
                signal = self._build_signal(pattern, match, content, entry, language)
                if signal is not None:
                    signals.append(signal)

        if self._syntax.supports_extension(entry.extension):
            signals.extend(self._syntax.collect(entry.relative_path, entry.extension, content))

        signals.sort(key=lambda signal: signal.line)
        return dedupe_api_calls(signals)

    @staticmethod
    def _build_signal(
        pattern: ApiPattern,
        match: re.Match[str],
        content: str,
        entry: FileEntry,
        language: str,
    ) -> Optional[APICallSignal]:
        groups = match.groupdict()
        endpoint = groups.get("url")
        if pattern.requires_url:
            if not endpoint:
                return None
            if is_dynamic_literal(endpoint, groups.get("q"), language):
                return None

        raw_method = groups.get("method") or groups.get("method_const")
        method = normalize_method(raw_method) if raw_method else pattern.method
        if pattern.method_from_options:
            option = _OPTION_METHOD.search(content, match.start(), _statement_end(content, match.end()))
            if option:
                method = option.group(1).upper()

        return APICallSignal(
            type=pattern.type,
            file=entry.relative_path,
            line=line_of(content, match.start()),
            confidence=pattern.confidence,
            method=method,
            endpoint=endpoint if pattern.requires_url else None,
            framework=pattern.framework,
        )


def _statement_end(content: str, start: int) -> int:
    """Index of the ``)`` closing the current call, bounded to a short window."""
    depth = 0
    limit = min(len(content), start + 400)
    for index in range(start, limit):
        char = content[index]
        if char in "({[":
            depth += 1
        elif char in ")}]":
            if depth == 0:
                return index
            depth -= 1
    return limit


__all__ = [
    "APICallExtractor",
    "ApiPattern",
    "PATTERNS",
    "dedupe_api_calls",
    "is_dynamic_literal",
    "normalize_method",
]
