"""Tree-sitter pass that corroborates ``fetch`` calls in JavaScript and TypeScript."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from ..models import APICallSignal

SYNTAX_CONFIDENCE = 0.95

_LANGUAGE_LOADERS: Dict[str, Callable[[], object]] = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

_GRAMMAR_BY_EXTENSION = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
}


class FetchCallCollector:
    """Finds ``fetch("<literal>")`` call expressions in a syntax tree."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Parser] = {}
        self._lock = threading.Lock()

    @staticmethod
    def supports_extension(extension: str) -> bool:
        return extension in _GRAMMAR_BY_EXTENSION

    def collect(self, relative_path: str, extension: str, content: str) -> List[APICallSignal]:
        grammar = _GRAMMAR_BY_EXTENSION.get(extension)
        if grammar is None:
            return []
        source_bytes = content.encode("utf-8")
        # Parser instances are not safe to share between worker threads.
        with self._lock:
            tree = self._get_parser(grammar).parse(source_bytes)

        signals: List[APICallSignal] = []
        stack: List[Node] = [tree.root_node]
        while stack:
            node = stack.pop()
            if node.type == "call_expression":
                endpoint = self._static_fetch_argument(node, source_bytes)
                if endpoint is not None:
                    signals.append(
                        APICallSignal(
                            type="http",
                            file=relative_path,
                            line=node.start_point[0] + 1,
                            confidence=SYNTAX_CONFIDENCE,
                            endpoint=endpoint,
                            framework="fetch",
                        )
                    )
            stack.extend(reversed(node.children))
        return signals

    def _get_parser(self, grammar: str) -> Parser:
        parser = self._parsers.get(grammar)
        if parser is None:
            parser = Parser(Language(_LANGUAGE_LOADERS[grammar]()))
            self._parsers[grammar] = parser
        return parser

    @classmethod
    def _static_fetch_argument(cls, node: Node, source_bytes: bytes) -> Optional[str]:
        function = node.child_by_field_name("function")
        if function is None or function.type != "identifier":
            return None
        if cls._node_text(function, source_bytes) != "fetch":
            return None
        arguments = node.child_by_field_name("arguments")
        if arguments is None:
            return None
        first = next((child for child in arguments.named_children if child.type != "comment"), None)
        # Only plain string literals; template strings are left to the regex pass.
        if first is None or first.type != "string":
            return None
        value = cls._node_text(first, source_bytes)[1:-1]
        return value or None

    @staticmethod
    def _node_text(node: Node, source_bytes: bytes) -> str:
        return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


__all__ = ["FetchCallCollector", "SYNTAX_CONFIDENCE"]
