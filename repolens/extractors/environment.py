"""Environment variable declarations and usages."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Pattern, Tuple

from ..models import EnvironmentVariableUsage, FileEntry
from .base import SignalExtractor, language_of

_NAME = r"([A-Z_][A-Z0-9_]*)"

_DECLARATION = re.compile(r"^[ \t]*(?:export[ \t]+)?" + _NAME + r"[ \t]*=", re.MULTILINE)

_TEMPLATE_NAMES = frozenset({"env.example", "env.sample", "env.template"})

USAGE_PATTERNS: Dict[str, Tuple[Pattern[str], ...]] = {
    "javascript": (
        re.compile(r"\bprocess\.env\." + _NAME + r"\b"),
        re.compile(r"\bprocess\.env\[\s*['\"`]" + _NAME + r"['\"`]\s*\]"),
        re.compile(r"\bimport\.meta\.env\." + _NAME + r"\b"),
    ),
    "python": (
        re.compile(r"\bos\.getenv\(\s*['\"]" + _NAME + r"['\"]"),
        re.compile(r"\bos\.environ\[\s*['\"]" + _NAME + r"['\"]\s*\]"),
        re.compile(r"\bos\.environ\.get\(\s*['\"]" + _NAME + r"['\"]"),
    ),
    "ruby": (
        re.compile(r"\bENV\[\s*['\"]" + _NAME + r"['\"]\s*\]"),
        re.compile(r"\bENV\.fetch\(\s*['\"]" + _NAME + r"['\"]"),
    ),
    "php": (
        re.compile(r"\$_ENV\[\s*['\"]" + _NAME + r"['\"]\s*\]"),
        re.compile(r"\bgetenv\(\s*['\"]" + _NAME + r"['\"]"),
        re.compile(r"\benv\(\s*['\"]" + _NAME + r"['\"]"),
    ),
    "java": (re.compile(r"\bSystem\.getenv\(\s*\"" + _NAME + r"\"\s*\)"),),
    "go": (
        re.compile(r"\bos\.Getenv\(\s*\"" + _NAME + r"\"\s*\)"),
        re.compile(r"\bos\.LookupEnv\(\s*\"" + _NAME + r"\"\s*\)"),
    ),
}

_TYPE_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("api_key", ("key", "token", "secret")),
    ("database_url", ("database", "db_", "_url")),
    ("api_endpoint", ("api_", "endpoint", "base_url")),
    ("secret", ("password", "pwd", "auth")),
)


def infer_variable_type(name: str) -> str:
    """Guess what a variable holds from substrings of its name."""
    lowered = name.lower()
    for variable_type, needles in _TYPE_RULES:
        if any(needle in lowered for needle in needles):
            return variable_type
    return "config"


def is_declaration_file(name: str) -> bool:
    return name.startswith(".env") or name in _TEMPLATE_NAMES or name.endswith(".env")


class EnvironmentExtractor(SignalExtractor[EnvironmentVariableUsage]):
    """Reads NAME=value declarations and per-language access idioms."""

    kind = "environment_variables"

    def supports(self, entry: FileEntry) -> bool:
        return is_declaration_file(entry.name) or language_of(entry) in USAGE_PATTERNS

    def extract(self, entry: FileEntry, content: str) -> List[EnvironmentVariableUsage]:
        names: List[str] = []
        declared = is_declaration_file(entry.name)
        if declared:
            names.extend(match.group(1) for match in _DECLARATION.finditer(content))
        else:
            for pattern in USAGE_PATTERNS.get(language_of(entry) or "", ()):
                names.extend(match.group(1) for match in pattern.finditer(content))
        return [
            EnvironmentVariableUsage(
                name=name,
                possible_type=infer_variable_type(name),
                used_in=[entry.relative_path],
                declared=declared,
            )
            for name in dict.fromkeys(names)
        ]


def merge_usages(usages: Iterable[EnvironmentVariableUsage]) -> List[EnvironmentVariableUsage]:
    """Merge per-file usages by name, deduplicating the files each appears in."""
    merged: Dict[str, EnvironmentVariableUsage] = {}
    for usage in usages:
        current = merged.get(usage.name)
        if current is None:
            merged[usage.name] = EnvironmentVariableUsage(
                name=usage.name,
                possible_type=usage.possible_type,
                used_in=list(dict.fromkeys(usage.used_in)),
                declared=usage.declared,
            )
            continue
        for path in usage.used_in:
            if path not in current.used_in:
                current.used_in.append(path)
        current.declared = current.declared or usage.declared
    return list(merged.values())


__all__ = [
    "EnvironmentExtractor",
    "USAGE_PATTERNS",
    "infer_variable_type",
    "is_declaration_file",
    "merge_usages",
]
