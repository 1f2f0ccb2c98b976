"""Database connection detection and connection-string sanitizing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Pattern, Tuple

from ..analyzers.classifier import classify
from ..models import DatabaseConnectionSignal, FileEntry
from .base import SignalExtractor, line_of

DATABASE_CONFIDENCE = 0.8

_URI_TAIL = r"[^\s'\"`<>]+"

_URI_CREDENTIALS = re.compile(
    r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.\-]*://)?(?P<user>[^:/@\s'\"`]*):(?P<password>[^\s'\"`]+)@"
)
_KEY_VALUE_SECRET = re.compile(r"(?i)\b(password|passwd|pwd)(\s*=\s*)[^;&\s'\"`]+")
_OPTION_SECRET = re.compile(r"(?i)\b(password|passwd|pwd)(['\"]?\s*:\s*)(['\"`])[^'\"`]*\3")
_CONNECT_PASSWORD_ARG = re.compile(
    r"(\b\w+_connect\s*\(\s*[^,()]+,\s*[^,()]+,\s*)(['\"])[^'\"]*\2"
)


def sanitize_connection_string(value: str) -> str:
    """Mask credentials in a connection string or connect call."""

    def _mask_uri(match: re.Match[str]) -> str:
        scheme = match.group("scheme") or ""
        user = match.group("user")
        if user and user == match.group("password"):
            user = "****"
        return f"{scheme}{user}:****@"

    result = _URI_CREDENTIALS.sub(_mask_uri, value)
    result = _KEY_VALUE_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}****", result)
    result = _OPTION_SECRET.sub(lambda m: f"{m.group(1)}{m.group(2)}{m.group(3)}****{m.group(3)}", result)
    result = _CONNECT_PASSWORD_ARG.sub(lambda m: f"{m.group(1)}{m.group(2)}****{m.group(2)}", result)
    return result


@dataclass(frozen=True)
class DatabasePattern:
    regex: Pattern[str]
    database: str
    type: str


_JDBC_VENDORS: Dict[str, Tuple[str, str]] = {
    "mysql": ("MySQL", "sql"),
    "mariadb": ("MySQL", "sql"),
    "postgresql": ("PostgreSQL", "sql"),
    "sqlserver": ("SQL Server", "sql"),
    "oracle": ("Oracle", "sql"),
    "sqlite": ("SQLite", "sql"),
    "h2": ("H2", "sql"),
}

PATTERNS: Tuple[DatabasePattern, ...] = (
    DatabasePattern(re.compile(r"\bpostgres(?:ql)?(?:\+\w+)?://" + _URI_TAIL), "PostgreSQL", "sql"),
    DatabasePattern(
        re.compile(r"\bhost=[^;\s'\"`]+[^\n'\"`]*?\bport=\d+[^\n'\"`]*?\bdbname=[^;\s'\"`]+"),
        "PostgreSQL",
        "sql",
    ),
    DatabasePattern(re.compile(r"\b(?:mysql|mariadb)(?:\+\w+)?://" + _URI_TAIL), "MySQL", "sql"),
    DatabasePattern(re.compile(r"\bmysqli?_connect\s*\([^)\n]*\)"), "MySQL", "sql"),
    DatabasePattern(re.compile(r"\bmongodb(?:\+srv)?://" + _URI_TAIL), "MongoDB", "nosql"),
    DatabasePattern(re.compile(r"\bmongoose\.connect\s*\([^)\n]*\)"), "MongoDB", "nosql"),
    DatabasePattern(re.compile(r"\brediss?://" + _URI_TAIL), "Redis", "cache"),
    DatabasePattern(re.compile(r"\bcreateClient\s*\(\s*\{[^}]*\bhost\b[^}]*\}\s*\)"), "Redis", "cache"),
    DatabasePattern(re.compile(r"\bsqlite(?:3)?:///[^\s'\"`]*"), "SQLite", "sql"),
    DatabasePattern(re.compile(r"['\"`][^'\"`\s]+\.(?:db|sqlite3?)['\"`]"), "SQLite", "sql"),
    DatabasePattern(re.compile(r"\b(?:mssql|sqlserver)://" + _URI_TAIL), "SQL Server", "sql"),
    DatabasePattern(
        re.compile(r"\bElasticsearch\s*\(\s*\[?\s*['\"](https?://[^'\"]+)['\"]"),
        "Elasticsearch",
        "search",
    ),
)

_JDBC = re.compile(r"\bjdbc:(?P<vendor>mysql|mariadb|postgresql|sqlserver|oracle|sqlite|h2):" + _URI_TAIL)


class DatabaseExtractor(SignalExtractor[DatabaseConnectionSignal]):
    """Finds database connection strings and client constructors."""

    kind = "database_connections"

    def supports(self, entry: FileEntry) -> bool:
        info = classify(entry.relative_path)
        return not (info.is_binary or info.category == "documentation")

    def extract(self, entry: FileEntry, content: str) -> List[DatabaseConnectionSignal]:
        found: Dict[Tuple[int, str], DatabaseConnectionSignal] = {}

        def _add(database: str, db_type: str, start: int, raw: str) -> None:
            line = line_of(content, start)
            key = (line, database)
            if key in found:
                return
            found[key] = DatabaseConnectionSignal(
                type=db_type,
                database=database,
                file=entry.relative_path,
                line=line,
                confidence=DATABASE_CONFIDENCE,
                connection_string=sanitize_connection_string(raw.strip("'\"`")),
            )

        for match in _JDBC.finditer(content):
            database, db_type = _JDBC_VENDORS[match.group("vendor")]
            _add(database, db_type, match.start(), match.group(0))

        for pattern in PATTERNS:
            for match in pattern.regex.finditer(content):
                if _inside_jdbc(content, match.start()):
                    continue
                _add(pattern.database, pattern.type, match.start(), match.group(0))

        return sorted(found.values(), key=lambda signal: signal.line)


def _inside_jdbc(content: str, start: int) -> bool:
    return content.endswith("jdbc:", 0, start)


__all__ = [
    "DATABASE_CONFIDENCE",
    "DatabaseExtractor",
    "DatabasePattern",
    "PATTERNS",
    "sanitize_connection_string",
]
