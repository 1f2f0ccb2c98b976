"""File name based language and category classification."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

# extension -> (file type, language, is code)
_EXTENSIONS: Dict[str, Tuple[str, str, bool]] = {
    ".js": ("javascript", "JavaScript", True),
    ".jsx": ("javascript", "JavaScript", True),
    ".mjs": ("javascript", "JavaScript", True),
    ".cjs": ("javascript", "JavaScript", True),
    ".ts": ("typescript", "TypeScript", True),
    ".tsx": ("typescript", "TypeScript", True),
    ".mts": ("typescript", "TypeScript", True),
    ".cts": ("typescript", "TypeScript", True),
    ".py": ("python", "Python", True),
    ".pyw": ("python", "Python", True),
    ".java": ("java", "Java", True),
    ".cs": ("csharp", "C#", True),
    ".go": ("go", "Go", True),
    ".rb": ("ruby", "Ruby", True),
    ".php": ("php", "PHP", True),
    ".swift": ("swift", "Swift", True),
    ".kt": ("kotlin", "Kotlin", True),
    ".kts": ("kotlin", "Kotlin", True),
    ".rs": ("rust", "Rust", True),
    ".scala": ("scala", "Scala", True),
    ".dart": ("dart", "Dart", True),
    ".cpp": ("cplusplus", "C++", True),
    ".cc": ("cplusplus", "C++", True),
    ".cxx": ("cplusplus", "C++", True),
    ".hpp": ("cplusplus", "C++", True),
    ".c": ("c", "C", True),
    ".h": ("c", "C", True),
    ".vue": ("vue", "Vue", True),
    ".svelte": ("svelte", "Svelte", True),
    ".sh": ("shell", "Shell", True),
    ".sql": ("sql", "SQL", True),
    ".graphql": ("graphql", "GraphQL", True),
    ".gql": ("graphql", "GraphQL", True),
    ".html": ("html", "HTML", False),
    ".htm": ("html", "HTML", False),
    ".css": ("css", "CSS", False),
    ".scss": ("scss", "SCSS", False),
    ".sass": ("scss", "SCSS", False),
    ".less": ("less", "Less", False),
    ".json": ("json", "JSON", False),
    ".yaml": ("yaml", "YAML", False),
    ".yml": ("yaml", "YAML", False),
    ".toml": ("toml", "TOML", False),
    ".xml": ("xml", "XML", False),
    ".md": ("markdown", "Markdown", False),
    ".mdx": ("markdown", "Markdown", False),
    ".rst": ("restructuredtext", "reStructuredText", False),
}

_CONFIG_EXTENSIONS = {".json", ".yaml", ".yml", ".toml", ".xml", ".ini", ".cfg", ".conf", ".properties"}

CONFIGURATION_FILES = frozenset(
    {
        "package.json",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "composer.json",
        "composer.lock",
        "requirements.txt",
        "requirements.in",
        "Pipfile",
        "Pipfile.lock",
        "pyproject.toml",
        "setup.py",
        "setup.cfg",
        "pom.xml",
        "build.gradle",
        "build.gradle.kts",
        "settings.gradle",
        "settings.gradle.kts",
        "Gemfile",
        "Gemfile.lock",
        "go.mod",
        "go.sum",
        "Cargo.toml",
        "Cargo.lock",
        "CMakeLists.txt",
        "Makefile",
        "webpack.config.js",
        "vite.config.js",
        "vite.config.ts",
        "rollup.config.js",
        "tsconfig.json",
        "jsconfig.json",
        ".eslintrc.js",
        ".eslintrc.json",
        ".prettierrc",
        ".babelrc",
        "jest.config.js",
        "karma.conf.js",
        ".env",
        ".env.example",
        ".env.local",
        ".env.production",
        ".env.development",
        "docker-compose.yml",
        "docker-compose.yaml",
        "Dockerfile",
        ".dockerignore",
        ".gitignore",
        ".gitattributes",
        "nginx.conf",
        "httpd.conf",
        ".htaccess",
    }
)

_DOC_PREFIXES = ("readme", "changelog", "license", "contributing", "authors", "history", "notice")
_DOC_EXTENSIONS = {".md", ".mdx", ".rst", ".adoc"}

_BINARY_EXTENSIONS = frozenset(
    {
        ".png", ".jpg", ".jpeg", ".gif", ".bmp", ".ico", ".webp", ".tiff", ".psd",
        ".woff", ".woff2", ".ttf", ".otf", ".eot",
        ".zip", ".tar", ".gz", ".tgz", ".bz2", ".xz", ".7z", ".rar", ".jar", ".war",
        ".exe", ".dll", ".so", ".dylib", ".bin", ".o", ".a", ".class", ".pyc", ".pyo",
        ".mp3", ".mp4", ".wav", ".ogg", ".avi", ".mov", ".webm", ".flac",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".db", ".sqlite", ".sqlite3", ".wasm",
    }
)

_TEST_PATTERNS = tuple(
    re.compile(pattern)
    for pattern in (
        r"\.test\.[^/]+$",
        r"\.spec\.[^/]+$",
        r"(^|/)test_[^/]+\.py$",
        r"(^|/)[^/]+_test\.py$",
        r"(^|/)[^/]+_test\.go$",
        r"(^|/)[^/]+_spec\.rb$",
        r"(^|/)[^/]+Tests?\.(java|cs|kt|swift|php)$",
        r"(^|/)tests?/",
        r"(^|/)__tests__/",
        r"(^|/)spec/",
    )
)


@dataclass(frozen=True)
class FileClassification:
    language: str
    file_type: str
    category: str
    is_code: bool
    is_config: bool
    is_doc: bool
    is_test: bool
    is_binary: bool


@dataclass(frozen=True)
class AnalyzeOptions:
    include_tests: bool = True
    include_config: bool = True
    include_binary: bool = False


@dataclass
class FileAggregate:
    language_distribution: Dict[str, int]
    file_type_distribution: Dict[str, int]


def classify(path: str) -> FileClassification:
    """Classify a file by name, using the relative path for test detection."""
    normalized = path.replace("\\", "/")
    name = normalized.rsplit("/", 1)[-1]
    lowered = name.lower()
    extension = _extension(lowered)

    file_type, language, is_code = _EXTENSIONS.get(extension, ("other", "Other", False))

    is_binary = extension in _BINARY_EXTENSIONS
    is_config = (
        name in CONFIGURATION_FILES
        or name.startswith("Dockerfile")
        or extension in _CONFIG_EXTENSIONS
        or "config" in lowered
    )
    is_doc = extension in _DOC_EXTENSIONS or lowered.startswith(_DOC_PREFIXES) or "readme" in lowered
    is_test = any(pattern.search(normalized) for pattern in _TEST_PATTERNS)

    if name == "Dockerfile" or name.startswith("Dockerfile."):
        file_type, language, is_code = "docker", "Docker", False
    elif name in CONFIGURATION_FILES:
        file_type, language, is_code = "configuration", "Configuration", False

    if is_binary:
        category = "binary"
        is_code = False
    elif is_test:
        category = "test"
    elif is_config:
        category = "config"
    elif is_doc:
        category = "documentation"
    elif is_code:
        category = "source"
    else:
        category = "other"

    return FileClassification(
        language=language,
        file_type=file_type,
        category=category,
        is_code=is_code,
        is_config=is_config,
        is_doc=is_doc,
        is_test=is_test,
        is_binary=is_binary,
    )


def aggregate(paths: Iterable[str]) -> FileAggregate:
    languages: Counter[str] = Counter()
    file_types: Counter[str] = Counter()
    for path in paths:
        info = classify(path)
        file_types[info.file_type] += 1
        if info.file_type != "other":
            languages[info.language] += 1
    return FileAggregate(
        language_distribution=dict(languages.most_common()),
        file_type_distribution=dict(file_types.most_common()),
    )


def primary_language(paths: Iterable[str]) -> str:
    """Return the code language with the most files, or ``"Unknown"``."""
    counts: Counter[str] = Counter()
    for path in paths:
        info = classify(path)
        if info.is_code:
            counts[info.language] += 1
    if not counts:
        return "Unknown"
    return counts.most_common(1)[0][0]


def should_analyze(path: str, options: AnalyzeOptions = AnalyzeOptions()) -> bool:
    info = classify(path)
    if info.is_binary and not options.include_binary:
        return False
    if info.is_test and not options.include_tests:
        return False
    if info.is_config and not options.include_config:
        return False
    return True


def _extension(name: str) -> str:
    index = name.rfind(".")
    return name[index:] if index > 0 else ""


__all__ = [
    "AnalyzeOptions",
    "CONFIGURATION_FILES",
    "FileAggregate",
    "FileClassification",
    "aggregate",
    "classify",
    "primary_language",
    "should_analyze",
]
