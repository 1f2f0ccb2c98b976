"""Framework detection driven by a declarative signature table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import ExtractionParseError, ReadError
from ..extractors.manifests import parser_for, strip_version_range
from ..logging import get_logger
from ..models import DetectedFramework, FileEntry, LibraryDependency
from .classifier import primary_language

_LOGGER = get_logger("analyzers.frameworks")

CONFIG_WEIGHT = 0.5
MANIFEST_WEIGHT = 0.5
FILE_PATTERN_WEIGHT = 0.3
REPORT_THRESHOLD = 0.4

# Manifests that exist in most projects of an ecosystem. They only count as
# config evidence for a framework when they declare one of its packages.
GENERIC_MANIFESTS = frozenset(
    {
        "package.json",
        "requirements.txt",
        "pyproject.toml",
        "setup.py",
        "pom.xml",
        "build.gradle",
        "build.gradle.kts",
        "go.mod",
        "composer.json",
        "Gemfile",
    }
)

# Entry scripts shared by many Python web apps; evidence only when some
# manifest declares the framework.
GENERIC_ENTRY_FILES = frozenset({"app.py", "main.py"})

_MANIFEST_ECOSYSTEMS: Tuple[Tuple[str, str], ...] = (
    ("package.json", "npm"),
    ("requirements.txt", "pip"),
    ("pyproject.toml", "pip"),
    ("pom.xml", "maven"),
    ("build.gradle", "gradle"),
    ("build.gradle.kts", "gradle"),
    ("go.mod", "go"),
    ("composer.json", "composer"),
    ("Gemfile", "gem"),
)


@dataclass(frozen=True)
class FrameworkSignature:
    name: str
    type: str
    config_files: Tuple[str, ...] = ()
    packages: Tuple[str, ...] = ()
    file_patterns: Tuple[str, ...] = ()


SIGNATURES: Tuple[FrameworkSignature, ...] = (
    FrameworkSignature("React", "frontend", ("package.json",), ("react", "react-dom"), (".jsx", ".tsx", "App.js", "App.tsx")),
    FrameworkSignature("Vue.js", "frontend", ("package.json", "vue.config.js"), ("vue", "@vue/cli"), (".vue", "App.vue")),
    FrameworkSignature("Angular", "frontend", ("angular.json", "package.json"), ("@angular/core",), (".component.ts", ".module.ts")),
    FrameworkSignature("Next.js", "fullstack", ("next.config.js", "next.config.mjs", "package.json"), ("next",), ("pages/", "app/")),
    FrameworkSignature("Nuxt.js", "fullstack", ("nuxt.config.js", "nuxt.config.ts", "package.json"), ("nuxt",)),
    FrameworkSignature("Svelte", "frontend", ("svelte.config.js", "package.json"), ("svelte",), (".svelte",)),
    FrameworkSignature("Express.js", "backend", ("package.json",), ("express",)),
    FrameworkSignature("NestJS", "backend", ("nest-cli.json", "package.json"), ("@nestjs/core",)),
    FrameworkSignature("Fastify", "backend", ("package.json",), ("fastify",)),
    FrameworkSignature("Koa", "backend", ("package.json",), ("koa",)),
    FrameworkSignature("Gatsby", "frontend", ("gatsby-config.js", "gatsby-config.ts", "package.json"), ("gatsby",)),
    FrameworkSignature("Vite", "tool", ("vite.config.js", "vite.config.ts"), ("vite",)),
    FrameworkSignature("Webpack", "tool", ("webpack.config.js", "webpack.config.ts"), ("webpack",)),
    FrameworkSignature("Django", "fullstack", ("manage.py", "settings.py", "requirements.txt", "pyproject.toml"), ("django",), ("models.py", "views.py", "urls.py")),
    FrameworkSignature("Flask", "backend", ("app.py", "requirements.txt", "pyproject.toml"), ("flask",)),
    FrameworkSignature("FastAPI", "backend", ("main.py", "requirements.txt", "pyproject.toml"), ("fastapi",)),
    FrameworkSignature("Pyramid", "backend", ("setup.py", "requirements.txt"), ("pyramid",)),
    FrameworkSignature("Spring Boot", "backend", ("pom.xml", "build.gradle", "application.properties", "application.yml"), ("spring-boot",)),
    FrameworkSignature("Spring", "backend", ("pom.xml", "build.gradle", "applicationContext.xml"), ("springframework",)),
    FrameworkSignature("Laravel", "fullstack", ("composer.json", "artisan"), ("laravel/framework",), ("routes/web.php", "app/Http/Controllers")),
    FrameworkSignature("Symfony", "fullstack", ("composer.json", "symfony.lock"), ("symfony/framework-bundle",)),
    FrameworkSignature("CodeIgniter", "fullstack", ("composer.json", "spark"), ("codeigniter4/framework",)),
    FrameworkSignature("Ruby on Rails", "fullstack", ("Gemfile", "config.ru", "Rakefile"), ("rails",), ("app/controllers", "app/models", "app/views")),
    FrameworkSignature("Sinatra", "backend", ("Gemfile", "config.ru"), ("sinatra",)),
    FrameworkSignature("Gin", "backend", ("go.mod",), ("github.com/gin-gonic/gin",)),
    FrameworkSignature("Echo", "backend", ("go.mod",), ("github.com/labstack/echo",)),
    FrameworkSignature("Fiber", "backend", ("go.mod",), ("github.com/gofiber/fiber",)),
    FrameworkSignature("ASP.NET Core", "fullstack", (".csproj", "Program.cs", "Startup.cs"), ("Microsoft.AspNetCore",)),
    FrameworkSignature("React Native", "frontend", ("package.json", "app.json"), ("react-native",)),
    FrameworkSignature("Flutter", "frontend", ("pubspec.yaml", "pubspec.lock"), (), (".dart", "lib/main.dart")),
    FrameworkSignature("Ionic", "frontend", ("ionic.config.json", "package.json"), ("@ionic/angular", "@ionic/react", "@ionic/vue")),
)

DATABASE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("PostgreSQL", ("postgresql", "postgres", "pg_", "psql")),
    ("MySQL", ("mysql", "mariadb")),
    ("MongoDB", ("mongodb", "mongoose")),
    ("Redis", ("redis",)),
    ("SQLite", ("sqlite", ".db", ".sqlite")),
    ("Elasticsearch", ("elasticsearch", "elastic")),
    ("DynamoDB", ("dynamodb", "dynamo")),
    ("Cassandra", ("cassandra",)),
    ("Neo4j", ("neo4j",)),
    ("Firebase", ("firebase", "firestore")),
    ("Supabase", ("supabase",)),
)


@dataclass
class ManifestIndex:
    """Dependencies declared by the shallowest manifest of each kind."""

    by_manifest: Dict[str, List[LibraryDependency]] = field(default_factory=dict)

    def matches(self, manifest: str, pattern: str) -> List[str]:
        needle = pattern.lower()
        return [
            dep.name
            for dep in self.by_manifest.get(manifest, [])
            if needle in dep.name.lower()
        ]

    def declares_any(self, manifest: str, patterns: Sequence[str]) -> bool:
        return any(self.matches(manifest, pattern) for pattern in patterns)

    def declared_anywhere(self, patterns: Sequence[str]) -> bool:
        return any(self.declares_any(manifest, patterns) for manifest in self.by_manifest)

    def npm_version(self, patterns: Sequence[str]) -> Optional[str]:
        deps = self.by_manifest.get("package.json", [])
        for pattern in patterns:
            for dep in deps:
                if dep.name == pattern and dep.type != "optional":
                    return strip_version_range(dep.version)
        return None


@dataclass
class ProjectStack:
    """Stack summary; ``confidence`` is that of the strongest framework deciding ``stack``."""

    stack: str
    primary_language: str
    databases: List[str] = field(default_factory=list)
    confidence: float = 0.0
    frameworks: List[str] = field(default_factory=list)
    build_tools: List[str] = field(default_factory=list)


class FrameworkDetector:
    """Scores every known framework signature against a scanned file tree."""

    def __init__(
        self,
        reader: Callable[[FileEntry], str],
        signatures: Sequence[FrameworkSignature] = SIGNATURES,
    ) -> None:
        self._reader = reader
        self._signatures = tuple(signatures)

    def detect(self, files: Sequence[FileEntry]) -> List[DetectedFramework]:
        regular = [entry for entry in files if not entry.is_directory]
        index = self._index_manifests(regular)

        detected: List[DetectedFramework] = []
        for signature in self._signatures:
            framework = self._score(signature, regular, index)
            if framework is not None:
                detected.append(framework)
        detected.sort(key=lambda item: item.confidence, reverse=True)
        return detected

    def _score(
        self,
        signature: FrameworkSignature,
        files: Sequence[FileEntry],
        index: ManifestIndex,
    ) -> Optional[DetectedFramework]:
        evidence: List[str] = []
        confidence = 0.0

        found_configs = [
            config
            for config in signature.config_files
            if _config_present(config, files)
            and (config not in GENERIC_MANIFESTS or index.declares_any(config, signature.packages))
            and (config not in GENERIC_ENTRY_FILES or index.declared_anywhere(signature.packages))
        ]
        if found_configs:
            confidence += CONFIG_WEIGHT
            evidence.extend(f"config:{config}" for config in found_configs)

        manifest_score = 0.0
        for manifest, ecosystem in _MANIFEST_ECOSYSTEMS:
            for pattern in signature.packages:
                names = index.matches(manifest, pattern)
                if names:
                    manifest_score += MANIFEST_WEIGHT
                    evidence.extend(f"manifest:{ecosystem}:{name}" for name in names)
        confidence += min(manifest_score, MANIFEST_WEIGHT)

        matched_patterns = [
            pattern for pattern in signature.file_patterns if _pattern_matches(pattern, files)
        ]
        if matched_patterns:
            confidence += FILE_PATTERN_WEIGHT
            evidence.extend(f"file:{pattern}" for pattern in matched_patterns)

        confidence = round(min(confidence, 1.0), 2)
        if confidence <= REPORT_THRESHOLD:
            return None
        return DetectedFramework(
            name=signature.name,
            type=signature.type,
            confidence=confidence,
            version=index.npm_version(signature.packages),
            evidence=list(dict.fromkeys(evidence)),
        )

    def _index_manifests(self, files: Sequence[FileEntry]) -> ManifestIndex:
        index = ManifestIndex()
        wanted = {name for name, _ in _MANIFEST_ECOSYSTEMS}
        shallowest: Dict[str, FileEntry] = {}
        for entry in files:
            if entry.name not in wanted:
                continue
            current = shallowest.get(entry.name)
            depth = entry.relative_path.count("/")
            if current is None or depth < current.relative_path.count("/"):
                shallowest[entry.name] = entry

        for name, entry in shallowest.items():
            parser = parser_for(name)
            if parser is None:
                continue
            try:
                content = self._reader(entry)
                index.by_manifest[name] = parser(content, entry.relative_path)
            except (ReadError, ExtractionParseError) as exc:
                _LOGGER.warning("Ignoring manifest %s: %s", entry.relative_path, exc)
        return index


def detect_frameworks(
    files: Sequence[FileEntry], reader: Callable[[FileEntry], str]
) -> List[DetectedFramework]:
    return FrameworkDetector(reader).detect(files)


def detect_project_stack(
    frameworks: Sequence[DetectedFramework], files: Iterable[FileEntry] = ()
) -> ProjectStack:
    """Summarise detected frameworks as a frontend/backend/fullstack stack."""
    entries = list(files)
    types = {framework.type for framework in frameworks}
    if "fullstack" in types or {"frontend", "backend"} <= types:
        stack = "fullstack"
        deciding = {"frontend", "backend", "fullstack"}
    elif "frontend" in types:
        stack = "frontend"
        deciding = {"frontend"}
    elif "backend" in types:
        stack = "backend"
        deciding = {"backend"}
    else:
        stack = "unknown"
        deciding = set()
    confidence = max(
        (framework.confidence for framework in frameworks if framework.type in deciding),
        default=0.0,
    )

    paths = [entry.relative_path.lower() for entry in entries]
    databases = [
        database
        for database, keywords in DATABASE_KEYWORDS
        if any(keyword in path for path in paths for keyword in keywords)
    ]

    return ProjectStack(
        stack=stack,
        primary_language=primary_language(
            entry.relative_path for entry in entries if not entry.is_directory
        ),
        databases=databases,
        confidence=confidence,
        frameworks=[
            framework.name
            for side in ("frontend", "backend", "fullstack")
            for framework in frameworks
            if framework.type == side
        ],
        build_tools=[framework.name for framework in frameworks if framework.type == "tool"],
    )


def _config_present(config: str, files: Sequence[FileEntry]) -> bool:
    if config.startswith("."):
        return any(entry.name.endswith(config) for entry in files)
    return any(
        entry.name == config or entry.relative_path.endswith(f"/{config}") for entry in files
    )


def _pattern_matches(pattern: str, files: Sequence[FileEntry]) -> bool:
    if "/" in pattern:
        return any(f"/{pattern}" in f"/{entry.relative_path}" for entry in files)
    if pattern.startswith("."):
        return any(entry.name.endswith(pattern) for entry in files)
    return any(entry.name == pattern for entry in files)


__all__ = [
    "DATABASE_KEYWORDS",
    "FrameworkDetector",
    "FrameworkSignature",
    "ProjectStack",
    "SIGNATURES",
    "detect_frameworks",
    "detect_project_stack",
]
