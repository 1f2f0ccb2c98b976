"""Parsers for package manifests across ecosystems."""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional

from ..errors import ExtractionParseError
from ..models import FileEntry, LibraryDependency
from .base import SignalExtractor

ManifestParser = Callable[[str, str], List[LibraryDependency]]

_REQUIREMENT_LINE = re.compile(
    r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)(?:\[[^\]]*\])?\s*(?:(?P<op>===|==|>=|<=|~=|!=|>|<)\s*(?P<version>[^;#\s]+))?"
)
_VERSION_PREFIX = re.compile(r"^[\^~>=<!\s]+")
_GRADLE_DEPENDENCY = re.compile(
    r"^\s*(?P<config>implementation|api|compile|compileOnly|runtimeOnly|testImplementation|testCompile|testRuntimeOnly|androidTestImplementation)\s*\(?\s*['\"](?P<group>[\w.\-]+):(?P<artifact>[\w.\-]+)(?::(?P<version>[^'\"]+))?['\"]"
)
_GO_REQUIRE_LINE = re.compile(r"^require\s+(\S+)\s+(\S+)")
_GO_BLOCK_LINE = re.compile(r"^(\S+)\s+(v\S+)")
_GEM_LINE = re.compile(r"""^\s*gem\s+['"]([^'"]+)['"](?:\s*,\s*['"]([^'"]+)['"])?""")
_GEM_GROUP = re.compile(r"^\s*group\s+(.+?)\s+do\b")


def strip_version_range(version: str | None) -> Optional[str]:
    """Drop leading range operators such as ``^`` and ``>=`` from a version string."""
    if version is None:
        return None
    cleaned = _VERSION_PREFIX.sub("", str(version)).strip()
    return cleaned or None


def parse_package_json(content: str, manifest: str = "package.json") -> List[LibraryDependency]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc
    if not isinstance(data, dict):
        return []
    deps: List[LibraryDependency] = []
    for key, dep_type in (
        ("dependencies", "production"),
        ("devDependencies", "development"),
        ("peerDependencies", "peer"),
        ("optionalDependencies", "optional"),
    ):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, version in section.items():
            deps.append(
                LibraryDependency(
                    name=str(name),
                    version=str(version) if version is not None else None,
                    type=dep_type,
                    source="npm",
                    manifest=manifest,
                )
            )
    return deps


def parse_requirements(content: str, manifest: str = "requirements.txt") -> List[LibraryDependency]:
    filename = manifest.rsplit("/", 1)[-1].lower()
    dep_type = "development" if any(tag in filename for tag in ("dev", "test")) else "production"
    deps: List[LibraryDependency] = []
    for raw in content.splitlines():
        line = raw.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        match = _REQUIREMENT_LINE.match(line)
        if not match:
            continue
        deps.append(
            LibraryDependency(
                name=match.group("name"),
                version=match.group("version"),
                type=dep_type,
                source="pip",
                manifest=manifest,
            )
        )
    return deps


def parse_pyproject(content: str, manifest: str = "pyproject.toml") -> List[LibraryDependency]:
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc

    deps: List[LibraryDependency] = []

    def _add_requirement(spec: Any, dep_type: str) -> None:
        if not isinstance(spec, str):
            return
        match = _REQUIREMENT_LINE.match(spec.strip())
        if match and match.group("name").lower() != "python":
            deps.append(
                LibraryDependency(
                    name=match.group("name"),
                    version=match.group("version"),
                    type=dep_type,
                    source="pip",
                    manifest=manifest,
                )
            )

    project = data.get("project")
    if isinstance(project, dict):
        for spec in project.get("dependencies") or []:
            _add_requirement(spec, "production")
        optional = project.get("optional-dependencies") or {}
        if isinstance(optional, dict):
            for specs in optional.values():
                for spec in specs or []:
                    _add_requirement(spec, "optional")

    tool = data.get("tool")
    poetry = tool.get("poetry") if isinstance(tool, dict) else None
    if isinstance(poetry, dict):
        sections: List[tuple[Any, str]] = [
            (poetry.get("dependencies"), "production"),
            (poetry.get("dev-dependencies"), "development"),
        ]
        groups = poetry.get("group")
        if isinstance(groups, dict):
            for group in groups.values():
                if isinstance(group, dict):
                    sections.append((group.get("dependencies"), "development"))
        for section, dep_type in sections:
            if not isinstance(section, dict):
                continue
            for name, spec in section.items():
                if str(name).lower() == "python":
                    continue
                version = spec.get("version") if isinstance(spec, dict) else spec
                deps.append(
                    LibraryDependency(
                        name=str(name),
                        version=strip_version_range(version) if isinstance(version, str) else None,
                        type=dep_type,
                        source="pip",
                        manifest=manifest,
                    )
                )
    return deps


def parse_pom(content: str, manifest: str = "pom.xml") -> List[LibraryDependency]:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc

    namespace = _detect_xml_namespace(root)

    def _tag(name: str) -> str:
        return f"{{{namespace}}}{name}" if namespace else name

    deps: List[LibraryDependency] = []
    for dep in root.iter(_tag("dependency")):
        group = (dep.findtext(_tag("groupId")) or "").strip()
        artifact = (dep.findtext(_tag("artifactId")) or "").strip()
        if not group or not artifact:
            continue
        version = (dep.findtext(_tag("version")) or "").strip() or None
        scope = (dep.findtext(_tag("scope")) or "").strip().lower()
        optional = (dep.findtext(_tag("optional")) or "").strip().lower() == "true"
        if optional:
            dep_type = "optional"
        elif scope == "test":
            dep_type = "development"
        elif scope == "provided":
            dep_type = "peer"
        else:
            dep_type = "production"
        deps.append(
            LibraryDependency(
                name=f"{group}:{artifact}",
                version=version,
                type=dep_type,
                source="maven",
                manifest=manifest,
            )
        )
    return deps


def parse_gradle(content: str, manifest: str = "build.gradle") -> List[LibraryDependency]:
    deps: List[LibraryDependency] = []
    for line in content.splitlines():
        if line.strip().startswith("//"):
            continue
        match = _GRADLE_DEPENDENCY.match(line)
        if not match:
            continue
        config = match.group("config")
        if config.startswith(("test", "androidTest")):
            dep_type = "development"
        elif config == "compileOnly":
            dep_type = "peer"
        else:
            dep_type = "production"
        deps.append(
            LibraryDependency(
                name=f"{match.group('group')}:{match.group('artifact')}",
                version=match.group("version"),
                type=dep_type,
                source="gradle",
                manifest=manifest,
            )
        )
    return deps


def parse_go_mod(content: str, manifest: str = "go.mod") -> List[LibraryDependency]:
    deps: List[LibraryDependency] = []
    in_block = False
    for raw in content.splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if in_block:
            if line == ")":
                in_block = False
                continue
            match = _GO_BLOCK_LINE.match(line)
        elif line.startswith("require") and line.rstrip().endswith("("):
            in_block = True
            continue
        else:
            match = _GO_REQUIRE_LINE.match(line)
        if match:
            deps.append(
                LibraryDependency(
                    name=match.group(1),
                    version=match.group(2),
                    type="production",
                    source="go",
                    manifest=manifest,
                )
            )
    return deps


def parse_gemfile(content: str, manifest: str = "Gemfile") -> List[LibraryDependency]:
    deps: List[LibraryDependency] = []
    group_depth = 0
    dev_group = False
    for raw in content.splitlines():
        line = raw.split("#", 1)[0].rstrip()
        if not line.strip():
            continue
        group = _GEM_GROUP.match(line)
        if group:
            group_depth += 1
            dev_group = any(tag in group.group(1) for tag in ("development", "test"))
            continue
        if line.strip() == "end" and group_depth:
            group_depth -= 1
            if not group_depth:
                dev_group = False
            continue
        match = _GEM_LINE.match(line)
        if match:
            deps.append(
                LibraryDependency(
                    name=match.group(1),
                    version=strip_version_range(match.group(2)),
                    type="development" if dev_group else "production",
                    source="gem",
                    manifest=manifest,
                )
            )
    return deps


def parse_cargo(content: str, manifest: str = "Cargo.toml") -> List[LibraryDependency]:
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc
    deps: List[LibraryDependency] = []
    for key, dep_type in (
        ("dependencies", "production"),
        ("dev-dependencies", "development"),
        ("build-dependencies", "development"),
    ):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, spec in section.items():
            if isinstance(spec, dict):
                version = spec.get("version")
                if spec.get("optional") is True:
                    dep_type_for = "optional"
                else:
                    dep_type_for = dep_type
            else:
                version = spec
                dep_type_for = dep_type
            deps.append(
                LibraryDependency(
                    name=str(name),
                    version=str(version) if isinstance(version, str) else None,
                    type=dep_type_for,
                    source="cargo",
                    manifest=manifest,
                )
            )
    return deps


def parse_composer(content: str, manifest: str = "composer.json") -> List[LibraryDependency]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc
    if not isinstance(data, dict):
        return []
    deps: List[LibraryDependency] = []
    for key, dep_type in (("require", "production"), ("require-dev", "development")):
        section = data.get(key)
        if not isinstance(section, dict):
            continue
        for name, version in section.items():
            if name == "php" or str(name).startswith("ext-"):
                continue
            deps.append(
                LibraryDependency(
                    name=str(name),
                    version=str(version) if version is not None else None,
                    type=dep_type,
                    source="composer",
                    manifest=manifest,
                )
            )
    return deps


def parse_csproj(content: str, manifest: str = "project.csproj") -> List[LibraryDependency]:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise ExtractionParseError(manifest, "dependencies", str(exc)) from exc
    deps: List[LibraryDependency] = []
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] != "PackageReference":
            continue
        name = element.get("Include")
        if not name:
            continue
        version = element.get("Version") or element.findtext("Version")
        deps.append(
            LibraryDependency(
                name=name,
                version=version,
                type="production",
                source="nuget",
                manifest=manifest,
            )
        )
    return deps


_PARSERS_BY_NAME: Dict[str, ManifestParser] = {
    "package.json": parse_package_json,
    "pyproject.toml": parse_pyproject,
    "pom.xml": parse_pom,
    "build.gradle": parse_gradle,
    "build.gradle.kts": parse_gradle,
    "go.mod": parse_go_mod,
    "Gemfile": parse_gemfile,
    "Cargo.toml": parse_cargo,
    "composer.json": parse_composer,
}


def parser_for(filename: str) -> Optional[ManifestParser]:
    """Return the parser that understands ``filename``, if any."""
    if filename in _PARSERS_BY_NAME:
        return _PARSERS_BY_NAME[filename]
    if filename.startswith("requirements") and filename.endswith(".txt"):
        return parse_requirements
    if filename.endswith(".csproj"):
        return parse_csproj
    return None


class ManifestExtractor(SignalExtractor[LibraryDependency]):
    """Parses every recognised manifest in the tree."""

    kind = "dependencies"

    def supports(self, entry: FileEntry) -> bool:
        return parser_for(entry.name) is not None

    def extract(self, entry: FileEntry, content: str) -> List[LibraryDependency]:
        parser = parser_for(entry.name)
        if parser is None:
            return []
        return parser(content, entry.relative_path)


def _detect_xml_namespace(element: ET.Element) -> str | None:
    match = re.match(r"\{(.+)}", element.tag)
    return match.group(1) if match else None


__all__ = [
    "ManifestExtractor",
    "parse_cargo",
    "parse_composer",
    "parse_csproj",
    "parse_gemfile",
    "parse_go_mod",
    "parse_gradle",
    "parse_package_json",
    "parse_pom",
    "parse_pyproject",
    "parse_requirements",
    "parser_for",
    "strip_version_range",
]
