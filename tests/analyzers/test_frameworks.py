"""Tests for framework detection."""

from __future__ import annotations

import json

from repolens.analyzers.frameworks import (
    SIGNATURES,
    FrameworkDetector,
    FrameworkSignature,
    detect_frameworks,
    detect_project_stack,
)
from repolens.models import DetectedFramework
from tests._fixtures.repo_builder import RepoBuilder


def _package_json(**sections: dict) -> str:
    return json.dumps({"name": "app", **sections})


def test_react_project_is_detected_with_version(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": _package_json(dependencies={"react": "^18.2.0"}),
            "src/App.jsx": "export default function App() { return null; }\n",
        }
    )

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)

    assert [framework.name for framework in frameworks] == ["React"]
    react = frameworks[0]
    assert react.type == "frontend"
    assert react.confidence == 1.0
    assert react.version == "18.2.0"
    assert "config:package.json" in react.evidence
    assert "manifest:npm:react" in react.evidence
    assert "file:.jsx" in react.evidence


def test_package_json_alone_is_not_evidence_for_every_framework(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"package.json": _package_json(dependencies={"lodash": "4.17.21"})})

    assert detect_frameworks(repo_builder.scan(), repo_builder.read) == []


def test_file_patterns_alone_stay_below_threshold(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/Widget.tsx": "export const Widget = () => null;\n"})

    assert detect_frameworks(repo_builder.scan(), repo_builder.read) == []


def test_django_project_from_requirements(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "requirements.txt": "Django==4.2.7\npsycopg2-binary==2.9.9\n",
            "manage.py": "import django\n",
            "shop/models.py": "from django.db import models\n",
        }
    )

    frameworks = {fw.name: fw for fw in detect_frameworks(repo_builder.scan(), repo_builder.read)}

    assert "Django" in frameworks
    django = frameworks["Django"]
    assert django.type == "fullstack"
    assert django.confidence == 1.0
    assert django.version is None
    assert "config:manage.py" in django.evidence
    assert "manifest:pip:Django" in django.evidence


def test_config_file_without_packages_is_reported(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"vite.config.ts": "export default {}\n"})

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)

    assert [(fw.name, fw.confidence) for fw in frameworks] == [("Vite", 0.5)]


def test_shallowest_manifest_wins(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": _package_json(dependencies={"express": "4.18.2"}),
            "examples/react-demo/package.json": _package_json(dependencies={"react": "18.2.0"}),
        }
    )

    names = [fw.name for fw in detect_frameworks(repo_builder.scan(), repo_builder.read)]

    assert names == ["Express.js"]


def test_invalid_manifest_is_skipped(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": "{not json",
            "angular.json": "{}",
        }
    )

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)

    assert [fw.name for fw in frameworks] == ["Angular"]


def test_results_are_sorted_and_bounded(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": _package_json(
                dependencies={"next": "14.0.0", "react": "18.2.0", "express": "4.18.2"}
            ),
            "next.config.js": "module.exports = {}\n",
            "pages/index.tsx": "export default function Home() { return null; }\n",
        }
    )

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)
    confidences = [fw.confidence for fw in frameworks]

    assert confidences == sorted(confidences, reverse=True)
    assert all(0.4 < value <= 1.0 for value in confidences)
    assert {"Next.js", "React", "Express.js"} <= {fw.name for fw in frameworks}


def test_custom_signature_table(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"pubspec.yaml": "name: app\n", "lib/main.dart": "void main() {}\n"})
    signatures = [sig for sig in SIGNATURES if sig.name == "Flutter"] + [
        FrameworkSignature("Custom", "tool", ("custom.toml",))
    ]

    frameworks = FrameworkDetector(repo_builder.read, signatures).detect(repo_builder.scan())

    assert [(fw.name, fw.confidence) for fw in frameworks] == [("Flutter", 0.8)]


def test_project_stack_combines_frontend_and_backend(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "web/App.jsx": "export default () => null;\n",
            "server/index.js": "const app = require('express')();\n",
            "server/db/redis.js": "module.exports = {};\n",
        }
    )
    frameworks = [
        DetectedFramework(name="React", type="frontend", confidence=0.8),
        DetectedFramework(name="Express.js", type="backend", confidence=1.0),
    ]

    stack = detect_project_stack(frameworks, repo_builder.scan())

    assert stack.stack == "fullstack"
    assert stack.primary_language == "JavaScript"
    assert stack.databases == ["Redis"]
    assert stack.confidence == 1.0
    assert stack.frameworks == ["React", "Express.js"]
    assert stack.build_tools == []


def test_project_stack_without_frameworks_is_unknown() -> None:
    stack = detect_project_stack([])

    assert stack.stack == "unknown"
    assert stack.primary_language == "Unknown"
    assert stack.databases == []
    assert stack.confidence == 0.0


def test_manifest_declaring_only_react(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"package.json": _package_json(dependencies={"react": "^18.2.0"})})

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)

    assert len(frameworks) == 1
    assert frameworks[0].name == "React"
    assert frameworks[0].confidence >= 0.8
    assert frameworks[0].version == "18.2.0"


def test_project_stack_lists_build_tools_apart_from_frameworks() -> None:
    frameworks = [
        DetectedFramework(name="Vite", type="tool", confidence=1.0),
        DetectedFramework(name="Vue.js", type="frontend", confidence=0.8),
    ]

    stack = detect_project_stack(frameworks)

    assert stack.stack == "frontend"
    assert stack.confidence == 0.8
    assert stack.frameworks == ["Vue.js"]
    assert stack.build_tools == ["Vite"]


def test_flask_entry_script_counts_when_flask_is_declared(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "requirements.txt": "flask==3.0.0\n",
            "app.py": "from flask import Flask\napp = Flask(__name__)\n",
            "main.py": "print('hello')\n",
        }
    )

    frameworks = detect_frameworks(repo_builder.scan(), repo_builder.read)

    assert [framework.name for framework in frameworks] == ["Flask"]
    assert "config:app.py" in frameworks[0].evidence


def test_python_entry_scripts_alone_are_not_framework_evidence(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "app.py": "print('hello')\n",
            "main.py": "print('hello')\n",
            "db/postgres_schema.sql": "CREATE TABLE users (id int);\n",
        }
    )

    assert detect_frameworks(repo_builder.scan(), repo_builder.read) == []
