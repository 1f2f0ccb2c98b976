"""Tests for structure analyzer."""

from __future__ import annotations

from repolens.analyzers.structure import StructureAnalyzer, detect_project_type
from tests._fixtures.repo_builder import RepoBuilder


def test_structure_report_counts_files_and_lines(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": '{"name": "web"}\n',
            "src/index.js": "const a = 1;\nconst b = 2;\n",
            "src/util.js": "export const x = 1",
            "src/index.test.js": "test('x', () => {});\n",
            "README.md": "# Web\n\nLine\n",
            "Dockerfile": "FROM node:20\n",
        }
    )

    files = repo_builder.scan()
    report = StructureAnalyzer(repo_builder.read).analyze(files)

    assert report.total_files == 6
    assert report.total_size == sum(entry.size for entry in files if not entry.is_directory)
    # Only code files contribute lines: 2 + 1 + 1.
    assert report.total_lines == 4
    assert report.test_files == 1
    assert report.directories == ["src"]
    assert report.language_distribution["JavaScript"] == 3
    assert "package.json" in report.configuration_files
    assert "README.md" in report.documentation_files
    assert report.project_type == "Node.js"
    assert report.project_type_confidence == 1.0


def test_important_files_are_grouped(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "main.py": "print('hi')\n",
            "requirements.txt": "flask==3.0.0\n",
            "README.md": "# App\n",
            "tests/test_main.py": "def test_ok():\n    pass\n",
            "Makefile": "all:\n\techo ok\n",
            ".github/workflows/ci.yml": "on: push\n",
        }
    )

    important = StructureAnalyzer().analyze(repo_builder.scan()).important_files

    assert important.entry == ["main.py"]
    assert "requirements.txt" in important.configuration
    assert important.documentation == ["README.md"]
    assert important.tests == ["tests/test_main.py"]
    assert set(important.build) == {"Makefile", ".github/workflows/ci.yml"}


def test_listed_files_are_truncated(repo_builder: RepoBuilder) -> None:
    repo_builder.write({f"docs/page{index}.md": "# page\n" for index in range(5)})

    report = StructureAnalyzer(max_directories=0, max_listed_files=2).analyze(repo_builder.scan())

    assert report.total_files == 5
    assert len(report.documentation_files) == 2
    assert report.directories == []


def test_lines_are_zero_without_reader(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"main.go": "package main\n"})

    assert StructureAnalyzer().analyze(repo_builder.scan()).total_lines == 0


def test_project_type_falls_back_to_dominant_language(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "a.py": "x = 1\n",
            "b.py": "y = 2\n",
            "c.py": "z = 3\n",
            "tool.go": "package main\n",
        }
    )

    assert detect_project_type(repo_builder.scan()) == ("Python", 0.75)


def test_project_type_unknown_for_empty_tree() -> None:
    assert detect_project_type([]) == ("Unknown", 0.0)
