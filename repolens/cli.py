"""CLI entrypoints for repolens commands."""

from __future__ import annotations

import argparse
import json
import re
import sys
from pathlib import Path

from kombu.exceptions import KombuError

from .config import CONFIG_FILENAME, ConfigError, load_config
from .errors import RepolensError
from .logging import configure_logging
from .orchestrator import AnalysisOrchestrator, AnalysisRequest
from .stores.analysis_store import JsonAnalysisStore


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repolens",
        description="Analyze a git repository and report its stack, signals and dependency graph.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Clone a repository and print the analysis document as JSON.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_request_options(analyze_parser)
    analyze_parser.add_argument("--output", "-o", type=Path, help="Write the JSON document to this file.")
    _add_runtime_options(analyze_parser)

    submit_parser = subparsers.add_parser(
        "submit",
        help="Queue an analysis for a Celery worker and print the job id.",
    )
    _add_verbose_option(submit_parser, suppress_default=True)
    _add_request_options(submit_parser)
    _add_runtime_options(submit_parser)

    worker_parser = subparsers.add_parser(
        "worker",
        help="Run a Celery worker that processes queued analyses.",
    )
    _add_verbose_option(worker_parser, suppress_default=True)
    _add_runtime_options(worker_parser)
    return parser


def _add_request_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("url", help="Repository URL (or local path) to clone.")
    parser.add_argument("--branch", help="Branch to check out instead of the default.")
    parser.add_argument("--depth", type=int, help="Shallow clone depth (0 for full history).")
    parser.add_argument(
        "--project-id",
        help="Identifier used for workspaces and stored results (derived from the URL by default).",
    )


def _add_runtime_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        help=f"Path to a {CONFIG_FILENAME} file or a directory containing one.",
    )
    parser.add_argument("--workspace", type=Path, help="Directory for temporary clones.")
    parser.add_argument(
        "--store",
        type=Path,
        help="Persist status and results as JSON documents under this directory.",
    )


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for repolens commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "analyze":
        return _run_analyze(parser, args)
    if args.command == "submit":
        return _run_submit(parser, args)
    if args.command == "worker":
        return _run_worker(parser, args)
    parser.exit(1, "Unknown command\n")  # pragma: no cover - argparse enforces choices


def _build_orchestrator(parser: argparse.ArgumentParser, args: argparse.Namespace) -> AnalysisOrchestrator:
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"repolens: invalid configuration: {exc}\n")
    if args.workspace is not None:
        config.workspace.root = args.workspace
    depth = getattr(args, "depth", None)
    if depth is not None:
        config.clone.depth = depth if depth > 0 else None
    store = JsonAnalysisStore(args.store) if args.store is not None else None
    return AnalysisOrchestrator(store, config=config)


def _request_from(args: argparse.Namespace) -> AnalysisRequest:
    depth = args.depth
    return AnalysisRequest(
        project_id=args.project_id or project_id_from_url(args.url),
        repository_url=args.url,
        branch=args.branch,
        depth=(depth if depth > 0 else None) if depth is not None else None,
    )


def _run_analyze(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(parser, args)
    try:
        result = orchestrator.run(_request_from(args))
    except RepolensError as exc:
        parser.exit(1, f"repolens analyze failed: {exc}\nRun with --verbose for more details.\n")
    except Exception as exc:  # pragma: no cover - unexpected failure
        parser.exit(1, f"repolens analyze failed: {exc}\nRun with --verbose for more details.\n")

    document = json.dumps(result.to_dict(), indent=2)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(document + "\n", encoding="utf-8")
        print(f"Analysis written to {_relativize(args.output)}")
    else:
        print(document)
    return 0


def _run_submit(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(parser, args)
    orchestrator.start_queue()
    try:
        job = orchestrator.submit(_request_from(args))
    except (RepolensError, KombuError, OSError) as exc:
        parser.exit(1, f"repolens submit failed: {exc}\nRun with --verbose for more details.\n")
    print(job.id)
    return 0


def _run_worker(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    orchestrator = _build_orchestrator(parser, args)
    orchestrator.start_queue().run_worker()
    return 0


def project_id_from_url(url: str) -> str:
    """Derive a workspace-safe project id from the last segment of a repository URL."""
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip(".-")
    return slug or "project"


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
