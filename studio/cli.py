"""Command-line entry point: process a transcript locally or through a running API.

Run as a module::

    python -m studio.cli transcript.txt --blogs 5 --format markdown
    python -m studio.cli transcript.txt --api-url http://localhost:8000
    python -m studio.cli --api-url http://localhost:8000 --history 10

Use ``--help`` for full argument documentation.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import httpx

from studio import client
from studio.config import settings
from studio.content.sections import render_markdown
from studio.errors import StudioError
from studio.pipeline.orchestrator import Orchestrator
from studio.pipeline_config import GenerationBackend, PipelineConfig
from studio.storage.repository import build_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="studio",
        description="Turn a transcript into insights, book chapters, blog posts and social posts.",
    )
    parser.add_argument("transcript", type=Path, nargs="?", help="Path to a .txt or .md transcript")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in GenerationBackend],
        default=settings.generation_backend,
        help="Content generation backend (default: %(default)s)",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "supabase"],
        default="memory",
        help="Where to save the result (default: %(default)s)",
    )
    parser.add_argument("--chapters", type=int, default=settings.chapter_count)
    parser.add_argument("--blogs", type=int, default=settings.blog_count)
    parser.add_argument("--social", type=int, default=settings.social_count)
    parser.add_argument("--max-segment-chars", type=int, default=settings.max_segment_chars)
    parser.add_argument(
        "--format",
        choices=["json", "markdown"],
        default="json",
        help="Output format (default: %(default)s)",
    )
    parser.add_argument(
        "--api-url",
        help="Send requests to a running API server instead of processing locally",
    )
    parser.add_argument("--history", type=int, metavar="N", help="List the N newest results (needs --api-url)")
    parser.add_argument("--show", metavar="ID", help="Print a stored result by id (needs --api-url)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def _print_record(record: dict[str, Any], output_format: str) -> None:
    if output_format == "markdown":
        print(render_markdown(record["file_name"], record.get("processed_data")))
    else:
        print(json.dumps(record, indent=2, ensure_ascii=False))


def _run_remote(args: argparse.Namespace) -> int:
    api_url = args.api_url.rstrip("/")
    try:
        if not client.check_health(api_url):
            print(f"API server at {api_url} is not reachable", file=sys.stderr)
            return 1
        if args.history is not None:
            print(json.dumps(client.list_history(args.history, api_url=api_url), indent=2, ensure_ascii=False))
            return 0
        if args.show:
            record = client.get_processed(args.show, api_url=api_url)
        else:
            record = client.submit_file(args.transcript, api_url=api_url)
    except OSError as exc:
        print(f"Could not read {args.transcript}: {exc}", file=sys.stderr)
        return 1
    except httpx.HTTPError as exc:
        print(f"Request failed: {client.error_detail(exc)}", file=sys.stderr)
        return 1

    for diagnostic in record.get("diagnostics", []):
        logger.warning(
            "[%s/%s] %s: %s", diagnostic["stage"], diagnostic["section"], diagnostic["error"], diagnostic["message"]
        )
    _print_record(record, args.format)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if (args.history is not None or args.show) and not args.api_url:
        parser.error("--history and --show need --api-url")
    if args.transcript is None and args.history is None and not args.show:
        parser.error("a transcript path is required")
    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.log_level.upper())

    if args.api_url:
        return _run_remote(args)

    try:
        text = args.transcript.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Could not read {args.transcript}: {exc}", file=sys.stderr)
        return 1

    try:
        config = PipelineConfig.from_settings(
            settings,
            backend=args.backend,
            chapter_count=args.chapters,
            blog_count=args.blogs,
            social_count=args.social,
            max_segment_chars=args.max_segment_chars,
        )
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    orchestrator = Orchestrator(config, build_store(args.store))
    try:
        submission = orchestrator.submit(text, args.transcript.name)
    except StudioError as exc:
        print(f"Processing failed: {exc}", file=sys.stderr)
        return 1

    for diagnostic in submission.run.diagnostics:
        logger.warning("[%s/%s] %s: %s", diagnostic.stage, diagnostic.section, diagnostic.error, diagnostic.message)

    _print_record(submission.record, args.format)
    return 0


if __name__ == "__main__":
    sys.exit(main())
