"""CLI entry point: python -m pagegrab URL [options]"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from pagegrab import settings
from pagegrab.client import FetchError, HttpClient
from pagegrab.grabber import Grabber
from pagegrab.items import ExtractionResult
from pagegrab.rules import RuleRepository

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagegrab",
        description=(
            "Extract the article content and metadata of a web page.\n"
            "Uses per-site XPath rules when available, readability otherwise."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("url", metavar="URL",
                        help="Article URL (also used to resolve links with --html-file)")
    parser.add_argument("--rules", action="append", default=None, metavar="PATH",
                        help=(
                            "Rule directory (<host>.txt files) or YAML file; repeatable. "
                            f"Defaults to ${settings.RULES_ENV_VAR}"
                        ))
    parser.add_argument("--html-file", default=None, metavar="FILE",
                        help="Extract from a local file instead of fetching URL")
    parser.add_argument("--no-multipage", action="store_true", default=False,
                        help="Do not follow next-page links")
    parser.add_argument("--multipage-limit", type=int, default=settings.MULTIPAGE_LIMIT,
                        metavar="N",
                        help=f"Maximum pages per article (default: {settings.MULTIPAGE_LIMIT})")
    parser.add_argument("--no-xss", action="store_true", default=False,
                        help="Skip HTML sanitization of the extracted body")
    parser.add_argument("--force-encoding", default=None, metavar="NAME",
                        help="Decode every response with this charset")
    parser.add_argument("--no-auto-encoding", action="store_true", default=False,
                        help="Disable charset detection (read as UTF-8 unless forced)")
    parser.add_argument("--timeout", type=float, default=settings.DOWNLOAD_TIMEOUT,
                        metavar="S",
                        help=f"Request timeout in seconds (default: {settings.DOWNLOAD_TIMEOUT})")
    parser.add_argument("--format", default="json", choices=["json", "html", "summary"],
                        help="Output format (default: json)")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        metavar="{DEBUG,INFO,WARNING,ERROR}",
                        help=f"Logging level (default: {settings.LOG_LEVEL})")
    return parser


def _rule_paths(args: argparse.Namespace) -> list[str]:
    if args.rules:
        return list(args.rules)
    env = os.environ.get(settings.RULES_ENV_VAR, "")
    return [p for p in env.split(os.pathsep) if p.strip()]


def _print_summary(result: ExtractionResult) -> None:
    from rich.console import Console
    from rich.table import Table

    console = Console()
    tbl = Table(title="[bold cyan]Extraction Summary[/bold cyan]", show_header=False)
    tbl.add_column("Field", style="bold")
    tbl.add_column("Value", overflow="fold")
    tbl.add_row("Title", result.title or "-")
    tbl.add_row("Authors", ", ".join(result.authors) or "-")
    tbl.add_row("Date", result.date or "-")
    tbl.add_row("Language", result.language or "-")
    tbl.add_row("Image", result.image or "-")
    tbl.add_row("Native ad", "yes" if result.is_native_ad else "no")
    tbl.add_row("Success", "[green]yes[/green]" if result.success else "[red]no[/red]")
    tbl.add_row("Final URL", result.final_url or "-")
    tbl.add_row("HTML length", f"{len(result.html):,}")
    console.print(tbl)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.multipage_limit < 1:
        parser.error("--multipage-limit must be at least 1")

    logging.basicConfig(level=args.log_level, format=settings.LOG_FORMAT, stream=sys.stderr)

    paths = _rule_paths(args)
    missing = [p for p in paths if not Path(p).exists()]
    if missing:
        print(f"ERROR: rules path not found: {', '.join(missing)}", file=sys.stderr)
        return 2

    client = HttpClient(
        timeout=args.timeout,
        auto_detect_encoding=not args.no_auto_encoding,
        force_encoding=args.force_encoding,
    )
    grabber = Grabber(
        rule_provider=RuleRepository.from_paths(paths),
        client=client,
        multipage=not args.no_multipage,
        multipage_limit=args.multipage_limit,
        enable_xss=not args.no_xss,
    )

    try:
        if args.html_file:
            raw = Path(args.html_file).read_bytes()
            result = grabber.extract_from_bytes(raw, args.url)
        else:
            result = grabber.extract(args.url)
    except FetchError as exc:
        logger.error("Fetch failed: %s", exc)
        return 1
    except OSError as exc:
        print(f"ERROR: cannot read {args.html_file}: {exc}", file=sys.stderr)
        return 1

    if args.format == "html":
        print(result.html)
    elif args.format == "summary":
        _print_summary(result)
    else:
        print(json.dumps(result.model_dump(), ensure_ascii=False, indent=2))

    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
