#!/usr/bin/env python3
"""Command-line interface for disaster ingestion.

Commands:
  - disaster-intel run      : Fetch every enabled feed, merge, print the table
  - disaster-intel sources  : List configured sources

Typical usage:
  disaster-intel run --limit 50 --output merged.csv
  disaster-intel sources --config ingestion.yaml
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from disaster_intel.configs.settings import get_settings
from disaster_intel.monitoring.logging import LoggingOptions, setup_logging


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="disaster-intel", description="Disaster feed ingestion CLI")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    sub = p.add_subparsers(dest="cmd")

    # run
    pr = sub.add_parser("run", help="Run a full ingestion and merge")
    pr.add_argument("--config", "-c", default=None, help="Path to ingestion YAML")
    pr.add_argument("--json-logs", action="store_true", help="Emit JSON logs")
    pr.add_argument("--output", "-o", default=None, help="Write merged records (.csv or .json)")
    pr.add_argument("--limit", "-n", type=int, default=None, help="Max records fetched per source")
    pr.add_argument(
        "--strict",
        action="store_true",
        help="Fail if an invalid record reaches the merger",
    )

    # sources
    ps = sub.add_parser("sources", help="List configured sources")
    ps.add_argument("--config", "-c", default=None, help="Path to ingestion YAML")

    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI with the given arguments."""
    try:
        return _main_impl(argv)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _main_impl(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    if args.version:
        from disaster_intel import __version__

        print(f"disaster-intel version {__version__}")
        return 0

    if not args.cmd:
        print("Error: Command required. Use --help for usage info.", file=sys.stderr)
        return 1

    settings = get_settings()

    if args.cmd == "sources":
        from disaster_intel.ingestion.factory import PipelineFactory

        factory = PipelineFactory(args.config, settings=settings)
        print(f"{'SOURCE':<12} {'TYPE':<12} {'ENABLED'}")
        print("-" * 32)
        for name, info in factory.list_sources().items():
            print(f"{name:<12} {info['type']:<12} {'yes' if info['enabled'] else 'no'}")
        return 0

    if args.cmd == "run":
        setup_logging(
            LoggingOptions(
                level=settings.LOG_LEVEL,
                json_logs=args.json_logs or settings.JSON_LOGS,
            )
        )
        report = asyncio.run(_run(args, settings))
        _print_table(report.events)
        print(json.dumps(report.summary(), indent=2, ensure_ascii=False, default=str))

        if args.output:
            _write_output(report.events, Path(args.output))

        # every source failing is an outage, not an empty world
        return 1 if report.results and len(report.failed_sources) == len(report.results) else 0

    return 1


async def _run(args: argparse.Namespace, settings):
    from disaster_intel.ingestion.orchestrator import load_orchestrator_from_config

    orchestrator = load_orchestrator_from_config(args.config, settings=settings)
    if args.strict:
        orchestrator.merger.strict = True

    kwargs = {"limit": args.limit} if args.limit else {}
    try:
        return await orchestrator.run_full_ingestion(**kwargs)
    finally:
        await orchestrator.close()


def _print_table(events) -> None:
    print(f"{'DATE':<11} {'SOURCE':<11} {'CATEGORY':<11} {'SEVERITY':<9} NAME")
    print("-" * 72)
    for e in events:
        print(
            f"{e.occurred_at:%Y-%m-%d} {e.source_tag:<11} {e.category.value:<11} "
            f"{e.severity.value:<9} {e.name}"
        )


def _write_output(events, path: Path) -> None:
    from disaster_intel.ingestion.export import events_to_dataframe

    df = events_to_dataframe(events)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".json":
        df.to_json(path, orient="records", date_format="iso", indent=2)
    else:
        df.to_csv(path, index=False)
    print(f"Wrote {len(df)} records to {path}", file=sys.stderr)


if __name__ == "__main__":
    raise SystemExit(main())
