"""CLI entry point for the job ingestion sweep."""

import argparse
import asyncio
import json
import logging
import sys

from jobsweep.core.config import Settings
from jobsweep.core.db import init_db
from jobsweep.pipeline.orchestrator import run_ingestion
from jobsweep.pipeline.store import ListingStore
from jobsweep.sources import build_clients


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job ingestion sweep - download, dedup and store listings",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- ingest subcommand (default) ---
    ingest_parser = subparsers.add_parser("ingest", help="Run one ingestion sweep")
    ingest_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    ingest_parser.add_argument(
        "--locations",
        nargs="+",
        help="Override the configured locations for this run",
    )
    ingest_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the planned searches without calling any provider",
    )
    ingest_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run summary as JSON",
    )
    ingest_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- serve subcommand ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    # --- top-level flags for ingest ---
    parser.add_argument("--config", default="config/settings.yaml", help=argparse.SUPPRESS)
    parser.add_argument("--locations", nargs="+", help=argparse.SUPPRESS)
    parser.add_argument("--dry-run", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--json", action="store_true", help=argparse.SUPPRESS)
    parser.add_argument("--verbose", "-v", action="store_true", help=argparse.SUPPRESS)

    args = parser.parse_args(argv)

    # Default to ingest when no subcommand given
    if args.command is None:
        args.command = "ingest"

    return args


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def dry_run(settings: Settings, locations: list[str] | None) -> None:
    """Print the (location, source) pairs a run would search."""
    config = settings.ingestion
    targets = locations or config.locations
    keywords = ", ".join(config.keywords) or "(all jobs)"

    print(f"[DRY RUN] {len(targets)} locations x {len(config.sources)} sources")
    print(f"[DRY RUN] Keywords: {keywords}")
    for location in targets:
        for source in config.sources:
            timeout = settings.source_config(source).timeout_seconds
            print(f"  {location} <- {source.value} (timeout {timeout:.0f}s)")
    print(f"[DRY RUN] Deadline {config.run_deadline_seconds:.0f}s, "
          f"concurrency {config.max_concurrency}, TTL {config.ttl_days} days")


async def ingest(settings: Settings, locations: list[str] | None, as_json: bool) -> None:
    """Run one sweep against the real providers."""
    conn = init_db(settings.database.path)
    try:
        result = await run_ingestion(
            settings, build_clients(settings), ListingStore(conn), locations=locations,
        )
    finally:
        conn.close()

    if as_json:
        print(json.dumps({"success": True, "results": result.summary()}, indent=2))
        return

    print(f"\nIngestion complete in {result.duration_ms} ms"
          f"{' (partial - deadline exceeded)' if result.partial else ''}")
    print(f"  Locations:  {result.locations}")
    print(f"  Downloaded: {result.downloaded}")
    print(f"  Unique:     {result.unique} ({result.duplicates} duplicates, "
          f"{result.malformed} malformed)")
    print(f"  Inserted:   {result.inserted}")
    print(f"  Renewed:    {result.renewed}")
    print(f"  Errors:     {result.errors}")


def cmd_serve(settings: Settings, host: str, port: int) -> None:
    """Handle serve subcommand."""
    import uvicorn

    from jobsweep.api.app import create_app

    uvicorn.run(create_app(settings), host=host, port=port)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        cmd_serve(settings, args.host, args.port)
    elif args.dry_run:
        dry_run(settings, args.locations)
    else:
        asyncio.run(ingest(settings, args.locations, args.json))


if __name__ == "__main__":
    main()
