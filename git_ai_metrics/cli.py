"""CLI entry point for git-ai metrics."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from .config.export_config import ExportConfig, resolve_config
from .metrics.models import MetricKind
from .pipeline import MetricsPipeline
from .reliability.errors import FallbackStoreError
from .sinks.fallback import PersistenceFallback


def show_config(config: ExportConfig):
    """Print the resolved configuration."""
    data = config.model_dump()
    if data.get("api_key"):
        data["api_key"] = "***"
    if data.get("otel_auth_header"):
        data["otel_auth_header"] = "***"
    print(json.dumps(data, indent=2))


def show_status(config: ExportConfig) -> int:
    """Print the number of batches waiting in the fallback store."""
    store = PersistenceFallback(
        config.fallback_path,
        max_attempts=config.fallback_max_attempts,
        max_age_seconds=config.fallback_max_age,
    )
    try:
        pending = store.count()
    except FallbackStoreError as e:
        print(f"Error: {e}")
        return 1

    print(f"Fallback store: {store.db_path}")
    print(f"Pending batches: {pending}")
    print(f"OTLP export: {'enabled' if config.otel_enabled else 'disabled'}")
    return 0


async def flush(pipeline: MetricsPipeline) -> int:
    """Replay persisted batches and flush whatever is recorded."""
    try:
        result = await pipeline.flush_once()
    finally:
        await pipeline.aclose()

    print(f"Outcome: {result.outcome.value}")
    print(f"Replayed: {result.replayed}  Delivered: {result.delivered}  "
          f"Stored: {result.stored}  Dropped: {result.dropped}  Expired: {result.expired}")
    for error in result.errors:
        print(f"  error: {error}")
    return 0 if not result.dropped else 1


def record(pipeline: MetricsPipeline, name: str, value: float, kind: str,
           attributes: Optional[list] = None):
    """Record a single sample from the command line."""
    attrs = {}
    for item in attributes or []:
        key, _, val = item.partition("=")
        attrs[key] = val
    pipeline.record(name, MetricKind(kind), value, attrs)


def main(argv: Optional[list] = None):
    """Main CLI function."""
    parser = argparse.ArgumentParser(description="git-ai metrics CLI")
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    parser.add_argument('--config-file', help='Path to the JSON config file')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Config command
    subparsers.add_parser('config', help='Show the resolved export configuration')

    # Status command
    subparsers.add_parser('status', help='Show fallback store status')

    # Flush command
    subparsers.add_parser('flush', help='Replay persisted batches to the metrics API')

    # Record command
    record_parser = subparsers.add_parser('record', help='Record one sample and flush it')
    record_parser.add_argument('name', help='Metric name (e.g., "git_ai.checkpoint.count")')
    record_parser.add_argument('value', type=float, help='Counter increment or observed value')
    record_parser.add_argument('--kind', choices=[k.value for k in MetricKind],
                               default=MetricKind.COUNTER.value, help='Instrument kind')
    record_parser.add_argument('--attr', action='append', metavar='KEY=VALUE',
                               help='Attribute (repeatable)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = resolve_config(config_path=args.config_file)

    if args.command == 'config':
        show_config(config)
        return 0
    elif args.command == 'status':
        return show_status(config)
    elif args.command == 'flush':
        return asyncio.run(flush(MetricsPipeline.from_config(config)))
    elif args.command == 'record':
        pipeline = MetricsPipeline.from_config(config)
        record(pipeline, args.name, args.value, args.kind, args.attr)
        return asyncio.run(flush(pipeline))
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
