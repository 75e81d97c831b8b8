#!/usr/bin/env python3
"""
Maintenance commands for the semantic cache.

    python scripts/maintenance.py setup           # create or verify the index
    python scripts/maintenance.py rebuild         # drop and recreate the index (after a schema change)
    python scripts/maintenance.py sweep           # remove entries past retention
    python scripts/maintenance.py sweep --retention 3600
    python scripts/maintenance.py clear           # delete all entries, reset metrics
    python scripts/maintenance.py reset-metrics
    python scripts/maintenance.py stats

Run `sweep` periodically (cron, scheduler) to enforce the retention window;
lookups do not check entry age themselves.
"""

import argparse
import asyncio
import json
import logging
import sys

from stance_cache.config import get_redis_client, get_settings
from stance_cache.exceptions import SchemaMismatchError, SemanticCacheError
from stance_cache.log import configure_logging
from stance_cache.repositories import RedisCacheRepository, create_embedding_provider, create_metrics_store
from stance_cache.services import CacheService, MetricsService

logger = logging.getLogger("stance_cache.maintenance")


async def run(args: argparse.Namespace) -> int:
    config = get_settings()
    client = get_redis_client(config)
    embedding_provider = create_embedding_provider(config)

    try:
        if args.command == "rebuild":
            await RedisCacheRepository(client, config).rebuild_index()
            await MetricsService(create_metrics_store(client, config)).reset()
            return 0

        repository = await RedisCacheRepository.create(client, config)
        metrics = MetricsService(create_metrics_store(client, config))
        cache = CacheService.create(
            repository=repository,
            embedding_provider=embedding_provider,
            metrics=metrics,
            config=config,
        )

        if args.command == "setup":
            snapshot = await metrics.snapshot()
            logger.info("Index %s ready, metrics at %d requests", config.cache_index_name, snapshot.total_requests)
        elif args.command == "sweep":
            removed = await cache.sweep_stale(args.retention)
            logger.info("Removed %d stale entries", removed)
        elif args.command == "clear":
            removed = await cache.clear()
            logger.info("Removed %d entries and reset metrics", removed)
        elif args.command == "reset-metrics":
            await metrics.reset()
        elif args.command == "stats":
            print(json.dumps(await cache.get_stats(), indent=2, default=str))
        return 0
    finally:
        close = getattr(embedding_provider, "close", None)
        if close is not None:
            await close()
        await client.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Semantic cache maintenance")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("setup", help="Create or verify the vector index and metrics record")
    subcommands.add_parser("rebuild", help="Drop and recreate the index, deleting all entries")
    sweep = subcommands.add_parser("sweep", help="Delete entries older than the retention window")
    sweep.add_argument("--retention", type=int, default=None, help="Retention window in seconds")
    subcommands.add_parser("clear", help="Delete all entries and reset metrics")
    subcommands.add_parser("reset-metrics", help="Zero the metrics aggregate")
    subcommands.add_parser("stats", help="Print index and metrics statistics")
    args = parser.parse_args(argv)

    configure_logging(get_settings().log_level)
    try:
        return asyncio.run(run(args))
    except SchemaMismatchError as e:
        logger.error("Index schema mismatch, rebuild the index: %s", e)
        return 2
    except SemanticCacheError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
