#!/usr/bin/env python3
"""
Script: buffer_admin.py
Description: Inspect and maintain the durable buffer on a host.

Reads the buffer location from TELEMETRY_RELAY_* settings (or --db-path)
and prints statistics, dumps stored batches as JSON, or clears the
buffer.

Usage:
    python scripts/buffer_admin.py stats
    python scripts/buffer_admin.py dump [--limit 10]
    python scripts/buffer_admin.py clear --confirm
    python scripts/buffer_admin.py cleanup
"""

import argparse
import asyncio
import json
import sys
from dataclasses import replace

from telemetry_relay.buffer.persistent import DurableBuffer
from telemetry_relay.config.delivery import DeliveryConfiguration
from telemetry_relay.config.settings import get_settings
from telemetry_relay.storage.config import StoreConfig
from telemetry_relay.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def build_buffer(db_path=None) -> DurableBuffer:
    """Build a durable buffer for the configured (or given) location."""
    settings = get_settings()
    configure_logging(settings.log_level)

    config = DeliveryConfiguration()
    config.use_persistent_buffer = True
    config.max_retries = settings.max_retries

    store_config = StoreConfig.from_settings(settings)
    if db_path:
        store_config = replace(store_config, db_path=db_path)

    return DurableBuffer(config, store_config=store_config)


async def show_stats(buffer: DurableBuffer) -> None:
    stats = await buffer.stats()
    print(json.dumps(stats.model_dump(), indent=2))


async def dump_records(buffer: DurableBuffer, limit: int) -> None:
    records = await buffer.records.retrieve()
    for record in records[:limit]:
        print(json.dumps({
            "id": record.id,
            "created_at": record.created_at,
            "attempt": record.attempt,
            "items": len(record.items),
            "kinds": sorted({item.kind.value for item in record.items}),
            "serialization_error": record.serialization_error,
            "deserialization_error": record.deserialization_error,
        }))
    if len(records) > limit:
        print(f"... {len(records) - limit} more record(s)")


async def run(args) -> int:
    buffer = build_buffer(args.db_path)
    if not await buffer.initialize():
        print(f"❌ Durable buffer unavailable at {buffer.store.config.db_path}")
        return 1

    try:
        if args.command == "stats":
            await show_stats(buffer)
        elif args.command == "dump":
            await dump_records(buffer, args.limit)
        elif args.command == "cleanup":
            removed = await buffer.cleanup_expired()
            print(f"🧹 Removed {removed} expired record(s)")
        elif args.command == "clear":
            await buffer.clear()
            print("✅ Durable buffer cleared")
    finally:
        buffer.close()

    return 0


def main():
    """Main script execution."""
    parser = argparse.ArgumentParser(
        description="Inspect and maintain the telemetry-relay durable buffer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/buffer_admin.py stats
  python scripts/buffer_admin.py dump --limit 5
  python scripts/buffer_admin.py --db-path /var/lib/agent/buffer.sqlite3 clear --confirm
        """
    )

    parser.add_argument(
        '--db-path',
        type=str,
        default=None,
        help='sqlite buffer file (defaults to TELEMETRY_RELAY_BUFFER_DB_PATH)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('stats', help='Print buffer statistics')

    dump_parser = subparsers.add_parser('dump', help='Print stored batches, one JSON line each')
    dump_parser.add_argument('--limit', type=int, default=20, help='Maximum records to print')

    subparsers.add_parser('cleanup', help='Remove records that exhausted their retries')

    clear_parser = subparsers.add_parser('clear', help='Delete every stored batch')
    clear_parser.add_argument(
        '--confirm',
        action='store_true',
        help='Confirm deletion (prevents accidental data loss)'
    )

    args = parser.parse_args()

    if args.command == 'clear' and not args.confirm:
        print("⚠️  WARNING: This will delete every undelivered batch!")
        response = input("Continue? (type 'yes' to confirm): ")
        if response.lower() != 'yes':
            print("Cancelled.")
            sys.exit(0)

    try:
        sys.exit(asyncio.run(run(args)))

    except KeyboardInterrupt:
        print("\n❌ Cancelled by user.")
        sys.exit(1)

    except Exception as e:
        print(f"❌ Error: {str(e)}")
        logger.error("Buffer admin command failed", command=args.command, error=str(e))
        sys.exit(1)


if __name__ == '__main__':
    main()
