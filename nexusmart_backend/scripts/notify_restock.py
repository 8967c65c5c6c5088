#!/usr/bin/env python3
"""
Restock notification trigger

For inventory processes that update stock outside the API (warehouse
imports, manual SQL). Marks the product's pending stock alerts notified and
hands the notices to the configured sender.

Usage:
    python scripts/notify_restock.py 42
    python scripts/notify_restock.py 42 --force   # skip the in-stock check
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.database import get_db_session
from app.core.exceptions import NexusMartError
from app.services.stock_alert_service import notify_restocked

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def run(product_id: int, force: bool = False) -> int:
    async with get_db_session() as db:
        try:
            notification = await notify_restocked(db, product_id, require_in_stock=not force)
        except NexusMartError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    result = notification.send_result
    print(f"Product {product_id}: {notification.notified_count} alerts marked notified")
    print(f"Sent:    {result.sent_count}")
    print(f"Failed:  {result.failed_count}")
    print(f"Skipped: {result.skipped_count}")
    return 0 if result.success else 2


def main() -> None:
    parser = argparse.ArgumentParser(description="Notify stock alert subscribers for a restocked product")
    parser.add_argument("product_id", type=int, help="Product id")
    parser.add_argument("--force", action="store_true", help="Notify even if stock is still zero")
    args = parser.parse_args()

    sys.exit(asyncio.run(run(args.product_id, force=args.force)))


if __name__ == "__main__":
    main()
