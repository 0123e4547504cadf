#!/usr/bin/env python3
"""
Refresh the cached price analytics for every province, city and suburb.

This script:
1. Applies any pending schema migrations
2. Recomputes price statistics and segment shares from active listings
3. Upserts one price_analytics row per location

Run it from cron, or with --interval to keep refreshing in a loop.
"""

import argparse
import os
import sys
import time

from dotenv import load_dotenv
from rich.console import Console

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from analysis.price_insights import PriceInsights
from config.settings import DATABASE_URL
from marketplace.database import Database
from marketplace.utils import setup_logging

load_dotenv()
console = Console()


def refresh(database: Database) -> int:
    started = time.time()
    written = PriceInsights(database).refresh_price_analytics()
    console.print(f"[green]✓ Refreshed {written} locations in {time.time() - started:.2f}s[/green]")
    return written


def main():
    parser = argparse.ArgumentParser(description="Refresh cached price analytics")
    parser.add_argument(
        "--database",
        default=DATABASE_URL,
        help=f"Database URL or SQLite path (default: {DATABASE_URL})",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=0,
        help="Seconds between refreshes; 0 refreshes once and exits (default: 0)",
    )
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    args = parser.parse_args()

    setup_logging(args.log_level)
    console.print("[bold]Price Analytics Refresh[/bold]\n")

    database = Database(args.database)
    database.create_tables()

    refresh(database)
    while args.interval > 0:
        time.sleep(args.interval)
        refresh(database)


if __name__ == "__main__":
    main()
