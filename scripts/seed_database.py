"""
Seed the shop database with synthetic demo data.

Usage:
    python scripts/seed_database.py --jobs 5000 --seed 7 --truncate
    python scripts/seed_database.py --csv-dir data/generated
"""

import argparse
import asyncio
from pathlib import Path

import structlog

from shop_analytics.config import get_settings
from shop_analytics.config.logging import configure_logging
from shop_analytics.data.generators import ShopDataGenerator
from shop_analytics.data.loader import load_dataset
from shop_analytics.database.connection import close_database, init_database

logger = structlog.get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the shop analytics database")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--customers", type=int, default=300)
    parser.add_argument("--technicians", type=int, default=8)
    parser.add_argument("--bays", type=int, default=6)
    parser.add_argument("--jobs", type=int, default=3000)
    parser.add_argument("--history-days", type=int, default=400)
    parser.add_argument("--truncate", action="store_true", help="Delete existing rows first")
    parser.add_argument("--csv-dir", type=Path, help="Also write the dataset as CSV files here")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    settings = get_settings()
    configure_logging(settings=settings)

    data = ShopDataGenerator(seed=args.seed).generate_all(
        n_customers=args.customers,
        n_technicians=args.technicians,
        n_bays=args.bays,
        n_jobs=args.jobs,
        history_days=args.history_days,
    )
    if args.csv_dir:
        ShopDataGenerator.save(data, args.csv_dir)

    database = settings.database.model_copy(update={"create_tables": True})
    await init_database(database)
    try:
        counts = await load_dataset(data, truncate=args.truncate)
        logger.info("Database seeded", **counts)
    finally:
        await close_database()


if __name__ == "__main__":
    asyncio.run(main())
