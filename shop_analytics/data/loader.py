"""
Dataset Loader

Bulk-inserts generated records into the shop tables in foreign-key order.
"""

from typing import Any, AsyncContextManager, Callable, Dict, List

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from shop_analytics.database.connection import get_db
from shop_analytics.database.models import (
    Customer,
    Equipment,
    InventoryItem,
    JobPart,
    ServiceBay,
    ServiceJob,
    Technician,
)

logger = structlog.get_logger(__name__)

# Parents before children
LOAD_ORDER = [
    ("customers", Customer),
    ("technicians", Technician),
    ("service_bays", ServiceBay),
    ("equipment", Equipment),
    ("inventory_items", InventoryItem),
    ("service_jobs", ServiceJob),
    ("job_parts", JobPart),
]

CHUNK_SIZE = 1000


async def execute_batch_insert(session: AsyncSession, model: Any, records: List[Dict[str, Any]]) -> int:
    """Insert records in chunks using Core insert"""
    if not records:
        return 0
    for i in range(0, len(records), CHUNK_SIZE):
        await session.execute(insert(model), records[i:i + CHUNK_SIZE])
    logger.info("Inserted records", table=model.__tablename__, rows=len(records))
    return len(records)


async def load_dataset(
    data: Dict[str, List[Dict[str, Any]]],
    session_factory: Callable[[], AsyncContextManager[AsyncSession]] = get_db,
    truncate: bool = False,
) -> Dict[str, int]:
    """
    Load a generated dataset.

    Args:
        data: Records keyed by table name (see ShopDataGenerator.generate_all)
        session_factory: Session context manager factory
        truncate: Delete existing rows first (children before parents)

    Returns:
        Inserted row count per table
    """
    counts: Dict[str, int] = {}
    async with session_factory() as session:
        if truncate:
            for name, model in reversed(LOAD_ORDER):
                await session.execute(delete(model))
            logger.info("Existing shop data deleted")

        for name, model in LOAD_ORDER:
            counts[name] = await execute_batch_insert(session, model, data.get(name, []))
        await session.commit()
    return counts
