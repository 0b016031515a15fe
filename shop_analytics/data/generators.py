"""
Synthetic Data Generator

Generates realistic repair-shop data for development and demos.
Includes:
- Customers across loyalty segments
- Technicians, service bays and equipment
- Inventory with suppliers, reorder levels and some low/out-of-stock items
- Service jobs with timing, quality flags and consumed parts

Records are plain dicts keyed by column name, ready for a bulk insert into
the tables in shop_analytics.database.models. Output is reproducible for a
given seed and reference time.
"""

import random
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import polars as pl
import structlog
from faker import Faker

from shop_analytics.database.models import (
    BayStatus,
    CustomerSegment,
    ItemCategory,
    JobPriority,
    JobStatus,
)

logger = structlog.get_logger(__name__)

Record = Dict[str, Any]


# =============================================================================
# CONFIGURATION
# =============================================================================

SERVICES = [
    # (service type, price range, typical hours)
    ("Oil Change", (45, 120), 0.75),
    ("Brake Service", (180, 650), 2.5),
    ("Tire Rotation", (40, 90), 0.5),
    ("Engine Diagnostics", (90, 250), 1.5),
    ("Transmission Repair", (900, 3500), 8.0),
    ("AC Service", (120, 400), 2.0),
    ("Battery Replacement", (120, 300), 0.75),
    ("Wheel Alignment", (80, 180), 1.0),
]

SEGMENTS = [
    (CustomerSegment.GOLD, 0.15),
    (CustomerSegment.SILVER, 0.35),
    (CustomerSegment.BRONZE, 0.50),
]

PRIORITIES = [
    (JobPriority.URGENT, 0.05),
    (JobPriority.HIGH, 0.20),
    (JobPriority.MEDIUM, 0.55),
    (JobPriority.LOW, 0.20),
]

EQUIPMENT = [
    ("Lift 1", "lift"),
    ("Lift 2", "lift"),
    ("Lift 3", "lift"),
    ("Diagnostic Scanner", "scanner"),
    ("Tire Changer", "tire_changer"),
    ("Air Compressor", "compressor"),
]

PARTS = [
    ("Engine Oil 5W-30", ItemCategory.CONSUMABLE, 8.0),
    ("Oil Filter", ItemCategory.PART, 12.0),
    ("Brake Pads", ItemCategory.PART, 55.0),
    ("Brake Rotor", ItemCategory.PART, 90.0),
    ("Air Filter", ItemCategory.PART, 18.0),
    ("Cabin Filter", ItemCategory.PART, 22.0),
    ("Spark Plug", ItemCategory.PART, 9.0),
    ("Car Battery", ItemCategory.PART, 140.0),
    ("Coolant", ItemCategory.CONSUMABLE, 15.0),
    ("Transmission Fluid", ItemCategory.CONSUMABLE, 25.0),
    ("Wiper Blades", ItemCategory.PART, 20.0),
    ("Serpentine Belt", ItemCategory.PART, 35.0),
    ("Refrigerant R-134a", ItemCategory.CONSUMABLE, 30.0),
    ("Torque Wrench", ItemCategory.TOOL, 120.0),
]

SUPPLIERS = ["AutoParts Direct", "Midwest Supply Co", "Precision Components", "FleetLine Distributors"]


def _utc_naive(now: Optional[datetime]) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).replace(tzinfo=None) if now.tzinfo else now


# =============================================================================
# GENERATORS
# =============================================================================

class CustomerGenerator:
    """Generate shop customers"""

    def __init__(self, fake: Faker, rng: random.Random):
        self.fake = fake
        self.rng = rng

    def generate(self, n: int, now: datetime, history_days: int) -> List[Record]:
        customers = []
        for _ in range(n):
            segment = self.rng.choices([s for s, _ in SEGMENTS], weights=[w for _, w in SEGMENTS])[0]
            customers.append({
                "id": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "name": self.fake.name(),
                "email": self.fake.email(),
                "segment": segment.value,
                "is_active": self.rng.random() > 0.05,
                "created_at": now - timedelta(days=self.rng.uniform(0, history_days * 1.5)),
            })
        return customers


class ShopResourceGenerator:
    """Generate technicians, service bays and equipment"""

    def __init__(self, fake: Faker, rng: random.Random):
        self.fake = fake
        self.rng = rng

    def technicians(self, n: int) -> List[Record]:
        return [
            {
                "id": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "name": self.fake.name(),
                "is_active": self.rng.random() > 0.1,
                "on_shift": self.rng.random() > 0.3,
            }
            for _ in range(n)
        ]

    def bays(self, n: int) -> List[Record]:
        statuses = [BayStatus.AVAILABLE, BayStatus.AVAILABLE, BayStatus.OCCUPIED, BayStatus.MAINTENANCE]
        return [
            {
                "id": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "name": f"Bay {i + 1}",
                "status": self.rng.choice(statuses).value,
            }
            for i in range(n)
        ]

    def equipment(self) -> List[Record]:
        units = []
        for name, kind in EQUIPMENT:
            roll = self.rng.random()
            status = "operational" if roll < 0.8 else ("maintenance" if roll < 0.95 else "offline")
            units.append({
                "id": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "name": name,
                "kind": kind,
                "status": status,
                "usage_hours": round(self.rng.uniform(200, 2500), 1),
                "maintenance_cost": round(self.rng.uniform(100, 4000), 2),
                "efficiency": round(self.rng.uniform(70, 99), 1),
            })
        return units


class InventoryGenerator:
    """Generate the parts catalog with stock levels"""

    def __init__(self, fake: Faker, rng: random.Random):
        self.fake = fake
        self.rng = rng

    def generate(self, now: datetime) -> List[Record]:
        items = []
        for index, (name, category, unit_cost) in enumerate(PARTS):
            min_quantity = self.rng.randint(5, 25)
            roll = self.rng.random()
            if roll < 0.1:
                quantity = 0
            elif roll < 0.3:
                quantity = self.rng.randint(1, min_quantity)
            else:
                quantity = self.rng.randint(min_quantity + 1, min_quantity * 6)
            items.append({
                "id": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "sku": f"SKU-{index + 1:05d}",
                "name": name,
                "category": category.value,
                "supplier": self.rng.choice(SUPPLIERS),
                "supplier_rating": round(self.rng.uniform(3.0, 5.0), 1),
                "quantity": quantity,
                "min_quantity": min_quantity,
                "unit_price": round(unit_cost * self.rng.uniform(1.3, 2.0), 2),
                "unit_cost": unit_cost,
                "last_restocked": now - timedelta(days=self.rng.randint(1, 180)),
                "is_active": True,
            })
        return items


class JobGenerator:
    """Generate service jobs and the parts they consumed"""

    def __init__(
        self,
        rng: random.Random,
        customers: List[Record],
        technicians: List[Record],
        bays: List[Record],
        items: List[Record],
    ):
        self.rng = rng
        self.customer_ids = [c["id"] for c in customers]
        self.technician_ids = [t["id"] for t in technicians]
        self.bay_ids = [b["id"] for b in bays]
        self.items = items

    def _status(self, age: timedelta) -> JobStatus:
        if age < timedelta(hours=8):
            return self.rng.choice([JobStatus.PENDING, JobStatus.IN_PROGRESS, JobStatus.COMPLETED])
        if age < timedelta(days=2):
            return self.rng.choices(
                [JobStatus.PENDING, JobStatus.IN_PROGRESS, JobStatus.COMPLETED],
                weights=[0.1, 0.3, 0.6],
            )[0]
        return JobStatus.CANCELLED if self.rng.random() < 0.04 else JobStatus.COMPLETED

    def generate(self, n: int, now: datetime, history_days: int):
        jobs: List[Record] = []
        parts: List[Record] = []

        for _ in range(n):
            service, (low, high), hours = self.rng.choice(SERVICES)
            priority = self.rng.choices([p for p, _ in PRIORITIES], weights=[w for _, w in PRIORITIES])[0]
            created_at = now - timedelta(seconds=self.rng.uniform(0, history_days * 86400))
            status = self._status(now - created_at)

            job_id = str(uuid.UUID(int=self.rng.getrandbits(128)))
            started_at = completed_at = None
            if status in (JobStatus.IN_PROGRESS, JobStatus.COMPLETED):
                started_at = min(created_at + timedelta(minutes=self.rng.uniform(5, 180)), now)
            if status == JobStatus.COMPLETED:
                completed_at = started_at + timedelta(hours=hours * self.rng.uniform(0.6, 1.8))
                if completed_at > now:
                    completed_at = now

            job_parts = []
            for item in self.rng.sample(self.items, k=self.rng.randint(0, 3)):
                job_parts.append({
                    "job_id": job_id,
                    "item_id": item["id"],
                    "quantity": self.rng.randint(1, 4),
                    "unit_price": item["unit_price"],
                })
            parts_cost = sum(
                part["quantity"] * next(i["unit_cost"] for i in self.items if i["id"] == part["item_id"])
                for part in job_parts
            )
            parts.extend(job_parts)

            completed = status == JobStatus.COMPLETED
            is_rework = completed and self.rng.random() < 0.04
            jobs.append({
                "id": job_id,
                "customer_id": self.rng.choice(self.customer_ids),
                "technician_id": self.rng.choice(self.technician_ids) if started_at else None,
                "bay_id": self.rng.choice(self.bay_ids) if started_at else None,
                "service_type": service,
                "status": status.value,
                "priority": priority.value,
                "total_amount": round(self.rng.uniform(low, high), 2),
                "parts_cost": round(parts_cost, 2),
                "created_at": created_at,
                "started_at": started_at,
                "completed_at": completed_at,
                "due_at": created_at + timedelta(hours=hours * 3 + 4),
                "rating": self.rng.choices([5, 4, 3, 2, 1], weights=[50, 30, 12, 5, 3])[0]
                if completed and self.rng.random() < 0.6 else None,
                "is_rework": is_rework,
                "warranty_claim": completed and self.rng.random() < 0.02,
                "complaint": completed and self.rng.random() < 0.03,
            })

        return jobs, parts


# =============================================================================
# MAIN GENERATOR
# =============================================================================

class ShopDataGenerator:
    """
    Main data generator orchestrator.

    Example:
        data = ShopDataGenerator(seed=42).generate_all(n_jobs=2000)
        data["service_jobs"][0]["status"]
    """

    TABLES = ["customers", "technicians", "service_bays", "equipment", "inventory_items", "service_jobs", "job_parts"]

    def __init__(self, seed: int = 42, now: Optional[datetime] = None, locale: str = "en_US"):
        self.seed = seed
        self.now = _utc_naive(now)
        self.rng = random.Random(seed)
        self.fake = Faker(locale)
        self.fake.seed_instance(seed)

    def generate_all(
        self,
        n_customers: int = 300,
        n_technicians: int = 8,
        n_bays: int = 6,
        n_jobs: int = 3000,
        history_days: int = 400,
    ) -> Dict[str, List[Record]]:
        """Generate every table; keys match the database table names"""
        resources = ShopResourceGenerator(self.fake, self.rng)

        customers = CustomerGenerator(self.fake, self.rng).generate(n_customers, self.now, history_days)
        technicians = resources.technicians(n_technicians)
        bays = resources.bays(n_bays)
        equipment = resources.equipment()
        items = InventoryGenerator(self.fake, self.rng).generate(self.now)
        jobs, parts = JobGenerator(self.rng, customers, technicians, bays, items).generate(
            n_jobs, self.now, history_days
        )

        data = {
            "customers": customers,
            "technicians": technicians,
            "service_bays": bays,
            "equipment": equipment,
            "inventory_items": items,
            "service_jobs": jobs,
            "job_parts": parts,
        }
        logger.info(
            "Generated shop dataset",
            seed=self.seed,
            **{name: len(records) for name, records in data.items()},
        )
        return data

    @staticmethod
    def save(data: Dict[str, List[Record]], output_dir: Path) -> List[Path]:
        """Write each table as CSV"""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for name, records in data.items():
            path = output_dir / f"{name}.csv"
            pl.DataFrame(records, infer_schema_length=None).write_csv(path)
            logger.info("Saved table", table=name, rows=len(records), path=str(path))
            paths.append(path)
        return paths
