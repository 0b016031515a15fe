"""
Database Models - Shop Operations Schema

Tables the SQL data provider aggregates over:

Operational Facts:
- ServiceJob: one repair/service job with money, timing and quality flags
- JobPart: inventory consumed by a job

Reference Tables:
- Customer, Technician, ServiceBay, Equipment, InventoryItem

Timestamps are stored as naive UTC.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List
import uuid

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def utc_naive() -> datetime:
    """Current UTC time without tzinfo, as stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# ENUMERATIONS
# =============================================================================

class JobStatus(str, Enum):
    """Service job status enumeration"""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class JobPriority(str, Enum):
    """Service job priority enumeration"""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CustomerSegment(str, Enum):
    """Customer loyalty segment enumeration"""
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


class BayStatus(str, Enum):
    """Service bay status enumeration"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class ItemCategory(str, Enum):
    """Inventory category enumeration"""
    PART = "part"
    TOOL = "tool"
    CONSUMABLE = "consumable"
    EQUIPMENT = "equipment"


# =============================================================================
# REFERENCE TABLES
# =============================================================================

class Customer(Base):
    """Shop customer"""
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    segment: Mapped[str] = mapped_column(String(20), default=CustomerSegment.BRONZE.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_naive, nullable=False)

    jobs: Mapped[List["ServiceJob"]] = relationship(back_populates="customer")


class Technician(Base):
    """Mechanic assigned to jobs"""
    __tablename__ = "technicians"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    on_shift: Mapped[bool] = mapped_column(Boolean, default=False)

    jobs: Mapped[List["ServiceJob"]] = relationship(back_populates="technician")


class ServiceBay(Base):
    """Physical service bay"""
    __tablename__ = "service_bays"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(20), default=BayStatus.AVAILABLE.value, nullable=False)

    jobs: Mapped[List["ServiceJob"]] = relationship(back_populates="bay")


class Equipment(Base):
    """Shop equipment (lifts, scanners, compressors)"""
    __tablename__ = "equipment"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="operational", nullable=False)
    usage_hours: Mapped[float] = mapped_column(Float, default=0.0)
    maintenance_cost: Mapped[float] = mapped_column(Float, default=0.0)
    efficiency: Mapped[float] = mapped_column(Float, default=100.0)


class InventoryItem(Base):
    """Stocked part, tool or consumable"""
    __tablename__ = "inventory_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(20), default=ItemCategory.PART.value, nullable=False)
    supplier: Mapped[Optional[str]] = mapped_column(String(200))
    supplier_rating: Mapped[Optional[float]] = mapped_column(Float)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    unit_cost: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_restocked: Mapped[Optional[datetime]] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("ix_inventory_items_category", "category"),
    )


# =============================================================================
# OPERATIONAL FACTS
# =============================================================================

class ServiceJob(Base):
    """
    Service Job Fact Table

    Revenue is recognised when a job completes; created_at drives volume
    metrics and due_at drives on-time completion.
    """
    __tablename__ = "service_jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    customer_id: Mapped[str] = mapped_column(ForeignKey("customers.id"), nullable=False)
    technician_id: Mapped[Optional[str]] = mapped_column(ForeignKey("technicians.id"))
    bay_id: Mapped[Optional[str]] = mapped_column(ForeignKey("service_bays.id"))

    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=JobStatus.PENDING.value, nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default=JobPriority.MEDIUM.value, nullable=False)

    total_amount: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    parts_cost: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Quality
    rating: Mapped[Optional[int]] = mapped_column(Integer)  # 1-5
    is_rework: Mapped[bool] = mapped_column(Boolean, default=False)
    warranty_claim: Mapped[bool] = mapped_column(Boolean, default=False)
    complaint: Mapped[bool] = mapped_column(Boolean, default=False)

    customer: Mapped["Customer"] = relationship(back_populates="jobs")
    technician: Mapped[Optional["Technician"]] = relationship(back_populates="jobs")
    bay: Mapped[Optional["ServiceBay"]] = relationship(back_populates="jobs")
    parts: Mapped[List["JobPart"]] = relationship(back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_service_jobs_created_at", "created_at"),
        Index("ix_service_jobs_completed_at", "completed_at"),
        Index("ix_service_jobs_status", "status"),
    )


class JobPart(Base):
    """Inventory consumed by a service job"""
    __tablename__ = "job_parts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[str] = mapped_column(ForeignKey("service_jobs.id"), nullable=False)
    item_id: Mapped[str] = mapped_column(ForeignKey("inventory_items.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    job: Mapped["ServiceJob"] = relationship(back_populates="parts")
    item: Mapped["InventoryItem"] = relationship()

    __table_args__ = (
        Index("ix_job_parts_job_id", "job_id"),
    )
