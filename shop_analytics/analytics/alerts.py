"""
Alert Evaluation

Deterministic threshold checks over the latest bundle and the current
inventory / equipment state. Alerts are transient and never stored.

Rules:
- Low stock: low-stock item count at or above the threshold -> warning / medium
- Equipment: each unit in maintenance or offline -> error / high
- Job backlog (opt-in): pending jobs at or above the threshold -> info / low
"""

from datetime import datetime
from typing import Callable, List, Optional

import structlog

from shop_analytics.analytics.models import (
    Alert,
    AlertKind,
    AlertSeverity,
    AnalyticsBundle,
    EquipmentSnapshot,
    EquipmentStatus,
    InventorySnapshot,
    utcnow,
)

logger = structlog.get_logger(__name__)


class AlertEvaluator:
    """
    Evaluates alert rules.

    Missing snapshots or fields never raise; they simply trigger nothing.

    Example:
        evaluator = AlertEvaluator(low_stock_threshold=5)
        alerts = evaluator.evaluate(bundle, inventory, equipment)
    """

    def __init__(
        self,
        low_stock_threshold: int = 5,
        pending_jobs_threshold: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if low_stock_threshold < 1:
            raise ValueError("low_stock_threshold must be at least 1")
        self.low_stock_threshold = low_stock_threshold
        self.pending_jobs_threshold = pending_jobs_threshold
        self._clock = clock

    def evaluate(
        self,
        bundle: Optional[AnalyticsBundle],
        inventory: Optional[InventorySnapshot],
        equipment: Optional[EquipmentSnapshot],
    ) -> List[Alert]:
        """
        Run every rule and collect triggered alerts.

        Args:
            bundle: Latest analytics bundle (may be None)
            inventory: Current stock snapshot (may be None or partial)
            equipment: Current equipment snapshot (may be None or partial)

        Returns:
            Alerts in rule order; empty when nothing triggers
        """
        now = self._clock()
        alerts: List[Alert] = []
        alerts.extend(self._check_inventory(inventory, now))
        alerts.extend(self._check_equipment(equipment, now))
        alerts.extend(self._check_backlog(bundle, now))

        if alerts:
            logger.info(
                "Alerts triggered",
                count=len(alerts),
                high=sum(1 for a in alerts if a.severity == AlertSeverity.HIGH),
            )
        return alerts

    def _check_inventory(self, inventory: Optional[InventorySnapshot], now: datetime) -> List[Alert]:
        if inventory is None:
            return []

        low_stock = inventory.low_stock_count
        if low_stock is None and inventory.low_stock_items:
            low_stock = len(inventory.low_stock_items)
        if low_stock is None or low_stock < self.low_stock_threshold:
            return []

        noun = "item is" if low_stock == 1 else "items are"
        return [
            Alert(
                kind=AlertKind.WARNING,
                message=f"{low_stock} {noun} running low on stock",
                severity=AlertSeverity.MEDIUM,
                timestamp=now,
            )
        ]

    def _check_equipment(self, equipment: Optional[EquipmentSnapshot], now: datetime) -> List[Alert]:
        if equipment is None:
            return []

        alerts = []
        for unit in equipment.units:
            if not unit.name or not unit.status:
                continue
            status = unit.status.strip().lower()
            if status == EquipmentStatus.MAINTENANCE.value:
                message = f"{unit.name} requires maintenance"
            elif status == EquipmentStatus.OFFLINE.value:
                message = f"{unit.name} is offline"
            else:
                continue
            alerts.append(
                Alert(kind=AlertKind.ERROR, message=message, severity=AlertSeverity.HIGH, timestamp=now)
            )
        return alerts

    def _check_backlog(self, bundle: Optional[AnalyticsBundle], now: datetime) -> List[Alert]:
        if self.pending_jobs_threshold is None or bundle is None:
            return []

        pending = bundle.operations.pending_jobs
        if pending < self.pending_jobs_threshold:
            return []
        return [
            Alert(
                kind=AlertKind.INFO,
                message=f"{pending} jobs are waiting in the queue",
                severity=AlertSeverity.LOW,
                timestamp=now,
            )
        ]
