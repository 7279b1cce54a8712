"""Inventory ledger used by cart validation, checkout and cancellation.

A ledger instance caches every record it loads, so several order lines that
touch the same record see each other's draws before anything is persisted.
Call ``save()`` once all lines are applied; nothing is written before that.
"""

import structlog
from protean.utils.globals import current_domain

from ordering.errors import InsufficientStockError
from ordering.inventory.record import InventoryRecord

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self) -> None:
        self._records: dict[str, InventoryRecord] = {}
        self._touched: set[str] = set()

    @property
    def _repo(self):
        return current_domain.repository_for(InventoryRecord)

    def records_for(self, product_id, variant_id=None) -> list[InventoryRecord]:
        records = []
        for record in self._repo.for_product(product_id):
            cached = self._records.setdefault(str(record.id), record)
            if cached.matches(product_id, variant_id):
                records.append(cached)
        return records

    def available(self, product_id, variant_id=None) -> int:
        """Variant-level availability, or the sum across the product's records."""
        return sum(max(record.available, 0) for record in self.records_for(product_id, variant_id))

    def decrement(self, product_id, variant_id, quantity, order_id=None, label=None) -> None:
        """Draw stock for one order line, all or nothing."""
        records = self.records_for(product_id, variant_id)
        available = sum(max(record.available, 0) for record in records)
        if quantity > available:
            message = f"Insufficient stock for {label or product_id}: {available} available, {quantity} requested"
            raise InsufficientStockError({"stock": [message]})

        remaining = quantity
        for record in records:
            if remaining == 0:
                break
            take = min(record.available, remaining)
            if take <= 0:
                continue
            record.decrement(take, order_id=order_id)
            self._touched.add(str(record.id))
            remaining -= take

    def restore(self, product_id, variant_id, quantity, order_id=None) -> None:
        records = self.records_for(product_id, variant_id)
        if not records:
            logger.warning(
                "No inventory record to restore stock into",
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
            )
            return

        record = records[0]
        record.restore(quantity, order_id=order_id)
        self._touched.add(str(record.id))

    def save(self) -> None:
        repo = self._repo
        for record_id in sorted(self._touched):
            repo.add(self._records[record_id])
        self._touched.clear()
