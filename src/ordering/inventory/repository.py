"""Repository for InventoryRecord lookups by product."""

from ordering.domain import ordering
from ordering.inventory.record import InventoryRecord


@ordering.repository(part_of=InventoryRecord)
class InventoryRecordRepository:
    def for_product(self, product_id) -> list[InventoryRecord]:
        """All records for a product, oldest first."""
        results = self._dao.query.filter(product_id=str(product_id)).all()
        return sorted(results.items, key=lambda record: record.created_at)

    def find(self, product_id, variant_id=None) -> InventoryRecord | None:
        """The record for an exact (product, variant) pair."""
        for record in self.for_product(product_id):
            if variant_id is None and record.variant_id is None:
                return record
            if variant_id is not None and record.variant_id is not None and str(record.variant_id) == str(variant_id):
                return record
        return None
