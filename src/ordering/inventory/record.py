"""InventoryRecord aggregate — stock bookkeeping for one product or variant.

    quantity:  units on hand
    reserved:  units held outside of checkout (manual holds)
    available: quantity - reserved, the only number checkout may draw from

Checkout draws stock with ``decrement``, which refuses to take more than is
available; the check and the write happen on the same loaded record inside
the checkout's unit of work.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStockError
from ordering.inventory.events import (
    LowStockDetected,
    StockDecremented,
    StockInitialized,
    StockReceived,
    StockRestored,
)


@ordering.aggregate
class InventoryRecord:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=100)
    quantity = Integer(min_value=0, default=0)
    reserved = Integer(min_value=0, default=0)
    low_stock_threshold = Integer(min_value=0, default=10)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_cannot_exceed_quantity(self):
        if (self.reserved or 0) > (self.quantity or 0):
            raise ValidationError({"reserved": ["Reserved stock cannot exceed quantity on hand"]})

    @classmethod
    def create(cls, product_id, sku, quantity=0, variant_id=None, low_stock_threshold=10):
        now = datetime.now(UTC)
        record = cls(
            product_id=product_id,
            variant_id=variant_id,
            sku=sku,
            quantity=quantity,
            reserved=0,
            low_stock_threshold=low_stock_threshold,
            created_at=now,
            updated_at=now,
        )
        record.raise_(
            StockInitialized(
                record_id=str(record.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                sku=sku,
                quantity=quantity,
            )
        )
        return record

    @property
    def available(self) -> int:
        return (self.quantity or 0) - (self.reserved or 0)

    @property
    def is_out_of_stock(self) -> bool:
        return self.available <= 0

    @property
    def is_low_stock(self) -> bool:
        return self.available <= (self.low_stock_threshold or 0)

    def matches(self, product_id, variant_id=None) -> bool:
        if str(self.product_id) != str(product_id):
            return False
        if variant_id is None:
            return True
        return self.variant_id is not None and str(self.variant_id) == str(variant_id)

    def receive(self, quantity):
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.quantity += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(StockReceived(record_id=str(self.id), quantity=quantity, new_quantity=self.quantity))

    def decrement(self, quantity, order_id=None):
        """Draw ``quantity`` units, or fail without touching the record."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.available:
            raise InsufficientStockError(
                {"quantity": [f"Insufficient stock for {self.sku}: {self.available} available, {quantity} requested"]}
            )

        was_low = self.is_low_stock
        self.quantity -= quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockDecremented(
                record_id=str(self.id),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_quantity=self.quantity,
            )
        )

        if self.is_low_stock and not was_low:
            self.raise_(
                LowStockDetected(
                    record_id=str(self.id),
                    sku=self.sku,
                    available=self.available,
                    threshold=self.low_stock_threshold,
                )
            )

    def restore(self, quantity, order_id=None):
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.quantity += quantity
        self.updated_at = datetime.now(UTC)
        self.raise_(
            StockRestored(
                record_id=str(self.id),
                order_id=str(order_id) if order_id else None,
                quantity=quantity,
                new_quantity=self.quantity,
            )
        )
