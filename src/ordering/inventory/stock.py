"""Stock commands and handler for staff operators."""

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import ConflictError
from ordering.inventory.record import InventoryRecord

logger = structlog.get_logger(__name__)


@ordering.command(part_of="InventoryRecord")
class InitializeStock:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True, max_length=100)
    quantity = Integer(required=True, min_value=0)
    low_stock_threshold = Integer(min_value=0, default=10)


@ordering.command(part_of="InventoryRecord")
class ReceiveStock:
    record_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command_handler(part_of=InventoryRecord)
class StockHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        if repo.find(command.product_id, command.variant_id) is not None:
            raise ConflictError(f"Inventory already initialized for {command.sku}")

        record = InventoryRecord.create(
            product_id=command.product_id,
            variant_id=command.variant_id,
            sku=command.sku,
            quantity=command.quantity,
            low_stock_threshold=command.low_stock_threshold,
        )
        repo.add(record)
        logger.info("Inventory initialized", record_id=str(record.id), sku=record.sku, quantity=record.quantity)
        return str(record.id)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(InventoryRecord)
        record = repo.get(command.record_id)
        record.receive(command.quantity)
        repo.add(record)
