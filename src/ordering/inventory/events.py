"""Domain events for the inventory ledger."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="InventoryRecord")
class StockInitialized:
    __version__ = 1

    record_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    sku = String(required=True)
    quantity = Integer(required=True)


@ordering.event(part_of="InventoryRecord")
class StockReceived:
    __version__ = 1

    record_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="InventoryRecord")
class StockDecremented:
    """Stock was drawn down for a placed order."""

    __version__ = 1

    record_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="InventoryRecord")
class StockRestored:
    """Stock drawn for an order was put back after cancellation."""

    __version__ = 1

    record_id = Identifier(required=True)
    order_id = Identifier()
    quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="InventoryRecord")
class LowStockDetected:
    __version__ = 1

    record_id = Identifier(required=True)
    sku = String(required=True)
    available = Integer(required=True)
    threshold = Integer(required=True)
