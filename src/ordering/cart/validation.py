"""Stock and catalogue checks shared by cart mutations and checkout."""

from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.catalogue import get_catalogue
from ordering.errors import InsufficientStockError
from ordering.inventory.ledger import InventoryLedger


def sellable_product(product_id, variant_id=None):
    """Return the catalogue product if it can be put in a cart, else raise."""
    product = get_catalogue().get_product(product_id)
    if product is None:
        raise ObjectNotFoundError(f"Product {product_id} not found")
    if not product.is_active:
        raise ValidationError({"product_id": [f"Product {product.name} is not available"]})
    if variant_id is not None and product.variant(variant_id) is None:
        raise ObjectNotFoundError(f"Variant {variant_id} not found for product {product_id}")
    return product


def ensure_stock(product, variant_id, quantity, ledger=None):
    ledger = ledger or InventoryLedger()
    available = ledger.available(product.id, variant_id)
    if quantity > available:
        raise InsufficientStockError(
            {"quantity": [f"Insufficient stock for {product.name}: {available} available, {quantity} requested"]}
        )


def cart_violations(cart, ledger=None) -> list[dict]:
    """Check every cart line against the catalogue and stock, collecting all failures."""
    ledger = ledger or InventoryLedger()
    catalogue = get_catalogue()
    violations = []

    for item in cart.items:
        variant_id = str(item.variant_id) if item.variant_id else None
        product = catalogue.get_product(item.product_id)
        problem = None

        if product is None:
            problem = "Product no longer exists"
        elif not product.is_active:
            problem = f"{product.name} is no longer available"
        elif variant_id is not None and product.variant(variant_id) is None:
            problem = f"Selected variant of {product.name} no longer exists"
        else:
            available = ledger.available(product.id, variant_id)
            if item.quantity > available:
                problem = f"Insufficient stock for {product.name}: {available} available, {item.quantity} requested"

        if problem is not None:
            violations.append(
                {
                    "item_id": str(item.id),
                    "product_id": str(item.product_id),
                    "variant_id": variant_id,
                    "message": problem,
                }
            )

    return violations
