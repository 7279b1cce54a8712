"""Product catalogue port.

The catalogue module owns product data; ordering only needs to know whether
a product can be sold, what it currently costs and how to describe it on an
order line. Coupons are looked up through the same collaborator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ordering.shared.money import round_money


@dataclass(frozen=True)
class ProductVariant:
    id: str
    sku: str
    price: float
    name: str | None = None


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    sku: str
    price: float
    is_active: bool = True
    image: str | None = None
    variants: tuple[ProductVariant, ...] = field(default_factory=tuple)

    def variant(self, variant_id) -> ProductVariant | None:
        return next((v for v in self.variants if v.id == str(variant_id)), None)

    def price_for(self, variant_id=None) -> float:
        if variant_id is None:
            return self.price
        variant = self.variant(variant_id)
        return variant.price if variant is not None else self.price

    def sku_for(self, variant_id=None) -> str:
        variant = self.variant(variant_id) if variant_id is not None else None
        return variant.sku if variant is not None else self.sku


@dataclass(frozen=True)
class Coupon:
    code: str
    percent_off: float | None = None
    amount_off: float | None = None
    is_active: bool = True

    def discount_for(self, subtotal: float) -> float:
        if self.percent_off is not None:
            return round_money(subtotal * self.percent_off / 100)
        return round_money(self.amount_off or 0.0)


class ProductCatalogue(ABC):
    @abstractmethod
    def get_product(self, product_id) -> Product | None:
        """Return the product, or None when it does not exist."""
        ...

    @abstractmethod
    def get_coupon(self, code: str) -> Coupon | None:
        ...
