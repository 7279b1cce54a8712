"""In-memory product catalogue for development and tests."""

from ordering.catalogue.port import Coupon, Product, ProductCatalogue


class InMemoryCatalogue(ProductCatalogue):
    def __init__(self) -> None:
        self.products: dict[str, Product] = {}
        self.coupons: dict[str, Coupon] = {}

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    def add_coupon(self, coupon: Coupon) -> Coupon:
        self.coupons[coupon.code.upper()] = coupon
        return coupon

    def get_product(self, product_id) -> Product | None:
        return self.products.get(str(product_id))

    def get_coupon(self, code: str) -> Coupon | None:
        return self.coupons.get(code.upper())
