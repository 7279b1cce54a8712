"""Repository for Cart lookups by owning customer."""

from ordering.cart.cart import Cart
from ordering.domain import ordering


@ordering.repository(part_of=Cart)
class CartRepository:
    def for_customer(self, customer_id) -> Cart | None:
        results = self._dao.query.filter(customer_id=str(customer_id)).all()
        if not results or not results.items:
            return None
        return results.first
