"""Repository for Order lookups beyond the primary key."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    def _first(self, **filters) -> Order | None:
        results = self._dao.query.filter(**filters).all()
        if not results or not results.items:
            return None
        return results.first

    def everything(self) -> list[Order]:
        results = self._dao.query.all()
        return sorted(results.items, key=lambda order: order.created_at, reverse=True)

    def page(
        self,
        customer_id=None,
        status: str | None = None,
        sort_by: str = "created_at",
        descending: bool = True,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        """One page of orders and the number of orders matching the filters.

        ``customer_id=None`` means every customer's orders.
        """
        filters = {}
        if customer_id is not None:
            filters["customer_id"] = str(customer_id)
        if status:
            filters["order_status"] = status

        results = (
            self._dao.query.filter(**filters)
            .order_by(f"-{sort_by}" if descending else sort_by)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return list(results.items), results.total

    def by_number(self, order_number) -> Order | None:
        return self._first(order_number=order_number)

    def by_payment_intent(self, payment_intent_id) -> Order | None:
        return self._first(payment_intent_id=payment_intent_id)

    def by_transaction(self, transaction_id) -> Order | None:
        return self._first(transaction_id=transaction_id)

    def number_taken(self, order_number) -> bool:
        return self.by_number(order_number) is not None


def order_visible_to(order_id, principal_id=None, is_staff=False) -> Order:
    """Load an order the caller may see; other customers' orders read as missing."""
    order = current_domain.repository_for(Order).get(order_id)
    if not is_staff and str(order.customer_id) != str(principal_id):
        raise ObjectNotFoundError(f"Order {order_id} not found")
    return order
