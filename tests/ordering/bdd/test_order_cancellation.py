"""BDD tests for order cancellation, returns and staff status changes."""

from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, when

from ordering.order.cancellation import CancelOrder
from ordering.order.management import UpdateOrderStatus

scenarios("features/order_cancellation.feature")


def _move(order_id, status):
    current_domain.process(UpdateOrderStatus(order_id=order_id, status=status), asynchronous=False)


@given(parsers.cfparse("staff moved the order to {statuses}"))
def staff_moved_order(order_id, statuses):
    for status in statuses.split(","):
        _move(order_id, status.strip().strip('"'))


@when(parsers.cfparse('staff move the order to "{status}"'))
def staff_move_order(order_id, status, error):
    try:
        _move(order_id, status)
    except ValidationError as exc:
        error["exc"] = exc


@when("the customer cancels the order")
def customer_cancels(order_id, customer_id, error):
    try:
        current_domain.process(
            CancelOrder(order_id=order_id, requested_by=customer_id, reason="No longer needed"),
            asynchronous=False,
        )
    except ValidationError as exc:
        error["exc"] = exc
