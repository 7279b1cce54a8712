"""Shipping methods, their quoted cost and delivery horizon."""

from enum import Enum


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"
    SAME_DAY = "same_day"


_BASE_COST = {
    ShippingMethod.STANDARD: 100.0,
    ShippingMethod.EXPRESS: 200.0,
    ShippingMethod.OVERNIGHT: 500.0,
    ShippingMethod.SAME_DAY: 800.0,
}

PER_UNIT_COST = 10.0

_DELIVERY_DAYS = {
    ShippingMethod.SAME_DAY: 0,
    ShippingMethod.OVERNIGHT: 1,
    ShippingMethod.EXPRESS: 2,
    ShippingMethod.STANDARD: 5,
}


def shipping_cost(method, units: int) -> float:
    """Quote shipping for ``units`` items; nothing to ship costs nothing."""
    if method is None or units <= 0:
        return 0.0
    return _BASE_COST[ShippingMethod(method)] + PER_UNIT_COST * units


def delivery_days(method) -> int:
    if method is None:
        return _DELIVERY_DAYS[ShippingMethod.STANDARD]
    return _DELIVERY_DAYS[ShippingMethod(method)]
