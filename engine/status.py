from models import OrderStatus

# Status transitions are driven by staff and the driver app; nothing here
# validates them, any status may follow any other.

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
TRANSIT_STATUSES = frozenset({OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT})

# mph
_SPEED_BY_STATUS = {
    OrderStatus.PICKED_UP: 30,
    OrderStatus.IN_TRANSIT: 30,
    OrderStatus.ACCEPTED: 25,
    OrderStatus.ASSIGNED: 20,
}
DEFAULT_SPEED_MPH = 15

_FALLBACK_ETA_RANGE = {
    OrderStatus.PENDING: "45-60 min",
    OrderStatus.CONFIRMED: "45-60 min",
    OrderStatus.PREPARING: "30-45 min",
    OrderStatus.READY: "20-35 min",
    OrderStatus.ASSIGNED: "15-25 min",
    OrderStatus.ACCEPTED: "10-20 min",
    OrderStatus.PICKED_UP: "8-15 min",
    OrderStatus.IN_TRANSIT: "8-15 min",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}
DEFAULT_ETA_RANGE = "45-60 min"

_DISPLAY_LABEL = {
    OrderStatus.PENDING: "Order Placed",
    OrderStatus.CONFIRMED: "Order Confirmed",
    OrderStatus.PREPARING: "Preparing Order",
    OrderStatus.READY: "Ready for Pickup",
    OrderStatus.ASSIGNED: "Driver Assigned",
    OrderStatus.ACCEPTED: "Driver En Route",
    OrderStatus.PICKED_UP: "Picked Up",
    OrderStatus.IN_TRANSIT: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
}


def coerce_status(status: OrderStatus | str) -> OrderStatus | None:
    """Unknown raw strings map to None instead of raising."""
    if isinstance(status, OrderStatus):
        return status
    try:
        return OrderStatus(status)
    except ValueError:
        return None


def is_terminal(status: OrderStatus | str) -> bool:
    return coerce_status(status) in TERMINAL_STATUSES


def is_in_transit(status: OrderStatus | str) -> bool:
    return coerce_status(status) in TRANSIT_STATUSES


def is_active_dispatch(status: OrderStatus | str) -> bool:
    """Cancelled orders leave the dispatch working set."""
    return coerce_status(status) != OrderStatus.CANCELLED


def speed_for_status(status: OrderStatus | str) -> int | None:
    """Average driver speed (mph) for an active status, None for terminal ones."""
    if is_terminal(status):
        return None
    return _SPEED_BY_STATUS.get(coerce_status(status), DEFAULT_SPEED_MPH)


def fallback_eta_range(status: OrderStatus | str) -> str:
    return _FALLBACK_ETA_RANGE.get(coerce_status(status), DEFAULT_ETA_RANGE)


def display_label(status: OrderStatus | str) -> str:
    return _DISPLAY_LABEL.get(coerce_status(status), "Processing")
