import pytest

from models import OrderStatus
from status import (
    display_label,
    fallback_eta_range,
    is_active_dispatch,
    is_terminal,
    speed_for_status,
)


def test_ten_statuses():
    assert len(OrderStatus) == 10


def test_terminal_statuses():
    terminal = {s for s in OrderStatus if is_terminal(s)}
    assert terminal == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


@pytest.mark.parametrize(
    "status,speed",
    [
        ("picked_up", 30),
        ("in_transit", 30),
        ("accepted", 25),
        ("assigned", 20),
        ("pending", 15),
        ("preparing", 15),
        ("ready", 15),
    ],
)
def test_speed_for_status(status, speed):
    assert speed_for_status(status) == speed


def test_speed_not_applicable_for_terminal():
    assert speed_for_status(OrderStatus.DELIVERED) is None
    assert speed_for_status(OrderStatus.CANCELLED) is None


def test_fallback_eta_range_table():
    assert fallback_eta_range("pending") == "45-60 min"
    assert fallback_eta_range("confirmed") == "45-60 min"
    assert fallback_eta_range("preparing") == "30-45 min"
    assert fallback_eta_range("ready") == "20-35 min"
    assert fallback_eta_range("assigned") == "15-25 min"
    assert fallback_eta_range("accepted") == "10-20 min"
    assert fallback_eta_range("picked_up") == "8-15 min"
    assert fallback_eta_range("in_transit") == "8-15 min"
    assert fallback_eta_range("delivered") == "Delivered"
    assert fallback_eta_range("cancelled") == "Cancelled"


def test_fallback_eta_range_unknown_status():
    assert fallback_eta_range("on_hold") == "45-60 min"


def test_only_cancelled_leaves_dispatch_set():
    assert not is_active_dispatch(OrderStatus.CANCELLED)
    assert is_active_dispatch(OrderStatus.DELIVERED)
    assert is_active_dispatch(OrderStatus.PENDING)


def test_display_label():
    assert display_label(OrderStatus.IN_TRANSIT) == "Out for Delivery"
    assert display_label("accepted") == "Driver En Route"
    assert display_label("weird") == "Processing"
