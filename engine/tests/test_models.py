import pytest
from pydantic import ValidationError

from models import (
    Coordinate,
    Delivery,
    DeliveryPriority,
    DispatchRequest,
    Driver,
    Order,
    OrderStatus,
    is_routable,
)


def test_coordinate_valid():
    assert Coordinate(lat=30.2672, lng=-97.7431).is_valid


@pytest.mark.parametrize(
    "lat,lng",
    [(91, 0.5), (-91, 0.5), (10, 181), (10, -181), (0, 0), (float("nan"), 10)],
)
def test_coordinate_invalid(lat, lng):
    assert not Coordinate(lat=lat, lng=lng).is_valid


def test_coordinate_on_an_axis_is_still_valid():
    # only the exact (0,0) pair is the "unknown" marker
    assert Coordinate(lat=0, lng=-97.7).is_valid
    assert Coordinate(lat=51.5, lng=0).is_valid


def test_coordinate_parse_unknown():
    assert Coordinate.parse(None, -97.7) is None
    assert Coordinate.parse(0, 0) is None
    assert Coordinate.parse(30.2, -97.7) == Coordinate(lat=30.2, lng=-97.7)


def test_is_routable():
    assert not is_routable(None)
    assert is_routable(Coordinate(lat=30.2, lng=-97.7))


def test_driver_defaults():
    d = Driver(id="d1", name="Ana")
    assert d.location is None
    assert d.is_online is False
    assert d.is_available is False
    assert d.current_order_id is None


def test_delivery_defaults():
    d = Delivery(id="o1", address="1 Main St", location=Coordinate(lat=30.2, lng=-97.7))
    assert d.priority == DeliveryPriority.NORMAL
    assert d.estimated_time is None


def test_delivery_rejects_unknown_priority():
    with pytest.raises(ValidationError):
        Delivery(
            id="o1",
            address="1 Main St",
            location=Coordinate(lat=30.2, lng=-97.7),
            priority="urgent",
        )


def test_order_defaults():
    o = Order(id="o1")
    assert o.status == OrderStatus.PENDING
    assert o.driver_id is None
    assert o.updated_at.tzinfo is not None


def test_order_rejects_unknown_status():
    with pytest.raises(ValidationError):
        Order(id="o1", status="lost")


def test_dispatch_request_from_json():
    req = DispatchRequest.model_validate(
        {
            "drivers": [{"id": "d1", "name": "Ana", "is_online": True, "is_available": True}],
            "deliveries": [
                {
                    "id": "o1",
                    "address": "1 Main St",
                    "location": {"lat": 30.28, "lng": -97.73},
                    "priority": "high",
                }
            ],
        }
    )
    assert req.strategy == "greedy"
    assert req.deliveries[0].priority == DeliveryPriority.HIGH
    assert req.job_id is None
