import math

from pydantic import BaseModel

from config import OSRM_URL, ROUTING_PROFILE, ROUTING_TIMEOUT_S
from matrix import get_distance_matrix
from models import Coordinate, Order, OrderEta, OrderStatus, is_routable
from status import fallback_eta_range, is_in_transit, is_terminal, speed_for_status

EARTH_RADIUS_MI = 3959
MIN_ETA_MINUTES = 8
BASE_BUFFER_MIN = 10
TRANSIT_BUFFER_MIN = 5


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def distance_miles(a: Coordinate, b: Coordinate) -> float:
    """Haversine great-circle distance in miles, rounded to 2 decimals."""
    lat1, lng1, lat2, lng2 = map(math.radians, [a.lat, a.lng, b.lat, b.lng])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return _round_half_up(EARTH_RADIUS_MI * c, 2)


def eta_minutes(distance: float, status: OrderStatus | str) -> int:
    """
    Minutes until delivery for a driver `distance` miles away.

    Travel time at the status speed plus a buffer: 10 min, 15 beyond 5 mi,
    20 beyond 10 mi, and 5 more once the order is picked up / in transit.
    Never less than 8 minutes; terminal statuses are always 0.
    """
    speed = speed_for_status(status)
    if speed is None:
        return 0

    raw = int(_round_half_up(distance / speed * 60))

    buffer = BASE_BUFFER_MIN
    if distance > 10:
        buffer = 20
    elif distance > 5:
        buffer = 15
    if is_in_transit(status):
        buffer += TRANSIT_BUFFER_MIN

    return max(raw + buffer, MIN_ETA_MINUTES)


def format_minutes(minutes: int) -> str:
    if minutes <= 0:
        return "Delivered"
    if minutes < 60:
        return f"{minutes} min"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def format_distance(miles: float) -> str:
    return f"{miles:.1f} mi"


def estimate_order_eta(order: Order) -> OrderEta:
    if is_terminal(order.status):
        return OrderEta(
            order_id=order.id,
            status=order.status,
            minutes=0,
            text=fallback_eta_range(order.status),
        )

    if is_routable(order.driver_location) and is_routable(order.destination):
        miles = distance_miles(order.driver_location, order.destination)
        minutes = eta_minutes(miles, order.status)
        return OrderEta(
            order_id=order.id,
            status=order.status,
            minutes=minutes,
            text=format_minutes(minutes),
            distance_miles=miles,
            distance_text=format_distance(miles),
        )

    # No usable driver position yet: status-based range
    return OrderEta(
        order_id=order.id,
        status=order.status,
        text=fallback_eta_range(order.status),
        is_estimate_range=True,
    )


class RoadEta(BaseModel):
    duration_s: float
    distance_m: float


def road_etas(
    origin: Coordinate,
    destinations: list[Coordinate],
    profile: str = ROUTING_PROFILE,
    osrm_url: str = OSRM_URL,
    timeout: float = ROUTING_TIMEOUT_S,
) -> list[RoadEta | None]:
    """Road travel from one driver to each destination; None where the backend has no answer."""
    if not destinations:
        return []

    result = get_distance_matrix([origin, *destinations], profile, osrm_url, timeout)
    if not result.ok:
        return [None] * len(destinations)

    etas: list[RoadEta | None] = []
    for j in range(1, len(destinations) + 1):
        duration = result.durations[0][j]
        distance = result.distances[0][j]
        if duration is None or distance is None:
            etas.append(None)
        else:
            etas.append(RoadEta(duration_s=duration, distance_m=distance))
    return etas
