import logging

from config import OSRM_URL, ROUTING_PROFILE, ROUTING_TIMEOUT_S
from earnings import compute_earnings
from matrix import RoutingError, get_route
from models import Delivery, Driver, LegType, Route, RouteLeg, is_routable

logger = logging.getLogger(__name__)

FALLBACK_DISTANCE_M = 5000.0
FALLBACK_DURATION_S = 600.0
START_ADDRESS = "Driver Location"


def fallback_route(driver: Driver, deliveries: list[Delivery]) -> Route:
    """Approximate route used whenever real routing data is missing."""
    return Route(
        driver_id=driver.id,
        driver_name=driver.name,
        legs=[
            RouteLeg(
                location=driver.location if is_routable(driver.location) else None,
                type=LegType.PICKUP,
                address=START_ADDRESS,
                eta_seconds=FALLBACK_DURATION_S,
            )
        ],
        total_distance_meters=FALLBACK_DISTANCE_M,
        total_time_seconds=FALLBACK_DURATION_S,
        total_earnings=compute_earnings(deliveries, FALLBACK_DISTANCE_M),
        degraded=True,
    )


def build_route(
    driver: Driver,
    deliveries: list[Delivery],
    profile: str = ROUTING_PROFILE,
    osrm_url: str = OSRM_URL,
    timeout: float = ROUTING_TIMEOUT_S,
) -> Route:
    """
    Route from the driver's position through `deliveries` in the given order.

    Stops with invalid coordinates are skipped when asking the backend but keep
    their leg (eta None), so a real route always has len(deliveries) + 1 legs.
    The p-th routed stop gets the duration of backend leg p, None past the last leg.
    Fewer than 2 usable stops or any backend failure gives `fallback_route`.
    """
    stops = [driver.location] + [d.location for d in deliveries]
    valid = [i for i, point in enumerate(stops) if is_routable(point)]

    if len(valid) < 2:
        logger.warning(
            f"Driver {driver.id}: only {len(valid)} valid coordinate(s), using fallback route"
        )
        return fallback_route(driver, deliveries)

    try:
        data = get_route([stops[i] for i in valid], profile, osrm_url, timeout)
    except RoutingError as ex:
        logger.warning(f"Driver {driver.id}: {ex}, using fallback route")
        return fallback_route(driver, deliveries)

    # the p-th routed stop takes the duration of backend leg p
    backend_legs = data["legs"]
    eta: dict[int, float] = {
        stop: backend_legs[pos]["duration"]
        for pos, stop in enumerate(valid)
        if pos < len(backend_legs)
    }

    legs = [
        RouteLeg(
            location=stops[0] if 0 in valid else None,
            type=LegType.PICKUP,
            address=START_ADDRESS,
            eta_seconds=eta.get(0),
        )
    ]
    for i, delivery in enumerate(deliveries, start=1):
        legs.append(
            RouteLeg(
                location=delivery.location,
                type=LegType.DELIVERY,
                order_id=delivery.id,
                address=delivery.address,
                eta_seconds=eta.get(i),
            )
        )

    return Route(
        driver_id=driver.id,
        driver_name=driver.name,
        legs=legs,
        total_distance_meters=data["distance"],
        total_time_seconds=data["duration"],
        total_earnings=compute_earnings(deliveries, data["distance"]),
    )
