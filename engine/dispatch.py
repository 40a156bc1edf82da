import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from assignment import (
    NoAvailableDriversError,
    assign,
    assign_optimal,
    available_drivers,
    dispatch_points,
)
from config import OSRM_URL, ROUTING_PROFILE, ROUTING_TIMEOUT_S
from matrix import get_distance_matrix, haversine_matrix
from models import (
    AssignmentStrategy,
    Delivery,
    DispatchResponse,
    Driver,
    OrderStatus,
    utc_now,
)
from route_builder import build_route

logger = logging.getLogger(__name__)


def _never_cancelled() -> bool:
    return False


@dataclass
class DispatchContext:
    """Everything one dispatch run needs; built per call, never shared."""

    osrm_url: str = OSRM_URL
    profile: str = ROUTING_PROFILE
    timeout: float = ROUTING_TIMEOUT_S
    strategy: AssignmentStrategy = AssignmentStrategy.GREEDY
    cancel_checker: Callable[[], bool] = field(default=_never_cancelled)


class OrderStore(Protocol):
    def update_order(
        self, order_id: str, *, driver_id: str, status: OrderStatus, updated_at: datetime
    ) -> None: ...


def _cancelled(deliveries: list[Delivery]) -> DispatchResponse:
    return DispatchResponse(
        assignments={},
        routes=[],
        unassigned=[d.id for d in deliveries],
        cancelled=True,
    )


def run_dispatch(
    drivers: list[Driver],
    deliveries: list[Delivery],
    ctx: DispatchContext | None = None,
) -> DispatchResponse:
    """
    Matrix -> assignment -> one route per driver that received work.

    Raises NoAvailableDriversError when nobody is online and available. A failed
    matrix call falls back to straight-line distances and marks the response
    degraded; so does any driver route that fell back to defaults.
    """
    ctx = ctx or DispatchContext()

    candidates = available_drivers(drivers)
    if not candidates:
        raise NoAvailableDriversError()
    if not deliveries:
        return DispatchResponse(assignments={d.id: [] for d in candidates}, routes=[])
    if ctx.cancel_checker():
        return _cancelled(deliveries)

    points = dispatch_points(drivers, deliveries)
    matrix = get_distance_matrix(points, ctx.profile, ctx.osrm_url, ctx.timeout)
    degraded = False
    if not matrix.ok:
        logger.warning(f"Using straight-line matrix for dispatch: {matrix.error}")
        matrix = haversine_matrix(points)
        degraded = True

    if ctx.cancel_checker():
        return _cancelled(deliveries)

    if ctx.strategy == AssignmentStrategy.OPTIMAL:
        assignments = assign_optimal(drivers, deliveries, matrix)
    else:
        assignments = assign(drivers, deliveries, matrix)

    drivers_by_id = {d.id: d for d in drivers}
    routes = []
    for driver_id, assigned in assignments.items():
        if not assigned:
            continue
        if ctx.cancel_checker():
            return _cancelled(deliveries)
        route = build_route(
            drivers_by_id[driver_id], assigned, ctx.profile, ctx.osrm_url, ctx.timeout
        )
        degraded = degraded or route.degraded
        routes.append(route)

    logger.info(
        f"Dispatched {len(deliveries)} deliveries to {len(routes)} drivers"
        + (" (degraded)" if degraded else "")
    )
    return DispatchResponse(
        assignments={
            driver_id: [d.id for d in assigned] for driver_id, assigned in assignments.items()
        },
        routes=routes,
        degraded=degraded,
    )


def apply_assignments(
    store: OrderStore, response: DispatchResponse, now: datetime | None = None
) -> int:
    """Persists driver_id / status=assigned for every assigned order. Returns how many were written."""
    if response.cancelled:
        return 0

    now = now or utc_now()
    written = 0
    for driver_id, order_ids in response.assignments.items():
        for order_id in order_ids:
            store.update_order(
                order_id, driver_id=driver_id, status=OrderStatus.ASSIGNED, updated_at=now
            )
            written += 1
    return written
