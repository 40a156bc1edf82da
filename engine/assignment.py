import logging
import math

from ortools.graph.python import min_cost_flow

from matrix import MatrixResult
from models import Coordinate, Delivery, DeliveryPriority, Driver

logger = logging.getLogger(__name__)

PRIORITY_WEIGHT = {
    DeliveryPriority.HIGH: 3,
    DeliveryPriority.NORMAL: 2,
    DeliveryPriority.LOW: 1,
}

DISTANCE_WEIGHT = 0.4
DURATION_WEIGHT = 0.4
LOAD_WEIGHT = 0.2

# min-cost flow works on integer costs
COST_SCALE = 100
UNREACHABLE_COST = 10**12


class NoAvailableDriversError(Exception):
    """No online and available driver at assignment time."""

    def __init__(self, message: str = "No available drivers for dispatch"):
        super().__init__(message)


def available_drivers(drivers: list[Driver]) -> list[Driver]:
    return [d for d in drivers if d.is_online and d.is_available]


def dispatch_points(drivers: list[Driver], deliveries: list[Delivery]) -> list[Coordinate | None]:
    """Matrix layout: available drivers first, then deliveries, both in input order."""
    return [d.location for d in available_drivers(drivers)] + [x.location for x in deliveries]


def by_priority(deliveries: list[Delivery]) -> list[tuple[int, Delivery]]:
    """(input index, delivery) pairs, highest priority first; sorted() is stable."""
    return sorted(
        enumerate(deliveries),
        key=lambda item: PRIORITY_WEIGHT[item[1].priority],
        reverse=True,
    )


def _travel_cost(matrix: MatrixResult, src: int, dst: int) -> float:
    distance = matrix.distances[src][dst]
    duration = matrix.durations[src][dst]
    if distance is None or duration is None:
        return math.inf
    return DISTANCE_WEIGHT * distance + DURATION_WEIGHT * duration


def assign(
    drivers: list[Driver],
    deliveries: list[Delivery],
    matrix: MatrixResult,
) -> dict[str, list[Delivery]]:
    """
    Greedy single pass: deliveries in priority order, each one to the driver with
    the lowest 0.4*distance + 0.4*duration + 0.2*load, load counting what this call
    already handed out. Ties go to the earliest driver in the input.

    Args:
        drivers: all known drivers, only online + available ones are candidates
        deliveries: pending deliveries
        matrix: square matrix over dispatch_points(drivers, deliveries)

    Returns:
        {driver_id: [Delivery, ...]} for every available driver, lists in assignment order
    """
    candidates = available_drivers(drivers)
    if not candidates:
        raise NoAvailableDriversError()

    offset = len(candidates)
    assignments: dict[str, list[Delivery]] = {d.id: [] for d in candidates}

    for delivery_idx, delivery in by_priority(deliveries):
        best_driver = None
        best_score = math.inf
        for driver_idx, driver in enumerate(candidates):
            load = len(assignments[driver.id])
            score = _travel_cost(matrix, driver_idx, offset + delivery_idx) + LOAD_WEIGHT * load
            if best_driver is None or score < best_score:
                best_driver = driver
                best_score = score
        assignments[best_driver.id].append(delivery)

    return assignments


def assign_optimal(
    drivers: list[Driver],
    deliveries: list[Delivery],
    matrix: MatrixResult,
) -> dict[str, list[Delivery]]:
    """
    Same objective as `assign`, minimized globally as a min-cost flow:
    source -> delivery -> driver -> sink, with one driver->sink arc per load slot
    costing 0.2*k so the k-th delivery of a driver pays the same load term the
    greedy pass would. Falls back to `assign` if the solver does not finish OPTIMAL.
    """
    candidates = available_drivers(drivers)
    if not candidates:
        raise NoAvailableDriversError()

    n = len(deliveries)
    m = len(candidates)
    if n == 0:
        return {d.id: [] for d in candidates}

    source = 0
    sink = n + m + 1

    def delivery_node(i: int) -> int:
        return 1 + i

    def driver_node(j: int) -> int:
        return 1 + n + j

    smcf = min_cost_flow.SimpleMinCostFlow()

    for i in range(n):
        smcf.add_arc_with_capacity_and_unit_cost(source, delivery_node(i), 1, 0)

    assignment_arcs: dict[int, tuple[int, int]] = {}
    for i in range(n):
        for j in range(m):
            cost = _travel_cost(matrix, j, m + i)
            unit_cost = UNREACHABLE_COST if math.isinf(cost) else round(cost * COST_SCALE)
            arc = smcf.add_arc_with_capacity_and_unit_cost(delivery_node(i), driver_node(j), 1, unit_cost)
            assignment_arcs[arc] = (i, j)

    for j in range(m):
        for k in range(n):
            smcf.add_arc_with_capacity_and_unit_cost(
                driver_node(j), sink, 1, round(LOAD_WEIGHT * k * COST_SCALE)
            )

    smcf.set_node_supply(source, n)
    smcf.set_node_supply(sink, -n)

    status = smcf.solve()
    if status != smcf.OPTIMAL:
        logger.warning(f"Min-cost flow finished with status {status}, using greedy assignment")
        return assign(drivers, deliveries, matrix)

    chosen: dict[int, int] = {}
    for arc, (i, j) in assignment_arcs.items():
        if smcf.flow(arc) > 0:
            chosen[i] = j

    assignments: dict[str, list[Delivery]] = {d.id: [] for d in candidates}
    for delivery_idx, delivery in by_priority(deliveries):
        assignments[candidates[chosen[delivery_idx]].id].append(delivery)
    return assignments
