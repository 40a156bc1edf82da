import logging
import math

import httpx
from pydantic import BaseModel

from config import OSRM_URL, ROUTING_PROFILE, ROUTING_TIMEOUT_S
from models import Coordinate, is_routable

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000
FALLBACK_SPEED_KMH = 30.0

_TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValueError)
_PAYLOAD_ERRORS = _TRANSPORT_ERRORS + (KeyError, IndexError, TypeError, AttributeError)


class RoutingError(Exception):
    """Routing backend unreachable or returned an unusable answer."""


class MatrixResult(BaseModel):
    distances: list[list[float | None]] = []  # meters
    durations: list[list[float | None]] = []  # seconds
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


def _format_coords(points: list[Coordinate]) -> str:
    return ";".join(f"{p.lng},{p.lat}" for p in points)


def _empty(n: int) -> list[list[float | None]]:
    return [[0.0 if i == j else None for j in range(n)] for i in range(n)]


def haversine_matrix(
    points: list[Coordinate | None], speed_kmh: float = FALLBACK_SPEED_KMH
) -> MatrixResult:
    """
    Straight-line fallback matrix (meters / seconds at a constant speed).
    Cells touching an unroutable point stay None.
    """
    n = len(points)
    distances = _empty(n)
    durations = _empty(n)
    speed_ms = speed_kmh * 1000 / 3600
    for i, a in enumerate(points):
        for j, b in enumerate(points):
            if i == j or not (is_routable(a) and is_routable(b)):
                continue
            dist_m = _haversine_m(a.lat, a.lng, b.lat, b.lng)
            distances[i][j] = dist_m
            durations[i][j] = dist_m / speed_ms
    return MatrixResult(distances=distances, durations=durations)


def get_distance_matrix(
    points: list[Coordinate | None],
    profile: str = ROUTING_PROFILE,
    osrm_url: str = OSRM_URL,
    timeout: float = ROUTING_TIMEOUT_S,
) -> MatrixResult:
    """
    Pairwise distance (m) and duration (s) matrix over `points`, in input order.

    Only routable points go to the backend; rows and columns of the others come
    back as None. On backend failure returns a MatrixResult with `error` set and
    no data, the caller picks the fallback. Single attempt, no retry.
    """
    n = len(points)
    routable = [i for i, p in enumerate(points) if is_routable(p)]
    if len(routable) < 2:
        return MatrixResult(distances=_empty(n), durations=_empty(n))

    coords_str = _format_coords([points[i] for i in routable])
    try:
        resp = httpx.get(
            f"{osrm_url}/table/v1/{profile}/{coords_str}",
            params={"annotations": "duration,distance"},
            timeout=timeout,
        )
        data = resp.json()
        if data.get("code") != "Ok":
            raise ValueError(data.get("message", f"OSRM error (HTTP {resp.status_code})"))
        raw_distances = data["distances"]
        raw_durations = data["durations"]

        distances = _empty(n)
        durations = _empty(n)
        for si, src in enumerate(routable):
            for di, dst in enumerate(routable):
                dist = raw_distances[si][di]
                dur = raw_durations[si][di]
                distances[src][dst] = float(dist) if dist is not None else None
                durations[src][dst] = float(dur) if dur is not None else None
    except _PAYLOAD_ERRORS as ex:
        logger.warning(f"Matrix request failed for {len(routable)} points: {ex}")
        return MatrixResult(error=str(ex) or ex.__class__.__name__)

    return MatrixResult(distances=distances, durations=durations)


def get_route(
    points: list[Coordinate],
    profile: str = ROUTING_PROFILE,
    osrm_url: str = OSRM_URL,
    timeout: float = ROUTING_TIMEOUT_S,
) -> dict:
    """
    Calls the /route endpoint for the ordered `points`.

    Returns:
        {"distance": float, "duration": float,
         "legs": [{"distance": float, "duration": float}, ...]}

    Raises RoutingError on transport failure, a non-Ok code or zero routes.
    """
    if len(points) < 2:
        raise RoutingError("At least two coordinates are required to compute a route.")

    try:
        resp = httpx.get(
            f"{osrm_url}/route/v1/{profile}/{_format_coords(points)}",
            params={"overview": "false"},
            timeout=timeout,
        )
        data = resp.json()
    except _TRANSPORT_ERRORS as ex:
        raise RoutingError(f"Route request failed: {ex}") from ex

    if not isinstance(data, dict):
        raise RoutingError("Malformed route payload")
    if data.get("code") != "Ok":
        raise RoutingError(f"OSRM error: {data.get('message', 'Unknown error')}")
    routes = data.get("routes") or []
    if not isinstance(routes, list):
        raise RoutingError("Malformed route payload: routes is not a list")
    if not routes:
        raise RoutingError("No routes returned")

    route = routes[0]
    if not isinstance(route, dict):
        raise RoutingError("Malformed route payload: route is not an object")
    try:
        return {
            "distance": float(route["distance"]),
            "duration": float(route["duration"]),
            "legs": [
                {"distance": float(leg["distance"]), "duration": float(leg["duration"])}
                for leg in route.get("legs", [])
            ],
        }
    except (KeyError, TypeError, ValueError, AttributeError) as ex:
        raise RoutingError(f"Malformed route payload: {ex}") from ex
