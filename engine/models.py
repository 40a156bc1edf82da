import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Coordinate(BaseModel):
    lat: float
    lng: float

    @property
    def is_valid(self) -> bool:
        """Inside lat/lng bounds, finite, and not the legacy (0,0) "unknown" marker."""
        if not (math.isfinite(self.lat) and math.isfinite(self.lng)):
            return False
        if not (-90 <= self.lat <= 90 and -180 <= self.lng <= 180):
            return False
        return not (self.lat == 0 and self.lng == 0)

    @classmethod
    def parse(cls, lat: float | None, lng: float | None) -> "Coordinate | None":
        """Raw store values -> Coordinate, or None when the location is unknown."""
        if lat is None or lng is None:
            return None
        if lat == 0 and lng == 0:
            return None
        return cls(lat=lat, lng=lng)


def is_routable(point: Coordinate | None) -> bool:
    return point is not None and point.is_valid


class DeliveryPriority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class LegType(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class Driver(BaseModel):
    id: str
    name: str
    location: Coordinate | None = None
    is_online: bool = False
    is_available: bool = False
    current_order_id: str | None = None
    location_updated_at: datetime | None = None


class Delivery(BaseModel):
    id: str
    address: str
    location: Coordinate
    priority: DeliveryPriority = DeliveryPriority.NORMAL
    estimated_time: int | None = None  # minutes


class Order(BaseModel):
    id: str
    status: OrderStatus = OrderStatus.PENDING
    driver_id: str | None = None
    driver_location: Coordinate | None = None
    destination: Coordinate | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class RouteLeg(BaseModel):
    location: Coordinate | None = None
    type: LegType
    order_id: str | None = None
    address: str
    eta_seconds: float | None = None


class Route(BaseModel):
    driver_id: str
    driver_name: str
    legs: list[RouteLeg]
    total_distance_meters: float
    total_time_seconds: float
    total_earnings: float
    degraded: bool = False


class LocationKind(str, Enum):
    DRIVER = "driver"
    ORDER = "order"


class UpdateSource(str, Enum):
    POLL = "poll"
    PUSH = "push"
    MANUAL = "manual"


class LocationUpdate(BaseModel):
    record_id: str
    kind: LocationKind
    location: Coordinate | None
    timestamp: datetime
    source: UpdateSource = UpdateSource.POLL


class OrderEta(BaseModel):
    order_id: str
    status: OrderStatus
    minutes: int | None = None
    text: str
    distance_miles: float | None = None
    distance_text: str | None = None
    is_estimate_range: bool = False


class AssignmentStrategy(str, Enum):
    GREEDY = "greedy"
    OPTIMAL = "optimal"


class DispatchRequest(BaseModel):
    job_id: str | None = None
    batch_id: str | None = None
    profile: str | None = None
    strategy: AssignmentStrategy = AssignmentStrategy.GREEDY
    drivers: list[Driver]
    deliveries: list[Delivery]


class DispatchResponse(BaseModel):
    assignments: dict[str, list[str]]  # driver_id -> delivery ids, in assignment order
    routes: list[Route]
    unassigned: list[str] = []
    degraded: bool = False
    cancelled: bool = False


class AsyncDispatchAccepted(BaseModel):
    job_id: str
    status: str


class AsyncDispatchResult(BaseModel):
    job_id: str
    status: str
    response: DispatchResponse | None = None
    error: str | None = None


class EtaRequest(BaseModel):
    orders: list[Order]
