import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from config import FULL_REFRESH_INTERVAL_S, LOCATION_REFRESH_INTERVAL_S
from models import Driver, LocationKind, LocationUpdate, Order, utc_now
from status import is_active_dispatch

logger = logging.getLogger(__name__)

FullFetcher = Callable[[], tuple[list[Driver], list[Order]]]
LocationFetcher = Callable[[], list[LocationUpdate]]


def _aware(ts: datetime) -> datetime:
    # naive timestamps from the store are UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class LocationReconciler:
    """
    In-memory driver/order views kept fresh by two independent refresh loops.

    Existing records are always updated in place, so whoever holds a reference
    (a rendered map marker, a selected order) keeps the same object. Location
    writes coming from polls, pushes or manual refreshes are ordered by their own
    timestamp: an older update never overwrites a newer one, whatever the
    arrival order.
    """

    def __init__(
        self,
        full_interval_s: float = FULL_REFRESH_INTERVAL_S,
        location_interval_s: float = LOCATION_REFRESH_INTERVAL_S,
    ):
        self.full_interval_s = full_interval_s
        self.location_interval_s = location_interval_s
        self._drivers: dict[str, Driver] = {}
        self._orders: dict[str, Order] = {}
        self._location_stamps: dict[tuple[LocationKind, str], datetime] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    # --- views ---

    def driver(self, driver_id: str) -> Driver | None:
        with self._lock:
            return self._drivers.get(driver_id)

    def order(self, order_id: str) -> Order | None:
        with self._lock:
            return self._orders.get(order_id)

    def drivers(self) -> list[Driver]:
        with self._lock:
            return list(self._drivers.values())

    def active_orders(self) -> list[Order]:
        with self._lock:
            return [o for o in self._orders.values() if is_active_dispatch(o.status)]

    # --- merges ---

    def _accept_location(self, kind: LocationKind, record_id: str, ts: datetime) -> bool:
        key = (kind, record_id)
        ts = _aware(ts)
        current = self._location_stamps.get(key)
        if current is not None and ts < current:
            return False
        self._location_stamps[key] = ts
        return True

    def refresh_drivers(self, drivers: Iterable[Driver], fetched_at: datetime | None = None) -> None:
        fetched_at = fetched_at or utc_now()
        with self._lock:
            for incoming in drivers:
                existing = self._drivers.get(incoming.id)
                if existing is None:
                    if incoming.location_updated_at is None:
                        incoming.location_updated_at = fetched_at
                    self._drivers[incoming.id] = incoming
                    self._accept_location(LocationKind.DRIVER, incoming.id, incoming.location_updated_at)
                    continue

                existing.name = incoming.name
                existing.is_online = incoming.is_online
                existing.is_available = incoming.is_available
                existing.current_order_id = incoming.current_order_id
                stamp = incoming.location_updated_at or fetched_at
                # a snapshot without a position carries no location news
                if incoming.location is not None and self._accept_location(
                    LocationKind.DRIVER, incoming.id, stamp
                ):
                    existing.location = incoming.location
                    existing.location_updated_at = stamp

    def refresh_orders(self, orders: Iterable[Order]) -> None:
        with self._lock:
            for incoming in orders:
                existing = self._orders.get(incoming.id)
                if existing is None:
                    self._orders[incoming.id] = incoming
                    self._accept_location(LocationKind.ORDER, incoming.id, incoming.updated_at)
                    continue

                if _aware(incoming.updated_at) >= _aware(existing.updated_at):
                    existing.status = incoming.status
                    existing.driver_id = incoming.driver_id
                    existing.destination = incoming.destination
                    existing.updated_at = incoming.updated_at
                if incoming.driver_location is not None and self._accept_location(
                    LocationKind.ORDER, incoming.id, incoming.updated_at
                ):
                    existing.driver_location = incoming.driver_location

    def refresh_all(self, fetch_all: FullFetcher) -> None:
        # snapshot rows carry no location stamp; date them from before the read
        fetched_at = utc_now()
        drivers, orders = fetch_all()
        self.refresh_drivers(drivers, fetched_at)
        self.refresh_orders(orders)

    def apply_location(self, update: LocationUpdate) -> bool:
        """
        Writes only the location field of an existing record.
        Returns False for unknown ids and for updates older than what is held.
        """
        with self._lock:
            if update.kind == LocationKind.DRIVER:
                record = self._drivers.get(update.record_id)
            else:
                record = self._orders.get(update.record_id)
            if record is None:
                return False

            if not self._accept_location(update.kind, update.record_id, update.timestamp):
                logger.debug(
                    f"Ignoring stale {update.source.value} location for "
                    f"{update.kind.value} {update.record_id}"
                )
                return False

            if update.kind == LocationKind.DRIVER:
                record.location = update.location
                record.location_updated_at = update.timestamp
            else:
                record.driver_location = update.location
            return True

    def apply_locations(self, updates: Iterable[LocationUpdate]) -> int:
        return sum(1 for update in updates if self.apply_location(update))

    # --- timers ---

    def _loop(self, name: str, interval_s: float, tick: Callable[[], None]) -> None:
        while not self._stop.wait(interval_s):
            try:
                tick()
            except Exception:
                logger.exception(f"{name} refresh failed")

    def start(self, fetch_all: FullFetcher, fetch_locations: LocationFetcher) -> None:
        """Starts the full-list loop and the location-only loop on their own threads."""
        if self._threads:
            return
        self._stop.clear()

        def full_tick() -> None:
            self.refresh_all(fetch_all)

        def location_tick() -> None:
            self.apply_locations(fetch_locations())

        self._threads = [
            threading.Thread(
                target=self._loop, args=("full", self.full_interval_s, full_tick), daemon=True
            ),
            threading.Thread(
                target=self._loop,
                args=("location", self.location_interval_s, location_tick),
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
