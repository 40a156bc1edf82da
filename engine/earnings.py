from models import Delivery, DeliveryPriority

BASE_PAY = 2.00
MILEAGE_RATE = 0.70  # per mile
METERS_PER_MILE = 1609.34
HIGH_PRIORITY_TIP = 3
DEFAULT_TIP = 1


def tip_estimate(delivery: Delivery) -> int:
    return HIGH_PRIORITY_TIP if delivery.priority == DeliveryPriority.HIGH else DEFAULT_TIP


def compute_earnings(deliveries: list[Delivery], total_distance_meters: float) -> float:
    """Base pay + mileage pay + estimated tips for one driver's route."""
    mileage_pay = total_distance_meters / METERS_PER_MILE * MILEAGE_RATE
    return BASE_PAY + mileage_pay + sum(tip_estimate(d) for d in deliveries)
