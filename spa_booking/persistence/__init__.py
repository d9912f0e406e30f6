from spa_booking.persistence.gateway import (
    BookingGateway,
    BookingTransaction,
    ResourceKey,
    resource_keys,
)
from spa_booking.persistence.memory import InMemoryBookingGateway
from spa_booking.persistence.sql import SqlBookingGateway

__all__ = [
    "BookingGateway", "BookingTransaction", "ResourceKey", "resource_keys",
    "InMemoryBookingGateway", "SqlBookingGateway",
]
