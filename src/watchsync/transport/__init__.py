"""Update delivery between the engine and the room service."""

from watchsync.transport.base import (
    BaseDeliveryStrategy,
    DeliveryStrategy,
    TransportHealth,
    UpdateCallback,
)
from watchsync.transport.connection import StateCallback, Transport
from watchsync.transport.poll import PollStrategy
from watchsync.transport.push import PushStrategy

__all__ = [
    "BaseDeliveryStrategy",
    "DeliveryStrategy",
    "PollStrategy",
    "PushStrategy",
    "StateCallback",
    "Transport",
    "TransportHealth",
    "UpdateCallback",
]
