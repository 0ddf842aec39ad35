"""Abstract base class for room services."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from watchsync.core.errors import PushNotSupportedError
from watchsync.models.room import RoomHandle
from watchsync.models.update import PlaybackUpdate


class UpdateSubscription(ABC):
    """A live stream of playback updates for one room.

    Iteration ends when the subscription is closed from either side.
    """

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[PlaybackUpdate]: ...

    @abstractmethod
    async def close(self) -> None:
        """Stop the stream and release its resources."""
        ...


class RoomService(ABC):
    """Interface to the remote room service.

    The engine only ever calls these operations; room storage, membership
    bookkeeping and eviction of inactive sessions belong to the service.
    """

    @property
    def supports_push(self) -> bool:
        """Whether ``subscribe_updates`` is available."""
        return False

    @abstractmethod
    async def create_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        """Create a room and join it as its first participant.

        Raises:
            RoomAlreadyExistsError: If the room id is taken.
        """
        ...

    @abstractmethod
    async def join_room(
        self, room_id: str, origin_id: str, *, display_name: str | None = None
    ) -> RoomHandle:
        """Join an existing room.

        Raises:
            RoomNotFoundError: If the room does not exist.
        """
        ...

    @abstractmethod
    async def leave_room(self, room_id: str, origin_id: str) -> None: ...

    @abstractmethod
    async def post_update(self, update: PlaybackUpdate) -> None:
        """Publish an update to the room.

        Raises:
            UpdateRejectedError: If the service refuses the update.
        """
        ...

    async def subscribe_updates(
        self, room_id: str, *, exclude_origin: str | None = None
    ) -> UpdateSubscription:
        """Open a push subscription for *room_id*.

        Updates produced by *exclude_origin* are not delivered.
        """
        raise PushNotSupportedError(f"{type(self).__name__} does not support push updates")

    @abstractmethod
    async def query_updates_since(self, room_id: str, since: float) -> list[PlaybackUpdate]:
        """Return updates created at or after *since*, oldest first."""
        ...

    @abstractmethod
    async def heartbeat(self, origin_id: str) -> bool:
        """Mark a session alive. Returns False if the service no longer knows it."""
        ...

    async def close(self) -> None:
        """Clean up resources.

        Override this method in subclasses that need cleanup.
        The default implementation does nothing.
        """
        return None
