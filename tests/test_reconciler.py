"""Tests for the remote reconciler."""

from __future__ import annotations

from unittest.mock import AsyncMock

from watchsync.core.reconciler import RemoteReconciler
from watchsync.core.suppressor import EchoSuppressor
from watchsync.models.enums import PlaybackAction
from watchsync.models.room import Session
from watchsync.models.update import PlayerEvent
from watchsync.player.mock import MockVideoPlayer
from tests.conftest import make_update


def _reconciler(
    player: MockVideoPlayer,
    session: Session,
    *,
    suppressor: EchoSuppressor | None = None,
    drift_threshold: float = 1.5,
    on_applied: AsyncMock | None = None,
) -> RemoteReconciler:
    return RemoteReconciler(
        player,
        suppressor or EchoSuppressor(),
        session,
        drift_threshold=drift_threshold,
        on_applied=on_applied,
    )


class TestDriftThreshold:
    async def test_small_drift_does_not_seek(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        player.position = 10.0
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.SEEK, 11.4))

        assert ("seek", 11.4) not in player.calls
        assert player.position == 10.0

    async def test_large_drift_seeks(self, player: MockVideoPlayer, session: Session) -> None:
        player.position = 10.0
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.SEEK, 11.6))

        assert player.calls == [("seek", 11.6)]
        assert player.position == 11.6

    async def test_threshold_is_tunable(self, player: MockVideoPlayer, session: Session) -> None:
        player.position = 10.0
        reconciler = _reconciler(player, session, drift_threshold=0.2)

        await reconciler.apply(make_update(PlaybackAction.SEEK, 10.5))

        assert player.position == 10.5


class TestPlayState:
    async def test_play_when_paused(self, player: MockVideoPlayer, session: Session) -> None:
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.PLAY, 0.5))

        assert player.playing is True
        assert player.calls == [("play", None)]

    async def test_play_when_already_playing_is_noop(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        player.playing = True
        reconciler = _reconciler(player, session)

        accepted = await reconciler.apply(make_update(PlaybackAction.PLAY, 0.0))

        assert accepted is True
        assert player.calls == []

    async def test_pause_with_seek(self, player: MockVideoPlayer, session: Session) -> None:
        player.playing = True
        player.position = 10.0
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.PAUSE, 42.0))

        assert player.calls == [("seek", 42.0), ("pause", None)]
        assert player.playing is False
        assert player.position == 42.0

    async def test_seek_carries_play_state(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.SEEK, 30.0, playing=True))

        assert player.calls == [("seek", 30.0), ("play", None)]

    async def test_seek_without_play_state_leaves_it(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        player.playing = True
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.SEEK, 30.0))

        assert player.playing is True
        assert player.calls == [("seek", 30.0)]


class TestIdempotence:
    async def test_duplicate_update_mutates_once(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        reconciler = _reconciler(player, session)
        update = make_update(PlaybackAction.PLAY, 20.0)

        await reconciler.apply(update)
        calls_after_first = list(player.calls)
        await reconciler.apply(update)

        assert player.calls == calls_after_first
        assert calls_after_first == [("seek", 20.0), ("play", None)]


class TestOrdering:
    async def test_stale_update_dropped(self, player: MockVideoPlayer, session: Session) -> None:
        reconciler = _reconciler(player, session)

        assert await reconciler.apply(make_update(PlaybackAction.PAUSE, 50.0, created_at=20.0))
        assert not await reconciler.apply(make_update(PlaybackAction.PLAY, 10.0, created_at=10.0))

        assert player.playing is False
        assert player.position == 50.0
        assert reconciler.latest_applied_at == 20.0
        assert reconciler.dropped_count == 1

    async def test_equal_timestamps_accepted_in_arrival_order(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.PLAY, 0.0, created_at=5.0))
        await reconciler.apply(make_update(PlaybackAction.PAUSE, 0.0, created_at=5.0))

        assert player.playing is False
        assert reconciler.applied_count == 2

    async def test_own_update_ignored_but_advances_watermark(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        reconciler = _reconciler(player, session)

        own = make_update(PlaybackAction.PLAY, 80.0, origin_id=session.id, created_at=30.0)
        assert await reconciler.apply(own) is False
        assert player.calls == []
        assert reconciler.latest_applied_at == 30.0

        older = make_update(PlaybackAction.PAUSE, 5.0, created_at=25.0)
        assert await reconciler.apply(older) is False
        assert player.calls == []

    async def test_other_room_ignored(self, player: MockVideoPlayer, session: Session) -> None:
        reconciler = _reconciler(player, session)

        accepted = await reconciler.apply(make_update(PlaybackAction.PLAY, 9.0, room_id="other"))

        assert accepted is False
        assert player.calls == []


class TestEchoSuppression:
    async def test_mutations_arm_suppressor(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        suppressor = EchoSuppressor(10.0)
        observed: list[bool] = []

        def listener(event: PlayerEvent) -> None:
            observed.append(suppressor.is_suppressed())

        player.add_listener(listener)
        reconciler = _reconciler(player, session, suppressor=suppressor)

        await reconciler.apply(make_update(PlaybackAction.PAUSE, 42.0))
        assert observed == [True]

        await reconciler.apply(make_update(PlaybackAction.PLAY, 42.0, created_at=2000.0))
        assert observed == [True, True]

    async def test_failed_mutation_clears_guard(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        suppressor = EchoSuppressor(10.0)
        player.play_error = RuntimeError("autoplay blocked")
        reconciler = _reconciler(player, session, suppressor=suppressor)

        accepted = await reconciler.apply(make_update(PlaybackAction.PLAY, 0.0))

        assert accepted is True
        assert player.playing is False
        assert suppressor.is_suppressed() is False

    async def test_failure_does_not_block_next_update(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        player.play_error = RuntimeError("autoplay blocked")
        reconciler = _reconciler(player, session)

        await reconciler.apply(make_update(PlaybackAction.PLAY, 0.0, created_at=1.0))
        await reconciler.apply(make_update(PlaybackAction.SEEK, 60.0, created_at=2.0))

        assert player.position == 60.0


class TestAppliedCallback:
    async def test_called_for_accepted_updates_only(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        on_applied = AsyncMock()
        reconciler = _reconciler(player, session, on_applied=on_applied)
        accepted = make_update(PlaybackAction.PLAY, 0.0, created_at=10.0)

        await reconciler.apply(accepted)
        await reconciler.apply(make_update(PlaybackAction.PAUSE, 0.0, created_at=1.0))

        on_applied.assert_awaited_once_with(accepted)

    async def test_callback_failure_is_contained(
        self, player: MockVideoPlayer, session: Session
    ) -> None:
        on_applied = AsyncMock(side_effect=RuntimeError("ui gone"))
        reconciler = _reconciler(player, session, on_applied=on_applied)

        assert await reconciler.apply(make_update(PlaybackAction.PLAY, 0.0)) is True
