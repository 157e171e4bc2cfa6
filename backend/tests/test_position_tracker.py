"""Tests for PositionTracker."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from core.models.signal import (
    Action,
    Outcome,
    PositionStatus,
    RiskLevel,
    Signal,
)

from app.services.position_tracker import FailureTracker, PositionTracker

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_signal(
    asset: str = "BTC",
    action: Action = Action.LONG,
    entry: float = 100.0,
    created_at: datetime = T0,
) -> Signal:
    long = action != Action.SHORT
    return Signal(
        created_at=created_at,
        asset=asset,
        action=action,
        entry=entry,
        targets=[110.0, 120.0, 130.0] if long else [90.0, 80.0, 70.0],
        stop_loss=90.0 if long else 110.0,
        confidence=70,
        timeframe="4h",
        risk_level=RiskLevel.MEDIUM,
    )


class TestFailureTracker:
    """Tests for FailureTracker."""

    def test_skip_after_threshold(self):
        clock = FakeClock()
        tracker = FailureTracker(threshold=3, cooldown=timedelta(minutes=30), clock=clock)

        for _ in range(2):
            tracker.record_failure("BTC")
        assert not tracker.should_skip("BTC")

        assert tracker.record_failure("BTC") == 3
        assert tracker.should_skip("BTC")

    def test_cooldown_resets(self):
        clock = FakeClock()
        tracker = FailureTracker(threshold=1, cooldown=timedelta(minutes=30), clock=clock)
        tracker.record_failure("BTC")

        clock.advance(minutes=29)
        assert tracker.should_skip("BTC")

        clock.advance(minutes=1)
        assert not tracker.should_skip("BTC")
        assert tracker.failures("BTC") == 0

    def test_success_resets(self):
        tracker = FailureTracker(threshold=1)
        tracker.record_failure("ETH")
        tracker.record_success("ETH")

        assert not tracker.should_skip("ETH")


class TestPositionTracker:
    """Tests for PositionTracker."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def prices(self):
        source = AsyncMock()
        source.get_current_price = AsyncMock(return_value=105.0)
        return source

    @pytest.fixture
    def tracker(self, prices, clock):
        return PositionTracker(prices, check_delay=0, clock=clock)

    # ── Tracking ───────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_track_signal(self, tracker):
        """Test accepting a LONG signal."""
        position = await tracker.track(make_signal())

        assert position.status == PositionStatus.ACTIVE
        assert position.expires_at == T0 + timedelta(hours=48)
        assert tracker.active_count == 1

    @pytest.mark.asyncio
    async def test_track_is_idempotent(self, tracker):
        signal = make_signal()
        first = await tracker.track(signal)
        second = await tracker.track(signal)

        assert first is second
        assert tracker.active_count == 1

    @pytest.mark.asyncio
    async def test_rejects_hold(self, tracker):
        assert await tracker.track(make_signal(action=Action.HOLD)) is None
        assert tracker.active_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("entry", [0.0, -5.0, float("nan")])
    async def test_rejects_invalid_entry(self, tracker, entry):
        assert await tracker.track(make_signal(entry=entry)) is None

    @pytest.mark.asyncio
    async def test_require_fill(self, prices, clock):
        tracker = PositionTracker(prices, require_fill=True, check_delay=0, clock=clock)
        position = await tracker.track(make_signal())

        assert position.status == PositionStatus.WAITING

    # ── Price checks ───────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_target_hit_notifies_callback(self, tracker, prices):
        callback = AsyncMock()
        tracker.on_outcome(callback)
        tracker.on_outcome(callback)
        position = await tracker.track(make_signal())

        prices.get_current_price.return_value = 121.0
        event = await tracker.check_position(position)

        assert event.status == PositionStatus.TP2_HIT
        assert event.outcome == Outcome.WIN
        callback.assert_awaited_once_with(position, event)
        assert tracker.active_count == 0

    @pytest.mark.asyncio
    async def test_off_outcome(self, tracker, prices):
        callback = AsyncMock()
        tracker.on_outcome(callback)
        tracker.off_outcome(callback)
        position = await tracker.track(make_signal())

        prices.get_current_price.return_value = 89.0
        await tracker.check_position(position)

        callback.assert_not_awaited()
        assert position.status == PositionStatus.STOPPED_OUT

    @pytest.mark.asyncio
    async def test_callback_error_does_not_propagate(self, tracker, prices):
        tracker.on_outcome(AsyncMock(side_effect=RuntimeError("boom")))
        position = await tracker.track(make_signal())

        prices.get_current_price.return_value = 131.0
        event = await tracker.check_position(position)

        assert event.status == PositionStatus.TP3_HIT

    @pytest.mark.asyncio
    async def test_missing_price_counts_failure(self, tracker, prices):
        position = await tracker.track(make_signal())
        prices.get_current_price.return_value = None

        assert await tracker.check_position(position) is None
        assert tracker.failures.failures("BTC") == 1
        assert position.check_count == 0

    # ── Cycles ─────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_cycle_checks_open_positions(self, tracker, prices):
        await tracker.track(make_signal("BTC"))
        await tracker.track(make_signal("ETH"))

        result = await tracker.run_check_cycle()

        assert result.checked == 2
        assert result.resolved == 0
        assert prices.get_current_price.await_count == 2

    @pytest.mark.asyncio
    async def test_cycle_expires_stale_positions(self, tracker, clock, prices):
        position = await tracker.track(make_signal())
        await tracker.run_check_cycle()

        clock.advance(hours=49)
        result = await tracker.run_check_cycle()

        assert result.expired == 1
        assert result.checked == 0
        assert position.status == PositionStatus.EXPIRED
        assert result.events[0].outcome == Outcome.NEUTRAL
        # Expired PnL is the best PnL seen while open
        assert position.pnl == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_cycle_skips_failing_asset(self, prices, clock):
        failures = FailureTracker(threshold=2, cooldown=timedelta(minutes=30), clock=clock)
        tracker = PositionTracker(prices, check_delay=0, failure_tracker=failures, clock=clock)
        await tracker.track(make_signal())
        prices.get_current_price.return_value = None

        first = await tracker.run_check_cycle()
        second = await tracker.run_check_cycle()
        third = await tracker.run_check_cycle()

        assert (first.errors, second.errors) == (1, 1)
        assert third.skipped == 1
        assert prices.get_current_price.await_count == 2

        clock.advance(minutes=31)
        prices.get_current_price.return_value = 101.0
        fourth = await tracker.run_check_cycle()
        assert fourth.checked == 1

    @pytest.mark.asyncio
    async def test_cycle_isolates_exceptions(self, tracker, prices):
        await tracker.track(make_signal("BTC"))
        await tracker.track(make_signal("ETH"))
        prices.get_current_price.side_effect = [RuntimeError("network"), 112.0]

        result = await tracker.run_check_cycle()

        assert result.errors == 1
        assert result.resolved == 1

    @pytest.mark.asyncio
    async def test_cycle_backs_off_raising_asset(self, prices, clock):
        failures = FailureTracker(threshold=5, cooldown=timedelta(minutes=30), clock=clock)
        tracker = PositionTracker(prices, check_delay=0, failure_tracker=failures, clock=clock)
        await tracker.track(make_signal())
        prices.get_current_price.side_effect = TimeoutError()

        results = [await tracker.run_check_cycle() for _ in range(8)]

        assert [r.errors for r in results[:5]] == [1] * 5
        assert failures.should_skip("BTC")
        assert all(r.skipped == 1 for r in results[5:])
        assert prices.get_current_price.await_count == 5

    # ── Queries ────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_get_status(self, tracker, prices, clock):
        signal = make_signal()
        await tracker.track(signal)
        prices.get_current_price.return_value = 121.0
        await tracker.run_check_cycle()

        status = tracker.get_status(signal.id)

        assert status["status"] == "TP2_HIT"
        assert status["targets_hit"] == {"tp1": True, "tp2": True, "tp3": False}
        assert status["current_pnl"] == pytest.approx(21.0)
        assert status["time_active"] == "0h 0m"
        assert tracker.get_status("unknown") is None

    @pytest.mark.asyncio
    async def test_get_status_open(self, tracker, clock):
        signal = make_signal()
        await tracker.track(signal)
        clock.advance(hours=3, minutes=15)

        status = tracker.get_status(signal.id)

        assert status["status"] == "ACTIVE"
        assert status["current_pnl"] is None
        assert status["time_active"] == "3h 15m"

    @pytest.mark.asyncio
    async def test_summary(self, tracker, prices, clock):
        win = await tracker.track(make_signal("BTC"))
        loss = await tracker.track(make_signal("ETH"))
        stale = await tracker.track(make_signal("SOL", created_at=T0 - timedelta(hours=60)))

        prices.get_current_price.return_value = 111.0
        await tracker.check_position(win)
        prices.get_current_price.return_value = 85.0
        await tracker.check_position(loss)
        await tracker.check_expired()

        summary = tracker.summary()

        assert stale.status == PositionStatus.EXPIRED
        assert summary["total"] == 3
        assert summary["resolved"] == 3
        assert summary["wins"] == 1
        assert summary["losses"] == 2
        assert summary["win_rate"] == pytest.approx(100 / 3)
        assert summary["by_status"]["TP1_HIT"] == 1
        assert summary["by_status"]["ACTIVE"] == 0
        assert summary["by_asset"][0]["asset"] == "BTC"
