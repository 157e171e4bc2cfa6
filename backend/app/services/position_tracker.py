"""Position tracker for monitoring emitted signals until they resolve.

Each tracked signal becomes a TrackedPosition that is advanced by
``core.outcome.apply_price`` on every price check. The tracker owns:
- the open/resolved positions (in memory)
- a per-asset FailureTracker that backs off assets whose price fetch
  keeps failing
- outcome callbacks notified when a position resolves
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Protocol

from core.models.signal import (
    DEFAULT_VALIDITY,
    Action,
    OutcomeEvent,
    PositionStatus,
    Signal,
    TrackedPosition,
)
from core.outcome import apply_price, calculate_pnl, expire, is_expired

logger = logging.getLogger(__name__)

# Type alias for outcome callback
OutcomeCallback = Callable[[TrackedPosition, OutcomeEvent], Awaitable[None]]

Clock = Callable[[], datetime]

WIN_STATUSES = frozenset(
    {PositionStatus.TP1_HIT, PositionStatus.TP2_HIT, PositionStatus.TP3_HIT}
)
LOSS_STATUSES = frozenset({PositionStatus.STOPPED_OUT, PositionStatus.EXPIRED})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PriceSource(Protocol):
    async def get_current_price(self, asset: str) -> float | None: ...


class FailureTracker:
    """Consecutive price-fetch failures per asset.

    An asset with ``threshold`` consecutive failures is skipped until
    ``cooldown`` has passed since its last failure. A success resets it.
    """

    def __init__(
        self,
        threshold: int = 5,
        cooldown: timedelta = timedelta(minutes=30),
        clock: Clock = utc_now,
    ):
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self._failures: dict[str, int] = {}
        self._last_failure: dict[str, datetime] = {}

    def record_failure(self, asset: str) -> int:
        count = self._failures.get(asset, 0) + 1
        self._failures[asset] = count
        self._last_failure[asset] = self._clock()
        return count

    def record_success(self, asset: str) -> None:
        self._failures.pop(asset, None)
        self._last_failure.pop(asset, None)

    def failures(self, asset: str) -> int:
        return self._failures.get(asset, 0)

    def should_skip(self, asset: str) -> bool:
        """True while the asset is over the threshold and inside the cooldown."""
        if self._failures.get(asset, 0) < self.threshold:
            return False
        if self._clock() - self._last_failure[asset] >= self.cooldown:
            self.record_success(asset)
            return False
        return True


@dataclass
class CheckCycleResult:
    """Summary of one run_check_cycle pass."""

    checked: int = 0
    resolved: int = 0
    expired: int = 0
    skipped: int = 0
    errors: int = 0
    events: list[OutcomeEvent] = field(default_factory=list)


class PositionTracker:
    """
    Track emitted signals and resolve them against live prices.

    This service:
    1. Accepts LONG/SHORT signals with a valid entry
    2. Expires positions past their validity horizon
    3. Checks the current price of each open position
    4. Notifies callbacks when a position resolves
    """

    def __init__(
        self,
        price_source: PriceSource,
        validity: timedelta = DEFAULT_VALIDITY,
        require_fill: bool = False,
        check_delay: float = 0.25,
        failure_tracker: FailureTracker | None = None,
        clock: Clock = utc_now,
    ):
        """
        Args:
            price_source: Provides ``get_current_price(asset)``
            validity: How long a position stays open before expiring
            require_fill: Start positions WAITING until price touches entry
            check_delay: Seconds to sleep between price fetches in a cycle
            failure_tracker: Optional per-asset backoff (for testing)
            clock: Current-time provider (for testing)
        """
        self.price_source = price_source
        self.validity = validity
        self.require_fill = require_fill
        self.check_delay = check_delay
        self.failures = failure_tracker or FailureTracker(clock=clock)
        self._clock = clock

        # All tracked positions by signal id (open and resolved)
        self._positions: dict[str, TrackedPosition] = {}

        # Callbacks for outcome events
        self._outcome_callbacks: list[OutcomeCallback] = []

        self._lock = asyncio.Lock()

    def on_outcome(self, callback: OutcomeCallback) -> None:
        """Register callback for outcome events.

        Note: Duplicate callbacks are ignored.
        """
        if callback not in self._outcome_callbacks:
            self._outcome_callbacks.append(callback)

    def off_outcome(self, callback: OutcomeCallback) -> None:
        """Unregister callback for outcome events."""
        if callback in self._outcome_callbacks:
            self._outcome_callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    async def track(self, signal: Signal) -> TrackedPosition | None:
        """Start tracking a signal. Returns None when it is rejected."""
        if signal.action == Action.HOLD:
            logger.warning(f"Rejecting signal {signal.id} for {signal.asset}: HOLD is not tracked")
            return None
        if not math.isfinite(signal.entry) or signal.entry <= 0:
            logger.warning(
                f"Rejecting signal {signal.id} for {signal.asset}: "
                f"invalid entry price {signal.entry}"
            )
            return None

        async with self._lock:
            existing = self._positions.get(signal.id)
            if existing is not None:
                return existing
            position = TrackedPosition.from_signal(
                signal, validity=self.validity, require_fill=self.require_fill
            )
            self._positions[signal.id] = position

        logger.info(
            f"Tracking signal {signal.id[:8]}: {signal.asset} {signal.action.value} "
            f"entry={signal.entry} stop={signal.stop_loss} status={position.status.value}"
        )
        return position

    async def check_position(self, position: TrackedPosition) -> OutcomeEvent | None:
        """Fetch the current price and advance one position.

        Price failures are counted per asset; resolution events are
        dispatched to callbacks.
        """
        if not position.is_open:
            return None

        price = await self.price_source.get_current_price(position.asset)
        if price is None:
            count = self.failures.record_failure(position.asset)
            logger.warning(f"Could not get price for {position.asset} ({count} consecutive failures)")
            return None
        self.failures.record_success(position.asset)

        async with self._lock:
            event = apply_price(position, price, self._clock())

        if event is not None:
            await self._dispatch(position, event)
        return event

    async def check_expired(self) -> list[OutcomeEvent]:
        """Expire open positions past their validity horizon."""
        now = self._clock()
        events: list[tuple[TrackedPosition, OutcomeEvent]] = []
        async with self._lock:
            for position in self._positions.values():
                if is_expired(position, now):
                    event = expire(position, now)
                    if event is not None:
                        events.append((position, event))

        for position, event in events:
            await self._dispatch(position, event)
        return [event for _, event in events]

    async def run_check_cycle(self) -> CheckCycleResult:
        """Expire stale positions, then check each open one.

        Returns per-cycle counts; errors for one position never stop the cycle.
        """
        logger.info("Starting price check cycle...")
        result = CheckCycleResult()

        expired = await self.check_expired()
        result.expired = len(expired)
        result.events.extend(expired)

        for position in self.open_positions():
            if self.failures.should_skip(position.asset):
                logger.info(
                    f"Skipping {position.asset} due to "
                    f"{self.failures.failures(position.asset)} recent price failures"
                )
                result.skipped += 1
                continue

            try:
                checks_before = position.check_count
                event = await self.check_position(position)
            except Exception:
                result.errors += 1
                self.failures.record_failure(position.asset)
                logger.error(f"Error checking {position.asset} ({position.signal_id[:8]})", exc_info=True)
            else:
                if position.check_count > checks_before:
                    result.checked += 1
                else:
                    result.errors += 1
                if event is not None:
                    result.resolved += 1
                    result.events.append(event)

            if self.check_delay > 0:
                await asyncio.sleep(self.check_delay)

        logger.info(
            f"Check cycle complete: {result.checked} checked, {result.resolved} resolved, "
            f"{result.expired} expired, {result.skipped} skipped, {result.errors} errors"
        )
        return result

    async def _dispatch(self, position: TrackedPosition, event: OutcomeEvent) -> None:
        for callback in list(self._outcome_callbacks):
            try:
                await callback(position, event)
            except Exception as e:
                logger.error(f"Outcome callback error: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, signal_id: str) -> TrackedPosition | None:
        return self._positions.get(signal_id)

    def open_positions(self, asset: str | None = None) -> list[TrackedPosition]:
        return [
            p
            for p in self._positions.values()
            if p.is_open and (asset is None or p.asset == asset)
        ]

    def resolved_positions(self) -> list[TrackedPosition]:
        return [p for p in self._positions.values() if not p.is_open]

    @property
    def active_count(self) -> int:
        """Get total number of open positions."""
        return len(self.open_positions())

    def get_status(self, signal_id: str) -> dict | None:
        """Current status of a tracked signal, or None if unknown."""
        position = self._positions.get(signal_id)
        if position is None:
            return None

        end = position.resolved_at or self._clock()
        elapsed = end - position.created_at
        hours, remainder = divmod(int(elapsed.total_seconds()), 3600)
        minutes = remainder // 60

        if position.pnl is not None:
            current_pnl = position.pnl
        elif position.last_price is not None:
            current_pnl = calculate_pnl(position.action, position.entry, position.last_price)
        else:
            current_pnl = None

        hit = position.targets_hit
        return {
            "id": position.signal_id,
            "asset": position.asset,
            "action": position.action.value,
            "status": position.status.value,
            "entry": position.entry,
            "targets": list(position.targets),
            "stop_loss": position.stop_loss,
            "current_pnl": current_pnl,
            "highest_pnl": position.highest_pnl,
            "lowest_pnl": position.lowest_pnl,
            "check_count": position.check_count,
            "targets_hit": {f"tp{i + 1}": flag for i, flag in enumerate(hit)},
            "time_active": f"{hours}h {minutes}m",
        }

    def summary(self) -> dict:
        """Performance summary over all tracked positions.

        Wins are TP hits; losses are stop-outs and expiries.
        """
        resolved = self.resolved_positions()
        wins = [p for p in resolved if p.status in WIN_STATUSES]
        losses = [p for p in resolved if p.status in LOSS_STATUSES]
        decided = len(wins) + len(losses)
        pnls = [p.pnl for p in resolved if p.pnl is not None]

        by_status = {status.value: 0 for status in PositionStatus}
        for p in self._positions.values():
            by_status[p.status.value] += 1

        by_asset: dict[str, dict] = {}
        for p in resolved:
            stats = by_asset.setdefault(p.asset, {"total": 0, "wins": 0, "losses": 0, "pnl": 0.0})
            stats["total"] += 1
            stats["wins"] += p.status in WIN_STATUSES
            stats["losses"] += p.status in LOSS_STATUSES
            stats["pnl"] += p.pnl or 0.0

        leaderboard = sorted(
            (
                {
                    "asset": asset,
                    "total": s["total"],
                    "wins": s["wins"],
                    "losses": s["losses"],
                    "win_rate": s["wins"] / s["total"] * 100,
                    "avg_pnl": s["pnl"] / s["total"],
                }
                for asset, s in by_asset.items()
            ),
            key=lambda row: (row["win_rate"], row["avg_pnl"]),
            reverse=True,
        )

        return {
            "total": len(self._positions),
            "open": len(self._positions) - len(resolved),
            "resolved": len(resolved),
            "wins": len(wins),
            "losses": len(losses),
            "win_rate": len(wins) / decided * 100 if decided else 0.0,
            "avg_pnl": sum(pnls) / len(pnls) if pnls else 0.0,
            "by_status": by_status,
            "by_asset": leaderboard,
        }
