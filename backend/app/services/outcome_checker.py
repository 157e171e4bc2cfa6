"""Historical call scoring at fixed time windows.

Every emitted signal is recorded as a call. At 24h, 48h and 7d after
creation the current price is resolved against the call's levels with
``core.outcome.resolve_outcome``. A call is finalized on the first clear
WIN/LOSS, or at the 7d window whatever the outcome; finalized outcomes
feed the ConfidenceLearner.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field

from core.learning import ConfidenceLearner
from core.models.signal import Action, Outcome, Signal
from core.outcome import resolve_outcome

from app.services.position_tracker import PriceSource

logger = logging.getLogger(__name__)

CHECK_WINDOWS = (24, 48, 168)
FINAL_WINDOW = 168


class CallRecord(BaseModel):
    """A recorded signal awaiting historical scoring."""

    signal_id: str
    asset: str
    action: Action
    entry: float
    targets: list[float]
    stop_loss: float
    created_at: datetime
    indicators: dict[str, Any] = Field(default_factory=dict)
    checked_windows: set[int] = Field(default_factory=set)
    outcome: Outcome | None = None
    exit_price: float | None = None
    pnl: float | None = None
    finalized_at: datetime | None = None

    @classmethod
    def from_signal(cls, signal: Signal) -> "CallRecord":
        return cls(
            signal_id=signal.id,
            asset=signal.asset,
            action=signal.action,
            entry=signal.entry,
            targets=list(signal.targets),
            stop_loss=signal.stop_loss,
            created_at=signal.created_at,
            indicators=dict(signal.indicators),
        )

    @property
    def is_final(self) -> bool:
        return self.outcome is not None


@dataclass(frozen=True)
class CallCheck:
    signal_id: str
    asset: str
    action: Action
    price: float
    outcome: Outcome
    pnl: float
    hours: int
    finalized: bool


@dataclass
class OutcomeCheckSummary:
    checked: dict[int, int] = field(default_factory=dict)
    wins: int = 0
    losses: int = 0
    neutral: int = 0


class OutcomeChecker:
    """Score recorded calls at 24h / 48h / 168h and feed the learner."""

    def __init__(
        self,
        price_source: PriceSource,
        learner: ConfidenceLearner | None = None,
        delay: float = 0.2,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.price_source = price_source
        self.learner = learner
        self.delay = delay
        self._clock = clock
        self._calls: dict[str, CallRecord] = {}

    def record(self, signal: Signal) -> CallRecord | None:
        """Record a signal for later scoring. HOLD signals are ignored."""
        if signal.action == Action.HOLD:
            return None
        call = self._calls.get(signal.id)
        if call is None:
            call = CallRecord.from_signal(signal)
            self._calls[signal.id] = call
            logger.info(f"Recorded call {signal.id[:8]} for {signal.asset}")
        return call

    def get(self, signal_id: str) -> CallRecord | None:
        return self._calls.get(signal_id)

    def due(self, hours: int) -> list[CallRecord]:
        """Unfinalized calls at least ``hours`` old and not yet checked at ``hours``."""
        now = self._clock()
        horizon = timedelta(hours=hours)
        return [
            c
            for c in self._calls.values()
            if not c.is_final
            and hours not in c.checked_windows
            and now - c.created_at >= horizon
        ]

    async def check_window(self, hours: int) -> list[CallCheck]:
        """Check outcomes for calls due at a specific time window."""
        logger.info(f"Checking outcomes for {hours}h window...")
        checks: list[CallCheck] = []

        for call in self.due(hours):
            try:
                price = await self.price_source.get_current_price(call.asset)
            except Exception as e:
                logger.error(f"Error getting price for {call.asset}: {e}", exc_info=True)
                price = None

            if price is None:
                logger.warning(f"Could not get price for {call.asset}")
                call.checked_windows.add(hours)
                continue

            result = resolve_outcome(
                call.action, call.entry, price, call.targets, call.stop_loss
            )
            finalized = hours >= FINAL_WINDOW or result.outcome != Outcome.NEUTRAL
            if finalized:
                self._finalize(call, result.outcome, price, result.pnl)

            call.checked_windows.add(hours)
            checks.append(
                CallCheck(
                    signal_id=call.signal_id,
                    asset=call.asset,
                    action=call.action,
                    price=price,
                    outcome=result.outcome,
                    pnl=result.pnl,
                    hours=hours,
                    finalized=finalized,
                )
            )

            if self.delay > 0:
                await asyncio.sleep(self.delay)

        logger.info(f"Checked {len(checks)} calls at {hours}h")
        return checks

    def _finalize(self, call: CallRecord, outcome: Outcome, price: float, pnl: float) -> None:
        call.outcome = outcome
        call.exit_price = price
        call.pnl = pnl
        call.finalized_at = self._clock()

        if self.learner is not None:
            self.learner.record_outcome(
                call.indicators, call.action, call.asset, outcome, pnl
            )
        logger.info(f"{call.asset} {call.action.value}: {outcome.value} ({pnl:+.2f}%)")

    async def run_outcome_check(self) -> OutcomeCheckSummary:
        """Run the 24h, 48h and 7d windows in order."""
        logger.info("Running full outcome check cycle...")
        summary = OutcomeCheckSummary()

        for hours in CHECK_WINDOWS:
            checks = await self.check_window(hours)
            summary.checked[hours] = len(checks)
            for check in checks:
                if check.outcome == Outcome.WIN:
                    summary.wins += 1
                elif check.outcome == Outcome.LOSS:
                    summary.losses += 1
                else:
                    summary.neutral += 1

        logger.info(
            f"Outcome check complete: {summary.wins} wins, "
            f"{summary.losses} losses, {summary.neutral} neutral"
        )
        return summary

    def stats(self) -> dict:
        """Overall and per-asset win rates over finalized calls."""
        final = [c for c in self._calls.values() if c.is_final]
        wins = sum(1 for c in final if c.outcome == Outcome.WIN)
        losses = sum(1 for c in final if c.outcome == Outcome.LOSS)
        decided = wins + losses

        per_asset: dict[str, list[CallRecord]] = {}
        for c in final:
            per_asset.setdefault(c.asset, []).append(c)

        asset_stats = []
        for asset, calls in per_asset.items():
            a_wins = sum(1 for c in calls if c.outcome == Outcome.WIN)
            a_losses = sum(1 for c in calls if c.outcome == Outcome.LOSS)
            asset_stats.append(
                {
                    "asset": asset,
                    "total": len(calls),
                    "wins": a_wins,
                    "losses": a_losses,
                    "win_rate": a_wins / (a_wins + a_losses) * 100 if a_wins + a_losses else 0.0,
                    "avg_pnl": sum(c.pnl or 0.0 for c in calls) / len(calls),
                }
            )
        asset_stats.sort(key=lambda s: s["win_rate"], reverse=True)

        return {
            "total": len(self._calls),
            "wins": wins,
            "losses": losses,
            "neutral": len(final) - decided,
            "pending": len(self._calls) - len(final),
            "win_rate": wins / decided * 100 if decided else 0.0,
            "avg_pnl": sum(c.pnl or 0.0 for c in final) / len(final) if final else 0.0,
            "by_asset": asset_stats,
        }
