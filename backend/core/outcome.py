"""Signal outcome resolution.

One resolution rule shared by live tracking, historical-call scoring
and backtest replay:

- Stop loss is checked first and wins over any simultaneous target hit
  (LONG: price <= stop, SHORT: price >= stop).
- Targets are checked farthest first, so the best reached target
  determines the status (LONG: price >= target, SHORT: price <= target).
- Otherwise the position stays ACTIVE.

Misconfigured levels (a target on the wrong side of entry) are not
corrected; the stop check runs first and they resolve as losses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from core.models.signal import (
    Action,
    Outcome,
    OutcomeEvent,
    PositionStatus,
    TrackedPosition,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutcomeResult:
    """Result of checking one price against a signal's levels."""

    status: PositionStatus
    outcome: Outcome
    pnl: float

    @property
    def resolved(self) -> bool:
        return self.status.is_terminal


def calculate_pnl(action: Action | str, entry: float, current: float) -> float:
    """Direction-adjusted PnL percent: raw for LONG, negated for SHORT."""
    raw = (current - entry) / entry * 100
    if Action(action) == Action.SHORT:
        return -raw
    return raw


def resolve_outcome(
    action: Action | str,
    entry: float,
    current: float,
    targets: Sequence[float],
    stop: float,
) -> OutcomeResult:
    """Resolve a single price observation. Pure and deterministic."""
    action = Action(action)
    pnl = calculate_pnl(action, entry, current)

    # Stop is reached against the trade direction, targets with it
    if _reached(current, stop, upward=action != Action.LONG):
        return OutcomeResult(PositionStatus.STOPPED_OUT, Outcome.LOSS, pnl)

    for index in range(len(targets) - 1, -1, -1):
        if _reached(current, targets[index], upward=action == Action.LONG):
            return OutcomeResult(PositionStatus.for_target(index), Outcome.WIN, pnl)

    return OutcomeResult(PositionStatus.ACTIVE, Outcome.NEUTRAL, pnl)


def _reached(price: float, level: float, upward: bool) -> bool:
    """``price >= level`` when ``upward``, else ``price <= level``."""
    if upward:
        return price >= level
    return price <= level


def _entry_filled(position: TrackedPosition, price: float) -> bool:
    if position.action == Action.LONG:
        return price <= position.entry
    return price >= position.entry


def apply_price(position: TrackedPosition, price: float, at: datetime) -> OutcomeEvent | None:
    """Advance a tracked position by one price observation.

    Returns an OutcomeEvent when the position reaches a terminal state.
    Terminal positions are left untouched.
    """
    if position.status.is_terminal:
        return None

    position.check_count += 1
    position.last_price = price

    if position.status == PositionStatus.WAITING:
        if not _entry_filled(position, price):
            return None
        position.status = PositionStatus.ACTIVE
        position.activated_at = at
        logger.debug(f"{position.asset} {position.action.value} entry filled at {price}")

    result = resolve_outcome(
        position.action, position.entry, price, position.targets, position.stop_loss
    )

    if position.highest_pnl is None or result.pnl > position.highest_pnl:
        position.highest_pnl = result.pnl
    if position.lowest_pnl is None or result.pnl < position.lowest_pnl:
        position.lowest_pnl = result.pnl

    if not result.resolved:
        return None

    return _resolve(position, result.status, result.outcome, price, result.pnl, at)


def expire(position: TrackedPosition, at: datetime) -> OutcomeEvent | None:
    """Resolve an open position as EXPIRED with an estimated PnL.

    The estimate is the highest recorded PnL, else the lowest, else 0.
    """
    if position.status.is_terminal:
        return None

    if position.highest_pnl is not None:
        pnl = position.highest_pnl
    elif position.lowest_pnl is not None:
        pnl = position.lowest_pnl
    else:
        pnl = 0.0

    exit_price = position.last_price if position.last_price is not None else position.entry
    return _resolve(position, PositionStatus.EXPIRED, Outcome.NEUTRAL, exit_price, pnl, at)


def is_expired(position: TrackedPosition, now: datetime) -> bool:
    return position.is_open and now >= position.expires_at


def _resolve(
    position: TrackedPosition,
    status: PositionStatus,
    outcome: Outcome,
    price: float,
    pnl: float,
    at: datetime,
) -> OutcomeEvent:
    position.status = status
    position.resolved_at = at
    position.exit_price = price
    position.pnl = pnl

    logger.info(
        f"{position.asset} {position.action.value} {position.signal_id[:8]}: "
        f"{status.value} at {price} ({pnl:+.2f}%)"
    )

    return OutcomeEvent(
        signal_id=position.signal_id,
        asset=position.asset,
        action=position.action,
        status=status,
        outcome=outcome,
        exit_price=price,
        pnl=pnl,
        resolved_at=at,
        time_to_resolution=at - position.created_at,
    )
