"""Signal and tracked-position data models."""

import hashlib
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field

from core.models.snapshot import IndicatorSnapshot


DEFAULT_VALIDITY = timedelta(hours=48)


class Action(str, Enum):
    """Signal action."""

    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"

    @property
    def sign(self) -> int:
        """+1 for LONG, -1 for SHORT, 0 for HOLD."""
        if self is Action.LONG:
            return 1
        if self is Action.SHORT:
            return -1
        return 0


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class PositionStatus(str, Enum):
    """Tracked position lifecycle status."""

    WAITING = "WAITING"  # Waiting for entry fill
    ACTIVE = "ACTIVE"
    TP1_HIT = "TP1_HIT"
    TP2_HIT = "TP2_HIT"
    TP3_HIT = "TP3_HIT"
    STOPPED_OUT = "STOPPED_OUT"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self not in (PositionStatus.WAITING, PositionStatus.ACTIVE)

    @classmethod
    def for_target(cls, index: int) -> "PositionStatus":
        """Map a zero-based target index to its TPn_HIT status (capped at TP3)."""
        return (cls.TP1_HIT, cls.TP2_HIT, cls.TP3_HIT)[min(index, 2)]


class Outcome(str, Enum):
    """Resolved signal outcome."""

    WIN = "WIN"
    LOSS = "LOSS"
    NEUTRAL = "NEUTRAL"


def _generate_signal_id(asset: str, timeframe: str, created_at: datetime, action: str) -> str:
    """Generate deterministic signal ID based on signal attributes.

    The same candle data replayed twice yields the same ID.
    """
    ts_str = created_at.strftime("%Y%m%d%H%M%S%f")
    key = f"{asset}:{timeframe}:{ts_str}:{action}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


class SignalReasoning(BaseModel):
    model_config = ConfigDict(frozen=True)

    technical: str = ""
    fundamental: str = ""
    sentiment: str = ""
    rule: str = ""


class Signal(BaseModel):
    """Trading signal. Prices are absolute, targets ordered by distance from entry."""

    model_config = ConfigDict(frozen=True)

    id: str = ""  # Set in model_post_init
    created_at: datetime
    asset: str
    action: Action
    entry: float
    targets: list[float]
    stop_loss: float
    confidence: int
    timeframe: str
    risk_level: RiskLevel
    reasoning: SignalReasoning = Field(default_factory=SignalReasoning)
    indicators: dict[str, Any] = Field(default_factory=dict)
    snapshot: IndicatorSnapshot | None = None

    def model_post_init(self, __context) -> None:
        """Generate deterministic ID after model initialization."""
        if not self.id:
            object.__setattr__(
                self,
                "id",
                _generate_signal_id(
                    self.asset, self.timeframe, self.created_at, self.action.value
                ),
            )

    @property
    def risk_amount(self) -> float:
        """Distance from entry to stop loss."""
        return abs(self.entry - self.stop_loss)

    @property
    def reward_amount(self) -> float:
        """Distance from entry to the first target."""
        if not self.targets:
            return 0.0
        return abs(self.targets[0] - self.entry)


class TrackedPosition(BaseModel):
    """A signal accepted for outcome tracking.

    Mutated only by ``core.outcome``. Once ``status`` is terminal the
    position is frozen in practice: ``apply_price`` and ``expire`` ignore it.
    """

    signal_id: str
    asset: str
    action: Action
    entry: float
    targets: list[float]
    stop_loss: float
    status: PositionStatus = PositionStatus.ACTIVE
    created_at: datetime
    expires_at: datetime
    activated_at: datetime | None = None
    highest_pnl: float | None = None
    lowest_pnl: float | None = None
    last_price: float | None = None
    check_count: int = 0
    resolved_at: datetime | None = None
    exit_price: float | None = None
    pnl: float | None = None

    @classmethod
    def from_signal(
        cls,
        signal: Signal,
        validity: timedelta = DEFAULT_VALIDITY,
        require_fill: bool = False,
    ) -> "TrackedPosition":
        """Create a tracked position, padding targets to three.

        Missing targets are extended with the 1.5/2.5/4 risk multiples.
        """
        targets = list(signal.targets)
        risk = signal.risk_amount
        sign = signal.action.sign
        for mult in (1.5, 2.5, 4.0)[len(targets):]:
            targets.append(round(signal.entry + sign * risk * mult, 4))

        status = PositionStatus.WAITING if require_fill else PositionStatus.ACTIVE
        return cls(
            signal_id=signal.id,
            asset=signal.asset,
            action=signal.action,
            entry=signal.entry,
            targets=targets[:3],
            stop_loss=signal.stop_loss,
            status=status,
            created_at=signal.created_at,
            expires_at=signal.created_at + validity,
            activated_at=None if require_fill else signal.created_at,
        )

    @property
    def is_open(self) -> bool:
        return not self.status.is_terminal

    @property
    def targets_hit(self) -> list[bool]:
        """Per-target hit flags implied by the terminal status."""
        hit = {
            PositionStatus.TP1_HIT: 1,
            PositionStatus.TP2_HIT: 2,
            PositionStatus.TP3_HIT: 3,
        }.get(self.status, 0)
        return [i < hit for i in range(len(self.targets))]


class OutcomeEvent(BaseModel):
    """Emitted when a tracked position reaches a terminal state."""

    model_config = ConfigDict(frozen=True)

    signal_id: str
    asset: str
    action: Action
    status: PositionStatus
    outcome: Outcome
    exit_price: float
    pnl: float
    resolved_at: datetime
    time_to_resolution: timedelta
