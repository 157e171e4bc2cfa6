"""Confidence learning weight model."""

from enum import Enum
from pydantic import BaseModel


class WeightCategory(str, Enum):
    INDICATOR = "indicator"
    TOKEN = "token"


class LearningWeight(BaseModel):
    """Streaming win/loss aggregate for one indicator+direction or asset."""

    key: str
    category: WeightCategory
    win_count: int = 0
    loss_count: int = 0
    total_pnl: float = 0.0
    adjusted_weight: float = 1.0

    @property
    def samples(self) -> int:
        return self.win_count + self.loss_count

    @property
    def win_rate(self) -> float:
        """Win rate in [0, 1]."""
        if self.samples == 0:
            return 0.0
        return self.win_count / self.samples

    @property
    def avg_pnl(self) -> float:
        if self.samples == 0:
            return 0.0
        return self.total_pnl / self.samples

    def record(self, won: bool, pnl: float) -> None:
        if won:
            self.win_count += 1
        else:
            self.loss_count += 1
        self.total_pnl += pnl
