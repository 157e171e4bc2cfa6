"""Candle (OHLCV) data model."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, model_validator


class Candle(BaseModel):
    """OHLCV candle. Ordered ascending by timestamp in any sequence."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @model_validator(mode="after")
    def _validate_ohlc(self):
        if self.high < self.low:
            raise ValueError(f"high {self.high} is below low {self.low}")
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise ValueError("open and close must lie within [low, high]")
        if self.volume < 0:
            raise ValueError(f"negative volume {self.volume}")
        return self
