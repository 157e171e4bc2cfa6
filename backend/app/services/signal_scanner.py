"""Signal scan service.

One scan pass:
1. Fetch fast and slow timeframe candles for every enabled watchlist asset
2. Run SignalGenerator.generate_batch over the fetched inputs
3. Hand the resulting signals to the position tracker and outcome checker

Scheduling is left to the caller; this service runs a single pass.
"""

import logging
from typing import Protocol, Sequence

from core.models.candle import Candle
from core.models.signal import Signal
from core.signal_generator import SignalGenerator, SignalInput

from app.clients.market_data import MarketDataError
from app.services.outcome_checker import OutcomeChecker
from app.services.position_tracker import PositionTracker
from app.watchlist import Watchlist

logger = logging.getLogger(__name__)


class CandleProvider(Protocol):
    async def get_candles(self, asset: str, timeframe: str, limit: int = 250) -> list[Candle]: ...


class SignalScanner:
    """Scan the watchlist and emit signals, highest confidence first."""

    def __init__(
        self,
        candles: CandleProvider,
        generator: SignalGenerator,
        watchlist: Watchlist,
        tracker: PositionTracker | None = None,
        outcome_checker: OutcomeChecker | None = None,
        candle_limit: int = 250,
    ):
        self.candles = candles
        self.generator = generator
        self.watchlist = watchlist
        self.tracker = tracker
        self.outcome_checker = outcome_checker
        self.candle_limit = candle_limit

    async def fetch_inputs(self) -> list[SignalInput]:
        """Fetch candles for each enabled asset; failed assets are skipped."""
        timeframes = (self.generator.fast_timeframe, self.generator.slow_timeframe)
        inputs = []
        for asset in self.watchlist.get_enabled():
            by_timeframe: dict[str, Sequence[Candle]] = {}
            try:
                for timeframe in timeframes:
                    by_timeframe[timeframe] = await self.candles.get_candles(
                        asset.symbol, timeframe, limit=self.candle_limit
                    )
            except MarketDataError as e:
                logger.warning(f"Skipping {asset.symbol}: {e}")
                continue

            inputs.append(
                SignalInput(
                    asset=asset.symbol,
                    candles=by_timeframe,
                    asset_class=asset.asset_class,
                    fundamental_context=asset.fundamental_context,
                    sentiment_context=asset.sentiment_context,
                )
            )
        return inputs

    async def scan(self) -> list[Signal]:
        """Run one scan pass and return the emitted signals."""
        inputs = await self.fetch_inputs()
        signals = self.generator.generate_batch(inputs)

        for signal in signals:
            if self.tracker is not None:
                await self.tracker.track(signal)
            if self.outcome_checker is not None:
                self.outcome_checker.record(signal)

        logger.info(
            f"Scan complete: {len(inputs)} assets analyzed, {len(signals)} signals"
        )
        return signals
