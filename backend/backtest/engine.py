"""Bar-by-bar backtest engine for a single asset and strategy.

Processing order for each candle after the warm-up window:
1. Recompute indicators from candles[0..i] only (no lookahead)
2. If a position is open: stop loss, then take profit, then exit or
   opposing entry signal, all resolved on the candle close
3. If flat: score the strategy's entry rules and open a position
4. Record the equity point with running-peak drawdown

Any position still open after the last candle is closed at its close.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from core.indicators import detect_trend, macd, rsi
from core.models.candle import Candle
from core.models.config import IndicatorConfig
from core.models.signal import Action, PositionStatus
from core.models.snapshot import IndicatorSnapshot
from core.models.trade import BacktestTrade, EquityPoint, ExitReason
from core.outcome import calculate_pnl, resolve_outcome
from core.strategy.strategies import BacktestStrategy

logger = logging.getLogger(__name__)

WARMUP_CANDLES = 14


@dataclass
class EngineRun:
    """Raw output of one replay."""

    trades: list[BacktestTrade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    initial_capital: float = 0.0
    final_capital: float = 0.0
    candles_processed: int = 0


def snapshot_at(
    candles: Sequence[Candle], index: int, config: IndicatorConfig | None = None
) -> IndicatorSnapshot:
    """Indicators as of ``index``, computed from candles[0..index] only."""
    cfg = config or IndicatorConfig()
    window = candles[: index + 1]
    closes = [c.close for c in window]
    return IndicatorSnapshot(
        rsi=rsi(closes, cfg.rsi_period, cfg.rsi_oversold, cfg.rsi_overbought),
        macd=macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal),
        trend=detect_trend(window),
    )


class BacktestEngine:
    """Replay one candle series against one strategy.

    At most one position is open at a time. Trade PnL uses the same
    ``resolve_outcome`` rule as live tracking.
    """

    def __init__(
        self,
        strategy: BacktestStrategy,
        initial_capital: float = 10_000.0,
        position_size_percent: float = 10.0,
        warmup: int = WARMUP_CANDLES,
        indicator_config: IndicatorConfig | None = None,
    ):
        self.strategy = strategy
        self.initial_capital = initial_capital
        self.position_size_percent = position_size_percent
        self.warmup = max(warmup, WARMUP_CANDLES)
        self.indicator_config = indicator_config or IndicatorConfig()

        self._capital = initial_capital
        self._position: BacktestTrade | None = None
        self._trades: list[BacktestTrade] = []
        self._equity: list[EquityPoint] = []
        self._peak = initial_capital

    def run(self, candles: Sequence[Candle]) -> EngineRun:
        """Replay ``candles`` (ascending) and return trades and equity curve."""
        self._reset()

        for i in range(self.warmup, len(candles)):
            candle = candles[i]
            snapshot = snapshot_at(candles, i, self.indicator_config)

            if self._position is not None:
                self._check_exit(candle, snapshot)

            if self._position is None:
                self._check_entry(candle, snapshot)

            self._record_equity(candle)

        if self._position is not None:
            self._close(candles[-1], ExitReason.END_OF_PERIOD)

        processed = max(0, len(candles) - self.warmup)
        logger.debug(
            f"{self.strategy.name}: {len(self._trades)} trades over {processed} candles"
        )
        return EngineRun(
            trades=list(self._trades),
            equity_curve=list(self._equity),
            initial_capital=self.initial_capital,
            final_capital=self._capital,
            candles_processed=processed,
        )

    def _reset(self) -> None:
        self._capital = self.initial_capital
        self._position = None
        self._trades = []
        self._equity = []
        self._peak = self.initial_capital

    # ------------------------------------------------------------------
    # Entry / exit
    # ------------------------------------------------------------------

    def _check_entry(self, candle: Candle, snapshot: IndicatorSnapshot) -> None:
        side = self.strategy.entry_action(snapshot)
        if side is None or side == Action.HOLD:
            return

        entry = candle.close
        if entry <= 0:
            return
        stop, take_profit = self.strategy.levels(side, entry)
        self._position = BacktestTrade(
            entry_time=candle.timestamp,
            entry_price=entry,
            side=side,
            size=self._capital * self.position_size_percent / 100,
            stop_loss=stop,
            take_profit=take_profit,
            entry_rsi=snapshot.rsi.value if snapshot.rsi.has_data else None,
            entry_trend=snapshot.trend.direction.value,
        )
        logger.debug(f"Opened {side.value} at {entry} ({candle.timestamp})")

    def _check_exit(self, candle: Candle, snapshot: IndicatorSnapshot) -> None:
        position = self._position
        result = resolve_outcome(
            position.side,
            position.entry_price,
            candle.close,
            [position.take_profit],
            position.stop_loss,
        )

        if result.status == PositionStatus.STOPPED_OUT:
            self._close(candle, ExitReason.STOP_LOSS)
        elif result.resolved:
            self._close(candle, ExitReason.TAKE_PROFIT)
        elif self.strategy.should_exit(snapshot) or self._is_opposing(snapshot, position.side):
            self._close(candle, ExitReason.SIGNAL)

    def _is_opposing(self, snapshot: IndicatorSnapshot, side: Action) -> bool:
        action = self.strategy.entry_action(snapshot)
        return action is not None and action != side and action != Action.HOLD

    def _close(self, candle: Candle, reason: ExitReason) -> None:
        position = self._position
        pnl_percent = calculate_pnl(position.side, position.entry_price, candle.close)
        position.close(candle.close, candle.timestamp, pnl_percent, reason)
        self._capital += position.pnl
        self._trades.append(position)
        self._position = None
        logger.debug(
            f"Closed {position.side.value} at {candle.close}: "
            f"{reason.value} ({pnl_percent:+.2f}%)"
        )

    # ------------------------------------------------------------------
    # Equity
    # ------------------------------------------------------------------

    def _record_equity(self, candle: Candle) -> None:
        equity = self._capital
        if self._position is not None:
            unrealized = calculate_pnl(
                self._position.side, self._position.entry_price, candle.close
            )
            equity += self._position.size * unrealized / 100

        self._peak = max(self._peak, equity)
        drawdown = self._peak - equity
        drawdown_percent = drawdown / self._peak * 100 if self._peak > 0 else 0.0
        self._equity.append(
            EquityPoint(
                timestamp=candle.timestamp,
                equity=equity,
                drawdown=drawdown,
                drawdown_percent=drawdown_percent,
            )
        )
