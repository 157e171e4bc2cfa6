"""Core shared logic for signal generation, indicators, and models.

This package contains pure business logic with no I/O dependencies
(no database or network access). It is shared between the
live trading system (app/) and the backtesting system (backtest/).
"""
