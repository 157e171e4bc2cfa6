"""Live signal service: watchlist scanning, position tracking, call scoring."""
