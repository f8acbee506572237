"""Forecast and budget summary reports."""

from budget_engine.reports.forecast import entry_direction, forecast_window, synthetic_id
from budget_engine.reports.periods import budget_anchor, budget_window
from budget_engine.reports.summary import summarize

__all__ = [
    "budget_anchor",
    "budget_window",
    "entry_direction",
    "forecast_window",
    "summarize",
    "synthetic_id",
]
