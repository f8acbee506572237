"""Simulation overlay package."""

from budget_engine.simulation.overlay import (
    add_change,
    apply,
    create_simulation,
    discard,
    get_simulation,
    modify_change,
    overlay_transactions,
    remove_change,
)

__all__ = [
    "add_change",
    "apply",
    "create_simulation",
    "discard",
    "get_simulation",
    "modify_change",
    "overlay_transactions",
    "remove_change",
]
