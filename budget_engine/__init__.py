"""
Budget Engine - Core Package

A household budgeting engine that keeps an authoritative ledger of
accounts, categories and transactions, projects recurring schedules,
and lets users try "what-if" scenarios before committing them.

DESIGN PRINCIPLES:
1. The ledger file is never left half-written
2. Derived data is a cache, always rebuildable
3. Reports never mutate the ledger
4. Failures are categorized, never swallowed
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Engine Team"
