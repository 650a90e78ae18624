# MIT License
# Copyright (c) 2025 Hashborn

"""
StakeLedger

Accrual-based staking rewards ledger with versioned, append-only schema upgrades.
"""

__version__ = "0.2.0"
