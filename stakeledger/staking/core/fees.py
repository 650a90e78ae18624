# MIT License
# Copyright (c) 2025 Hashborn

"""
Early-withdrawal fee policy (schema version 2).

Pure functions over ledger fields. Integer division rounds the fee down,
so any remainder stays with the withdrawing participant.
"""

from typing import Tuple

from ...protocol.config.params import BPS_DENOMINATOR
from ...protocol.types.ledger import LedgerState, AccountState


def lock_time_remaining(state: LedgerState, account: AccountState, now: int) -> int:
    """Seconds until the account's lock window expires (0 once elapsed or before v2)."""
    if state.schema_version < 2:
        return 0
    return max(0, account.stake_timestamp + state.lock_duration - now)


def early_withdrawal_fee(state: LedgerState, account: AccountState, amount: int, now: int) -> int:
    """Fee charged on withdrawing `amount` now. Computed on the withdrawn amount only."""
    if state.early_withdrawal_fee_bps == 0:
        return 0
    if lock_time_remaining(state, account, now) <= 0:
        return 0
    return amount * state.early_withdrawal_fee_bps // BPS_DENOMINATOR


def split_withdrawal(state: LedgerState, account: AccountState, amount: int, now: int) -> Tuple[int, int]:
    """
    Returns:
        (amount paid to participant, fee routed to collector)
    """
    fee = early_withdrawal_fee(state, account, amount, now)
    return amount - fee, fee
