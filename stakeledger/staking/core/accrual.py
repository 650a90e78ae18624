# MIT License
# Copyright (c) 2025 Hashborn

"""
Reward accrual.

The accumulator grows by rate * elapsed * SCALE / total_staked. Reads and
checkpoints share the same formulas, so a value read just before a mutation
equals the value the mutation commits.
"""

import logging
from typing import Optional

from ...protocol.config.params import SCALE
from ...protocol.types.ledger import LedgerState, AccountState

logger = logging.getLogger(__name__)


def reward_per_unit(state: LedgerState, now: int) -> int:
    """
    Accumulator value as of `now`.

    While nothing is staked the accumulator is frozen: that interval pays no one.
    """
    if state.total_staked == 0:
        return state.reward_per_unit_stored
    elapsed = max(0, now - state.last_update_time)
    return state.reward_per_unit_stored + (elapsed * state.reward_rate * SCALE) // state.total_staked


def earned(state: LedgerState, account: AccountState, now: int) -> int:
    """Reward owed to an account as of `now`, including what is already accrued."""
    rpu = reward_per_unit(state, now)
    return (account.balance * (rpu - account.reward_per_unit_paid)) // SCALE + account.accrued_reward


def refresh(state: LedgerState, now: int) -> int:
    """
    Advance the global accumulator to `now`.

    last_update_time moves forward even with nothing staked, so the empty
    interval can never be counted later.
    """
    state.reward_per_unit_stored = reward_per_unit(state, now)
    state.last_update_time = max(state.last_update_time, now)
    return state.reward_per_unit_stored


def checkpoint(state: LedgerState, account: Optional[AccountState], now: int) -> None:
    """
    Refresh the accumulator and settle `account` against it.

    Must be the first step of every operation touching balances, the reward
    rate or claims. Pass account=None for global-only changes.
    """
    refresh(state, now)
    if account is not None:
        account.accrued_reward = earned(state, account, now)
        account.reward_per_unit_paid = state.reward_per_unit_stored
        logger.debug(
            f"Checkpoint {account.principal}: accrued={account.accrued_reward} "
            f"rpu={account.reward_per_unit_paid}"
        )
