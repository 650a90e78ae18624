# MIT License
# Copyright (c) 2025 Hashborn

"""
Schema Initializers

v1: base ledger (assets, owner, reward rate)
v2: early-withdrawal fee policy (lock duration, fee bps, fee collector)

Each initializer validates everything it needs before writing, and writes
only the fields its own version introduces.
"""

import logging
from typing import Optional

from .migrations import migration
from ...protocol.config.params import MAX_EARLY_WITHDRAWAL_FEE_BPS
from ...protocol.types.common import ValidationError
from ...protocol.types.ledger import LedgerState

logger = logging.getLogger(__name__)


def _require_principal(value: Optional[str], name: str) -> str:
    if not value:
        raise ValidationError(f"{name} must not be null")
    return value


def _require_non_negative(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


@migration(1, name="base")
def initialize_v1(state: LedgerState, now: int, staking_asset: str, reward_asset: str,
                  reward_rate: int, owner: str) -> None:
    _require_principal(staking_asset, "staking_asset")
    _require_principal(reward_asset, "reward_asset")
    _require_principal(owner, "owner")
    _require_non_negative(reward_rate, "reward_rate")

    state.staking_asset = staking_asset
    state.reward_asset = reward_asset
    state.owner = owner
    state.paused = False
    state.total_staked = 0
    state.reward_rate = reward_rate
    state.last_update_time = now
    state.reward_per_unit_stored = 0

    logger.info(f"Base ledger initialized: stake={staking_asset} reward={reward_asset} rate={reward_rate}")


@migration(2, name="early-withdrawal-fee")
def initialize_v2(state: LedgerState, now: int, lock_duration: int, early_withdrawal_fee_bps: int,
                  fee_collector: str) -> None:
    _require_non_negative(lock_duration, "lock_duration")
    _require_non_negative(early_withdrawal_fee_bps, "early_withdrawal_fee_bps")
    if early_withdrawal_fee_bps > MAX_EARLY_WITHDRAWAL_FEE_BPS:
        raise ValidationError(
            f"early_withdrawal_fee_bps {early_withdrawal_fee_bps} exceeds cap {MAX_EARLY_WITHDRAWAL_FEE_BPS}"
        )
    _require_principal(fee_collector, "fee_collector")

    state.lock_duration = lock_duration
    state.early_withdrawal_fee_bps = early_withdrawal_fee_bps
    state.fee_collector = fee_collector

    logger.info(
        f"Fee policy initialized: lock={lock_duration}s fee={early_withdrawal_fee_bps}bps collector={fee_collector}"
    )
