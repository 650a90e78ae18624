# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import Dict, Optional, Tuple, Type

from ..config.params import CURRENT_SCHEMA_VERSION
from .common import SchemaLayoutError

# Fields introduced by each schema version, in declaration order.
# New versions append a new entry; existing entries are frozen.
LEDGER_FIELD_LAYOUT: Dict[int, Tuple[str, ...]] = {
    0: ("schema_version",),
    1: (
        "staking_asset",
        "reward_asset",
        "owner",
        "paused",
        "total_staked",
        "reward_rate",
        "last_update_time",
        "reward_per_unit_stored",
    ),
    2: (
        "lock_duration",
        "early_withdrawal_fee_bps",
        "fee_collector",
    ),
}

ACCOUNT_FIELD_LAYOUT: Dict[int, Tuple[str, ...]] = {
    1: (
        "principal",
        "balance",
        "reward_per_unit_paid",
        "accrued_reward",
    ),
    2: (
        "stake_timestamp",
    ),
}


class LedgerState(BaseModel):
    """Global ledger aggregate. A fresh instance is the Uninitialized state (version 0)."""
    schema_version: int = 0

    # Version 1
    staking_asset: Optional[str] = None
    reward_asset: Optional[str] = None
    owner: Optional[str] = None
    paused: bool = False
    total_staked: int = 0
    reward_rate: int = 0                 # Reward base units per second
    last_update_time: int = 0
    reward_per_unit_stored: int = 0      # Fixed point, SCALE = 10**18

    # Version 2
    lock_duration: int = 0               # Seconds
    early_withdrawal_fee_bps: int = 0
    fee_collector: Optional[str] = None


class AccountState(BaseModel):
    principal: str
    balance: int = 0
    reward_per_unit_paid: int = 0
    accrued_reward: int = 0

    # Version 2
    stake_timestamp: int = 0


def fields_up_to(layout: Dict[int, Tuple[str, ...]], version: int) -> Tuple[str, ...]:
    """All field names owned by schema versions <= version, in layout order."""
    names: Tuple[str, ...] = ()
    for v in sorted(layout):
        if v <= version:
            names += layout[v]
    return names


def verify_layout(model: Type[BaseModel], layout: Dict[int, Tuple[str, ...]]) -> None:
    """
    Check that a model declares exactly the layout's fields, in version order.

    Raises:
        ValueError: If a field is missing, extra, or out of position
    """
    expected = fields_up_to(layout, max(layout))
    declared = tuple(model.model_fields.keys())
    if declared != expected:
        raise ValueError(
            f"{model.__name__} field layout {declared} does not match append-only layout {expected}"
        )


def check_layouts() -> None:
    """
    Verify both state models against their layouts and CURRENT_SCHEMA_VERSION.

    Raises:
        SchemaLayoutError: If a model drifted from its append-only layout
    """
    for model, layout in ((LedgerState, LEDGER_FIELD_LAYOUT), (AccountState, ACCOUNT_FIELD_LAYOUT)):
        if max(layout) != CURRENT_SCHEMA_VERSION:
            raise SchemaLayoutError(
                f"{model.__name__} layout ends at v{max(layout)}, code runs v{CURRENT_SCHEMA_VERSION}"
            )
        try:
            verify_layout(model, layout)
        except ValueError as e:
            raise SchemaLayoutError(str(e)) from e
