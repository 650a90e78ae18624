# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum


class OperationType(str, Enum):
    INITIALIZE = "initialize"
    STAKE = "stake"
    WITHDRAW = "withdraw"
    GET_REWARD = "get_reward"
    BATCH_STAKE = "batch_stake"

    # Admin
    SET_REWARD_RATE = "set_reward_rate"
    SET_LOCK_DURATION = "set_lock_duration"
    SET_EARLY_WITHDRAWAL_FEE = "set_early_withdrawal_fee"
    SET_FEE_COLLECTOR = "set_fee_collector"
    PAUSE = "pause"
    UNPAUSE = "unpause"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    UPGRADE = "upgrade"


class EventType(str, Enum):
    STAKED = "staked"
    WITHDRAWN = "withdrawn"
    REWARD_PAID = "reward_paid"
    REWARD_RATE_UPDATED = "reward_rate_updated"
    LOCK_DURATION_UPDATED = "lock_duration_updated"
    FEE_UPDATED = "fee_updated"
    FEE_COLLECTOR_UPDATED = "fee_collector_updated"
    FEE_COLLECTED = "fee_collected"

    # Lifecycle
    INITIALIZED = "initialized"
    UPGRADED = "upgraded"
    PAUSED = "paused"
    UNPAUSED = "unpaused"
    OWNERSHIP_TRANSFERRED = "ownership_transferred"


class LedgerError(Exception):
    pass

class ValidationError(LedgerError):
    """Invalid input. Raised before any state is touched."""
    pass

class AuthorizationError(LedgerError):
    pass

class ReentrancyError(LedgerError):
    pass

class PausedError(LedgerError):
    pass

class CollaboratorFailure(LedgerError):
    """An asset transfer failed; the enclosing operation is aborted."""
    pass

class MigrationOrderError(LedgerError):
    pass

class SchemaLayoutError(LedgerError):
    """A migration tried to change a field owned by an earlier schema version."""
    pass
