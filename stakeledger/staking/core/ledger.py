# MIT License
# Copyright (c) 2025 Hashborn

"""
Staking Ledger

The mutating and read surface of the rewards ledger. Every mutating call:

    1. passes the AccessGate (pause -> re-entrancy -> owner)
    2. checks the schema version it needs
    3. runs inside a store transaction, checkpointing accrual first
    4. publishes its events only after the transaction commits
"""

import functools
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from . import accrual, fees
from .assets import AssetTransfer
from .clock import SystemClock
from .events import EventBus, event_bus
from .gate import AccessGate, guarded
from .state import LedgerStore
from ..observability import metrics
from ..upgrade import SchemaMigrator, MigrationRecord
from ...protocol.config.params import MAX_EARLY_WITHDRAWAL_FEE_BPS
from ...protocol.types.common import (
    EventType,
    OperationType,
    LedgerError,
    ValidationError,
    PausedError,
    CollaboratorFailure,
    MigrationOrderError,
)
from ...protocol.types.ledger import AccountState, LedgerState

logger = logging.getLogger(__name__)


def ledger_operation(operation: OperationType, haltable: bool = False, owner_only: bool = False,
                     min_version: int = 1):
    """
    Wraps a StakingLedger method with the gate, a version check and an atomic commit.
    Rejections are counted per operation and error type.
    """
    def decorator(func):
        @guarded(operation, haltable=haltable, owner_only=owner_only)
        def gated(self, caller, *args, **kwargs):
            self._require_version(min_version, operation.value)
            with self._commit():
                return func(self, caller, *args, **kwargs)

        @functools.wraps(func)
        def wrapper(self, caller, *args, **kwargs):
            try:
                result = gated(self, caller, *args, **kwargs)
            except LedgerError as e:
                metrics.record_rejection(operation.value, e)
                raise
            metrics.record_operation(operation.value)
            return result

        wrapper.guard_policy = dict(gated.guard_policy, min_version=min_version)
        return wrapper
    return decorator


def _require_amount(amount: Any, name: str = "amount") -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(f"{name} must be a positive integer, got {amount!r}")
    return amount


def _require_principal(principal: Optional[str], name: str) -> str:
    if not principal:
        raise ValidationError(f"{name} must not be null")
    return principal


class StakingLedger:
    def __init__(self, store: Optional[LedgerStore] = None,
                 staking_asset: Optional[AssetTransfer] = None,
                 reward_asset: Optional[AssetTransfer] = None,
                 clock=None, bus: Optional[EventBus] = None):
        self.store = store if store is not None else LedgerStore()
        self.staking_asset = staking_asset
        self.reward_asset = reward_asset
        self.clock = clock or SystemClock()
        self.bus = bus or event_bus
        self.gate = AccessGate(lambda: self.store.ledger)
        self.migrator = SchemaMigrator(self.store, authorizer=self.authorize_upgrade)
        self._pending_events: List[Tuple[EventType, Dict[str, Any]]] = []

    # ═══════════════════════════════════════════════════════════════════
    # INTERNALS
    # ═══════════════════════════════════════════════════════════════════

    @property
    def state(self) -> LedgerState:
        return self.store.ledger

    def _now(self) -> int:
        return int(self.clock.now())

    def _require_version(self, min_version: int, operation: str) -> None:
        current = self.state.schema_version
        if current < min_version:
            logger.warning(f"Rejected {operation}: requires schema v{min_version}, ledger at v{current}")
            raise MigrationOrderError(f"{operation} requires schema version {min_version}, ledger is at {current}")

    def _snapshot_assets(self) -> List[Tuple[Any, Any]]:
        snapshots = []
        seen = set()
        for asset in (self.staking_asset, self.reward_asset):
            if asset is None or id(asset) in seen or not hasattr(asset, "snapshot"):
                continue
            seen.add(id(asset))
            snapshots.append((asset, asset.snapshot()))
        return snapshots

    @contextmanager
    def _commit(self) -> Iterator[None]:
        self._pending_events = []
        assets = self._snapshot_assets()
        try:
            with self.store.transaction():
                yield
        except BaseException:
            self._pending_events = []
            for asset, snapshot in assets:
                asset.restore(snapshot)
            if assets:
                logger.debug(f"Restored {len(assets)} asset collaborator(s)")
            raise
        events, self._pending_events = self._pending_events, []
        for event_type, data in events:
            if event_type == EventType.REWARD_PAID:
                metrics.rewards_paid_total.inc(data["amount"])
            elif event_type == EventType.FEE_COLLECTED:
                metrics.fees_collected_total.inc(data["amount"])
            self.bus.emit(event_type, **data)

    def _emit(self, event_type: EventType, **data: Any) -> None:
        self._pending_events.append((event_type, data))

    def _asset(self, asset: Optional[AssetTransfer], name: str) -> AssetTransfer:
        if asset is None:
            raise CollaboratorFailure(f"No {name} collaborator bound to the ledger")
        return asset

    def _transfer_in(self, asset: AssetTransfer, sender: str, amount: int) -> None:
        try:
            ok = asset.transfer_in(sender, amount)
        except LedgerError:
            raise
        except Exception as e:
            raise CollaboratorFailure(f"{asset.asset_id} transfer_in from {sender} failed: {e}") from e
        if not ok:
            raise CollaboratorFailure(f"{asset.asset_id} transfer_in of {amount} from {sender} failed")

    def _transfer_out(self, asset: AssetTransfer, recipient: str, amount: int) -> None:
        try:
            ok = asset.transfer_out(recipient, amount)
        except LedgerError:
            raise
        except Exception as e:
            raise CollaboratorFailure(f"{asset.asset_id} transfer_out to {recipient} failed: {e}") from e
        if not ok:
            raise CollaboratorFailure(f"{asset.asset_id} transfer_out of {amount} to {recipient} failed")

    def bind_assets(self, staking_asset: AssetTransfer, reward_asset: AssetTransfer) -> None:
        """Re-attach asset collaborators to a ledger loaded from storage."""
        if self.state.schema_version >= 1:
            if staking_asset.asset_id != self.state.staking_asset:
                raise ValidationError(f"Staking asset {staking_asset.asset_id} != {self.state.staking_asset}")
            if reward_asset.asset_id != self.state.reward_asset:
                raise ValidationError(f"Reward asset {reward_asset.asset_id} != {self.state.reward_asset}")
        self.staking_asset = staking_asset
        self.reward_asset = reward_asset

    # ═══════════════════════════════════════════════════════════════════
    # SCHEMA LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    @ledger_operation(OperationType.INITIALIZE, min_version=0)
    def initialize(self, caller: Optional[str], staking_asset: AssetTransfer, reward_asset: AssetTransfer,
                   reward_rate: int, owner: str) -> MigrationRecord:
        """Version-1 initializer. Executable exactly once per ledger."""
        record = self.migrator.migrate(
            1, self._now(), caller=caller,
            staking_asset=getattr(staking_asset, "asset_id", None),
            reward_asset=getattr(reward_asset, "asset_id", None),
            reward_rate=reward_rate,
            owner=owner,
        )
        self.staking_asset = staking_asset
        self.reward_asset = reward_asset
        self._emit(EventType.INITIALIZED, owner=owner, reward_rate=reward_rate, version=1)
        return record

    def authorize_upgrade(self, caller: Optional[str]) -> None:
        """Upgrade authorization: the recorded owner only."""
        self.gate.require_owner(caller, OperationType.UPGRADE.value)

    @ledger_operation(OperationType.UPGRADE)
    def upgrade(self, caller: Optional[str], to_version: int, **params) -> MigrationRecord:
        """Apply the next schema version's initializer (owner only, strictly sequential)."""
        record = self.migrator.migrate(to_version, self._now(), caller=caller, **params)
        self._emit(EventType.UPGRADED, user=caller, version=to_version, params=dict(params))
        return record

    def initialize_v2(self, caller: Optional[str], lock_duration: int, early_withdrawal_fee_bps: int,
                      fee_collector: str) -> MigrationRecord:
        return self.upgrade(
            caller, 2,
            lock_duration=lock_duration,
            early_withdrawal_fee_bps=early_withdrawal_fee_bps,
            fee_collector=fee_collector,
        )

    # ═══════════════════════════════════════════════════════════════════
    # PARTICIPANT OPERATIONS
    # ═══════════════════════════════════════════════════════════════════

    @ledger_operation(OperationType.STAKE, haltable=True)
    def stake(self, caller: str, amount: int) -> None:
        _require_principal(caller, "caller")
        _require_amount(amount)
        asset = self._asset(self.staking_asset, "staking asset")
        now = self._now()

        account = self.store.get_account(caller)
        accrual.checkpoint(self.state, account, now)
        self.state.total_staked += amount
        account.balance += amount
        if self.state.schema_version >= 2:
            account.stake_timestamp = now
        self.store.set_account(account)

        self._transfer_in(asset, caller, amount)
        logger.debug(f"{caller} staked {amount} (total {self.state.total_staked})")
        self._emit(EventType.STAKED, user=caller, amount=amount)

    @ledger_operation(OperationType.WITHDRAW)
    def withdraw(self, caller: str, amount: int) -> Tuple[int, int]:
        """
        Returns:
            (amount paid to caller, early-withdrawal fee routed to the collector)
        """
        _require_principal(caller, "caller")
        _require_amount(amount)
        account = self.store.get_account(caller)
        if account.balance < amount:
            raise ValidationError(f"Insufficient stake: have {account.balance}, withdrawing {amount}")
        asset = self._asset(self.staking_asset, "staking asset")
        now = self._now()

        accrual.checkpoint(self.state, account, now)
        self.state.total_staked -= amount
        account.balance -= amount
        self.store.set_account(account)

        payout, fee = fees.split_withdrawal(self.state, account, amount, now)
        if fee > 0:
            self._transfer_out(asset, self.state.fee_collector, fee)
            self._emit(EventType.FEE_COLLECTED, user=caller, collector=self.state.fee_collector, amount=fee)
        self._transfer_out(asset, caller, payout)

        logger.debug(f"{caller} withdrew {amount} (paid {payout}, fee {fee})")
        self._emit(EventType.WITHDRAWN, user=caller, amount=amount, fee=fee)
        return payout, fee

    @ledger_operation(OperationType.GET_REWARD)
    def get_reward(self, caller: str) -> int:
        """Pay out everything accrued so far. Zero accrued is a no-op, not an error."""
        _require_principal(caller, "caller")
        now = self._now()

        if not self.store.has_account(caller):
            accrual.refresh(self.state, now)
            return 0

        account = self.store.get_account(caller)
        accrual.checkpoint(self.state, account, now)
        reward = account.accrued_reward
        if reward > 0:
            account.accrued_reward = 0
            self._transfer_out(self._asset(self.reward_asset, "reward asset"), caller, reward)
            self._emit(EventType.REWARD_PAID, user=caller, amount=reward)
            logger.debug(f"Paid {reward} reward to {caller}")
        self.store.set_account(account)
        return reward

    # ═══════════════════════════════════════════════════════════════════
    # ADMIN OPERATIONS
    # ═══════════════════════════════════════════════════════════════════

    @ledger_operation(OperationType.SET_REWARD_RATE, owner_only=True)
    def set_reward_rate(self, caller: str, rate: int) -> None:
        if isinstance(rate, bool) or not isinstance(rate, int) or rate < 0:
            raise ValidationError(f"reward rate must be a non-negative integer, got {rate!r}")
        accrual.checkpoint(self.state, None, self._now())
        old = self.state.reward_rate
        self.state.reward_rate = rate
        logger.info(f"Reward rate updated: {old} -> {rate}")
        self._emit(EventType.REWARD_RATE_UPDATED, user=caller, amount=rate, previous=old)

    @ledger_operation(OperationType.BATCH_STAKE, haltable=True, owner_only=True, min_version=2)
    def batch_stake(self, caller: str, recipients: Sequence[str], amounts: Sequence[int]) -> int:
        """
        Stake on behalf of several recipients, funded by the caller in one transfer.

        Every pair is validated before anything is written; one bad entry rejects the batch.

        Returns:
            Total amount staked
        """
        if len(recipients) != len(amounts):
            raise ValidationError(f"recipients ({len(recipients)}) and amounts ({len(amounts)}) differ in length")
        if len(recipients) == 0:
            raise ValidationError("batch must not be empty")
        for i, (recipient, amount) in enumerate(zip(recipients, amounts)):
            _require_principal(recipient, f"recipients[{i}]")
            _require_amount(amount, f"amounts[{i}]")
        asset = self._asset(self.staking_asset, "staking asset")
        now = self._now()

        total = 0
        for recipient, amount in zip(recipients, amounts):
            account = self.store.get_account(recipient)
            accrual.checkpoint(self.state, account, now)
            account.balance += amount
            account.stake_timestamp = now
            self.state.total_staked += amount
            self.store.set_account(account)
            total += amount
            self._emit(EventType.STAKED, user=recipient, amount=amount, funded_by=caller)

        self._transfer_in(asset, caller, total)
        logger.info(f"Batch staked {total} across {len(recipients)} recipient(s)")
        return total

    @ledger_operation(OperationType.SET_LOCK_DURATION, owner_only=True, min_version=2)
    def set_lock_duration(self, caller: str, duration: int) -> None:
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 0:
            raise ValidationError(f"lock duration must be a non-negative integer, got {duration!r}")
        self.state.lock_duration = duration
        logger.info(f"Lock duration updated: {duration}s")
        self._emit(EventType.LOCK_DURATION_UPDATED, user=caller, amount=duration)

    @ledger_operation(OperationType.SET_EARLY_WITHDRAWAL_FEE, owner_only=True, min_version=2)
    def set_early_withdrawal_fee(self, caller: str, fee_bps: int) -> None:
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int) or fee_bps < 0:
            raise ValidationError(f"fee must be a non-negative integer, got {fee_bps!r}")
        if fee_bps > MAX_EARLY_WITHDRAWAL_FEE_BPS:
            raise ValidationError(f"fee {fee_bps} bps exceeds cap {MAX_EARLY_WITHDRAWAL_FEE_BPS}")
        self.state.early_withdrawal_fee_bps = fee_bps
        logger.info(f"Early withdrawal fee updated: {fee_bps} bps")
        self._emit(EventType.FEE_UPDATED, user=caller, amount=fee_bps)

    @ledger_operation(OperationType.SET_FEE_COLLECTOR, owner_only=True, min_version=2)
    def set_fee_collector(self, caller: str, collector: str) -> None:
        _require_principal(collector, "fee_collector")
        self.state.fee_collector = collector
        logger.info(f"Fee collector updated: {collector}")
        self._emit(EventType.FEE_COLLECTOR_UPDATED, user=collector)

    @ledger_operation(OperationType.PAUSE, owner_only=True)
    def pause(self, caller: str) -> None:
        if self.state.paused:
            raise PausedError("Ledger is already paused")
        self.state.paused = True
        logger.info(f"Ledger paused by {caller}")
        self._emit(EventType.PAUSED, user=caller)

    @ledger_operation(OperationType.UNPAUSE, owner_only=True)
    def unpause(self, caller: str) -> None:
        if not self.state.paused:
            raise ValidationError("Ledger is not paused")
        self.state.paused = False
        logger.info(f"Ledger unpaused by {caller}")
        self._emit(EventType.UNPAUSED, user=caller)

    @ledger_operation(OperationType.TRANSFER_OWNERSHIP, owner_only=True)
    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        _require_principal(new_owner, "new_owner")
        previous = self.state.owner
        self.state.owner = new_owner
        logger.info(f"Ownership transferred: {previous} -> {new_owner}")
        self._emit(EventType.OWNERSHIP_TRANSFERRED, user=new_owner, previous=previous)

    # ═══════════════════════════════════════════════════════════════════
    # READS (always available, including while paused)
    # ═══════════════════════════════════════════════════════════════════

    def reward_per_unit(self) -> int:
        return accrual.reward_per_unit(self.state, self._now())

    def earned(self, principal: str) -> int:
        return accrual.earned(self.state, self.store.get_account(principal), self._now())

    def balances(self, principal: str) -> int:
        return self.store.get_account(principal).balance

    def lock_time_remaining(self, principal: str) -> int:
        return fees.lock_time_remaining(self.state, self.store.get_account(principal), self._now())

    def account(self, principal: str) -> AccountState:
        return self.store.get_account(principal).model_copy()

    @property
    def total_staked(self) -> int:
        return self.state.total_staked

    total_supply = total_staked

    @property
    def reward_rate(self) -> int:
        return self.state.reward_rate

    @property
    def owner(self) -> Optional[str]:
        return self.state.owner

    @property
    def paused(self) -> bool:
        return self.state.paused

    @property
    def schema_version(self) -> int:
        return self.state.schema_version

    @property
    def staking_token(self) -> Optional[str]:
        return self.state.staking_asset

    @property
    def reward_token(self) -> Optional[str]:
        return self.state.reward_asset

    @property
    def lock_duration(self) -> int:
        return self.state.lock_duration

    @property
    def early_withdrawal_fee(self) -> int:
        return self.state.early_withdrawal_fee_bps

    @property
    def fee_collector(self) -> Optional[str]:
        return self.state.fee_collector

    def status(self) -> Dict[str, Any]:
        """Snapshot of the global state for RPC/CLI output."""
        data = self.state.model_dump()
        data["reward_per_unit"] = self.reward_per_unit()
        return data
