# MIT License
# Copyright (c) 2025 Hashborn

"""
Tests for the staking ledger surface.

Tests:
- Deployment values
- Stake / withdraw / claim flows and their validation
- Balance conservation over random operation sequences
- Batch staking atomicity
- Collaborator failures abort without partial effects
"""
import random

import pytest

from stakeledger.protocol.types.common import (
    ValidationError,
    AuthorizationError,
    CollaboratorFailure,
    MigrationOrderError,
    PausedError,
)
from stakeledger.staking.core.assets import LEDGER_CUSTODY
from stakeledger.staking.core.ledger import StakingLedger

from conftest import E18, INITIAL_REWARD_RATE


# ═══════════════════════════════════════════════════════════════════
# DEPLOYMENT
# ═══════════════════════════════════════════════════════════════════

def test_initial_values(ledger):
    assert ledger.staking_token == "STK"
    assert ledger.reward_token == "RWD"
    assert ledger.reward_rate == INITIAL_REWARD_RATE
    assert ledger.owner == "owner"
    assert ledger.schema_version == 1
    assert ledger.total_supply == 0
    assert ledger.paused is False


def test_operations_rejected_before_initialization(clock, bus):
    lg = StakingLedger(clock=clock, bus=bus)
    with pytest.raises(MigrationOrderError):
        lg.stake("user1", 1)
    with pytest.raises(MigrationOrderError):
        lg.withdraw("user1", 1)
    # No owner recorded yet, so admin calls fail authorization first
    with pytest.raises(AuthorizationError):
        lg.set_reward_rate("owner", 1)


# ═══════════════════════════════════════════════════════════════════
# STAKE / WITHDRAW
# ═══════════════════════════════════════════════════════════════════

def test_stake(ledger, staking_token):
    ledger.stake("user1", 100 * E18)

    assert ledger.balances("user1") == 100 * E18
    assert ledger.total_supply == 100 * E18
    assert staking_token.balance_of("user1") == 900 * E18
    assert staking_token.balance_of(LEDGER_CUSTODY) == 100 * E18


@pytest.mark.parametrize("amount", [0, -5, True, 1.5, None])
def test_stake_rejects_invalid_amount(ledger, amount):
    with pytest.raises(ValidationError):
        ledger.stake("user1", amount)
    assert ledger.total_supply == 0


def test_stake_rejects_null_caller(ledger):
    with pytest.raises(ValidationError):
        ledger.stake(None, 10)


def test_stake_and_withdraw_round_trip(ledger, staking_token):
    ledger.stake("user1", 100 * E18)
    ledger.withdraw("user1", 100 * E18)

    assert ledger.balances("user1") == 0
    assert ledger.total_supply == 0
    assert staking_token.balance_of("user1") == 1000 * E18


def test_zero_balance_account_still_exists(ledger):
    ledger.stake("user1", 10)
    ledger.withdraw("user1", 10)
    assert ledger.store.has_account("user1")
    assert ledger.balances("user1") == 0


def test_withdraw_insufficient_balance(ledger):
    ledger.stake("user1", 10)
    with pytest.raises(ValidationError, match="Insufficient stake"):
        ledger.withdraw("user1", 11)
    assert ledger.balances("user1") == 10


def test_withdraw_zero_rejected(ledger):
    ledger.stake("user1", 10)
    with pytest.raises(ValidationError):
        ledger.withdraw("user1", 0)


def test_withdraw_keeps_accrued_reward(ledger, clock, reward_token):
    ledger.stake("user1", 100 * E18)
    clock.advance(100)
    ledger.withdraw("user1", 100 * E18)
    clock.advance(100)

    assert ledger.earned("user1") == 100 * INITIAL_REWARD_RATE
    assert ledger.get_reward("user1") == 100 * INITIAL_REWARD_RATE
    assert reward_token.balance_of("user1") == 100 * INITIAL_REWARD_RATE


def test_claim_without_account_is_noop(ledger):
    assert ledger.get_reward("stranger") == 0
    assert not ledger.store.has_account("stranger")


def test_balances_sum_to_total(ledger, clock, staking_token):
    """sum(balance) == totalStaked after every operation."""
    rng = random.Random(1234)
    users = ["user1", "user2", "user3"]
    staking_token.mint("user3", 1000 * E18)

    for _ in range(200):
        user = rng.choice(users)
        clock.advance(rng.randint(0, 500))
        if rng.random() < 0.6:
            ledger.stake(user, rng.randint(1, 10 * E18))
        else:
            balance = ledger.balances(user)
            if balance == 0:
                continue
            ledger.withdraw(user, rng.randint(1, balance))

        assert ledger.store.sum_balances() == ledger.total_staked


# ═══════════════════════════════════════════════════════════════════
# ADMIN
# ═══════════════════════════════════════════════════════════════════

def test_set_reward_rate_owner_only(ledger):
    with pytest.raises(AuthorizationError):
        ledger.set_reward_rate("user1", 1)
    assert ledger.reward_rate == INITIAL_REWARD_RATE

    ledger.set_reward_rate("owner", 5)
    assert ledger.reward_rate == 5


def test_set_reward_rate_rejects_negative(ledger):
    with pytest.raises(ValidationError):
        ledger.set_reward_rate("owner", -1)


def test_transfer_ownership(ledger):
    ledger.transfer_ownership("owner", "new-owner")
    assert ledger.owner == "new-owner"

    with pytest.raises(AuthorizationError):
        ledger.set_reward_rate("owner", 1)
    ledger.set_reward_rate("new-owner", 1)

    with pytest.raises(ValidationError):
        ledger.transfer_ownership("new-owner", "")


def test_v2_setters_require_upgrade(ledger):
    with pytest.raises(MigrationOrderError):
        ledger.set_lock_duration("owner", 10)
    with pytest.raises(MigrationOrderError):
        ledger.set_early_withdrawal_fee("owner", 10)
    with pytest.raises(MigrationOrderError):
        ledger.set_fee_collector("owner", "x")


# ═══════════════════════════════════════════════════════════════════
# BATCH STAKE
# ═══════════════════════════════════════════════════════════════════

def test_batch_stake(ledger_v2, staking_token):
    staking_token.mint("owner", 100 * E18)

    total = ledger_v2.batch_stake("owner", ["user1", "user2"], [50 * E18, 30 * E18])

    assert total == 80 * E18
    assert ledger_v2.balances("user1") == 50 * E18
    assert ledger_v2.balances("user2") == 30 * E18
    assert ledger_v2.total_supply == 80 * E18
    assert staking_token.balance_of("owner") == 20 * E18


def test_batch_stake_duplicate_recipient(ledger_v2, staking_token):
    staking_token.mint("owner", 10)
    ledger_v2.batch_stake("owner", ["user1", "user1"], [4, 6])
    assert ledger_v2.balances("user1") == 10
    assert ledger_v2.total_supply == 10


@pytest.mark.parametrize("recipients,amounts", [
    (["user1", "user2"], [50]),
    ([], []),
    (["user1", "user2"], [50, 0]),
    (["user1", ""], [50, 30]),
    (["user1", None], [50, 30]),
])
def test_batch_stake_rejects_whole_batch(ledger_v2, staking_token, recipients, amounts):
    staking_token.mint("owner", 100 * E18)

    with pytest.raises(ValidationError):
        ledger_v2.batch_stake("owner", recipients, amounts)

    assert ledger_v2.balances("user1") == 0
    assert ledger_v2.balances("user2") == 0
    assert ledger_v2.total_supply == 0
    assert staking_token.balance_of("owner") == 100 * E18


def test_batch_stake_funding_failure_is_atomic(ledger_v2):
    """Owner has no tokens: the aggregate transfer fails and nothing is recorded."""
    with pytest.raises(CollaboratorFailure):
        ledger_v2.batch_stake("owner", ["user1", "user2"], [5, 5])

    assert ledger_v2.balances("user1") == 0
    assert ledger_v2.balances("user2") == 0
    assert ledger_v2.total_supply == 0
    assert not ledger_v2.store.has_account("user1")


def test_batch_stake_owner_only(ledger_v2):
    with pytest.raises(AuthorizationError):
        ledger_v2.batch_stake("user1", ["user2"], [1])


def test_batch_stake_requires_v2(ledger, staking_token):
    staking_token.mint("owner", 10)
    with pytest.raises(MigrationOrderError):
        ledger.batch_stake("owner", ["user1"], [10])


def test_batch_stake_halted_while_paused(ledger_v2, staking_token):
    staking_token.mint("owner", 10)
    ledger_v2.pause("owner")
    with pytest.raises(PausedError):
        ledger_v2.batch_stake("owner", ["user1"], [10])


# ═══════════════════════════════════════════════════════════════════
# COLLABORATOR FAILURES
# ═══════════════════════════════════════════════════════════════════

def test_stake_without_funds_aborts(ledger, staking_token):
    with pytest.raises(CollaboratorFailure):
        ledger.stake("user1", 2000 * E18)

    assert ledger.balances("user1") == 0
    assert ledger.total_supply == 0
    assert staking_token.balance_of("user1") == 1000 * E18


def test_withdraw_transfer_failure_restores_ledger(ledger, clock, staking_token):
    ledger.stake("user1", 100 * E18)
    clock.advance(50)
    state_before = ledger.state.model_copy()
    account_before = ledger.account("user1")

    # Custody drained behind the ledger's back
    staking_token.balances[LEDGER_CUSTODY] = 0

    with pytest.raises(CollaboratorFailure):
        ledger.withdraw("user1", 10 * E18)

    assert ledger.state == state_before
    assert ledger.account("user1") == account_before


def test_claim_transfer_failure_keeps_reward(ledger, clock, reward_token):
    ledger.stake("user1", 100 * E18)
    clock.advance(100)
    owed = ledger.earned("user1")

    reward_token.balances[LEDGER_CUSTODY] = 0
    with pytest.raises(CollaboratorFailure):
        ledger.get_reward("user1")

    assert ledger.earned("user1") == owed


def test_collaborator_exception_is_wrapped(ledger, staking_token):
    def boom(direction, holder, amount):
        raise RuntimeError("hook exploded")

    staking_token.add_hook(boom)

    with pytest.raises(CollaboratorFailure) as exc_info:
        ledger.stake("user1", 10)
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert ledger.total_supply == 0
    assert staking_token.balance_of("user1") == 1000 * E18
    assert staking_token.balance_of(LEDGER_CUSTODY) == 0


def test_failing_hook_reverts_transfer(staking_token):
    def boom(direction, holder, amount):
        raise RuntimeError("hook exploded")

    staking_token.add_hook(boom)

    with pytest.raises(RuntimeError):
        staking_token.transfer_in("user1", 10)
    assert staking_token.balance_of("user1") == 1000 * E18
    assert staking_token.balance_of(LEDGER_CUSTODY) == 0


def test_claim_failure_restores_reward_asset(ledger, clock, reward_token):
    ledger.stake("user1", 100 * E18)
    clock.advance(100)

    def boom(direction, holder, amount):
        raise RuntimeError("reward hook exploded")

    reward_token.add_hook(boom)
    with pytest.raises(CollaboratorFailure):
        ledger.get_reward("user1")

    assert reward_token.balance_of("user1") == 0
    assert reward_token.balance_of(LEDGER_CUSTODY) == 10_000 * E18
    assert ledger.earned("user1") == 100 * INITIAL_REWARD_RATE
