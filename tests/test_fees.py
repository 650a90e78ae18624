"""
Tests for the early-withdrawal fee policy (schema v2).
"""
import pytest

from stakeledger.protocol.types.common import ValidationError, AuthorizationError, CollaboratorFailure
from stakeledger.protocol.types.ledger import LedgerState, AccountState
from stakeledger.staking.core import fees
from stakeledger.staking.core.assets import LEDGER_CUSTODY

from conftest import E18, LOCK_DURATION, EARLY_WITHDRAWAL_FEE


def _v2_state(**overrides):
    fields = dict(schema_version=2, lock_duration=100, early_withdrawal_fee_bps=500, fee_collector="c")
    fields.update(overrides)
    return LedgerState(**fields)


# ═══════════════════════════════════════════════════════════════════
# PURE POLICY
# ═══════════════════════════════════════════════════════════════════

def test_fee_rounds_down():
    state = _v2_state()
    account = AccountState(principal="a", stake_timestamp=1000)
    assert fees.split_withdrawal(state, account, 50, 1010) == (48, 2)


def test_no_fee_at_lock_boundary():
    state = _v2_state()
    account = AccountState(principal="a", stake_timestamp=1000)
    assert fees.lock_time_remaining(state, account, 1099) == 1
    assert fees.early_withdrawal_fee(state, account, 50, 1099) == 2
    assert fees.lock_time_remaining(state, account, 1100) == 0
    assert fees.early_withdrawal_fee(state, account, 50, 1100) == 0


def test_no_fee_before_v2():
    state = _v2_state(schema_version=1)
    account = AccountState(principal="a", stake_timestamp=1000)
    assert fees.lock_time_remaining(state, account, 1000) == 0
    assert fees.split_withdrawal(state, account, 50, 1000) == (50, 0)


def test_zero_fee_bps():
    state = _v2_state(early_withdrawal_fee_bps=0)
    account = AccountState(principal="a", stake_timestamp=1000)
    assert fees.split_withdrawal(state, account, 50, 1000) == (50, 0)


# ═══════════════════════════════════════════════════════════════════
# LEDGER INTEGRATION
# ═══════════════════════════════════════════════════════════════════

def test_upgrade_values(ledger_v2):
    assert ledger_v2.schema_version == 2
    assert ledger_v2.lock_duration == LOCK_DURATION
    assert ledger_v2.early_withdrawal_fee == EARLY_WITHDRAWAL_FEE
    assert ledger_v2.fee_collector == "fee-collector"


def test_early_withdrawal_charges_fee(ledger_v2, clock, staking_token):
    ledger_v2.stake("user1", 100 * E18)
    clock.advance(86_400)

    paid, fee = ledger_v2.withdraw("user1", 50 * E18)

    assert fee == 50 * E18 * EARLY_WITHDRAWAL_FEE // 10_000
    assert paid == 50 * E18 - fee
    assert staking_token.balance_of("fee-collector") == fee
    assert staking_token.balance_of("user1") == 900 * E18 + paid
    assert ledger_v2.balances("user1") == 50 * E18
    assert ledger_v2.total_supply == 50 * E18


def test_small_withdrawal_fee_rounding(ledger_v2, staking_token):
    ledger_v2.stake("user1", 100)
    paid, fee = ledger_v2.withdraw("user1", 50)
    assert (paid, fee) == (48, 2)
    assert staking_token.balance_of("fee-collector") == 2


def test_withdrawal_after_lock_is_free(ledger_v2, clock, staking_token):
    ledger_v2.stake("user1", 100 * E18)
    clock.advance(LOCK_DURATION)

    assert ledger_v2.lock_time_remaining("user1") == 0
    paid, fee = ledger_v2.withdraw("user1", 100 * E18)
    assert fee == 0
    assert paid == 100 * E18
    assert staking_token.balance_of("fee-collector") == 0


def test_restake_resets_lock(ledger_v2, clock):
    ledger_v2.stake("user1", 10)
    clock.advance(LOCK_DURATION - 10)
    ledger_v2.stake("user1", 10)
    assert ledger_v2.lock_time_remaining("user1") == LOCK_DURATION


def test_stake_before_upgrade_is_not_locked(ledger, clock):
    ledger.stake("user1", 100 * E18)
    assert ledger.account("user1").stake_timestamp == 0

    ledger.initialize_v2("owner", LOCK_DURATION, EARLY_WITHDRAWAL_FEE, "fee-collector")

    assert ledger.lock_time_remaining("user1") == 0
    paid, fee = ledger.withdraw("user1", 100 * E18)
    assert fee == 0


def test_fee_does_not_touch_rewards(ledger_v2, clock):
    ledger_v2.stake("user1", 100 * E18)
    clock.advance(100)
    owed = ledger_v2.earned("user1")

    ledger_v2.withdraw("user1", 100 * E18)
    assert ledger_v2.earned("user1") == owed


# ═══════════════════════════════════════════════════════════════════
# ADMIN SETTERS
# ═══════════════════════════════════════════════════════════════════

def test_set_early_withdrawal_fee(ledger_v2):
    ledger_v2.set_early_withdrawal_fee("owner", 1000)
    assert ledger_v2.early_withdrawal_fee == 1000

    with pytest.raises(ValidationError, match="exceeds cap"):
        ledger_v2.set_early_withdrawal_fee("owner", 1001)
    assert ledger_v2.early_withdrawal_fee == 1000

    with pytest.raises(AuthorizationError):
        ledger_v2.set_early_withdrawal_fee("user1", 0)


def test_set_lock_duration(ledger_v2, clock):
    ledger_v2.stake("user1", 10)
    ledger_v2.set_lock_duration("owner", 0)
    assert ledger_v2.lock_time_remaining("user1") == 0

    with pytest.raises(ValidationError):
        ledger_v2.set_lock_duration("owner", -1)
    with pytest.raises(AuthorizationError):
        ledger_v2.set_lock_duration("user1", 5)


def test_set_fee_collector(ledger_v2, staking_token):
    ledger_v2.set_fee_collector("owner", "treasury")
    assert ledger_v2.fee_collector == "treasury"

    ledger_v2.stake("user1", 100)
    ledger_v2.withdraw("user1", 100)
    assert staking_token.balance_of("treasury") == 5

    with pytest.raises(ValidationError):
        ledger_v2.set_fee_collector("owner", None)
    with pytest.raises(AuthorizationError):
        ledger_v2.set_fee_collector("user1", "user1")


def test_payout_failure_returns_fee(ledger_v2, staking_token):
    """Fee already sent to the collector is taken back when the payout fails."""
    ledger_v2.stake("user1", 100)
    staking_token.balances[LEDGER_CUSTODY] = 10

    with pytest.raises(CollaboratorFailure):
        ledger_v2.withdraw("user1", 100)

    assert ledger_v2.balances("user1") == 100
    assert ledger_v2.total_supply == 100
    assert staking_token.balance_of("fee-collector") == 0
    assert staking_token.balance_of(LEDGER_CUSTODY) == 10
    assert staking_token.balance_of("user1") == 1000 * E18 - 100


def test_fee_transfer_failure_aborts_withdrawal(ledger_v2, staking_token):
    ledger_v2.stake("user1", 100)
    staking_token.balances[LEDGER_CUSTODY] = 3

    with pytest.raises(CollaboratorFailure):
        ledger_v2.withdraw("user1", 100)

    assert ledger_v2.balances("user1") == 100
    assert staking_token.balance_of(LEDGER_CUSTODY) == 3
    assert staking_token.balance_of("user1") == 1000 * E18 - 100
