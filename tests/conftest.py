import pytest

from stakeledger.staking.core.assets import DevAsset, LEDGER_CUSTODY
from stakeledger.staking.core.clock import ManualClock
from stakeledger.staking.core.events import EventBus
from stakeledger.staking.core.ledger import StakingLedger

E18 = 10**18
GENESIS_TIME = 1_700_000_000
INITIAL_REWARD_RATE = E18 // 10     # 0.1 tokens per second
LOCK_DURATION = 7 * 86_400          # 7 days
EARLY_WITHDRAWAL_FEE = 500          # 5%


@pytest.fixture
def clock():
    return ManualClock(start=GENESIS_TIME)


@pytest.fixture
def bus():
    """Provide a clean EventBus for each test."""
    bus = EventBus()
    yield bus
    bus.clear()


@pytest.fixture
def staking_token():
    token = DevAsset(asset_id="STK")
    token.mint("user1", 1000 * E18)
    token.mint("user2", 1000 * E18)
    return token


@pytest.fixture
def reward_token():
    token = DevAsset(asset_id="RWD")
    token.mint(LEDGER_CUSTODY, 10_000 * E18)
    return token


@pytest.fixture
def ledger(clock, bus, staking_token, reward_token):
    """Ledger deployed at schema v1."""
    lg = StakingLedger(clock=clock, bus=bus)
    lg.initialize("owner", staking_token, reward_token, INITIAL_REWARD_RATE, "owner")
    return lg


@pytest.fixture
def ledger_v2(ledger):
    """Ledger upgraded to schema v2 (fee policy)."""
    ledger.initialize_v2("owner", LOCK_DURATION, EARLY_WITHDRAWAL_FEE, "fee-collector")
    return ledger
