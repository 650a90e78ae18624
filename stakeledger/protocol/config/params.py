# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict, Optional

# Global Constants
DENOM = "stk"
DECIMALS = 18

# Fixed-point scale of the reward-per-unit accumulator
SCALE = 10**18

# Fee precision
BPS_DENOMINATOR = 10_000
MAX_EARLY_WITHDRAWAL_FEE_BPS = 1_000   # 10%

# Latest schema this code knows how to run
CURRENT_SCHEMA_VERSION = 2

ONE_DAY = 86_400


class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 initial_reward_rate: int,
                 lock_duration: int,
                 early_withdrawal_fee_bps: int,
                 staking_asset_id: str = "STK",
                 reward_asset_id: str = "RWD",
                 # Reward asset minted into ledger custody at deployment
                 reward_reserve: int = 0,
                 # Devnet faucet allowance per request
                 faucet_amount: int = 0,
                 fee_collector: Optional[str] = None):
        self.network_id = network_id
        self.initial_reward_rate = initial_reward_rate
        self.lock_duration = lock_duration
        self.early_withdrawal_fee_bps = early_withdrawal_fee_bps
        self.staking_asset_id = staking_asset_id
        self.reward_asset_id = reward_asset_id
        self.reward_reserve = reward_reserve
        self.faucet_amount = faucet_amount
        self.fee_collector = fee_collector

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        initial_reward_rate=10**17,         # 0.1 token per second
        lock_duration=7 * ONE_DAY,
        early_withdrawal_fee_bps=500,       # 5%
        reward_reserve=10_000 * 10**DECIMALS,
        faucet_amount=1_000 * 10**DECIMALS,
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        initial_reward_rate=10**17,
        lock_duration=7 * ONE_DAY,
        early_withdrawal_fee_bps=500,
        reward_reserve=1_000_000 * 10**DECIMALS,
        faucet_amount=100 * 10**DECIMALS,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        initial_reward_rate=10**16,
        lock_duration=14 * ONE_DAY,
        early_withdrawal_fee_bps=300,
        reward_reserve=0,
        faucet_amount=0,
    ),
}

# Default to devnet for now
CURRENT_NETWORK = NETWORKS["devnet"]
