import argparse
import os
import sys
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Tuple
from uvicorn import Config, Server
from ...protocol.config.params import NETWORKS, CURRENT_NETWORK, NetworkConfig, DECIMALS, DENOM
from ...protocol.types.common import LedgerError
from ..core.assets import DevAsset, LEDGER_CUSTODY
from ..core.clock import SystemClock
from ..core.ledger import StakingLedger
from ..core.state import LedgerStore
from ..storage.db import StorageDB
from ..rpc import api # import module to set globals

logger = logging.getLogger(__name__)

ASSET_PREFIX = "asset:"


class Node:
    """A ledger opened from a data directory, with its dev assets."""

    def __init__(self, datadir: str, config: NetworkConfig):
        os.makedirs(datadir, exist_ok=True)
        self.config = config
        self.db = StorageDB(os.path.join(datadir, "ledger.db"))
        self.store = LedgerStore.load(self.db)
        self.staking_asset = self._load_asset(config.staking_asset_id)
        self.reward_asset = self._load_asset(config.reward_asset_id)
        self.ledger = StakingLedger(self.store, clock=SystemClock())
        self.ledger.bind_assets(self.staking_asset, self.reward_asset)

    def _load_asset(self, asset_id: str) -> DevAsset:
        raw_json = self.db.get_state(f"{ASSET_PREFIX}{asset_id}")
        if raw_json:
            return DevAsset.model_validate_json(raw_json)
        return DevAsset(asset_id=asset_id, custody=LEDGER_CUSTODY)

    def save(self):
        self.store.persist(extra={
            f"{ASSET_PREFIX}{a.asset_id}": a.model_dump_json()
            for a in (self.staking_asset, self.reward_asset)
        })

    def close(self):
        self.db.close()


def parse_amount(value: str) -> int:
    """Token amount ('1.5') to base units."""
    try:
        units = Decimal(value) * (10 ** DECIMALS)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid amount: {value}")
    if units != units.to_integral_value():
        raise argparse.ArgumentTypeError(f"Amount {value} has more than {DECIMALS} decimals")
    return int(units)


def fmt(units: int) -> str:
    return f"{Decimal(units) / (10 ** DECIMALS)} {DENOM}"


def cmd_init(node: Node, args):
    """Deploy the base ledger (v1) with dev assets and a funded reward reserve."""
    cfg = node.config
    node.ledger.initialize(args.owner, node.staking_asset, node.reward_asset, cfg.initial_reward_rate, args.owner)
    if cfg.reward_reserve:
        node.reward_asset.mint(LEDGER_CUSTODY, cfg.reward_reserve)
    print(f"Ledger initialized on {cfg.network_id}.")
    print(f"Owner: {args.owner}")
    print(f"Reward rate: {fmt(cfg.initial_reward_rate)}/sec")

def cmd_upgrade(node: Node, args):
    """Upgrade to v2: early-withdrawal fee policy."""
    cfg = node.config
    collector = args.fee_collector or cfg.fee_collector or args.caller
    node.ledger.initialize_v2(args.caller, cfg.lock_duration, cfg.early_withdrawal_fee_bps, collector)
    print("Ledger upgraded to schema v2.")
    print(f"Lock duration: {cfg.lock_duration}s, fee: {cfg.early_withdrawal_fee_bps} bps, collector: {collector}")

def cmd_faucet(node: Node, args):
    amount = args.amount if args.amount is not None else node.config.faucet_amount
    if amount <= 0:
        print(f"Faucet disabled on {node.config.network_id}")
        sys.exit(1)
    node.staking_asset.mint(args.to, amount)
    print(f"Sent {fmt(amount)} to {args.to}")

def cmd_stake(node: Node, args):
    node.ledger.stake(args.caller, args.amount)
    print(f"Staked {fmt(args.amount)}. Balance: {fmt(node.ledger.balances(args.caller))}")

def cmd_withdraw(node: Node, args):
    paid, fee = node.ledger.withdraw(args.caller, args.amount)
    print(f"Withdrew {fmt(args.amount)}: received {fmt(paid)}, fee {fmt(fee)}")

def cmd_claim(node: Node, args):
    reward = node.ledger.get_reward(args.caller)
    print(f"Claimed {fmt(reward)} reward")

def cmd_set_rate(node: Node, args):
    node.ledger.set_reward_rate(args.caller, args.rate)
    print(f"Reward rate: {fmt(args.rate)}/sec")

def cmd_pause(node: Node, args):
    node.ledger.pause(args.caller)
    print("Ledger paused.")

def cmd_unpause(node: Node, args):
    node.ledger.unpause(args.caller)
    print("Ledger unpaused.")

def cmd_status(node: Node, args):
    status = node.ledger.status()
    if args.account:
        status["account"] = node.ledger.account(args.account).model_dump()
        status["account"]["earned"] = node.ledger.earned(args.account)
        status["account"]["lock_time_remaining"] = node.ledger.lock_time_remaining(args.account)
    print(json.dumps(status, indent=2))

def cmd_run(node: Node, args):
    """Serve the RPC API, persisting after every committed mutation."""
    api.ledger = node.ledger
    api.on_commit = node.save
    config = Config(app=api.app, host=args.host, port=args.port, log_level="info")
    Server(config).run()


COMMANDS: Dict[str, Tuple] = {
    "init": (cmd_init, True),
    "upgrade": (cmd_upgrade, True),
    "faucet": (cmd_faucet, True),
    "stake": (cmd_stake, True),
    "withdraw": (cmd_withdraw, True),
    "claim": (cmd_claim, True),
    "set-rate": (cmd_set_rate, True),
    "pause": (cmd_pause, True),
    "unpause": (cmd_unpause, True),
    "status": (cmd_status, False),
    "run": (cmd_run, False),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="StakeLedger Node CLI")
    parser.add_argument("--datadir", default="./.stakeledger", help="Data directory")
    parser.add_argument("--network", default=CURRENT_NETWORK.network_id, choices=sorted(NETWORKS), help="Network preset")

    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Deploy the base ledger (schema v1)")
    init_parser.add_argument("--owner", required=True, help="Owner principal")

    upgrade_parser = subparsers.add_parser("upgrade", help="Upgrade to schema v2 (fee policy)")
    upgrade_parser.add_argument("--caller", required=True, help="Owner principal")
    upgrade_parser.add_argument("--fee-collector", default=None, help="Fee collector principal")

    faucet_parser = subparsers.add_parser("faucet", help="Mint dev staking tokens")
    faucet_parser.add_argument("--to", required=True)
    faucet_parser.add_argument("--amount", type=parse_amount, default=None)

    for name, help_text in (("stake", "Stake tokens"), ("withdraw", "Withdraw staked tokens")):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("--caller", required=True)
        p.add_argument("--amount", type=parse_amount, required=True)

    claim_parser = subparsers.add_parser("claim", help="Claim accrued rewards")
    claim_parser.add_argument("--caller", required=True)

    rate_parser = subparsers.add_parser("set-rate", help="Set reward rate (tokens/sec)")
    rate_parser.add_argument("--caller", required=True)
    rate_parser.add_argument("--rate", type=parse_amount, required=True)

    for name in ("pause", "unpause"):
        p = subparsers.add_parser(name, help=f"{name.capitalize()} haltable operations")
        p.add_argument("--caller", required=True)

    status_parser = subparsers.add_parser("status", help="Show ledger state")
    status_parser.add_argument("--account", default=None)

    run_parser = subparsers.add_parser("run", help="Run the RPC server")
    run_parser.add_argument("--host", default="0.0.0.0", help="RPC Host")
    run_parser.add_argument("--port", type=int, default=8000, help="RPC Port")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s %(levelname)s: %(message)s',
        datefmt='%H:%M:%S'
    )

    handler, mutates = COMMANDS[args.command]
    node = Node(args.datadir, NETWORKS[args.network])
    try:
        handler(node, args)
        if mutates:
            node.save()
    except LedgerError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        node.close()

if __name__ == "__main__":
    main()
