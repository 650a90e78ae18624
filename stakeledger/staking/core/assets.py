# MIT License
# Copyright (c) 2025 Hashborn

"""
Asset transfer collaborators.

The ledger never moves value itself. It asks an asset collaborator to pull
stake into custody or push stake/reward out of custody and treats any
failure as fatal to the enclosing operation.

Collaborators that also expose snapshot() and restore(snapshot) are rolled
back together with the ledger when an operation aborts.
"""

import logging
from typing import Callable, Dict, List, Protocol
from pydantic import BaseModel, Field, PrivateAttr

logger = logging.getLogger(__name__)

# Holder name of the ledger's own custody balance
LEDGER_CUSTODY = "stakeledger"


class AssetTransfer(Protocol):
    asset_id: str

    def transfer_in(self, sender: str, amount: int) -> bool:
        """Move amount from sender into ledger custody."""
        ...

    def transfer_out(self, recipient: str, amount: int) -> bool:
        """Move amount from ledger custody to recipient."""
        ...


class DevAsset(BaseModel):
    """
    In-memory fungible asset used by devnet deployments and tests.

    Hooks are called after every successful transfer with
    (direction, holder, amount); they are not persisted. A hook that raises
    reverts the transfer before the exception propagates.
    """
    asset_id: str
    custody: str = LEDGER_CUSTODY
    total_minted: int = 0
    balances: Dict[str, int] = Field(default_factory=dict)

    _hooks: List[Callable] = PrivateAttr(default_factory=list)

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def mint(self, holder: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self.balances[holder] = self.balance_of(holder) + amount
        self.total_minted += amount
        logger.debug(f"Minted {amount} {self.asset_id} to {holder}")

    def add_hook(self, callback: Callable) -> None:
        self._hooks.append(callback)

    def transfer_in(self, sender: str, amount: int) -> bool:
        return self._transfer(sender, self.custody, amount, "in", sender)

    def transfer_out(self, recipient: str, amount: int) -> bool:
        return self._transfer(self.custody, recipient, amount, "out", recipient)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.balances)

    def restore(self, snapshot: Dict[str, int]) -> None:
        self.balances = dict(snapshot)

    def _transfer(self, src: str, dst: str, amount: int, direction: str, holder: str) -> bool:
        if not self._move(src, dst, amount):
            return False
        try:
            self._run_hooks(direction, holder, amount)
        except BaseException:
            # A failing hook fails the transfer
            self._move(dst, src, amount)
            raise
        return True

    def _move(self, src: str, dst: str, amount: int) -> bool:
        have = self.balance_of(src)
        if amount < 0 or have < amount:
            logger.warning(f"{self.asset_id} transfer rejected: {src} has {have}, needs {amount}")
            return False
        self.balances[src] = have - amount
        self.balances[dst] = self.balance_of(dst) + amount
        return True

    def _run_hooks(self, direction: str, holder: str, amount: int) -> None:
        for hook in list(self._hooks):
            hook(direction, holder, amount)
