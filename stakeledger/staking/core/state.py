# MIT License
# Copyright (c) 2025 Hashborn

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional
import logging

from ...protocol.types.ledger import LedgerState, AccountState
from ..storage.db import StorageDB

logger = logging.getLogger(__name__)

LEDGER_KEY = "ledger"
ACCOUNT_PREFIX = "acct:"


class LedgerStore:
    """
    The single owned aggregate: global LedgerState plus one AccountState per principal.

    Works purely in memory when db is None. With a StorageDB, accounts are
    loaded lazily and persist() writes everything in one atomic batch.
    """

    def __init__(self, db: Optional[StorageDB] = None, ledger: LedgerState = None,
                 accounts: Dict[str, AccountState] = None):
        self.db = db
        self.ledger: LedgerState = ledger if ledger is not None else LedgerState()
        # Cache for modified/accessed accounts: principal -> AccountState
        self._accounts: Dict[str, AccountState] = accounts if accounts is not None else {}

    def clone(self) -> 'LedgerStore':
        """Creates a deep copy of the in-memory state (used for rollback)."""
        new_accounts = {k: v.model_copy() for k, v in self._accounts.items()}
        return LedgerStore(self.db, self.ledger.model_copy(), new_accounts)

    def restore(self, snapshot: 'LedgerStore') -> None:
        self.ledger = snapshot.ledger
        self._accounts = snapshot._accounts

    @contextmanager
    def transaction(self) -> Iterator['LedgerStore']:
        """All-or-nothing block: any exception restores the state seen on entry."""
        snapshot = self.clone()
        try:
            yield self
        except BaseException:
            self.restore(snapshot)
            logger.debug("Rolled back ledger transaction")
            raise

    def get_account(self, principal: str) -> AccountState:
        if principal in self._accounts:
            return self._accounts[principal]

        if self.db is not None:
            raw_json = self.db.get_state(f"{ACCOUNT_PREFIX}{principal}")
            if raw_json:
                acc = AccountState.model_validate_json(raw_json)
                self._accounts[principal] = acc
                return acc

        # Not created until set_account(); zero-balance accounts that exist stay
        return AccountState(principal=principal)

    def set_account(self, account: AccountState):
        self._accounts[account.principal] = account

    def has_account(self, principal: str) -> bool:
        if principal in self._accounts:
            return True
        return self.db is not None and self.db.get_state(f"{ACCOUNT_PREFIX}{principal}") is not None

    def all_accounts(self) -> List[AccountState]:
        """Loads all accounts from DB + cache overlay."""
        final: Dict[str, AccountState] = {}
        if self.db is not None:
            for k, v in self.db.get_state_by_prefix(ACCOUNT_PREFIX).items():
                final[k[len(ACCOUNT_PREFIX):]] = AccountState.model_validate_json(v)
        final.update(self._accounts)
        return list(final.values())

    def sum_balances(self) -> int:
        return sum(acc.balance for acc in self.all_accounts())

    def persist(self, extra: Optional[Dict[str, str]] = None):
        """Writes ledger, cached accounts and any extra keys in one transaction."""
        if self.db is None:
            raise RuntimeError("LedgerStore has no database attached")
        items = [(LEDGER_KEY, self.ledger.model_dump_json())]
        items.extend(
            (f"{ACCOUNT_PREFIX}{p}", acc.model_dump_json()) for p, acc in self._accounts.items()
        )
        if extra:
            items.extend(extra.items())
        self.db.set_many(items)
        logger.debug(f"Persisted ledger and {len(self._accounts)} account(s)")

    @classmethod
    def load(cls, db: StorageDB) -> 'LedgerStore':
        raw_json = db.get_state(LEDGER_KEY)
        ledger = LedgerState.model_validate_json(raw_json) if raw_json else LedgerState()
        logger.info(f"Loaded ledger at schema version {ledger.schema_version}")
        return cls(db, ledger)
