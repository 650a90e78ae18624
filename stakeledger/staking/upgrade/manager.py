# MIT License
# Copyright (c) 2025 Hashborn

"""
Schema Migrator

Drives the ledger through Uninitialized -> V1 -> V2 -> ... one step at a time.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from .types import Migration, MigrationRecord
from .migrations import MigrationRegistry, get_global_registry
from ..core.state import LedgerStore
from ...protocol.types.common import MigrationOrderError, SchemaLayoutError, ValidationError
from ...protocol.types.ledger import LEDGER_FIELD_LAYOUT, fields_up_to, check_layouts

logger = logging.getLogger(__name__)


class SchemaMigrator:
    """
    Applies schema initializers to a LedgerStore.

    Responsibilities:
    - Enforce strictly sequential, at-most-once transitions
    - Require the upgrade authorizer for every transition after v1
    - Reject initializers that rewrite fields owned by earlier versions
    """

    def __init__(self, store: LedgerStore, registry: Optional[MigrationRegistry] = None,
                 authorizer: Optional[Callable[[Optional[str]], None]] = None):
        """
        Args:
            store: Ledger aggregate to migrate
            registry: Initializer registry (default: global registry)
            authorizer: Called with the caller before any v(k)->v(k+1), k >= 1; raises to reject
        """
        check_layouts()
        self.store = store
        self.registry = registry or get_global_registry()
        self.authorizer = authorizer
        self.history: List[MigrationRecord] = []

    @property
    def current_version(self) -> int:
        return self.store.ledger.schema_version

    def migrate(self, to_version: int, now: int, caller: Optional[str] = None, **params) -> MigrationRecord:
        """
        Run the initializer producing `to_version`.

        Raises:
            MigrationOrderError: Already applied, or predecessor not reached
            AuthorizationError: Caller rejected by the authorizer
            ValidationError: Initializer rejected its parameters
            SchemaLayoutError: Initializer touched an earlier version's field
        """
        current = self.current_version
        if to_version <= current:
            logger.warning(f"Rejected migration to v{to_version}: ledger already at v{current}")
            raise MigrationOrderError(f"Schema version {to_version} already applied (current v{current})")
        if to_version != current + 1:
            logger.warning(f"Rejected migration to v{to_version}: ledger at v{current}")
            raise MigrationOrderError(
                f"Schema version {to_version} requires v{to_version - 1}, ledger is at v{current}"
            )

        step = self.registry.get_migration(to_version)

        if current >= 1 and self.authorizer is not None:
            self.authorizer(caller)
        _bind_params(step, params)

        logger.info(f"Running migration {step}")
        frozen = [f for f in fields_up_to(LEDGER_FIELD_LAYOUT, current) if f != "schema_version"]

        with self.store.transaction():
            before = {f: getattr(self.store.ledger, f) for f in frozen}
            step.func(self.store.ledger, now, **params)
            changed = [f for f in frozen if getattr(self.store.ledger, f) != before[f]]
            if changed:
                logger.error(f"Migration {step} rewrote frozen fields {changed}")
                raise SchemaLayoutError(f"v{to_version} initializer modified earlier fields: {changed}")
            self.store.ledger.schema_version = to_version

        record = MigrationRecord(from_version=current, to_version=to_version, applied_at=now, applied_by=caller)
        self.history.append(record)
        logger.info(f"Migration complete: v{current} -> v{to_version}")
        return record

    def pending(self) -> List[int]:
        """Versions registered but not yet applied."""
        return [m.to_version for m in self.registry.get_migration_path(
            self.current_version, self.registry.latest_version())]


def _bind_params(step: Migration, params: Dict[str, Any]) -> None:
    """Reject missing or unknown initializer parameters before anything runs."""
    try:
        inspect.signature(step.func).bind(None, 0, **params)
    except TypeError as e:
        raise ValidationError(f"Invalid parameters for {step}: {e}") from e
