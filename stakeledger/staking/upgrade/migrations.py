# MIT License
# Copyright (c) 2025 Hashborn

"""
Schema Migration Registry

Initializers indexed by the schema version they produce.
"""

import logging
from typing import Dict, Callable, List
from .types import Migration
from ...protocol.types.common import MigrationOrderError

logger = logging.getLogger(__name__)


class MigrationRegistry:
    """
    Registry for schema initializers.

    Exactly one initializer per target version. Version k+1 may only run
    on a ledger sitting at version k.
    """

    def __init__(self):
        self._migrations: Dict[int, Migration] = {}

    def register(self, to_version: int, migration_func: Callable, name: str = ""):
        """
        Register an initializer.

        Args:
            to_version: Schema version the initializer produces (>= 1)
            migration_func: Function taking (state: LedgerState, now: int, **params)

        Raises:
            ValueError: If the version is invalid or already registered
        """
        if to_version < 1:
            raise ValueError(f"Invalid target version: {to_version}")
        if to_version in self._migrations:
            raise ValueError(f"Initializer for v{to_version} already registered")

        self._migrations[to_version] = Migration(to_version=to_version, func=migration_func, name=name)
        logger.debug(f"Registered migration: {self._migrations[to_version]}")

    def get_migration(self, to_version: int) -> Migration:
        """
        Raises:
            MigrationOrderError: If no initializer produces to_version
        """
        if to_version not in self._migrations:
            raise MigrationOrderError(f"No initializer registered for schema version {to_version}")
        return self._migrations[to_version]

    def get_migration_path(self, from_version: int, to_version: int) -> List[Migration]:
        """
        Sequence of initializers taking from_version to to_version, one step at a time.
        """
        if from_version >= to_version:
            return []
        return [self.get_migration(v) for v in range(from_version + 1, to_version + 1)]

    def has_migration(self, to_version: int) -> bool:
        return to_version in self._migrations

    def latest_version(self) -> int:
        return max(self._migrations) if self._migrations else 0

    def list_migrations(self) -> list:
        return [str(self._migrations[v]) for v in sorted(self._migrations)]


# Global migration registry
_global_registry = MigrationRegistry()


def migration(to_version: int, name: str = ""):
    """
    Decorator to register an initializer.

    Usage:
        @migration(2)
        def initialize_v2(state: LedgerState, now: int, lock_duration: int, ...):
            state.lock_duration = lock_duration
    """
    def decorator(func):
        _global_registry.register(to_version, func, name=name)
        return func
    return decorator


def get_global_registry() -> MigrationRegistry:
    """Get the global migration registry."""
    return _global_registry
