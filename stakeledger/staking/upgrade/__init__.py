# MIT License
# Copyright (c) 2025 Hashborn

"""
Schema Upgrade Protocol

Versioned, append-only ledger schema with at-most-once initializers.
"""

from .types import Migration, MigrationRecord
from .migrations import MigrationRegistry, migration, get_global_registry
from .manager import SchemaMigrator
from . import initializers  # registers v1/v2

__all__ = [
    "Migration",
    "MigrationRecord",
    "MigrationRegistry",
    "SchemaMigrator",
    "migration",
    "get_global_registry",
]
