# MIT License
# Copyright (c) 2025 Hashborn

"""
Schema Upgrade Types
"""

from pydantic import BaseModel, Field
from typing import Callable, Optional
from dataclasses import dataclass


@dataclass
class Migration:
    """
    A registered schema initializer.

    The function takes (state: LedgerState, now: int, **params), validates its
    own inputs before touching state and only writes fields its version adds.
    """
    to_version: int
    func: Callable
    name: str = ""

    @property
    def from_version(self) -> int:
        return self.to_version - 1

    def __str__(self) -> str:
        return f"v{self.from_version}->v{self.to_version} ({self.name or self.func.__name__})"


class MigrationRecord(BaseModel):
    """
    One applied schema transition.
    """
    from_version: int = Field(..., description="Schema version before the migration")
    to_version: int = Field(..., description="Schema version after the migration")
    applied_at: int = Field(..., description="Ledger clock timestamp when applied")
    applied_by: Optional[str] = Field(default=None, description="Principal that ran the migration")
