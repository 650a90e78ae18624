# MIT License
# Copyright (c) 2025 Hashborn

"""
Access Gate

Three independent guards wrapped around every mutating entry point.
Composition order is fixed:

    1. pause check      (haltable operations only)
    2. re-entrancy lock (held for the whole call, released on every exit path)
    3. owner check      (administrative operations only)
"""

import functools
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ...protocol.types.common import (
    OperationType,
    AuthorizationError,
    PausedError,
    ReentrancyError,
)
from ...protocol.types.ledger import LedgerState

logger = logging.getLogger(__name__)


class AccessGate:
    def __init__(self, state_provider: Callable[[], LedgerState]):
        """
        Args:
            state_provider: Returns the current LedgerState (read for paused/owner)
        """
        self._state = state_provider
        self._active: Optional[str] = None

    @property
    def entered(self) -> bool:
        return self._active is not None

    def require_not_paused(self, operation: str) -> None:
        if self._state().paused:
            logger.warning(f"Rejected {operation}: ledger is paused")
            raise PausedError(f"{operation} is halted while the ledger is paused")

    def require_owner(self, caller: Optional[str], operation: str) -> None:
        owner = self._state().owner
        if owner is None or caller != owner:
            logger.warning(f"Rejected {operation}: caller {caller} is not the owner")
            raise AuthorizationError(f"{operation} requires the owner, got {caller}")

    @contextmanager
    def non_reentrant(self, operation: str) -> Iterator[None]:
        if self._active is not None:
            logger.warning(f"Rejected {operation}: re-entered during {self._active}")
            raise ReentrancyError(f"{operation} called while {self._active} is in progress")
        self._active = operation
        try:
            yield
        finally:
            self._active = None

    @contextmanager
    def guard(
        self,
        operation: str,
        caller: Optional[str],
        haltable: bool = False,
        owner_only: bool = False,
    ) -> Iterator[None]:
        if haltable:
            self.require_not_paused(operation)
        with self.non_reentrant(operation):
            if owner_only:
                self.require_owner(caller, operation)
            yield


def guarded(operation: OperationType, haltable: bool = False, owner_only: bool = False):
    """
    Decorator for ledger methods of the form method(self, caller, ...).

    The instance must expose its gate as `self.gate`.

    Usage:
        @guarded(OperationType.STAKE, haltable=True)
        def stake(self, caller, amount): ...
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, caller, *args, **kwargs):
            with self.gate.guard(operation.value, caller, haltable=haltable, owner_only=owner_only):
                return func(self, caller, *args, **kwargs)
        wrapper.guard_policy = {"operation": operation, "haltable": haltable, "owner_only": owner_only}
        return wrapper
    return decorator
