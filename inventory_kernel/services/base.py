"""
BaseService -- abstract base for the ledger's write services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service.  Services use ``session.flush()`` and never
    ``session.commit()``; the InventoryLedger facade (or a test) owns the
    transaction through ``session_scope()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Failure modes:
    - A subclass that commits on its own breaks the all-or-nothing
      guarantee of record_remove (batch decrements, remove row and links
      must land together).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base
from inventory_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel write services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - Timestamps come from the injected clock, never ``datetime.now()``.

    Non-goals:
        - Does NOT provide aggregate reads; those belong in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
