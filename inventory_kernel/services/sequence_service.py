"""
SequenceService -- monotonic id allocation.

Responsibility:
    Hands out strictly increasing ids for ledger transactions.  The id is
    also the FIFO tie-break between batches received at the same instant,
    so it must never go backwards and never repeat.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by BatchStore and FifoConsumptionService.

Invariants enforced:
    - Monotonicity: a native sequence or a counter row is the sole source
      of truth.  The aggregate-max-plus-one pattern is never used.
    - No cross-item blocking: on PostgreSQL transaction ids come from
      ``nextval()``, which takes no lock held to commit, so writers on
      different items never queue behind one another.

Failure modes:
    - OperationalError when a counter row cannot be locked within the
      backend's lock timeout.  The ledger's RetryPolicy retries it.
    - IntegrityError if two transactions race to create a missing counter.
      Counters are created by initialize_sequences() at table creation, so
      this only happens against a database set up by other means.

Concurrency:
    Counter rows are incremented with ``UPDATE ... SET current_value =
    current_value + 1`` before the value is read back, so two writers can
    never read the same value.  That row stays locked until commit, which
    is why counters are only used where the backend has no sequences
    (SQLite serializes all writers on its database lock regardless).
    Native sequence values are not returned on rollback; gaps are allowed.
"""

from sqlalchemy import select, text, update
from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence import TRANSACTION_ID_SEQUENCE, SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope(factory) as session:
            txn_id = SequenceService(session).next_value(
                SequenceService.TRANSACTION
            )
    """

    # Well-known sequence names
    TRANSACTION = "inventory_transaction"

    WELL_KNOWN = (TRANSACTION,)

    # Well-known names backed by a database sequence where supported
    NATIVE = {TRANSACTION: TRANSACTION_ID_SEQUENCE}

    def __init__(self, session: Session):
        self._session = session

    def uses_native(self, sequence_name: str) -> bool:
        """True when ``sequence_name`` is served by a database sequence."""
        return (
            sequence_name in self.NATIVE
            and self._session.get_bind().dialect.supports_sequences
        )

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0, strictly greater than any value
              previously handed out for this sequence.
        """
        if self.uses_native(sequence_name):
            value = self._session.execute(
                select(self.NATIVE[sequence_name].next_value())
            ).scalar_one()
        else:
            value = self._next_counter_value(sequence_name)

        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def _next_counter_value(self, sequence_name: str) -> int:
        result = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # First use of a sequence that was never initialized
            self._session.add(SequenceCounter(name=sequence_name, current_value=1))
            self._session.flush()
            logger.debug(
                "sequence_counter_created",
                extra={"sequence_name": sequence_name},
            )
            return 1

        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one()

    def current_value(self, sequence_name: str) -> int | None:
        """Last value handed out (0 if none yet), or None for an unknown counter."""
        if self.uses_native(sequence_name):
            last_value, is_called = self._session.execute(
                text(
                    f"SELECT last_value, is_called FROM {self.NATIVE[sequence_name].name}"
                )
            ).one()
            return last_value if is_called else 0

        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.name == sequence_name
            )
        ).scalar_one_or_none()

    def initialize_sequences(self) -> None:
        """
        Create the well-known counters if they do not exist yet.

        Called during table creation so that next_value() never has to
        insert under concurrency.  Native sequences are created with the
        tables by metadata.create_all().
        """
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == name)
            ).scalar_one_or_none()

            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))

        self._session.flush()
