"""
Undo journal for all-or-nothing operations.

While a transaction is open on a thread, every ledger and registry write
that thread makes records its inverse. Rolling back replays the inverses
newest-first, so only this thread's writes since the savepoint are
reverted. Writes other threads make to the same books are left alone.

Transactions nest per thread: the outermost one owns the journal and
inner ones take savepoints in it. A registry entered anywhere inside the
transaction enlists once. Its lock stays held until the outermost
transaction ends, and its commit callback runs only if that transaction
succeeds.
"""

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Set

from dutchswap.utils.logger import get_logger

logger = get_logger("journal")

# Per-thread journal of the open outermost transaction
_context = threading.local()

UndoAction = Callable[[], None]


class Journal:
    """
    Undo log of one thread's outermost transaction.

    Attributes:
        depth: Number of open (nested) transactions
    """

    def __init__(self):
        self.depth = 0
        self._undo: List[UndoAction] = []
        self._participants: Set[int] = set()
        self._on_commit: List[Callable[[], None]] = []
        self._on_close: List[Callable[[], None]] = []

    def record(self, undo: UndoAction) -> None:
        self._undo.append(undo)

    def savepoint(self) -> int:
        return len(self._undo)

    def rollback_to(self, savepoint: int) -> None:
        """Apply inverses recorded after `savepoint`, newest first."""
        reverted = len(self._undo) - savepoint
        while len(self._undo) > savepoint:
            self._undo.pop()()
        if reverted:
            logger.debug(f"Reverted {reverted} writes to savepoint {savepoint}")

    def enlist(
        self,
        participant: object,
        lock: threading.RLock,
        on_commit: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Join `participant` to this transaction.

        `lock` is acquired now and released when the transaction closes.
        Later calls for the same participant are no-ops.
        """
        if id(participant) in self._participants:
            return
        lock.acquire()
        self._participants.add(id(participant))
        self._on_close.append(lock.release)
        if on_commit is not None:
            self._on_commit.append(on_commit)

    def _close(self, committed: bool) -> None:
        _context.journal = None
        try:
            if committed:
                for callback in self._on_commit:
                    callback()
        finally:
            for release in reversed(self._on_close):
                release()


def current() -> Optional[Journal]:
    """Journal of this thread's open transaction, if any."""
    return getattr(_context, "journal", None)


def record(undo: UndoAction) -> None:
    """Record an inverse action if a transaction is open on this thread."""
    journal = current()
    if journal is not None:
        journal.record(undo)


@contextmanager
def transaction() -> Iterator[Journal]:
    """
    Run a block as one all-or-nothing unit.

    On any exception the writes made inside the block are reverted and
    the exception propagates.
    """
    journal = current()
    if journal is None:
        journal = Journal()
        _context.journal = journal

    mark = journal.savepoint()
    journal.depth += 1
    try:
        yield journal
    except BaseException:
        journal.rollback_to(mark)
        journal.depth -= 1
        if journal.depth == 0:
            journal._close(committed=False)
        raise

    journal.depth -= 1
    if journal.depth == 0:
        journal._close(committed=True)


__all__ = ["Journal", "current", "record", "transaction"]
