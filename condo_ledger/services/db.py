"""Unit-of-work helper for ledger writes.

Each public ledger operation runs inside ``atomic``: the session is committed
when the block succeeds and rolled back when anything inside raises, so no
partial allocation or half-deleted cascade is ever visible to other readers.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from condo_ledger.errors import LedgerError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str) -> Iterator[Session]:
    """
    Run a block as one database transaction.

    Args:
        db: Session the block writes through
        operation: Short name used in log messages (e.g., "apply_payment")

    Yields:
        The same session

    Example:
        ```python
        with atomic(self.db, "reverse_payment"):
            self.allocator.reverse_in_session(payment)
            self.db.delete(payment)
        ```
    """
    try:
        yield db
        db.commit()
    except LedgerError as e:
        db.rollback()
        logger.warning("%s rolled back: %s (%s)", operation, e.message, e.context)
        raise
    except Exception as e:
        db.rollback()
        logger.error("%s failed; changes rolled back: %s", operation, e, exc_info=True)
        raise


__all__ = ["atomic"]
