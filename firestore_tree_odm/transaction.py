"""
Retryable transactions.

A transaction is a unit of work, not a single execution. Firestore begins a
transaction, runs the callback, and commits; if a document read inside the
callback was changed by another writer in the meantime the commit is
aborted and the *whole callback runs again* against a fresh snapshot::

    Started -> Reading -> Writing -> Committing -> Committed
                                         |
                                         +-> Conflict -> Started (next attempt)

Only operations given the transaction handle (``Options(transaction=tx)``)
take part. Anything else the callback does, such as non-transactional
writes, HTTP calls or counters, happens again on every attempt.
"""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from google.cloud.firestore_v1.async_transaction import async_transactional

from .exceptions import TransactionAborted

if TYPE_CHECKING:
    from .firestore_client import FirestoreDB

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Message of the ValueError raised by google-cloud-firestore once the
# attempt budget is spent.
_EXHAUSTED_PREFIX = "Failed to commit transaction"


async def run_transaction(
    db: "FirestoreDB",
    callback: Callable[[Any], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run ``callback(transaction)`` until Firestore commits it.

    Returns the value produced by the attempt that committed. Exceptions
    raised by the callback roll the transaction back and propagate
    unchanged. Raises :class:`TransactionAborted` when every attempt hit a
    write conflict.
    """
    attempts = max_attempts or db.max_transaction_attempts
    transaction = db.client.transaction(max_attempts=attempts)
    attempt = 0

    @async_transactional
    async def unit_of_work(tx):
        nonlocal attempt
        attempt += 1
        logger.debug(f"Transaction attempt {attempt}/{attempts}")
        return await callback(tx)

    try:
        result = await unit_of_work(transaction)
    except ValueError as exc:
        if not str(exc).startswith(_EXHAUSTED_PREFIX):
            raise
        logger.warning(f"Transaction aborted after {attempt} attempts: {exc}")
        raise TransactionAborted(str(exc), attempts=attempt) from exc

    logger.debug(f"Transaction committed after {attempt} attempt(s)")
    return result
