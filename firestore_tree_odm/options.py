from typing import Any, Optional

from .pydantic_compat import FrozenModel


class Options(FrozenModel):
    """
    Per-call behaviour for document operations and queries.

    Attributes
    ----------
    merge_with_defaults :
        On writes, fill allowed fields missing from the payload with the
        schema's ``prop_defaults``. Ignored by reads.
    transaction :
        Firestore transaction handle received by a :func:`run_transaction`
        callback. Reads become snapshot-consistent and writes are staged
        until the transaction commits.
    """

    merge_with_defaults: bool = False
    transaction: Optional[Any] = None


DEFAULT_OPTIONS = Options()


def resolve_options(options: Optional[Options]) -> Options:
    return DEFAULT_OPTIONS if options is None else options
