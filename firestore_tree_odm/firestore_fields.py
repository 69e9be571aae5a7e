from typing import Any, Iterable, List, NamedTuple, Tuple, Union

from .enums import FirestoreOperators, OrderByDirection


class Where(NamedTuple):
    """A single ``field <op> value`` filter. Filters in a query are ANDed."""

    field: str
    op: Union[FirestoreOperators, str]
    value: Any


class OrderBy(NamedTuple):
    """Sort on ``field``; Firestore breaks ties by document id."""

    field: str
    direction: Union[OrderByDirection, str] = OrderByDirection.ASCENDING


Constraint = Union[Where, OrderBy, Tuple]


def where(field: Any, op: Union[FirestoreOperators, str], value: Any) -> Where:
    """Build a filter constraint, e.g. ``where("domain", "==", "gmail")``."""
    return Where(str(field), FirestoreOperators(op), value)


_DIRECTION_ALIASES = {
    "ASC": OrderByDirection.ASCENDING,
    "DESC": OrderByDirection.DESCENDING,
}


def order_by(field: Any, direction: Union[OrderByDirection, str] = OrderByDirection.ASCENDING) -> OrderBy:
    """Build an ordering constraint, e.g. ``order_by("address", "desc")``."""
    key = str(direction).upper()
    return OrderBy(str(field), _DIRECTION_ALIASES.get(key) or OrderByDirection(key))


def split_constraints(constraints: Iterable[Constraint]) -> Tuple[List[Where], List[OrderBy]]:
    """
    Separate a mixed constraint list into filters and orderings.

    Plain tuples are accepted as well: ``(field, op, value)`` is a filter and
    ``(field, direction)`` an ordering. Relative order inside each group is
    kept, since Firestore applies ``order_by`` clauses in sequence.
    """
    filters: List[Where] = []
    orderings: List[OrderBy] = []
    for constraint in constraints or []:
        if isinstance(constraint, (Where, OrderBy)):
            item = constraint
        elif isinstance(constraint, tuple) and len(constraint) == 3:
            item = where(*constraint)
        elif isinstance(constraint, tuple) and len(constraint) == 2:
            item = order_by(*constraint)
        elif isinstance(constraint, (str, FirestoreField)):
            item = order_by(constraint)
        else:
            raise TypeError(f"Unsupported query constraint: {constraint!r}")

        if isinstance(item, Where):
            filters.append(item)
        else:
            orderings.append(item)
    return filters, orderings


class FirestoreField:
    """
    Named field handle that builds query constraints through operators.

    Examples
    --------
    >>> emails = Submodel(collection_name="emails", parent=profiles,
    ...                   collection_props=["address", "domain"])
    >>> emails.field("domain") == "gmail"
    Where(field='domain', op=<FirestoreOperators.EQ: '=='>, value='gmail')
    """

    def __init__(self, field_name: str):
        self.field_name = field_name

    def __str__(self) -> str:          # noqa: DunderStr
        return self.field_name

    __repr__ = __str__

    def __hash__(self) -> int:         # noqa: DunderHash
        return hash(self.field_name)

    # ------------------------------------------------------------------ #
    # Comparison operators build Where constraints                       #
    # ------------------------------------------------------------------ #

    def __eq__(self, other):           # type: ignore[override]
        return Where(self.field_name, FirestoreOperators.EQ, other)

    def __ne__(self, other):           # type: ignore[override]
        return Where(self.field_name, FirestoreOperators.NE, other)

    def __lt__(self, other):
        return Where(self.field_name, FirestoreOperators.LT, other)

    def __le__(self, other):
        return Where(self.field_name, FirestoreOperators.LTE, other)

    def __gt__(self, other):
        return Where(self.field_name, FirestoreOperators.GT, other)

    def __ge__(self, other):
        return Where(self.field_name, FirestoreOperators.GTE, other)

    # ------------------------------------------------------------------ #
    # Firestore-specific helpers                                         #
    # ------------------------------------------------------------------ #

    def in_(self, values: List[Any]) -> Where:
        return Where(self.field_name, FirestoreOperators.IN, values)

    def not_in_(self, values: List[Any]) -> Where:
        return Where(self.field_name, FirestoreOperators.NOT_IN, values)

    def array_contains(self, value: Any) -> Where:
        return Where(self.field_name, FirestoreOperators.ARRAY_CONTAINS, value)

    def array_contains_any(self, values: List[Any]) -> Where:
        return Where(self.field_name, FirestoreOperators.ARRAY_CONTAINS_ANY, values)

    def asc(self) -> OrderBy:
        return OrderBy(self.field_name, OrderByDirection.ASCENDING)

    def desc(self) -> OrderBy:
        return OrderBy(self.field_name, OrderByDirection.DESCENDING)
