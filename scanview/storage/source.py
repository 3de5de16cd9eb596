"""
Row-source contract: the only way the analysis code reaches stored scan data.
"""

from typing import Any, Iterable, NamedTuple, Optional, Protocol, Sequence

Row = dict[str, Any]

FILTER_OPS = ("eq", "neq", "gte", "gt", "lte", "lt", "like", "in", "not_null")


class ScanviewError(Exception):
    """
    Base class for scanview errors.
    """


class QueryError(ScanviewError):
    """
    A row query or insert failed in the backing store.
    """
    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"{table}: {message}")
        self.table = table


class Filter(NamedTuple):
    """
    One column predicate, e.g. ``Filter("rssi", "gte", -90)``.

    ``like`` is a case-insensitive substring match, ``in`` takes a sequence,
    ``not_null`` ignores ``value``.
    """
    column: str
    op: str
    value: Any = None


class Order(NamedTuple):
    column: str
    ascending: bool = True


class RowSource(Protocol):
    """
    Filtered/ordered row access over the scan tables.
    """

    def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        ...

    def insert(self, table: str, rows: Iterable[Row]) -> int:
        ...
