import sqlite3
from datetime import datetime, timezone
from sqlite3 import Connection
from typing import Any, Iterable, Optional, Sequence

from scanview.storage.db import init_db
from scanview.storage.source import FILTER_OPS, Filter, Order, QueryError, Row
from scanview.utils.log import get_logger

logger = get_logger(__name__)

# fixed-width UTC text so ISO timestamps compare correctly as strings
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

_OPS = {
    "eq":  "=",
    "neq": "!=",
    "gte": ">=",
    "gt":  ">",
    "lte": "<=",
    "lt":  "<",
}


def _to_sql(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime(TS_FORMAT)
    if isinstance(value, bool):
        return int(value)
    return value


class DAO:
    """
    SQLite-backed RowSource over the scan tables.
    """

    def __init__(self, db_path: str):
        """
        Create/connect and apply schema if needed.
        """
        self.conn: Connection = init_db(db_path)
        self._columns: dict[str, list[str]] = {}
        for row in self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        ).fetchall():
            table = row["name"]
            self._columns[table] = [
                col["name"] for col in self.conn.execute(f"PRAGMA table_info({table})")
            ]

    def close(self) -> None:
        self.conn.close()

    def _check(self, table: str, columns: Iterable[str]) -> None:
        if table not in self._columns:
            raise QueryError(table, "unknown table")
        known = self._columns[table]
        for col in columns:
            if col not in known:
                raise QueryError(table, f"unknown column {col!r}")

    def _where(self, filters: Sequence[Filter]) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for f in filters:
            if f.op not in FILTER_OPS:
                raise ValueError(f"unsupported filter op {f.op!r}")
            if f.op in _OPS:
                clauses.append(f"{f.column} {_OPS[f.op]} ?")
                params.append(_to_sql(f.value))
            elif f.op == "like":
                clauses.append(f"{f.column} LIKE ? ESCAPE '\\'")
                escaped = str(f.value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                params.append(f"%{escaped}%")
            elif f.op == "in":
                values = list(f.value)
                if not values:
                    # empty IN-list matches nothing
                    clauses.append("0")
                    continue
                clauses.append(f"{f.column} IN ({', '.join('?' for _ in values)})")
                params.extend(_to_sql(v) for v in values)
            else:
                clauses.append(f"{f.column} IS NOT NULL")
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Return rows of `table` matching all `filters`, as plain dicts.
        """
        cols = [f.column for f in filters]
        if order is not None:
            cols.append(order.column)
        self._check(table, cols)

        where, params = self._where(filters)
        sql = f"SELECT * FROM {table}{where}"
        if order is not None:
            sql += f" ORDER BY {order.column} {'ASC' if order.ascending else 'DESC'}, rowid"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        try:
            cursor = self.conn.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            raise QueryError(table, str(exc)) from exc

    def insert(self, table: str, rows: Iterable[Row]) -> int:
        """
        Bulk insert rows in a single transaction, returning the row count.
        """
        rows = list(rows)
        if not rows:
            return 0
        # rows sharing a column set go in one statement; absent columns take their defaults
        by_columns: dict[tuple[str, ...], list[Row]] = {}
        for row in rows:
            by_columns.setdefault(tuple(sorted(row)), []).append(row)
        self._check(table, {col for columns in by_columns for col in columns})
        try:
            with self.conn:
                for columns, batch in by_columns.items():
                    sql = (
                        f"INSERT INTO {table} ({', '.join(columns)}) "
                        f"VALUES ({', '.join('?' for _ in columns)})"
                    )
                    self.conn.executemany(
                        sql, [tuple(_to_sql(row[col]) for col in columns) for row in batch]
                    )
        except sqlite3.Error as exc:
            raise QueryError(table, str(exc)) from exc
        return len(rows)

    def import_exists(self, sha256: str) -> bool:
        """
        Check if an export file with the given SHA256 was already imported.
        """
        cursor = self.conn.execute(
            "SELECT 1 FROM imports WHERE sha256 = ? LIMIT 1",
            (sha256,),
        )
        return cursor.fetchone() is not None

    def add_import(self, sha256: str, table: str, src_file: str, n_rows: int) -> None:
        """
        Record an imported export file.
        """
        self.conn.execute(
            """
            INSERT INTO imports
              (sha256, table_name, src_file, n_rows)
            VALUES (?, ?, ?, ?)
            """,
            (sha256, table, src_file, n_rows),
        )
        self.conn.commit()

    def get_time_range(self) -> tuple[Optional[str], Optional[str]]:
        """
        return min and max scan_time across all BLE scan rows.
        """
        cursor = self.conn.execute(
            "SELECT MIN(scan_time) AS min_ts, MAX(scan_time) AS max_ts FROM scanned_device"
        )
        row = cursor.fetchone()
        return row["min_ts"], row["max_ts"]
