"""A small DB-API wrapper used by the repositories."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Sequence
from urllib.parse import unquote, urlsplit

import pymysql

_SUPPORTED_PARAMSTYLES = frozenset({"qmark", "format", "pyformat"})


class RowNotFound(LookupError):
    """Raised when a query that must yield a row yields none, or a write touches no row."""


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a write statement."""

    rows_affected: int
    last_insert_id: int


class Database:
    """Runs SQL written with ``?`` placeholders on any DB-API connection."""

    def __init__(self, connection: Any, paramstyle: str = "qmark") -> None:
        if paramstyle not in _SUPPORTED_PARAMSTYLES:
            raise ValueError(f"unsupported paramstyle: {paramstyle!r}")
        self.connection = connection
        self.paramstyle = paramstyle

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _prepare(self, sql: str) -> str:
        if self.paramstyle == "qmark":
            return sql
        return sql.replace("%", "%%").replace("?", "%s")

    def _cursor(self, sql: str, params: Sequence[Any]) -> Any:
        cursor = self.connection.cursor()
        try:
            cursor.execute(self._prepare(sql), tuple(params))
        except Exception:
            cursor.close()
            raise
        return cursor

    @staticmethod
    def _rows(cursor: Any, rows: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
        names = [column[0] for column in cursor.description or ()]
        return [dict(zip(names, row)) for row in rows]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecuteResult:
        """Run a write statement, commit it and report its effect."""
        try:
            cursor = self._cursor(sql, params)
        except Exception:
            self.connection.rollback()
            raise
        try:
            result = ExecuteResult(
                rows_affected=max(cursor.rowcount or 0, 0),
                last_insert_id=int(cursor.lastrowid or 0),
            )
        finally:
            cursor.close()
        self.connection.commit()
        return result

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any]:
        """Return the first row as a dict, or raise RowNotFound."""
        cursor = self._cursor(sql, params)
        try:
            row = cursor.fetchone()
            if row is None:
                raise RowNotFound("no rows returned by a query that expected a row")
            return self._rows(cursor, [row])[0]
        finally:
            cursor.close()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Return every row as a dict."""
        cursor = self._cursor(sql, params)
        try:
            return self._rows(cursor, cursor.fetchall())
        finally:
            cursor.close()

    def close(self) -> None:
        self.connection.close()


def connect(database_url: str | None = None) -> Database:
    """Open a MySQL database from a ``mysql://`` URL or the DATABASE_URL variable."""
    if database_url is None:
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL must be set")
    parts = urlsplit(database_url)
    if parts.scheme not in ("mysql", "mysql+pymysql"):
        raise ValueError(f"unsupported database URL scheme: {parts.scheme!r}")
    database = parts.path.lstrip("/")
    if not database:
        raise ValueError("database URL must name a database")
    connection = pymysql.connect(
        host=parts.hostname or "localhost",
        port=parts.port or 3306,
        user=unquote(parts.username or ""),
        password=unquote(parts.password or ""),
        database=unquote(database),
        charset="utf8mb4",
    )
    return Database(connection, "format")