"""
Row-level access to the table store.

The hosted store speaks PostgREST: one REST resource per table, equality and
range filters as query parameters, ordering through `order=`. `RestTableStore`
wraps that API with requests; `SQLiteTableStore` offers the same operations
over a local SQLite file for offline use and tests.
"""

import logging
import re
import sqlite3
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from .config import Settings
from .database import TABLES, initialize_database

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StoreError(Exception):
    """A read or write against the table store failed."""


class TableStore:
    """Interface shared by the store adapters.

    eq/gte/lte map column names to values; order_by lists columns that are
    all sorted in the same direction.
    """

    def select(
        self,
        table: str,
        eq: Optional[Mapping[str, Any]] = None,
        gte: Optional[Mapping[str, Any]] = None,
        lte: Optional[Mapping[str, Any]] = None,
        order_by: Sequence[str] = (),
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, row: Mapping[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(
        self, table: str, values: Mapping[str, Any], eq: Mapping[str, Any]
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def delete(self, table: str, eq: Mapping[str, Any]) -> int:
        raise NotImplementedError


def _check_table(table: str) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table '{table}'.")


def _check_columns(columns) -> None:
    for column in columns:
        if not _IDENTIFIER.match(column):
            raise ValueError(f"Invalid column name '{column}'.")


def _require_filter(eq: Optional[Mapping[str, Any]], operation: str) -> None:
    if not eq:
        raise ValueError(f"{operation} requires at least one equality filter.")


class RestTableStore(TableStore):
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    @staticmethod
    def _encode(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def _filters(self, eq=None, gte=None, lte=None) -> List[tuple]:
        params = []
        for operator, criteria in (("eq", eq), ("gte", gte), ("lte", lte)):
            for column, value in (criteria or {}).items():
                _check_columns([column])
                if operator == "eq" and value is None:
                    params.append((column, "is.null"))
                else:
                    params.append((column, f"{operator}.{self._encode(value)}"))
        return params

    def _request(self, method: str, table: str, params=None, json=None, prefer=None):
        _check_table(table)
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self.session.request(
                method,
                self._url(table),
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as http_err:
            detail = str(http_err)
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                detail = payload.get("message", detail)
            raise StoreError(f"{method} {table} failed: {detail}") from http_err
        except requests.exceptions.RequestException as e:
            raise StoreError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"{method} {table} returned an unreadable response.") from e

    def select(self, table, eq=None, gte=None, lte=None, order_by=(), descending=False, limit=None):
        params = [("select", "*")] + self._filters(eq, gte, lte)
        if order_by:
            _check_columns(order_by)
            direction = "desc" if descending else "asc"
            params.append(("order", ",".join(f"{c}.{direction}" for c in order_by)))
        if limit is not None:
            params.append(("limit", str(int(limit))))
        return self._request("GET", table, params=params)

    def insert(self, table, row):
        _check_columns(row.keys())
        created = self._request("POST", table, json=[dict(row)], prefer="return=representation")
        if not created:
            raise StoreError(f"POST {table} returned no row.")
        return created[0]

    def update(self, table, values, eq):
        _require_filter(eq, "update")
        _check_columns(values.keys())
        return self._request(
            "PATCH",
            table,
            params=self._filters(eq=eq),
            json=dict(values),
            prefer="return=representation",
        )

    def delete(self, table, eq):
        _require_filter(eq, "delete")
        deleted = self._request(
            "DELETE", table, params=self._filters(eq=eq), prefer="return=representation"
        )
        return len(deleted)


class SQLiteTableStore(TableStore):
    _TOUCHED_ON_UPDATE = ("members", "membership_types", "employees", "class_types")

    def __init__(self, connection: sqlite3.Connection):
        self.conn = connection
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_name: str) -> "SQLiteTableStore":
        return cls(initialize_database(db_name))

    @staticmethod
    def _where(eq=None, gte=None, lte=None):
        clauses = []
        params = []
        for operator, criteria in (("=", eq), (">=", gte), ("<=", lte)):
            for column, value in (criteria or {}).items():
                _check_columns([column])
                if operator == "=" and value is None:
                    clauses.append(f"{column} IS NULL")
                else:
                    clauses.append(f"{column} {operator} ?")
                    params.append(value)
        sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return sql, params

    def _run(self, table: str, operation):
        _check_table(table)
        with self._lock:
            try:
                return operation(self.conn.cursor())
            except sqlite3.Error as e:
                self.conn.rollback()
                logging.error(f"SQLite error on table '{table}': {e}", exc_info=True)
                raise StoreError(f"{table}: {e}") from e

    def _fetch_by_ids(self, cursor, table, ids):
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        cursor.execute(f"SELECT * FROM {table} WHERE id IN ({placeholders}) ORDER BY id", ids)
        return [dict(row) for row in cursor.fetchall()]

    def select(self, table, eq=None, gte=None, lte=None, order_by=(), descending=False, limit=None):
        where, params = self._where(eq, gte, lte)
        sql = f"SELECT * FROM {table}{where}"
        if order_by:
            _check_columns(order_by)
            direction = "DESC" if descending else "ASC"
            sql += " ORDER BY " + ", ".join(f"{c} {direction}" for c in order_by)
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        def operation(cursor):
            cursor.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]

        return self._run(table, operation)

    def insert(self, table, row):
        columns = list(row.keys())
        _check_columns(columns)
        sql = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )

        def operation(cursor):
            cursor.execute(sql, [row[c] for c in columns])
            self.conn.commit()
            return self._fetch_by_ids(cursor, table, [cursor.lastrowid])[0]

        return self._run(table, operation)

    def update(self, table, values, eq):
        _require_filter(eq, "update")
        columns = list(values.keys())
        _check_columns(columns)
        assignments = [f"{c} = ?" for c in columns]
        if table in self._TOUCHED_ON_UPDATE and "updated_at" not in values:
            assignments.append("updated_at = CURRENT_TIMESTAMP")
        where, where_params = self._where(eq=eq)

        def operation(cursor):
            cursor.execute(f"SELECT id FROM {table}{where}", where_params)
            ids = [r["id"] for r in cursor.fetchall()]
            if not ids:
                return []
            placeholders = ", ".join("?" for _ in ids)
            cursor.execute(
                f"UPDATE {table} SET {', '.join(assignments)} WHERE id IN ({placeholders})",
                [values[c] for c in columns] + ids,
            )
            self.conn.commit()
            return self._fetch_by_ids(cursor, table, ids)

        return self._run(table, operation)

    def delete(self, table, eq):
        _require_filter(eq, "delete")
        where, params = self._where(eq=eq)

        def operation(cursor):
            cursor.execute(f"DELETE FROM {table}{where}", params)
            self.conn.commit()
            return cursor.rowcount

        return self._run(table, operation)


def create_store(settings: Settings) -> TableStore:
    if settings.uses_remote_store:
        logging.info(f"Using hosted table store at {settings.store_url}.")
        return RestTableStore(settings.store_url, settings.store_key, timeout=settings.store_timeout)
    logging.info(f"Using local SQLite store at {settings.local_db}.")
    return SQLiteTableStore.open(settings.local_db)
