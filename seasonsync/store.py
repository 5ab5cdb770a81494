"""
Clients for the storage collaborator.

`TableStore` is the keyed-table interface the rest of the package talks to.
`RestStore` implements it over a PostgREST-style HTTP API. `SqlClient` posts
raw SQL to the direct query endpoint and hands back the response untouched so
the caller can decide whether a status is worth retrying.

Build one of each at process start and pass them in; nothing in here is a
module-level singleton.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional
import requests

from . import settings

logger = logging.getLogger(__name__)

Filters = Optional[dict[str, Any]]


class TableStore(ABC):
    """
    Generic keyed table store. Filters map a column to a value (equality) or
    to a list/tuple/set of values (membership).
    """

    @abstractmethod
    def select(
        self,
        table: str,
        offset: int,
        limit: int,
        columns: str = "*",
        order: Optional[str] = None,
        filters: Filters = None,
    ) -> list[dict]:
        """One page of rows. Never more than the store's row ceiling."""

    @abstractmethod
    def insert(self, table: str, rows: list[dict], skip_duplicates: bool = True) -> int:
        """
        Inserts rows as one atomic write. With `skip_duplicates` rows whose key
        already exists are ignored (never overwritten). Returns rows sent.
        """

    @abstractmethod
    def upsert(self, table: str, rows: list[dict], on_conflict: str) -> int:
        """Inserts rows, overwriting any existing row with the same `on_conflict` key."""

    @abstractmethod
    def delete(self, table: str, filters: Filters = None) -> int:
        """Deletes matching rows (all rows when `filters` is None). Returns the count."""

    @abstractmethod
    def rpc(self, function: str, params: Optional[dict] = None) -> Any:
        """Calls a server-side function and returns its decoded result."""


def _filter_params(filters: Filters) -> dict[str, str]:
    params = {}
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            joined = ",".join(f'"{v}"' for v in value)
            params[column] = f"in.({joined})"
        elif value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{value}"
    return params


def _content_range_total(header: Optional[str]) -> int:
    # "0-24/25" or "*/25"
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else 0


class RestStore(TableStore):
    def __init__(self, base_url: str, api_key: str, timeout: float = settings.REQUEST_TIMEOUT):
        if not base_url:
            raise ValueError("STORE_URL is not configured")
        self.base_url = base_url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    @classmethod
    def from_settings(cls) -> "RestStore":
        return cls(settings.STORE_URL, settings.STORE_API_KEY)

    def select(self, table, offset, limit, columns="*", order=None, filters=None):
        params = {"select": columns, "offset": str(offset), "limit": str(limit)}
        if order:
            params["order"] = order
        params.update(_filter_params(filters))
        response = self.session.get(f"{self.base_url}/{table}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def insert(self, table, rows, skip_duplicates=True):
        if not rows:
            return 0
        prefer = ["return=minimal"]
        if skip_duplicates:
            prefer.append("resolution=ignore-duplicates")
        response = self.session.post(
            f"{self.base_url}/{table}",
            json=rows,
            headers={"Prefer": ",".join(prefer)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return len(rows)

    def upsert(self, table, rows, on_conflict):
        if not rows:
            return 0
        response = self.session.post(
            f"{self.base_url}/{table}",
            params={"on_conflict": on_conflict},
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return len(rows)

    def delete(self, table, filters=None):
        params = _filter_params(filters)
        if not params:
            # The API refuses an unfiltered delete; this matches every row.
            params = {"id": "not.is.null"}
        response = self.session.delete(
            f"{self.base_url}/{table}",
            params=params,
            headers={"Prefer": "count=exact,return=minimal"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return _content_range_total(response.headers.get("Content-Range"))

    def rpc(self, function, params=None):
        response = self.session.post(
            f"{self.base_url}/rpc/{function}", json=params or {}, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()


class SqlClient:
    """Direct SQL endpoint. Does not raise on HTTP status; see persist.execute_with_retry."""

    def __init__(self, url: str, token: str, timeout: float = settings.REQUEST_TIMEOUT):
        if not url:
            raise ValueError("SQL_API_URL is not configured")
        self.url = url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
        )

    @classmethod
    def from_settings(cls) -> "SqlClient":
        return cls(settings.SQL_API_URL, settings.SQL_API_TOKEN)

    def execute(self, query: str) -> requests.Response:
        return self.session.post(self.url, json={"query": query}, timeout=self.timeout)


# --- SQL Literals ---


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def build_insert(table: str, rows: list[dict], skip_duplicates: bool = True) -> str:
    columns = list(rows[0].keys())
    column_sql = ",".join(quote_ident(c) for c in columns)
    values_sql = ",\n".join(
        "(" + ",".join(sql_literal(row.get(c)) for c in columns) + ")" for row in rows
    )
    sql = f"INSERT INTO {quote_ident(table)} ({column_sql}) VALUES {values_sql}"
    if skip_duplicates:
        sql += " ON CONFLICT DO NOTHING"
    return sql


def build_delete(table: str, filters: Filters = None) -> str:
    sql = f"DELETE FROM {quote_ident(table)}"
    clauses = []
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            clauses.append(f"{quote_ident(column)} IN ({','.join(sql_literal(v) for v in value)})")
        elif value is None:
            clauses.append(f"{quote_ident(column)} IS NULL")
        else:
            clauses.append(f"{quote_ident(column)} = {sql_literal(value)}")
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    return sql
