"""
Shared fakes: an in-memory table store and a scripted direct-SQL client.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd
import pytest
import requests

from seasonsync.aggregate import rollup_sales
from seasonsync.store import TableStore


def _matches(row: dict, filters: Optional[dict]) -> bool:
    for column, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            if row.get(column) not in value:
                return False
        elif row.get(column) != value:
            return False
    return True


class MemoryStore(TableStore):
    """
    Keeps tables as lists of dicts. Rows with an "id" are unique by id.
    `fail_inserts[table]` holds the 1-based insert call numbers that raise.
    """

    def __init__(self, row_ceiling: int = 1000):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.row_ceiling = row_ceiling
        self.fail_inserts: dict[str, set[int]] = defaultdict(set)
        self.fail_deletes: set[str] = set()
        self.insert_calls: list[dict] = []
        self.delete_calls: list[tuple[str, Optional[dict]]] = []
        self.select_calls: list[dict] = []
        self.rpc_calls: list[tuple[str, Optional[dict]]] = []

    def select(self, table, offset, limit, columns="*", order=None, filters=None):
        self.select_calls.append(
            {"table": table, "offset": offset, "limit": limit, "order": order, "filters": filters}
        )
        rows = self._ordered([r for r in self.tables[table] if _matches(r, filters)], order)
        page = rows[offset : offset + min(limit, self.row_ceiling)]
        if columns != "*":
            keep = [c.strip() for c in columns.split(",")]
            page = [{c: r.get(c) for c in keep} for r in page]
        return [dict(r) for r in page]

    def insert(self, table, rows, skip_duplicates=True):
        calls = [c for c in self.insert_calls if c["table"] == table]
        call_number = len(calls) + 1
        self.insert_calls.append(
            {"table": table, "rows": len(rows), "skip_duplicates": skip_duplicates}
        )
        if call_number in self.fail_inserts[table]:
            raise requests.HTTPError(f"400 Client Error: bad batch for {table}")

        existing = {r.get("id") for r in self.tables[table] if r.get("id") is not None}
        for row in rows:
            if skip_duplicates and row.get("id") is not None and row["id"] in existing:
                continue
            self.tables[table].append(dict(row))
            existing.add(row.get("id"))
        return len(rows)

    def upsert(self, table, rows, on_conflict):
        for row in rows:
            kept = [r for r in self.tables[table] if r.get(on_conflict) != row.get(on_conflict)]
            self.tables[table] = kept + [dict(row)]
        return len(rows)

    def delete(self, table, filters=None):
        self.delete_calls.append((table, filters))
        if table in self.fail_deletes:
            raise requests.HTTPError(f"500 Server Error: delete on {table}")
        before = len(self.tables[table])
        self.tables[table] = [r for r in self.tables[table] if not _matches(r, filters)]
        return before - len(self.tables[table])

    def rpc(self, function, params=None):
        self.rpc_calls.append((function, params))
        if function == "get_sales_aggregations":
            return rollup_sales(self.tables["Sale"]).model_dump(by_alias=True)
        if function == "get_inventory_aggregations":
            return self._inventory_rollup()
        if function == "get_season_counts":
            return [
                {"table": table, "season": season, "count": count}
                for table in ("Sale", "Product", "Pricing", "Cost")
                for season, count in Counter(r.get("season") for r in self.tables[table]).items()
            ]
        if function == "get_sales_page":
            rows = sorted(
                self.tables["Sale"],
                key=lambda r: (r.get("season") or "", r.get("styleNumber") or "", r.get("customer") or ""),
            )
            return [dict(r) for r in rows[params["p_offset"] : params["p_offset"] + params["p_limit"]]]
        raise requests.HTTPError(f"404 Client Error: no function {function}")

    @staticmethod
    def _ordered(rows: list[dict], order: Optional[str]) -> list[dict]:
        """Applies a PostgREST order string such as "season.desc,id.asc"."""
        for term in reversed((order or "").split(",")):
            if not term:
                continue
            column, _, direction = term.partition(".")
            rows = sorted(
                rows,
                key=lambda r: (r.get(column) is None, "" if r.get(column) is None else r.get(column)),
                reverse=direction == "desc",
            )
        return rows

    def _inventory_rollup(self) -> dict:
        rows = self.tables["Inventory"]
        if not rows:
            return {"totalCount": 0, "byType": [], "byWarehouse": [], "byPeriod": []}
        df = pd.DataFrame(rows)

        def grouped(column: str) -> list[dict]:
            out = (
                df.groupby(column)
                .agg(count=("id", "count"), sum_qty=("qty", "sum"), sum_extension=("extension", "sum"))
                .reset_index()
            )
            return out.to_dict("records")

        return {
            "totalCount": len(rows),
            "byType": grouped("movementType"),
            "byWarehouse": grouped("warehouse"),
            "byPeriod": grouped("period"),
        }


@dataclass
class FakeResponse:
    status_code: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class ScriptedSqlClient:
    """
    Direct-SQL stand-in. Each execute() pops the next scripted status (200
    once the script runs out); an Exception in the script is raised instead.
    """

    def __init__(self, script: Optional[list[Any]] = None):
        self.script = list(script or [])
        self.queries: list[str] = []

    def execute(self, query):
        self.queries.append(query)
        status = self.script.pop(0) if self.script else 200
        if isinstance(status, Exception):
            raise status
        return FakeResponse(status, text="" if status < 400 else f"error {status}")


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


def grid(header: list[Any], *rows: list[Any], preamble: int = 0) -> pd.DataFrame:
    """A raw sheet grid as load_workbook returns it: no header promoted, object dtype."""
    width = len(header)
    blank = [[None] * width for _ in range(preamble)]
    return pd.DataFrame(blank + [header] + [list(r) for r in rows], dtype=object)
