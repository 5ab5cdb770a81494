import pytest
import requests

from conftest import ScriptedSqlClient
from seasonsync import settings
from seasonsync.persist import (
    BatchPersister,
    backoff_delay,
    execute_with_retry,
    replace_filters,
    write_error_log,
)
from seasonsync.schemas import InventoryMovement, PricingItem, Product, SalesItem


def products(season, count, start=0):
    return [
        Product(id=f"prod-{season}-{i}", style_number=f"S{i}", season=season)
        for i in range(start, start + count)
    ]


class TestTablePath:
    def test_failed_chunk_is_isolated(self, store):
        store.fail_inserts["Product"] = {2}
        batch = products("26FA", 7)
        result = BatchPersister(store).persist("Product", batch, chunk_size=3)

        assert result.chunks == 3
        assert result.inserted == 3 + 1
        assert result.errors == 3
        assert "rows 3-5" in result.error_log[0]
        stored = {r["id"] for r in store.tables["Product"]}
        assert stored == {b.id for b in batch[:3] + batch[6:]}

    def test_season_scoped_replace_leaves_other_seasons(self, store):
        persister = BatchPersister(store)
        persister.persist("Product", products("26SP", 2))
        persister.persist("Product", products("26FA", 3))

        result = persister.persist("Product", products("26FA", 1, start=10))

        seasons = sorted((r["season"], r["id"]) for r in store.tables["Product"])
        assert seasons == [("26FA", "prod-26FA-10"), ("26SP", "prod-26SP-0"), ("26SP", "prod-26SP-1")]
        assert result.deleted == 3
        assert store.delete_calls[-1] == ("Product", {"season": ["26FA"]})

    def test_table_scope_deletes_everything(self, store):
        persister = BatchPersister(store)
        persister.persist("Product", products("26SP", 2))
        persister.persist("Product", products("26FA", 1), replace_scope="table")
        assert [r["season"] for r in store.tables["Product"]] == ["26FA"]
        assert store.delete_calls[-1] == ("Product", None)

    def test_only_first_chunk_deletes(self, store):
        BatchPersister(store).persist("Product", products("26FA", 5), chunk_size=2)
        assert len(store.delete_calls) == 1
        assert len(store.tables["Product"]) == 5

    def test_follow_up_batch_never_deletes(self, store):
        persister = BatchPersister(store)
        persister.persist("Product", products("26FA", 2))
        persister.persist("Product", products("26FA", 2, start=2), first_batch=False)
        assert len(store.delete_calls) == 1
        assert len(store.tables["Product"]) == 4

    def test_no_replace(self, store):
        persister = BatchPersister(store)
        persister.persist("Product", products("26FA", 2))
        persister.persist("Product", products("26FA", 1, start=5), replace_existing=False)
        assert len(store.tables["Product"]) == 3

    def test_duplicates_are_skipped_except_sales(self, store):
        persister = BatchPersister(store)
        persister.persist("Pricing", [PricingItem(style_number="A", season="26FA", price=1)])
        sale = SalesItem(style_number="A", season="26FA", customer="REI", revenue=10)
        persister.persist("Sale", [sale, sale])

        by_table = {c["table"]: c["skip_duplicates"] for c in store.insert_calls}
        assert by_table == {"Pricing": True, "Sale": False}
        assert len(store.tables["Sale"]) == 2

    def test_existing_key_is_not_overwritten(self, store):
        persister = BatchPersister(store)
        persister.persist("Product", products("26FA", 1))
        changed = Product(id="prod-26FA-0", style_number="CHANGED", season="26FA")
        persister.persist("Product", [changed], replace_existing=False)
        assert [r["styleNumber"] for r in store.tables["Product"]] == ["S0"]

    def test_failed_replace_delete_writes_nothing(self, store):
        store.fail_deletes.add("Product")
        result = BatchPersister(store).persist("Product", products("26FA", 4))
        assert result.inserted == 0
        assert result.errors == 4
        assert store.insert_calls == []

    def test_rows_use_store_column_names(self, store):
        BatchPersister(store).persist("Product", products("26FA", 1))
        row = store.tables["Product"][0]
        assert row["styleNumber"] == "S0"
        assert row["seasonType"] == "Main"

    def test_import_log(self, store):
        entry = BatchPersister(store).log_import("ll.xlsx", "products", 12, season="26FA")
        row = store.tables["ImportLog"][0]
        assert row["fileName"] == "ll.xlsx"
        assert row["recordCount"] == 12
        assert row["season"] == "26FA"
        assert entry.record_count == 12


class TestRetry:
    def test_backoff_is_linear_and_capped(self):
        assert [backoff_delay(a) for a in range(1, 8)] == [5, 10, 15, 20, 25, 30, 30]

    def test_transient_then_ok(self, sleeps, record_sleep):
        client = ScriptedSqlClient([429, 503, 200])
        outcome = execute_with_retry(client, "SELECT 1", sleep=record_sleep)
        assert outcome.status == "ok"
        assert outcome.attempts == 3
        assert sleeps == [5, 10]

    def test_exhausted(self, sleeps, record_sleep):
        client = ScriptedSqlClient([500] * 5)
        outcome = execute_with_retry(client, "SELECT 1", sleep=record_sleep)
        assert outcome.status == "exhausted"
        assert outcome.attempts == 5
        assert len(client.queries) == 5
        assert sleeps == [5, 10, 15, 20]

    def test_client_error_is_fatal_without_retry(self, sleeps, record_sleep):
        client = ScriptedSqlClient([400])
        outcome = execute_with_retry(client, "SELECT 1", sleep=record_sleep)
        assert outcome.status == "fatal"
        assert outcome.status_code == 400
        assert sleeps == []

    def test_connection_error_is_retried(self, sleeps, record_sleep):
        client = ScriptedSqlClient([requests.ConnectionError("reset"), 200])
        outcome = execute_with_retry(client, "SELECT 1", sleep=record_sleep)
        assert outcome.ok
        assert sleeps == [5]


def movements(count):
    return [InventoryMovement(id=f"m{i}", style_number=f"S{i}", qty=i) for i in range(count)]


class TestSqlPath:
    def test_fatal_chunk_continues(self, sleeps, record_sleep):
        # delete ok, chunk 1 ok, chunk 2 rejected, chunk 3 ok
        client = ScriptedSqlClient([200, 200, 400, 200])
        persister = BatchPersister(sql_client=client, sleep=record_sleep)
        result = persister.persist_sql("Inventory", movements(5), chunk_size=2)

        assert result.inserted == 3
        assert result.errors == 2
        assert client.queries[0].startswith('DELETE FROM "Inventory"')
        assert len(client.queries) == 4

    def test_inter_chunk_delay_always_applies(self, sleeps, record_sleep):
        client = ScriptedSqlClient()
        BatchPersister(sql_client=client, sleep=record_sleep).persist_sql(
            "Inventory", movements(6), chunk_size=2
        )
        assert sleeps == [settings.INTER_CHUNK_DELAY_SECONDS] * 3

    def test_exhausted_chunk_counts_as_error(self, sleeps, record_sleep):
        client = ScriptedSqlClient([200] + [503] * 5)
        result = BatchPersister(sql_client=client, sleep=record_sleep).persist_sql(
            "Inventory", movements(3), chunk_size=3
        )
        assert result.inserted == 0
        assert result.errors == 3
        assert "exhausted" in result.error_log[0]

    def test_failed_delete_aborts(self, sleeps, record_sleep):
        client = ScriptedSqlClient([400])
        result = BatchPersister(sql_client=client, sleep=record_sleep).persist_sql(
            "Inventory", movements(4), chunk_size=2
        )
        assert result.inserted == 0
        assert result.errors == 4
        assert len(client.queries) == 1

    def test_insert_sql_keeps_duplicate_handling(self):
        client = ScriptedSqlClient()
        BatchPersister(sql_client=client, sleep=lambda s: None).persist_sql(
            "Inventory", movements(1), replace_existing=False
        )
        assert client.queries[0].startswith('INSERT INTO "Inventory"')
        assert client.queries[0].endswith("ON CONFLICT DO NOTHING")


def test_replace_filters():
    rows = [{"season": "26FA"}, {"season": "26SP"}, {"season": "26FA"}]
    assert replace_filters(rows, "season") == {"season": ["26FA", "26SP"]}
    assert replace_filters(rows, "table") is None


def test_error_log_written_next_to_input(store, tmp_path):
    store.fail_inserts["Product"] = {1}
    result = BatchPersister(store).persist("Product", products("26FA", 2))
    path = write_error_log(result, tmp_path)
    assert path == tmp_path / "import-errors.log"
    assert "Chunk 1" in path.read_text()
    assert write_error_log(BatchPersister(store).persist("Product", products("26SP", 1)), tmp_path) is None


def test_persist_without_store_raises():
    with pytest.raises(ValueError):
        BatchPersister().persist("Product", [])
