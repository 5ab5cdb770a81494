from datetime import date

import pytest

from seasonsync import service
from seasonsync.aggregate import AggregationService
from seasonsync.errors import ImportRequestError
from seasonsync.persist import BatchPersister


class TestImportRecords:
    def test_products_with_alternate_keys(self, store):
        payload = {
            "type": "products",
            "season": "FA26",
            "fileName": "ll.json",
            "data": [
                {"styleNumber": 1234, "styleName": "Trail Tee", "colorCode": "BLK", "usWholesale": "45", "cadPrice": 0},
                {"styleNumber": "", "styleName": "no style"},
            ],
        }
        result = service.import_records(BatchPersister(store), payload)

        assert result.count == 1
        assert result.errors == 1
        assert result.season == "26FA"
        assert result.message == "Imported 1 products records"
        row = store.tables["Product"][0]
        assert row["styleNumber"] == "1234"
        assert row["styleDesc"] == "Trail Tee"
        assert row["color"] == "BLK"
        assert row["price"] == 45.0
        assert row["cadPrice"] is None
        assert row["season"] == "26FA"
        assert row["id"] == "prod-26FA-0"
        log = store.tables["ImportLog"][0]
        assert (log["fileName"], log["fileType"], log["recordCount"]) == ("ll.json", "products", 1)

    def test_season_replace(self, store):
        persister = BatchPersister(store)
        store.tables["Pricing"] = [
            {"styleNumber": "OLD", "season": "26FA"},
            {"styleNumber": "KEEP", "season": "26SP"},
        ]
        service.import_records(
            persister, {"type": "pricing", "season": "26FA", "data": [{"styleNumber": "A", "color": "RED", "price": 50}]}
        )
        assert sorted(r["styleNumber"] for r in store.tables["Pricing"]) == ["A", "KEEP"]
        new = [r for r in store.tables["Pricing"] if r["styleNumber"] == "A"][0]
        assert new["colorCode"] == "RED"

    def test_no_season_means_no_delete(self, store):
        store.tables["Sale"] = [{"styleNumber": "OLD", "season": "26FA"}]
        service.import_records(
            BatchPersister(store),
            {"type": "sales", "data": [{"styleNumber": "A", "season": "26FA", "revenue": "10"}]},
        )
        assert len(store.tables["Sale"]) == 2
        assert store.delete_calls == []
        assert store.tables["ImportLog"][0]["fileName"] == "sales_import"

    def test_costs_keep_nulls(self, store):
        service.import_records(
            BatchPersister(store),
            {"type": "costs", "season": "26FA", "data": [{"styleNumber": "A", "styleDesc": "Tee", "landed": 12}]},
        )
        row = store.tables["Cost"][0]
        assert row["styleName"] == "Tee"
        assert row["landed"] == 12
        assert row["suggestedMsrp"] is None
        assert row["margin"] is None

    def test_inventory_replaces_whole_table(self, store):
        store.tables["Inventory"] = [{"id": "old"}]
        service.import_records(
            BatchPersister(store),
            {"type": "inventory", "data": [{"styleNumber": "A", "qty": "3", "warehouse": "SLC"}]},
        )
        rows = store.tables["Inventory"]
        assert len(rows) == 1
        assert rows[0]["qty"] == 3
        assert rows[0]["id"]

    def test_dry_run_leaves_store_untouched(self, store):
        store.tables["Pricing"] = [{"styleNumber": "OLD", "season": "26FA"}]
        result = service.import_records(
            BatchPersister(store),
            {
                "type": "pricing",
                "season": "26FA",
                "data": [
                    {"styleNumber": "A", "color": "RED", "price": 50},
                    {"styleNumber": "B", "season": "SP27", "price": 20},
                    {"styleNumber": "", "price": 1},
                ],
            },
            dry_run=True,
        )

        assert result.dry_run
        assert result.count == 2
        assert result.errors == 1
        assert result.season_breakdown == {"26FA": 1, "27SP": 1}
        assert store.tables["Pricing"] == [{"styleNumber": "OLD", "season": "26FA"}]
        assert store.insert_calls == []
        assert store.delete_calls == []
        assert store.tables["ImportLog"] == []

    def test_dry_run_needs_no_persister(self):
        result = service.import_records(
            None, {"type": "inventory", "data": [{"styleNumber": "A", "qty": 2}]}, dry_run=True
        )
        assert result.count == 1
        assert result.season_breakdown == {}

    @pytest.mark.parametrize(
        "payload",
        [
            {"type": "widgets", "data": []},
            {"type": "sales"},
            {"type": "sales", "data": "nope"},
        ],
    )
    def test_invalid_payload(self, store, payload):
        with pytest.raises(ImportRequestError):
            service.import_records(BatchPersister(store), payload)
        assert store.insert_calls == []


class TestReset:
    def test_wrong_token(self, store):
        store.tables["Sale"] = [{"id": 1}]
        with pytest.raises(ImportRequestError):
            service.reset(store, "please")
        assert len(store.tables["Sale"]) == 1

    def test_deletes_every_table_in_order(self, store):
        store.tables["Sale"] = [{"id": 1}, {"id": 2}]
        store.tables["Product"] = [{"id": 3}]
        deleted = service.reset(store, "yes")
        assert deleted["Sale"] == 2
        assert deleted["Product"] == 1
        assert deleted["ImportLog"] == 0
        assert [t for t, _ in store.delete_calls] == ["Sale", "Pricing", "Cost", "Product", "Inventory", "ImportLog"]


class TestSeasons:
    def test_list_merges_metadata_with_live_counts(self, store):
        store.tables["Season"] = [{"code": "26FA", "name": "Fall Launch", "status": "selling", "hasSalesData": True}]
        store.tables["Product"] = [{"season": "27SP"}, {"season": "27SP"}]
        store.tables["Sale"] = [{"season": "26FA"}, {"season": "BULK"}]

        seasons = service.list_seasons(AggregationService(store), today=date(2026, 10, 19))

        assert [s["code"] for s in seasons] == ["27SP", "26FA"]
        spring, fall = seasons
        assert spring["name"] == "Spring 2027"
        assert spring["status"] == "planning"
        assert spring["actualCounts"] == {"sales": 0, "products": 2, "pricing": 0, "costs": 0}
        assert spring["hasLineList"] is True
        assert fall["name"] == "Fall Launch"
        assert fall["status"] == "selling"
        assert fall["hasSalesData"] is True
        assert fall["hasLineList"] is False
        assert fall["shippingStatus"] == "SHIPPING"
        assert fall["isCurrentShipping"] is True
        assert spring["shippingStatus"] == "PRE-BOOK"
        assert spring["isCurrentShipping"] is False

    def test_list_counts_without_scanning_data_tables(self, store):
        store.tables["Sale"] = [{"season": "26FA"}] * 3
        service.list_seasons(AggregationService(store), today=date(2026, 10, 19))
        assert {c["table"] for c in store.select_calls} == {"Season"}

    def test_save_creates_with_defaults(self, store):
        row = service.save_season(store, {"code": "fa26"})
        assert row["code"] == "26FA"
        assert row["name"] == "Fall 2026"
        assert row["status"] == "planning"
        assert store.tables["Season"] == [row]

    def test_save_updates_only_given_fields(self, store):
        service.save_season(store, {"code": "26FA", "name": "Fall Launch", "notes": "first"})
        service.save_season(store, {"code": "26FA", "status": "selling"})
        (row,) = store.tables["Season"]
        assert row["name"] == "Fall Launch"
        assert row["notes"] == "first"
        assert row["status"] == "selling"

    def test_save_requires_code(self, store):
        with pytest.raises(ImportRequestError):
            service.save_season(store, {"name": "nameless"})

    def test_delete(self, store):
        service.save_season(store, {"code": "26FA"})
        assert service.delete_season(store, "26FA") == 1
        assert store.tables["Season"] == []
