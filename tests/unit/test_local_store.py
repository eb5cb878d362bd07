"""Tests for LocalStore CRUD, change capture and remote-merge helpers."""
from datetime import datetime, timedelta, timezone

import pytest

from bizsync.db.defaults import now_iso
from bizsync.db.schema import SYNC_TABLES
from bizsync.errors import LocalStoreError
from bizsync.models.sync import ChangeOperation
from bizsync.models.accounting import JournalEntry
from bizsync.models.trading import Car, Customer, Sale
from bizsync.store.local_store import CarRepository, LocalStore, Repository, SaleRepository


def _customer(company, **overrides):
    fields = {"company_id": company["id"], "name": "Ali", "phone": "0501111111"}
    fields.update(overrides)
    return fields


class TestCrud:
    def test_insert_generates_id_and_timestamps(self, store, company):
        row = store.insert("customers", _customer(company))
        assert len(row["id"]) == 32
        assert row["created_at"] == row["updated_at"]
        assert row["name"] == "Ali"

    def test_insert_keeps_caller_id(self, store, company):
        row = store.insert("customers", _customer(company, id="cust-1"))
        assert row["id"] == "cust-1"

    def test_insert_fills_model_defaults(self, store, company):
        car = store.insert("cars", {
            "company_id": company["id"], "inventory_number": 1, "name": "Camry",
            "chassis_number": "JT123", "purchase_price": 50000.0,
        })
        assert car["status"] == "available"

    def test_get_all_scoped(self, store, company):
        other = store.insert("companies", {"name": "Other"})
        store.insert("customers", _customer(company))
        store.insert("customers", _customer(other, name="Sara"))

        assert len(store.get_all("customers")) == 2
        rows = store.get_all("customers", company["id"])
        assert [r["name"] for r in rows] == ["Ali"]

    def test_get_by_id_missing(self, store):
        assert store.get_by_id("customers", "nope") is None

    def test_update_stamps_updated_at(self, store, company):
        old = "2020-01-01T00:00:00.000000+00:00"
        row = store.insert("customers", _customer(company, updated_at=old))
        assert row["updated_at"] == old
        updated = store.update("customers", row["id"], {"phone": "0509999999", "updated_at": old})
        assert updated["phone"] == "0509999999"
        assert updated["updated_at"] > old

    def test_update_unknown_id_returns_none(self, store):
        assert store.update("customers", "nope", {"name": "X"}) is None
        assert store.change_log.pending() == []

    def test_update_cannot_change_id(self, store, company):
        row = store.insert("customers", _customer(company))
        with pytest.raises(LocalStoreError):
            store.update("customers", row["id"], {"id": "other"})

    def test_delete(self, store, company):
        row = store.insert("customers", _customer(company))
        assert store.delete("customers", row["id"]) is True
        assert store.get_by_id("customers", row["id"]) is None
        assert store.delete("customers", row["id"]) is False

    def test_dict_values_stored_as_json(self, store, company):
        store.update("companies", company["id"], {"invoice_settings": {"vat": 15}})
        assert store.get_by_id("companies", company["id"])["invoice_settings"] == '{"vat": 15}'


class TestErrors:
    def test_unknown_table(self, store):
        with pytest.raises(LocalStoreError):
            store.insert("nope", {"name": "x"})

    def test_unknown_column(self, store, company):
        with pytest.raises(LocalStoreError):
            store.insert("customers", _customer(company, nickname="Al"))

    def test_foreign_key_violation(self, store):
        with pytest.raises(LocalStoreError):
            store.insert("customers", {"company_id": "missing", "name": "A", "phone": "1"})

    def test_not_null_violation(self, store, company):
        with pytest.raises(LocalStoreError):
            store.insert("customers", {"company_id": company["id"], "name": "A", "phone": None})

    def test_malformed_raw_sql(self, store):
        with pytest.raises(LocalStoreError):
            store.raw("SELEKT * FROM customers")

    def test_error_is_chained(self, store):
        with pytest.raises(LocalStoreError) as exc_info:
            store.raw("SELECT * FROM missing_table")
        assert exc_info.value.__cause__ is not None


class TestChangeCapture:
    def test_insert_records_one_entry(self, store, company):
        row = store.insert("customers", _customer(company))
        pending = store.change_log.pending()
        assert len(pending) == 1
        entry = pending[0]
        assert entry.synced is False
        assert entry.operation == ChangeOperation.INSERT.value
        assert entry.record_id == row["id"]
        assert entry.snapshot == {
            "id": row["id"], "company_id": company["id"], "name": "Ali",
            "phone": "0501111111", "address": None, "id_number": None,
        }

    def test_update_records_one_entry(self, store, company):
        row = store.insert("customers", _customer(company))
        store.update("customers", row["id"], {"name": "Ali Hassan"})
        pending = store.change_log.pending()
        assert [e.operation for e in pending] == ["INSERT", "UPDATE"]
        assert pending[1].snapshot["name"] == "Ali Hassan"

    def test_snapshot_is_column_subset(self, store, company):
        store.insert("customers", _customer(company, registration_number="R-1"))
        snapshot = store.change_log.pending()[0].snapshot
        assert "registration_number" not in snapshot
        assert "created_at" not in snapshot

    def test_untracked_table_not_recorded(self, store, company):
        store.insert("suppliers", {"company_id": company["id"], "name": "S", "phone": "1"})
        assert store.change_log.pending() == []

    def test_delete_not_recorded_by_default(self, store, company):
        row = store.insert("customers", _customer(company))
        store.delete("customers", row["id"])
        assert [e.operation for e in store.change_log.pending()] == ["INSERT"]

    def test_delete_recorded_when_enabled(self, engine, company):
        store = LocalStore(engine, capture_deletes=True)
        row = store.insert("customers", _customer(company))
        store.delete("customers", row["id"])
        pending = store.change_log.pending()
        assert [e.operation for e in pending] == ["INSERT", "DELETE"]
        assert pending[1].snapshot["name"] == "Ali"

    def test_failed_write_records_nothing(self, store, company):
        with pytest.raises(LocalStoreError):
            store.insert("customers", {"company_id": "missing", "name": "A", "phone": "1"})
        assert store.change_log.pending() == []

    def test_raw_is_not_recorded(self, store, company):
        store.raw(
            "INSERT INTO customers (id, company_id, name, phone, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            ["c-raw", company["id"], "Raw", "1", now_iso(), now_iso()],
        )
        assert store.get_by_id("customers", "c-raw")["name"] == "Raw"
        assert store.change_log.pending() == []


class TestRaw:
    def test_select_returns_rows(self, store, company):
        store.insert("customers", _customer(company))
        rows = store.raw("SELECT name FROM customers WHERE company_id = ?", [company["id"]])
        assert rows == [{"name": "Ali"}]

    def test_update_returns_rowcount(self, store, company):
        store.insert("customers", _customer(company))
        store.insert("customers", _customer(company, name="Sara"))
        assert store.raw("UPDATE customers SET address = 'Riyadh'") == 2


class TestRepository:
    def test_create_and_get(self, store, company):
        customers = store.repository(Customer)
        created = customers.create(Customer(company_id=company["id"], name="Ali", phone="0500"))
        assert isinstance(created, Customer)
        assert customers.get(created.id).name == "Ali"
        assert len(store.change_log.pending()) == 1

    def test_update_and_delete(self, store, company):
        customers = store.repository(Customer)
        created = customers.create({"company_id": company["id"], "name": "Ali", "phone": "0500"})
        assert customers.update(created.id, {"phone": "0501"}).phone == "0501"
        assert customers.delete(created.id) is True
        assert customers.get(created.id) is None

    def test_get_all(self, store, company):
        customers = store.repository(Customer)
        customers.create({"company_id": company["id"], "name": "Ali", "phone": "0500"})
        assert [c.name for c in customers.get_all(company["id"])] == ["Ali"]

    def test_plain_tables_get_base_repository(self, store):
        assert type(store.repository(Customer)) is Repository
        assert isinstance(store.repository(Sale), SaleRepository)
        assert isinstance(store.repository(Car), CarRepository)



def _car(company, number, **overrides):
    fields = {
        "company_id": company["id"], "inventory_number": number, "name": "Camry",
        "chassis_number": f"JT{number}", "purchase_price": 50000.0,
    }
    fields.update(overrides)
    return fields


class TestTypedQueries:
    def test_first_invoice_number_is_one(self, store, company):
        assert store.repository(Sale).next_invoice_number(company["id"]) == 1

    def test_next_invoice_number_is_per_company(self, store, company):
        other = store.insert("companies", {"name": "Other"})
        sales = store.repository(Sale)
        sales.create({"company_id": company["id"], "invoice_number": 7, "sale_price": 1000.0})
        sales.create({"company_id": company["id"], "invoice_number": 3, "sale_price": 1000.0})
        sales.create({"company_id": other["id"], "invoice_number": 40, "sale_price": 1000.0})

        assert sales.next_invoice_number(company["id"]) == 8
        assert sales.next_invoice_number(other["id"]) == 41

    def test_available_cars(self, store, company):
        other = store.insert("companies", {"name": "Other"})
        store.insert("cars", _car(company, 1))
        store.insert("cars", _car(company, 2, status="sold"))
        store.insert("cars", _car(other, 3))

        available = store.repository(Car).get_available(company["id"])
        assert [c.inventory_number for c in available] == [1]
        assert isinstance(available[0], Car)

    def test_journal_entry_with_lines(self, store, company):
        cash = store.insert("account_categories", {
            "company_id": company["id"], "code": "1100", "name": "Cash", "type": "asset",
        })
        sales = store.insert("account_categories", {
            "company_id": company["id"], "code": "4100", "name": "Sales", "type": "revenue",
        })
        entry = store.insert("journal_entries", {
            "company_id": company["id"], "entry_number": 1, "entry_date": "2024-03-01",
        })
        other = store.insert("journal_entries", {
            "company_id": company["id"], "entry_number": 2, "entry_date": "2024-03-02",
        })
        for account, debit, credit in ((cash, 500.0, 0.0), (sales, 0.0, 500.0)):
            store.insert("journal_entry_lines", {
                "company_id": company["id"], "journal_entry_id": entry["id"],
                "account_id": account["id"], "debit": debit, "credit": credit,
            })

        found, lines = store.repository(JournalEntry).get_with_lines(entry["id"])
        assert found.entry_number == 1
        assert sorted(line.debit for line in lines) == [0.0, 500.0]
        assert store.repository(JournalEntry).get_with_lines(other["id"])[1] == []

    def test_journal_entry_with_lines_missing(self, store):
        assert store.repository(JournalEntry).get_with_lines("nope") is None

class TestRemoteMerge:
    def test_watermark(self, store, company):
        assert store.watermark("customers", "company_id", company["id"]) is None
        row = store.insert("customers", _customer(company))
        assert store.watermark("customers", "company_id", company["id"]) == row["updated_at"]

    def test_merge_inserts_and_overwrites(self, store, company):
        local = store.insert("customers", _customer(company, id="k1"))
        later = now_iso(datetime.now(timezone.utc) + timedelta(minutes=1))
        merged = store.merge_remote("customers", [
            {**local, "name": "Remote Name", "updated_at": later},
            {**_customer(company, id="k2", name="New"), "created_at": later, "updated_at": later},
        ])
        assert merged == 2
        assert store.get_by_id("customers", "k1")["name"] == "Remote Name"
        assert store.get_by_id("customers", "k2")["name"] == "New"

    def test_merge_does_not_record_changes(self, store, company):
        stamp = now_iso()
        store.merge_remote("customers", [
            {**_customer(company, id="k1"), "created_at": stamp, "updated_at": stamp},
        ])
        assert store.change_log.pending() == []

    def test_merge_drops_remote_only_columns(self, store, company):
        stamp = now_iso()
        store.merge_remote("customers", [{
            **_customer(company, id="k1"), "created_at": stamp, "updated_at": stamp,
            "server_only": "x",
        }])
        assert "server_only" not in store.get_by_id("customers", "k1")

    def test_merge_without_id_raises(self, store, company):
        with pytest.raises(LocalStoreError):
            store.merge_remote("customers", [_customer(company)])

    def test_merge_is_all_or_nothing(self, store, company):
        stamp = now_iso()
        with pytest.raises(LocalStoreError):
            store.merge_remote("customers", [
                {**_customer(company, id="ok"), "created_at": stamp, "updated_at": stamp},
                {**_customer(company, id="bad", company_id="missing"), "created_at": stamp, "updated_at": stamp},
            ])
        assert store.get_by_id("customers", "ok") is None

    def test_replace_scope(self, store, company):
        store.insert("customers", _customer(company, id="local-only"))
        stamp = now_iso()
        sync_table = next(t for t in SYNC_TABLES if t.name == "customers")
        loaded = store.replace_scope(company["id"], [
            (sync_table, [{**_customer(company, id="r1"), "created_at": stamp, "updated_at": stamp}]),
        ])
        assert loaded == 1
        assert [r["id"] for r in store.get_all("customers", company["id"])] == ["r1"]
