"""Unit tests documenting the expected behavior of the data access layer."""

from __future__ import annotations

import configparser
from decimal import Decimal
from pathlib import Path

import openpyxl
from openpyxl.workbook import Workbook as OpenpyxlWorkbook
import pytest

from batch_ledger import constants, data_manager
from batch_ledger.constants import Entity
from batch_ledger.data_manager import OrderBy, Range


# ---------------------------------------------------------------------------
# Configuration handling
# ---------------------------------------------------------------------------


def test_find_config_file_respects_explicit_path(config_file: Path):
    """Supplying an explicit path should be treated as the winning answer."""

    assert data_manager.find_config_file(config_file) == config_file


def test_find_config_file_discovers_in_parent_directory(tmp_path, monkeypatch):
    """Auto-discovery should walk up from the working directory."""

    config_path = tmp_path / "config.ini"
    config_path.write_text("[System]\nDataFile=master_workbook.xlsx")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert data_manager.find_config_file() == config_path


def test_find_config_file_raises_when_missing(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(FileNotFoundError):
        data_manager.find_config_file()


def test_read_config_loads_sections(config_file: Path):
    parser = data_manager.read_config(config_file)
    assert parser.get("System", "BusinessName") == "Test Shop"
    assert parser.get("Defaults", "DefaultUser") == "U-ADMIN"


def test_read_config_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.read_config(tmp_path / "not_there.ini")


def test_parse_settings_resolves_relative_paths(config_factory):
    """Relative DataFile entries should be anchored to the config location."""

    bundle = config_factory(make_relative=True)
    parser = configparser.ConfigParser()
    parser.read(bundle.config_path)
    settings = data_manager.parse_settings(parser, base_path=bundle.config_path.parent)

    assert settings.data_file == (bundle.config_path.parent / bundle.workbook_path.name).resolve()
    assert settings.default_user_id == "U-ADMIN"
    assert settings.business_name == "Test Shop"


def test_parse_settings_requires_expected_sections(tmp_path):
    parser = configparser.ConfigParser()
    parser.read_string("[Other]\nvalue=1")
    with pytest.raises(KeyError, match="Missing required configuration entry"):
        data_manager.parse_settings(parser, base_path=tmp_path)


# ---------------------------------------------------------------------------
# Workbook lifecycle
# ---------------------------------------------------------------------------


def test_open_workbook_returns_openpyxl_instance(workbook_factory):
    assert isinstance(data_manager.open_workbook(workbook_factory()), OpenpyxlWorkbook)


def test_open_workbook_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        data_manager.open_workbook(tmp_path / "missing.xlsx")


def test_save_workbook_persists_store_writes(workbook_factory):
    """Rows created through the store survive a save and reload."""

    path = workbook_factory()
    workbook = data_manager.open_workbook(path)
    store = data_manager.WorkbookLedgerStore(workbook)
    customer = store.create(Entity.CUSTOMER, {"name": "Ada", "phone": "555-0100"})
    data_manager.save_workbook(workbook, path)

    reloaded = data_manager.WorkbookLedgerStore(data_manager.open_workbook(path))
    assert reloaded.get(Entity.CUSTOMER, customer.customer_id) == customer


def test_refresh_workbook_discards_unsaved_changes(workbook_factory):
    path = workbook_factory()
    workbook = data_manager.open_workbook(path)
    data_manager.WorkbookLedgerStore(workbook).create(Entity.CUSTOMER, {"name": "Ada"})

    refreshed = data_manager.refresh_workbook(path)
    assert refreshed is not workbook
    assert data_manager.WorkbookLedgerStore(refreshed).count(Entity.CUSTOMER) == 0


def test_validate_workbook_layout_accepts_fresh_workbook(workbook_factory):
    data_manager.validate_workbook_layout(openpyxl.load_workbook(workbook_factory()))


def test_validate_workbook_layout_rejects_missing_sheet(workbook_factory):
    workbook = openpyxl.load_workbook(workbook_factory())
    workbook.remove(workbook[Entity.NOTIFICATION.value])
    with pytest.raises(KeyError, match="Notifications"):
        data_manager.validate_workbook_layout(workbook)


def test_validate_workbook_layout_rejects_renamed_header(workbook_factory):
    workbook = openpyxl.load_workbook(workbook_factory())
    workbook[Entity.PURCHASE.value].cell(row=1, column=7).value = "Owed"
    with pytest.raises(KeyError, match="Purchases"):
        data_manager.validate_workbook_layout(workbook)


# ---------------------------------------------------------------------------
# Naming helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "field_name, header",
    [
        ("purchase_id", "PurchaseID"),
        ("cash_paid", "CashPaid"),
        ("price_per_unit", "PricePerUnit"),
        ("is_balanced", "IsBalanced"),
    ],
)
def test_field_to_header(field_name, header):
    assert data_manager.field_to_header(field_name) == header


def test_sheet_columns_cover_every_entity():
    columns = data_manager.sheet_columns()
    assert set(columns) == {entity.value for entity in Entity}
    assert columns["Purchases"][:3] == ("PurchaseID", "BatchID", "CustomerID")


def test_generate_record_id_is_prefixed_and_unique():
    ids = {data_manager.generate_record_id("P") for _ in range(50)}
    assert len(ids) == 50
    assert all(record_id.startswith("P") for record_id in ids)


# ---------------------------------------------------------------------------
# Ledger store
# ---------------------------------------------------------------------------


def test_create_assigns_id_and_created_at(store):
    batch = store.create(Entity.BATCH, {"name": "Lot", "cost_price": "10.5", "tax_rate": 5, "expenses": None, "is_balanced": False})

    assert batch.batch_id.startswith(constants.ID_PREFIXES[Entity.BATCH])
    assert batch.created_at == "2024-03-01T09:00:00+00:00"
    assert batch.cost_price == Decimal("10.5")
    assert batch.tax_rate == Decimal("5")
    assert batch.expenses == Decimal("0")


def test_create_rejects_unknown_fields(store):
    with pytest.raises(KeyError, match="colour"):
        store.create(Entity.SIZE, {"size_name": "S", "colour": "red"})


def test_create_rejects_duplicate_explicit_id(store):
    store.create(Entity.CUSTOMER, {"customer_id": "C1", "name": "Ada"})
    with pytest.raises(ValueError, match="Duplicate"):
        store.create(Entity.CUSTOMER, {"customer_id": "C1", "name": "Grace"})


def test_get_returns_none_for_missing_record(store):
    assert store.get(Entity.PURCHASE, "P-missing") is None


def test_optional_text_round_trips_as_none(store):
    customer = store.create(Entity.CUSTOMER, {"name": "Ada", "email": ""})
    assert store.get(Entity.CUSTOMER, customer.customer_id).email is None


def test_list_filters_by_equality_and_range(store):
    for purchase_id, customer_id, balance in (("P1", "C1", "0"), ("P2", "C1", "30"), ("P3", "C2", "50")):
        store.create(
            Entity.PURCHASE,
            {"purchase_id": purchase_id, "customer_id": customer_id, "customer_name": "x", "balance": Decimal(balance)},
        )

    rows = store.list(Entity.PURCHASE, where={"customer_id": "C1", "balance": Range(gt=Decimal("0"))})
    assert [row.purchase_id for row in rows] == ["P2"]


def test_range_never_matches_none():
    assert Range(gte=0).matches(None) is False
    assert Range(gte=0, lt=10).matches(5) is True
    assert Range(lte=4).matches(5) is False


def test_list_orders_by_multiple_keys(store):
    rows = [
        ("P1", "2024-01-02", "10"),
        ("P2", "2024-01-01", "10"),
        ("P3", "2024-01-01", "20"),
    ]
    for purchase_id, created_at, total in rows:
        store.create(
            Entity.PURCHASE,
            {"purchase_id": purchase_id, "customer_name": "x", "total_amount": Decimal(total), "created_at": created_at},
        )

    ordered = store.list(Entity.PURCHASE, order_by=[OrderBy("created_at"), OrderBy("total_amount", descending=True)])
    assert [row.purchase_id for row in ordered] == ["P3", "P2", "P1"]


def test_list_rejects_unknown_filter_field(store):
    store.create(Entity.CUSTOMER, {"name": "Ada"})
    with pytest.raises(KeyError, match="Unknown filter field"):
        store.list(Entity.CUSTOMER, where={"nickname": "A"})


def test_update_merges_fields_in_place(store):
    size = store.create(Entity.SIZE, {"batch_id": "B1", "size_name": "M", "price": Decimal("20"), "stock_quantity": 4})
    store.update(Entity.SIZE, size.size_id, {"stock_quantity": 1})

    updated = store.get(Entity.SIZE, size.size_id)
    assert updated.stock_quantity == 1
    assert updated.price == Decimal("20")
    assert store.count(Entity.SIZE) == 1


def test_update_clears_optional_field_to_none(store):
    customer = store.create(Entity.CUSTOMER, {"name": "Ada", "phone": "555-0100"})
    store.update(Entity.CUSTOMER, customer.customer_id, {"phone": None})

    assert store.get(Entity.CUSTOMER, customer.customer_id).phone is None
    assert store.get(Entity.CUSTOMER, customer.customer_id).name == "Ada"


def test_update_missing_record_raises(store):
    with pytest.raises(KeyError, match="not found"):
        store.update(Entity.BATCH, "B-missing", {"is_balanced": True})


def test_update_refuses_to_change_key(store):
    customer = store.create(Entity.CUSTOMER, {"name": "Ada"})
    with pytest.raises(KeyError, match="Cannot change"):
        store.update(Entity.CUSTOMER, customer.customer_id, {"customer_id": "C-other"})


def test_delete_removes_only_the_target_row(store):
    first = store.create(Entity.CUSTOMER, {"name": "Ada"})
    second = store.create(Entity.CUSTOMER, {"name": "Grace"})

    store.delete(Entity.CUSTOMER, first.customer_id)

    assert store.get(Entity.CUSTOMER, first.customer_id) is None
    assert store.get(Entity.CUSTOMER, second.customer_id) == second


def test_count_honours_filter(store):
    store.create(Entity.BATCH, {"name": "A", "is_balanced": True})
    store.create(Entity.BATCH, {"name": "B", "is_balanced": False})
    store.create(Entity.BATCH, {"name": "C", "is_balanced": False})

    assert store.count(Entity.BATCH) == 3
    assert store.count(Entity.BATCH, where={"is_balanced": False}) == 2


def test_deserialize_row_pads_short_rows():
    binding = data_manager.BINDINGS[Entity.PURCHASE_ITEM]
    item = data_manager.deserialize_row(binding, ["I1", "P1", "S"])
    assert item.quantity == 0
    assert item.price_per_unit == Decimal("0")
    assert item.created_at == ""
