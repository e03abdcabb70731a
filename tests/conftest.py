"""Shared pytest fixtures and utilities for Batch Ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator
from unittest.mock import Mock

import openpyxl
import pytest

# Ensure the source package is importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from batch_ledger import cli, constants, core_logic, data_manager  # noqa: E402
from batch_ledger.data_manager import PurchaseRow  # noqa: E402
from batch_ledger.setup_excel import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
DEFAULT_USER_ID = "U-ADMIN"
BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "BusinessName = {business_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Defaults]\n"
    "DefaultUser = {default_user_id}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    default_user_id: str
    schema_version: str
    business_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an empty ledger workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "master_workbook.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        return create_master_workbook(base_dir / filename, overwrite=True)

    return _create_workbook


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        business_name: str = "Test Shop",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
        default_user_id: str = DEFAULT_USER_ID,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        workbook_path = workbook_factory(subdir=bundle_dir_name)
        data_file_entry = workbook_path.name if make_relative else str(workbook_path)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                business_name=business_name,
                schema_version=schema_version,
                default_user_id=default_user_id,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            default_user_id=default_user_id,
            schema_version=schema_version,
            business_name=business_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    context = core_logic.load_runtime_context(config_file)
    core_logic.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    return argparse.ArgumentParser(prog="ledger-cli", description="Ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    return data_manager.ConfigSettings(
        data_file=tmp_path / "master_workbook.xlsx",
        business_name="Test Shop",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        default_user_id=DEFAULT_USER_ID,
    )


@pytest.fixture
def ledger_workbook() -> openpyxl.Workbook:
    """In-memory workbook carrying every ledger sheet with its header row."""

    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for sheet_name, headers in data_manager.sheet_columns().items():
        workbook.create_sheet(title=sheet_name).append(list(headers))
    return workbook


@pytest.fixture
def store(ledger_workbook: openpyxl.Workbook) -> data_manager.WorkbookLedgerStore:
    return data_manager.WorkbookLedgerStore(ledger_workbook, clock=lambda: BASE_TIME)


@pytest.fixture
def context(
    settings: data_manager.ConfigSettings,
    ledger_workbook: openpyxl.Workbook,
    store: data_manager.WorkbookLedgerStore,
) -> core_logic.RuntimeContext:
    """Runtime context over an in-memory workbook; nothing touches the disk."""

    return core_logic.RuntimeContext(settings=settings, workbook=ledger_workbook, store=store)


@pytest.fixture
def mock_context(settings: data_manager.ConfigSettings) -> core_logic.RuntimeContext:
    """Runtime context whose store is a ``Mock`` for failure injection."""

    return core_logic.RuntimeContext(settings=settings, workbook=Mock(name="workbook"), store=Mock(name="store"))


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


@pytest.fixture
def make_purchase() -> Callable[..., PurchaseRow]:
    """Build purchase rows with sensible defaults; ``minutes`` offsets ``created_at``."""

    def _make(
        purchase_id: str,
        *,
        balance: str,
        total: str | None = None,
        cash_paid: str = "0",
        minutes: int = 0,
        customer_id: str = "C1",
        batch_id: str = "B1",
        paid_date: str | None = None,
    ) -> PurchaseRow:
        return PurchaseRow(
            purchase_id=purchase_id,
            batch_id=batch_id,
            customer_id=customer_id,
            customer_name="Ada",
            total_amount=Decimal(total if total is not None else balance),
            cash_paid=Decimal(cash_paid),
            balance=Decimal(balance),
            paid_date=paid_date,
            created_at=(BASE_TIME + timedelta(minutes=minutes)).isoformat(),
        )

    return _make


@pytest.fixture
def seeded(context: core_logic.RuntimeContext) -> dict[str, object]:
    """One batch with two sizes and one customer, created through the BLL."""

    batch = core_logic.add_batch(
        context,
        name="March Lot",
        cost_price=Decimal("400"),
        tax_rate=Decimal("10"),
        expenses=Decimal("100"),
    )
    small = core_logic.add_size(context, batch_id=batch.batch_id, size_name="S", price=Decimal("50"), stock_quantity=5)
    large = core_logic.add_size(context, batch_id=batch.batch_id, size_name="L", price=Decimal("100"), stock_quantity=10)
    customer = core_logic.add_customer(context, name="Ada", phone="555-0100")
    return {"batch": batch, "small": small, "large": large, "customer": customer}
