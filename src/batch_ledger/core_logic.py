"""Business logic layer for Batch Ledger.

This module orchestrates the settlement engine against the ledger store. It
consumes the Data Access Layer (DAL) for all I/O while ensuring every mutation
passes through the domain rules: purchases are validated before anything is
written, old debt is settled oldest first, and stock never drops below zero.

The store offers no cross-record transaction. Recording a purchase is a
sequence of independent writes; each one is noted in a
:class:`SettlementJournal` so a failure part-way through can be reconciled by
hand or compensated with :func:`rollback_settlement`.
"""

from __future__ import annotations

import threading
import weakref
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from openpyxl.workbook import Workbook

from . import data_manager, log, reporting, settlement
from .constants import EXPECTED_SCHEMA_VERSION, ZERO, Entity, NotificationType
from .data_manager import OrderBy, Range


class BusinessRuleViolation(Exception):
    """Raised when a requested operation violates a domain constraint."""


class MissingReferenceError(BusinessRuleViolation):
    """Raised when a referenced batch, size, customer, or purchase is unknown."""


class PurchaseValidationError(BusinessRuleViolation, ValueError):
    """Raised when a purchase request is rejected before anything is written."""


class PartialSettlementError(RuntimeError):
    """Raised when a write fails after earlier writes of the same purchase succeeded.

    Nothing is rolled back. ``journal`` lists the writes that did take effect
    and ``purchase`` holds the new purchase if it was created before the
    failure.
    """

    def __init__(self, message: str, *, journal: "SettlementJournal", purchase: Optional[data_manager.PurchaseRow] = None) -> None:
        super().__init__(message)
        self.journal = journal
        self.purchase = purchase


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, the open workbook, and the store over it."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    store: data_manager.LedgerStore = field(repr=False, compare=False)


@dataclass(frozen=True)
class PurchaseLine:
    size_id: str
    quantity: int


@dataclass(frozen=True)
class PurchaseCommand:
    """User intent for recording a purchase against a batch."""

    batch_id: str
    customer_id: str
    items: Tuple[PurchaseLine, ...]
    cash_tendered: Decimal
    recorded_by: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class JournalEntry:
    action: str
    entity: Entity
    record_id: str
    previous: Optional[Mapping[str, Any]] = None


class SettlementJournal:
    """Ordered log of the writes applied while recording one purchase."""

    def __init__(self) -> None:
        self.entries: List[JournalEntry] = []

    def __len__(self) -> int:
        return len(self.entries)

    def record_update(self, entity: Entity, record_id: str, previous: Mapping[str, Any]) -> None:
        self.entries.append(JournalEntry("update", entity, record_id, dict(previous)))

    def record_create(self, entity: Entity, record_id: str) -> None:
        self.entries.append(JournalEntry("create", entity, record_id))

    def describe(self) -> str:
        if not self.entries:
            return "no writes applied"
        return "; ".join(f"{entry.action} {entry.entity.value}:{entry.record_id}" for entry in self.entries)


@dataclass(frozen=True)
class DashboardSummary:
    total_revenue: Decimal
    total_profit: Decimal
    total_outstanding: Decimal
    customer_count: int
    active_batches: int


_STORE_LOCKS: "weakref.WeakKeyDictionary[Any, threading.RLock]" = weakref.WeakKeyDictionary()
_STORE_LOCKS_GUARD = threading.Lock()


def _store_lock(store: data_manager.LedgerStore) -> threading.RLock:
    """Return the lock serializing purchase recording against ``store`` in this process.

    Purchases by different customers still share sizes and worksheets, so the
    lock is held per store rather than per customer. Entries disappear with
    the store.
    """

    with _STORE_LOCKS_GUARD:
        lock = _STORE_LOCKS.get(store)
        if lock is None:
            lock = _STORE_LOCKS[store] = threading.RLock()
        return lock


def _resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` or the current UTC time when it is ``None``."""

    return candidate if candidate is not None else datetime.now(UTC)


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the BLL.

    Resolves ``config.ini``, parses settings, opens the workbook, checks its
    sheet layout, and wraps it in a :class:`~batch_ledger.data_manager.WorkbookLedgerStore`.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer searches upward from the current
            working directory.

    Returns:
        RuntimeContext: Context ready for orchestration functions.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options or sheets are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    data_manager.validate_workbook_layout(workbook)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return RuntimeContext(settings=settings, workbook=workbook, store=data_manager.WorkbookLedgerStore(workbook))


def ensure_schema_version(context: RuntimeContext) -> None:
    """Refuse to work on a workbook declared with a different schema version.

    Raises:
        RuntimeError: If ``config.ini`` declares a version other than
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Save the workbook to the configured data file."""
    data_manager.save_workbook(context.workbook, destination=context.settings.data_file)
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook from disk, dropping unsaved modifications.

    Returns:
        RuntimeContext: Fresh context with a newly opened workbook and store.

    Raises:
        FileNotFoundError: If the backing workbook cannot be reloaded.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return RuntimeContext(settings=context.settings, workbook=workbook, store=data_manager.WorkbookLedgerStore(workbook))


def require_positive_quantity(quantity: int) -> None:
    """Validate that a line quantity is a whole number above zero.

    Raises:
        ValueError: If ``quantity`` is not an integer or is zero or negative.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        log.error("Quantity validation failed: %s", quantity)
        raise ValueError("Quantity must be a whole number greater than zero")


def require_nonnegative_money(amount: Decimal) -> None:
    """Validate that a monetary value is zero or positive.

    Raises:
        ValueError: If ``amount`` is less than zero or not a finite number.
    """
    if not Decimal(amount).is_finite() or amount < ZERO:
        log.error("Monetary value validation failed: %s", amount)
        raise ValueError("Amount must be zero or positive")


def require_text(value: Optional[str], label: str) -> str:
    """Return ``value`` stripped, rejecting blanks with :class:`ValueError`."""
    cleaned = (value or "").strip()
    if not cleaned:
        log.error("%s is required", label)
        raise ValueError(f"{label} is required")
    return cleaned


def validate_purchase_command(command: PurchaseCommand) -> None:
    """Reject purchase requests that must never reach the allocator.

    Raises:
        PurchaseValidationError: When no customer is selected, the item list is
            empty, a quantity is not a positive integer, or the cash tendered
            is negative or not finite.
    """
    if not command.customer_id:
        log.error("Purchase rejected: no customer selected")
        raise PurchaseValidationError("Select a customer")
    if not command.items:
        log.error("Purchase rejected: no items for customer '%s'", command.customer_id)
        raise PurchaseValidationError("Add at least one item")
    for line in command.items:
        try:
            require_positive_quantity(line.quantity)
        except ValueError as exc:
            raise PurchaseValidationError(f"Invalid quantity for size '{line.size_id}': {line.quantity}") from exc
    try:
        require_nonnegative_money(command.cash_tendered)
    except ValueError as exc:
        raise PurchaseValidationError(f"Cash tendered must be a finite amount of zero or more: {command.cash_tendered}") from exc


def _require(record: Optional[Any], label: str, record_id: str) -> Any:
    if record is None:
        log.warning("%s lookup failed for id '%s'", label, record_id)
        raise MissingReferenceError(f"Unknown {label.lower()} id: {record_id}")
    return record


def get_batch(context: RuntimeContext, batch_id: str) -> data_manager.BatchRow:
    """Resolve a batch or raise :class:`MissingReferenceError`."""
    return _require(context.store.get(Entity.BATCH, batch_id), "Batch", batch_id)


def get_size(context: RuntimeContext, size_id: str) -> data_manager.SizeRow:
    return _require(context.store.get(Entity.SIZE, size_id), "Size", size_id)


def get_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    return _require(context.store.get(Entity.CUSTOMER, customer_id), "Customer", customer_id)


def get_purchase(context: RuntimeContext, purchase_id: str) -> data_manager.PurchaseRow:
    return _require(context.store.get(Entity.PURCHASE, purchase_id), "Purchase", purchase_id)


def list_sizes(context: RuntimeContext, batch_id: str) -> List[data_manager.SizeRow]:
    return context.store.list(Entity.SIZE, where={"batch_id": batch_id}, order_by=OrderBy("created_at"))


def list_purchases(
    context: RuntimeContext,
    *,
    batch_id: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> List[data_manager.PurchaseRow]:
    """List purchases newest first, optionally narrowed to a batch and/or customer."""
    where: Dict[str, Any] = {}
    if batch_id:
        where["batch_id"] = batch_id
    if customer_id:
        where["customer_id"] = customer_id
    return context.store.list(Entity.PURCHASE, where=where, order_by=OrderBy("created_at", descending=True))


def list_notifications(context: RuntimeContext) -> List[data_manager.NotificationRow]:
    return context.store.list(Entity.NOTIFICATION, order_by=OrderBy("created_at", descending=True))


def compute_outstanding_balance(context: RuntimeContext, customer_id: Optional[str]) -> Decimal:
    """Sum the balance of every purchase the customer has made, across all batches.

    The store is read on every call so the figure always reflects persisted
    state. A missing id or a customer without purchases yields zero.
    """
    if not customer_id:
        return ZERO
    purchases = context.store.list(Entity.PURCHASE, where={"customer_id": customer_id})
    total = settlement.sum_balances(purchases)
    log.debug("Outstanding balance for customer '%s': %s over %d purchase(s)", customer_id, total, len(purchases))
    return total


def allocate_payment(
    context: RuntimeContext,
    customer_id: str,
    cash_tendered: Decimal,
    new_order_total: Decimal,
    *,
    now: Optional[datetime] = None,
) -> settlement.AllocationPlan:
    """Plan how ``cash_tendered`` settles the customer's debt and a new order.

    Reads the customer's purchases with a positive balance, oldest first, and
    hands them to :func:`batch_ledger.settlement.plan_allocation`. Nothing is
    written.

    Raises:
        ValueError: If either amount is negative.
    """
    outstanding: Sequence[data_manager.PurchaseRow] = []
    if cash_tendered > ZERO:
        outstanding = context.store.list(
            Entity.PURCHASE,
            where={"customer_id": customer_id, "balance": Range(gt=ZERO)},
            order_by=OrderBy("created_at"),
        )
    return settlement.plan_allocation(
        outstanding,
        cash_tendered,
        new_order_total,
        now=_resolve_timestamp(now),
    )


def _apply_update(
    context: RuntimeContext,
    journal: SettlementJournal,
    entity: Entity,
    record: Any,
    record_id: str,
    fields: Mapping[str, Any],
) -> None:
    previous = {name: getattr(record, name) for name in fields}
    context.store.update(entity, record_id, fields)
    journal.record_update(entity, record_id, previous)


def _apply_create(context: RuntimeContext, journal: SettlementJournal, entity: Entity, fields: Mapping[str, Any]) -> Any:
    record = context.store.create(entity, fields)
    journal.record_create(entity, getattr(record, data_manager.BINDINGS[entity].key_field))
    return record


def record_purchase(context: RuntimeContext, command: PurchaseCommand) -> data_manager.PurchaseRow:
    """Validate, allocate, and persist a purchase for a customer.

    The workflow rejects malformed requests, resolves the batch, customer, and
    sizes, prices the order at the sizes' current prices, and plans how the
    cash tendered is split between old debt and the new order. It then writes,
    in order: the updated old purchases, a notification when any debt was
    cleared, the new purchase, one item per line with its price snapshot, and
    one stock decrement per distinct size (clamped at zero).

    Lookups, allocation, and writes against the same store are serialized
    within this process. Writes are not transactional: on failure the journal of applied
    writes is logged and attached to the raised error.

    Args:
        context (RuntimeContext): Runtime context providing the store.
        command (PurchaseCommand): Structured purchase intent.

    Returns:
        data_manager.PurchaseRow: The newly created purchase.

    Raises:
        PurchaseValidationError: If the request fails validation.
        MissingReferenceError: If the batch, customer, or a size is unknown.
        BusinessRuleViolation: If a size belongs to another batch.
        PartialSettlementError: If a write fails after validation passed.
    """
    validate_purchase_command(command)
    now = _resolve_timestamp(command.timestamp)
    stamp = now.isoformat()

    # Sizes are read under the lock so stock decrements start from current counts.
    with _store_lock(context.store):
        batch = get_batch(context, command.batch_id)
        customer = get_customer(context, command.customer_id)

        sizes: Dict[str, data_manager.SizeRow] = {}
        ordered: Dict[str, int] = {}
        for line in command.items:
            size = sizes.get(line.size_id) or get_size(context, line.size_id)
            if size.batch_id != batch.batch_id:
                log.warning("Size '%s' belongs to batch '%s', not '%s'", size.size_id, size.batch_id, batch.batch_id)
                raise BusinessRuleViolation(f"Size '{size.size_id}' does not belong to batch '{batch.batch_id}'")
            sizes[size.size_id] = size
            ordered[size.size_id] = ordered.get(size.size_id, 0) + line.quantity

        order_total = sum((sizes[line.size_id].price * line.quantity for line in command.items), ZERO)
        previous_balance = compute_outstanding_balance(context, customer.customer_id)
        plan = allocate_payment(context, customer.customer_id, command.cash_tendered, order_total, now=now)
        log.info(
            "Recording purchase for customer '%s' on batch '%s' (total=%s, cash=%s, prior debt=%s)",
            customer.customer_id,
            batch.batch_id,
            order_total,
            command.cash_tendered,
            previous_balance,
        )

        journal = SettlementJournal()
        purchase: Optional[data_manager.PurchaseRow] = None
        try:
            if plan.cleared_purchase_updates:
                outstanding = {
                    row.purchase_id: row
                    for row in context.store.list(Entity.PURCHASE, where={"customer_id": customer.customer_id})
                }
                for update in plan.cleared_purchase_updates:
                    _apply_update(
                        context,
                        journal,
                        Entity.PURCHASE,
                        outstanding[update.purchase_id],
                        update.purchase_id,
                        update.as_fields(),
                    )

            if plan.cleared_count > 0:
                _apply_create(
                    context,
                    journal,
                    Entity.NOTIFICATION,
                    {
                        "user_id": command.recorded_by or context.settings.default_user_id,
                        "title": "Payment Cleared",
                        "message": f"{plan.cleared_count} old debt(s) cleared for {customer.name}.",
                        "notification_type": NotificationType.SUCCESS.value,
                        "is_read": False,
                        "created_at": stamp,
                    },
                )

            purchase = _apply_create(
                context,
                journal,
                Entity.PURCHASE,
                {
                    "batch_id": batch.batch_id,
                    "customer_id": customer.customer_id,
                    "customer_name": customer.name,
                    "created_at": stamp,
                    **plan.new_purchase_fields.as_fields(),
                },
            )

            for line in command.items:
                size = sizes[line.size_id]
                _apply_create(
                    context,
                    journal,
                    Entity.PURCHASE_ITEM,
                    {
                        "purchase_id": purchase.purchase_id,
                        "size_name": size.size_name,
                        "quantity": line.quantity,
                        "price_per_unit": size.price,
                        "created_at": stamp,
                    },
                )

            for size_id, quantity in ordered.items():
                size = sizes[size_id]
                if quantity > size.stock_quantity:
                    log.warning(
                        "Stock shortfall on size '%s': ordered %d, on hand %d; clamping to zero",
                        size_id,
                        quantity,
                        size.stock_quantity,
                    )
                _apply_update(
                    context,
                    journal,
                    Entity.SIZE,
                    size,
                    size_id,
                    {"stock_quantity": max(0, size.stock_quantity - quantity)},
                )
        except Exception as exc:
            log.error(
                "Purchase for customer '%s' failed after %d write(s): %s. Applied: %s",
                customer.customer_id,
                len(journal),
                exc,
                journal.describe(),
            )
            raise PartialSettlementError(
                f"Recording purchase failed after {len(journal)} write(s): {exc}",
                journal=journal,
                purchase=purchase,
            ) from exc

    log.info(
        "Recorded purchase '%s' (paid=%s, balance=%s); settled %s of old debt, cleared %d purchase(s)",
        purchase.purchase_id,
        purchase.cash_paid,
        purchase.balance,
        plan.applied_to_debt,
        plan.cleared_count,
    )
    return purchase


def rollback_settlement(context: RuntimeContext, error: PartialSettlementError) -> int:
    """Compensate the writes recorded in ``error.journal``, newest first.

    Updates get their previous field values back and created records are
    deleted. Every entry is attempted even if an earlier one fails.

    Returns:
        int: Number of journal entries compensated.

    Raises:
        RuntimeError: If any compensation failed; the message lists them.
    """
    failures: List[str] = []
    compensated = 0
    for entry in reversed(error.journal.entries):
        try:
            if entry.action == "update":
                context.store.update(entry.entity, entry.record_id, entry.previous or {})
            else:
                context.store.delete(entry.entity, entry.record_id)
            compensated += 1
        except Exception as exc:
            log.error("Compensation failed for %s %s:%s: %s", entry.action, entry.entity.value, entry.record_id, exc)
            failures.append(f"{entry.entity.value}:{entry.record_id}")
    if failures:
        raise RuntimeError(f"Rollback incomplete; manual reconciliation needed for {', '.join(failures)}")
    log.info("Rolled back %d write(s) of a failed purchase", compensated)
    return compensated


def generate_batch_reports(context: RuntimeContext) -> List[reporting.BatchReport]:
    """Build profitability reports for every batch, newest batch first."""
    try:
        batches = context.store.list(Entity.BATCH, order_by=OrderBy("created_at", descending=True))
        purchases = context.store.list(Entity.PURCHASE)
    except Exception as exc:
        log.error("Failed to load data for batch reports: %s", exc)
        raise
    reports = reporting.build_batch_reports(batches, purchases)
    log.debug("Generated %d batch report(s)", len(reports))
    return reports


def customer_size_report(context: RuntimeContext, customer_id: str) -> List[reporting.SizeSummary]:
    """Summarize what a customer has bought per size, at the prices paid."""
    get_customer(context, customer_id)
    purchases = context.store.list(Entity.PURCHASE, where={"customer_id": customer_id})
    items = context.store.list(Entity.PURCHASE_ITEM)
    return reporting.summarize_customer_sizes(purchases, items)


def dashboard_summary(context: RuntimeContext) -> DashboardSummary:
    """Headline figures: revenue, profit, unpaid balances, customers, active batches."""
    purchases = context.store.list(Entity.PURCHASE)
    batches = context.store.list(Entity.BATCH)
    reports = reporting.build_batch_reports(batches, purchases)
    totals = reporting.summarize_reports(reports)
    return DashboardSummary(
        total_revenue=sum((purchase.total_amount for purchase in purchases), ZERO),
        total_profit=totals.total_profit,
        total_outstanding=settlement.sum_balances(purchases),
        customer_count=context.store.count(Entity.CUSTOMER),
        active_batches=context.store.count(Entity.BATCH, where={"is_balanced": False}),
    )


def add_batch(
    context: RuntimeContext,
    *,
    name: str,
    cost_price: Decimal,
    tax_rate: Decimal,
    expenses: Decimal,
) -> data_manager.BatchRow:
    """Create a batch; it starts out not balanced."""
    cleaned = require_text(name, "Batch name")
    for amount in (cost_price, tax_rate, expenses):
        require_nonnegative_money(amount)
    batch = context.store.create(
        Entity.BATCH,
        {"name": cleaned, "cost_price": cost_price, "tax_rate": tax_rate, "expenses": expenses, "is_balanced": False},
    )
    log.info("Added batch '%s' (%s)", batch.batch_id, batch.name)
    return batch


def add_size(
    context: RuntimeContext,
    *,
    batch_id: str,
    size_name: str,
    price: Decimal,
    stock_quantity: int,
) -> data_manager.SizeRow:
    get_batch(context, batch_id)
    cleaned = require_text(size_name, "Size name")
    require_nonnegative_money(price)
    if isinstance(stock_quantity, bool) or not isinstance(stock_quantity, int) or stock_quantity < 0:
        raise ValueError("Stock quantity must be a whole number of zero or more")
    size = context.store.create(
        Entity.SIZE,
        {"batch_id": batch_id, "size_name": cleaned, "price": price, "stock_quantity": stock_quantity},
    )
    log.info("Added size '%s' (%s) to batch '%s'", size.size_id, size.size_name, batch_id)
    return size


def add_customer(
    context: RuntimeContext,
    *,
    name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
) -> data_manager.CustomerRow:
    cleaned = require_text(name, "Customer name")
    customer = context.store.create(
        Entity.CUSTOMER,
        {"name": cleaned, "phone": phone, "email": email, "address": address},
    )
    log.info("Added customer '%s' (%s)", customer.customer_id, customer.name)
    return customer


def set_batch_balanced(context: RuntimeContext, batch_id: str, balanced: bool = True) -> data_manager.BatchRow:
    """Flip the administrator-controlled ``is_balanced`` flag on a batch."""
    get_batch(context, batch_id)
    context.store.update(Entity.BATCH, batch_id, {"is_balanced": balanced})
    log.info("Marked batch '%s' as %s", batch_id, "balanced" if balanced else "active")
    return get_batch(context, batch_id)


def update_batch(
    context: RuntimeContext,
    batch_id: str,
    *,
    name: Optional[str] = None,
    cost_price: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
    expenses: Optional[Decimal] = None,
) -> data_manager.BatchRow:
    """Edit the descriptive and cost fields of a batch; ``None`` leaves a field unchanged.

    Reports read these fields on every call, so edits apply retroactively to
    the batch's profit, tax, and tithe.

    Raises:
        MissingReferenceError: If the batch is unknown.
        ValueError: If a supplied name is blank or an amount is negative.
    """
    get_batch(context, batch_id)
    changes: Dict[str, Any] = {}
    if name is not None:
        changes["name"] = require_text(name, "Batch name")
    for label, amount in (("cost_price", cost_price), ("tax_rate", tax_rate), ("expenses", expenses)):
        if amount is not None:
            require_nonnegative_money(amount)
            changes[label] = amount
    if changes:
        context.store.update(Entity.BATCH, batch_id, changes)
        log.info("Updated batch '%s' fields: %s", batch_id, ", ".join(changes))
    return get_batch(context, batch_id)


def delete_batch(context: RuntimeContext, batch_id: str) -> None:
    """Delete a batch record. Its sizes and purchases are left in place.

    Purchases of a deleted batch still count towards customer balances and
    are skipped by batch reports.
    """
    get_batch(context, batch_id)
    context.store.delete(Entity.BATCH, batch_id)
    remaining = context.store.count(Entity.PURCHASE, where={"batch_id": batch_id})
    if remaining:
        log.warning("Deleted batch '%s' still has %d purchase(s) on record", batch_id, remaining)
    log.info("Deleted batch '%s'", batch_id)


def delete_purchase(context: RuntimeContext, purchase_id: str) -> None:
    """Delete a purchase record. Its items and any stock movement are left as they are."""
    purchase = get_purchase(context, purchase_id)
    context.store.delete(Entity.PURCHASE, purchase_id)
    log.info(
        "Deleted purchase '%s' of customer '%s' (outstanding balance %s dropped)",
        purchase_id,
        purchase.customer_id,
        purchase.balance,
    )
