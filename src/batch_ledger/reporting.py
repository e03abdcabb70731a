"""Batch profitability and purchase roll-ups.

Pure functions over rows already read from the ledger store. A batch report
follows the bookkeeping used by the business:

* ``revenue`` is the sum of ``total_amount`` over the batch's purchases,
  whether or not they have been paid.
* ``tax`` is ``revenue * tax_rate / 100``.
* ``profit`` is ``revenue - cost_price - expenses - tax``.
* ``tithe`` is ``TITHE_RATE`` of a positive profit, otherwise zero.
* ``margin`` is profit as a percentage of revenue, zero when nothing was sold.

``is_balanced`` is copied from the batch; it is toggled by an administrator and
never derived here.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from . import log
from .constants import TITHE_RATE, ZERO
from .data_manager import BatchRow, PurchaseItemRow, PurchaseRow


HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BatchReport:
    batch_id: str
    name: str
    revenue: Decimal
    cost: Decimal
    expenses: Decimal
    tax: Decimal
    profit: Decimal
    tithe: Decimal
    margin: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class PortfolioSummary:
    """Totals across several batch reports.

    ``total_expenses`` folds each batch's tax into its flat expenses.
    """

    total_revenue: Decimal
    total_profit: Decimal
    total_tithe: Decimal
    total_expenses: Decimal
    batch_count: int
    balanced_count: int


@dataclass(frozen=True)
class SizeSummary:
    size_name: str
    total_quantity: int
    total_spent: Decimal


def compute_batch_report(batch: BatchRow, purchases: Iterable[PurchaseRow]) -> BatchReport:
    """Derive revenue, tax, profit, tithe, and margin for ``batch``.

    Args:
        batch (BatchRow): Batch supplying cost, expenses, and tax rate.
        purchases (Iterable[PurchaseRow]): Purchases recorded against the
            batch. The caller is responsible for the filtering.

    Returns:
        BatchReport: Figures for the batch. Negative profit yields a zero tithe
            and a negative margin.
    """

    revenue = sum((purchase.total_amount for purchase in purchases), ZERO)
    tax = revenue * batch.tax_rate / HUNDRED
    profit = revenue - batch.cost_price - batch.expenses - tax
    tithe = profit * TITHE_RATE if profit > ZERO else ZERO
    margin = profit / revenue * HUNDRED if revenue > ZERO else ZERO
    return BatchReport(
        batch_id=batch.batch_id,
        name=batch.name,
        revenue=revenue,
        cost=batch.cost_price,
        expenses=batch.expenses,
        tax=tax,
        profit=profit,
        tithe=tithe,
        margin=margin,
        is_balanced=batch.is_balanced,
    )


def build_batch_reports(batches: Sequence[BatchRow], purchases: Iterable[PurchaseRow]) -> List[BatchReport]:
    """Report every batch in ``batches`` order, grouping ``purchases`` by batch id.

    Purchases pointing at a batch that is not in ``batches`` are ignored.
    """

    by_batch: Dict[str, List[PurchaseRow]] = defaultdict(list)
    for purchase in purchases:
        by_batch[purchase.batch_id].append(purchase)

    known = {batch.batch_id for batch in batches}
    orphaned = sum(len(rows) for batch_id, rows in by_batch.items() if batch_id not in known)
    if orphaned:
        log.warning("Ignoring %d purchase(s) whose batch no longer exists", orphaned)

    return [compute_batch_report(batch, by_batch.get(batch.batch_id, [])) for batch in batches]


def summarize_reports(reports: Sequence[BatchReport]) -> PortfolioSummary:
    return PortfolioSummary(
        total_revenue=sum((report.revenue for report in reports), ZERO),
        total_profit=sum((report.profit for report in reports), ZERO),
        total_tithe=sum((report.tithe for report in reports), ZERO),
        total_expenses=sum((report.expenses + report.tax for report in reports), ZERO),
        batch_count=len(reports),
        balanced_count=sum(1 for report in reports if report.is_balanced),
    )


def summarize_customer_sizes(
    purchases: Iterable[PurchaseRow],
    items: Iterable[PurchaseItemRow],
) -> List[SizeSummary]:
    """Aggregate a customer's purchase items per size name.

    Uses the price captured on each item, so later price edits on the size do
    not change the history. Sizes appear in the order they were first seen.
    """

    purchase_ids = {purchase.purchase_id for purchase in purchases}
    quantities: Dict[str, int] = {}
    spent: Dict[str, Decimal] = {}
    for item in items:
        if item.purchase_id not in purchase_ids:
            continue
        quantities[item.size_name] = quantities.get(item.size_name, 0) + item.quantity
        spent[item.size_name] = spent.get(item.size_name, ZERO) + item.price_per_unit * item.quantity

    return [
        SizeSummary(size_name=name, total_quantity=quantities[name], total_spent=spent[name])
        for name in quantities
    ]
