"""Unit tests for batch profitability and customer size roll-ups."""

from __future__ import annotations

from decimal import Decimal

from batch_ledger import reporting
from batch_ledger.data_manager import BatchRow, PurchaseItemRow


def _batch(batch_id="B1", *, cost="400", tax_rate="10", expenses="100", balanced=False) -> BatchRow:
    return BatchRow(
        batch_id=batch_id,
        name=f"Lot {batch_id}",
        cost_price=Decimal(cost),
        tax_rate=Decimal(tax_rate),
        expenses=Decimal(expenses),
        is_balanced=balanced,
        created_at="2024-01-01T00:00:00+00:00",
    )


def _item(purchase_id, size_name, quantity, price) -> PurchaseItemRow:
    return PurchaseItemRow(
        item_id=f"I-{purchase_id}-{size_name}",
        purchase_id=purchase_id,
        size_name=size_name,
        quantity=quantity,
        price_per_unit=Decimal(price),
        created_at="2024-01-01T00:00:00+00:00",
    )


def test_batch_report_figures(make_purchase):
    """Revenue 1000, cost 400, expenses 100 at 10% tax gives profit 400 and tithe 40."""

    purchases = [make_purchase("P1", balance="0", total="600"), make_purchase("P2", balance="400", total="400")]

    report = reporting.compute_batch_report(_batch(), purchases)

    assert report.revenue == Decimal("1000")
    assert report.tax == Decimal("100")
    assert report.profit == Decimal("400")
    assert report.tithe == Decimal("40")
    assert report.margin == Decimal("40")


def test_revenue_counts_unpaid_purchases(make_purchase):
    report = reporting.compute_batch_report(_batch(cost="0", expenses="0", tax_rate="0"), [make_purchase("P1", balance="250")])
    assert report.revenue == Decimal("250")
    assert report.profit == Decimal("250")


def test_loss_has_no_tithe_and_negative_margin(make_purchase):
    report = reporting.compute_batch_report(_batch(), [make_purchase("P1", balance="0", total="200")])

    assert report.profit == Decimal("-320")
    assert report.tithe == Decimal("0")
    assert report.margin < 0


def test_batch_without_sales_has_zero_margin():
    report = reporting.compute_batch_report(_batch(), [])
    assert report.revenue == Decimal("0")
    assert report.margin == Decimal("0")
    assert report.profit == Decimal("-500")


def test_build_batch_reports_groups_by_batch(make_purchase, caplog):
    caplog.set_level("WARNING")
    purchases = [
        make_purchase("P1", balance="0", total="100", batch_id="B1"),
        make_purchase("P2", balance="0", total="300", batch_id="B2"),
        make_purchase("P3", balance="0", total="50", batch_id="B1"),
        make_purchase("P4", balance="0", total="999", batch_id="B-gone"),
    ]

    reports = reporting.build_batch_reports([_batch("B2"), _batch("B1")], purchases)

    assert [(report.batch_id, report.revenue) for report in reports] == [
        ("B2", Decimal("300")),
        ("B1", Decimal("150")),
    ]
    assert any("no longer exists" in record.getMessage() for record in caplog.records)


def test_summarize_reports_folds_tax_into_expenses(make_purchase):
    reports = reporting.build_batch_reports(
        [_batch("B1"), _batch("B2", balanced=True)],
        [make_purchase("P1", balance="0", total="1000", batch_id="B1")],
    )

    summary = reporting.summarize_reports(reports)

    assert summary.total_revenue == Decimal("1000")
    assert summary.total_profit == Decimal("400") + Decimal("-500")
    assert summary.total_tithe == Decimal("40")
    assert summary.total_expenses == Decimal("100") + Decimal("100") + Decimal("100")
    assert (summary.batch_count, summary.balanced_count) == (2, 1)


def test_customer_sizes_use_captured_prices(make_purchase):
    purchases = [make_purchase("P1", balance="0"), make_purchase("P2", balance="0")]
    items = [
        _item("P1", "M", 2, "10"),
        _item("P2", "L", 1, "15"),
        _item("P2", "M", 3, "12"),
        _item("P-other", "M", 100, "1"),
    ]

    summaries = reporting.summarize_customer_sizes(purchases, items)

    assert [(s.size_name, s.total_quantity, s.total_spent) for s in summaries] == [
        ("M", 5, Decimal("56")),
        ("L", 1, Decimal("15")),
    ]
