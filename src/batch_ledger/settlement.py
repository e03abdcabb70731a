"""Balance calculation and payment allocation.

Everything here is a pure function of purchase rows already read from the
ledger store. :mod:`batch_ledger.core_logic` fetches the rows, calls into this
module, and persists the resulting plan.

Allocation works oldest debt first: a single cash payment clears the
customer's earliest outstanding purchases in creation order, and whatever is
left over goes towards the new order. Cash beyond both is reported back as
``unapplied_cash`` and is not credited anywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import log
from .constants import ZERO, SettlementStatus
from .data_manager import PurchaseRow


@dataclass(frozen=True)
class PurchaseUpdate:
    """New payment state for one outstanding purchase touched by an allocation."""

    purchase_id: str
    payment: Decimal
    cash_paid: Decimal
    balance: Decimal
    paid_date: Optional[str]
    cleared: bool

    def as_fields(self) -> Dict[str, Any]:
        return {"cash_paid": self.cash_paid, "balance": self.balance, "paid_date": self.paid_date}


@dataclass(frozen=True)
class NewPurchaseFields:
    """Initial payment state of the purchase being recorded."""

    total_amount: Decimal
    cash_paid: Decimal
    balance: Decimal
    paid_date: Optional[str]

    def as_fields(self) -> Dict[str, Any]:
        return {
            "total_amount": self.total_amount,
            "cash_paid": self.cash_paid,
            "balance": self.balance,
            "paid_date": self.paid_date,
        }


@dataclass(frozen=True)
class AllocationPlan:
    """Result of apportioning one cash payment.

    ``cleared_purchase_updates`` lists every old purchase the payment reached,
    in allocation order, whether it was fully cleared or only partly paid;
    ``cleared_count`` counts the ones whose balance reached zero.
    """

    cleared_purchase_updates: Tuple[PurchaseUpdate, ...]
    cleared_count: int
    new_purchase_fields: NewPurchaseFields
    applied_to_debt: Decimal
    unapplied_cash: Decimal


def sum_balances(purchases: Iterable[PurchaseRow]) -> Decimal:
    """Return the total outstanding balance across ``purchases``.

    The result does not depend on the order the rows are supplied in.
    """

    return sum((purchase.balance for purchase in purchases), ZERO)


def settlement_status(purchase: PurchaseRow) -> SettlementStatus:
    """Derive the paid/partial/unpaid state of a single purchase."""

    if purchase.balance <= ZERO:
        return SettlementStatus.PAID
    if purchase.cash_paid > ZERO:
        return SettlementStatus.PARTIAL
    return SettlementStatus.UNPAID


def oldest_first(purchases: Iterable[PurchaseRow]) -> List[PurchaseRow]:
    """Keep purchases with a positive balance, ordered by creation time.

    Ties on ``created_at`` fall back to ``purchase_id`` so the order is total.
    """

    outstanding = [purchase for purchase in purchases if purchase.balance > ZERO]
    return sorted(outstanding, key=lambda purchase: (purchase.created_at, purchase.purchase_id))


def plan_allocation(
    outstanding: Sequence[PurchaseRow],
    cash_tendered: Decimal,
    new_order_total: Decimal,
    *,
    now: datetime,
) -> AllocationPlan:
    """Apportion ``cash_tendered`` between old debt and a new order.

    Args:
        outstanding (Sequence[PurchaseRow]): The customer's purchases. Rows
            with no balance are ignored and the rest are settled oldest first
            regardless of the order supplied.
        cash_tendered (Decimal): Cash handed over by the customer.
        new_order_total (Decimal): Total of the order being recorded.
        now (datetime): Moment stamped as ``paid_date`` on anything the
            payment clears.

    Returns:
        AllocationPlan: Updates for the old purchases, the cleared count, the
            initial fields of the new purchase, and the cash split.

    Raises:
        ValueError: If ``cash_tendered`` or ``new_order_total`` is negative.
    """

    if cash_tendered < ZERO:
        raise ValueError("Cash tendered must be zero or positive")
    if new_order_total < ZERO:
        raise ValueError("Order total must be zero or positive")

    stamp = now.isoformat()
    remaining = cash_tendered
    updates: List[PurchaseUpdate] = []

    if remaining > ZERO:
        for purchase in oldest_first(outstanding):
            if remaining <= ZERO:
                break
            due = purchase.balance
            payment = min(remaining, due)
            balance = due - payment
            cleared = balance == ZERO
            updates.append(
                PurchaseUpdate(
                    purchase_id=purchase.purchase_id,
                    payment=payment,
                    cash_paid=purchase.cash_paid + payment,
                    balance=balance,
                    paid_date=stamp if cleared else purchase.paid_date,
                    cleared=cleared,
                )
            )
            remaining -= payment

    applied_to_debt = cash_tendered - remaining
    applied_to_new = min(remaining, new_order_total)
    new_balance = max(ZERO, new_order_total - remaining)
    unapplied = remaining - applied_to_new

    plan = AllocationPlan(
        cleared_purchase_updates=tuple(updates),
        cleared_count=sum(1 for update in updates if update.cleared),
        new_purchase_fields=NewPurchaseFields(
            total_amount=new_order_total,
            cash_paid=applied_to_new,
            balance=new_balance,
            paid_date=stamp if new_balance == ZERO else None,
        ),
        applied_to_debt=applied_to_debt,
        unapplied_cash=unapplied,
    )
    log.debug(
        "Planned allocation: cash=%s debt=%s new=%s unapplied=%s touched=%d cleared=%d",
        cash_tendered,
        applied_to_debt,
        applied_to_new,
        unapplied,
        len(updates),
        plan.cleared_count,
    )
    if unapplied > ZERO:
        log.warning("Cash tendered exceeds debt and order total; %s left unapplied", unapplied)
    return plan
