"""Enumerations and fixed rates shared across Batch Ledger modules.

The data access layer, the settlement engine, reporting, and the CLI all read
their identifiers from here so sheet names and status labels stay consistent.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Workbook layout version expected by every layer.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Share of positive batch profit set aside as tithe.
TITHE_RATE = Decimal("0.10")

ZERO = Decimal("0")


class Entity(str, Enum):
    """Enumerate the record types held by the ledger store.

    Each member's value is the worksheet that stores it.
    """

    BATCH = "Batches"
    SIZE = "Sizes"
    CUSTOMER = "Customers"
    PURCHASE = "Purchases"
    PURCHASE_ITEM = "PurchaseItems"
    NOTIFICATION = "Notifications"


class SettlementStatus(str, Enum):
    """Derived payment state of a single purchase."""

    PAID = "Paid"
    PARTIAL = "Partial"
    UNPAID = "Unpaid"


class NotificationType(str, Enum):
    """Severity tags stored on notification records."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"


# Prefixes used when the store generates record identifiers.
ID_PREFIXES = {
    Entity.BATCH: "B",
    Entity.SIZE: "Z",
    Entity.CUSTOMER: "C",
    Entity.PURCHASE: "P",
    Entity.PURCHASE_ITEM: "I",
    Entity.NOTIFICATION: "N",
}


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "TITHE_RATE",
    "ZERO",
    "Entity",
    "SettlementStatus",
    "NotificationType",
    "ID_PREFIXES",
]
