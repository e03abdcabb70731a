"""Data access layer for Batch Ledger.

This module owns every read and write against the ``master_workbook.xlsx``
workbook. Business rules belong elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. The ledger store: a generic, entity-keyed record store (get, filtered and
   ordered list, create, update, delete, count) that the settlement engine
   consumes through the :class:`LedgerStore` protocol. The workbook-backed
   implementation keeps one sheet per :class:`~batch_ledger.constants.Entity`.
"""


from __future__ import annotations

import configparser
import uuid
from dataclasses import asdict, dataclass, fields as dataclass_fields
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence, Tuple, Union, get_type_hints

from openpyxl.workbook import Workbook
import openpyxl

from . import log
from .constants import ID_PREFIXES, Entity


CONFIG_FILE_NAME = "config.ini"


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    business_name: str
    schema_version: str
    default_user_id: str


@dataclass(frozen=True)
class BatchRow:
    """In-memory view of a row from the ``Batches`` sheet."""

    batch_id: str
    name: str
    cost_price: Decimal
    tax_rate: Decimal
    expenses: Decimal
    is_balanced: bool
    created_at: str


@dataclass(frozen=True)
class SizeRow:
    """In-memory view of a row from the ``Sizes`` sheet."""

    size_id: str
    batch_id: str
    size_name: str
    price: Decimal
    stock_quantity: int
    created_at: str


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    name: str
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    created_at: str


@dataclass(frozen=True)
class PurchaseRow:
    """In-memory view of a row from the ``Purchases`` sheet.

    ``customer_name`` is a snapshot taken when the purchase is recorded and is
    never refreshed from the customer record.
    """

    purchase_id: str
    batch_id: str
    customer_id: str
    customer_name: str
    total_amount: Decimal
    cash_paid: Decimal
    balance: Decimal
    paid_date: Optional[str]
    created_at: str


@dataclass(frozen=True)
class PurchaseItemRow:
    """In-memory view of a row from the ``PurchaseItems`` sheet."""

    item_id: str
    purchase_id: str
    size_name: str
    quantity: int
    price_per_unit: Decimal
    created_at: str


@dataclass(frozen=True)
class NotificationRow:
    """In-memory view of a row from the ``Notifications`` sheet."""

    notification_id: str
    user_id: Optional[str]
    title: str
    message: str
    notification_type: str
    is_read: bool
    created_at: str


@dataclass(frozen=True)
class EntityBinding:
    """Tie an entity to its worksheet, row dataclass, and key field."""

    entity: Entity
    row_type: type
    key_field: str

    @property
    def sheet_name(self) -> str:
        return self.entity.value

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(item.name for item in dataclass_fields(self.row_type))

    @property
    def headers(self) -> Tuple[str, ...]:
        return tuple(field_to_header(name) for name in self.field_names)


BINDINGS: Dict[Entity, EntityBinding] = {
    Entity.BATCH: EntityBinding(Entity.BATCH, BatchRow, "batch_id"),
    Entity.SIZE: EntityBinding(Entity.SIZE, SizeRow, "size_id"),
    Entity.CUSTOMER: EntityBinding(Entity.CUSTOMER, CustomerRow, "customer_id"),
    Entity.PURCHASE: EntityBinding(Entity.PURCHASE, PurchaseRow, "purchase_id"),
    Entity.PURCHASE_ITEM: EntityBinding(Entity.PURCHASE_ITEM, PurchaseItemRow, "item_id"),
    Entity.NOTIFICATION: EntityBinding(Entity.NOTIFICATION, NotificationRow, "notification_id"),
}


@dataclass(frozen=True)
class Range:
    """Range predicate for :meth:`LedgerStore.list` filters.

    Bounds left as ``None`` are ignored. A ``None`` field value never matches.
    """

    gt: Any = None
    gte: Any = None
    lt: Any = None
    lte: Any = None

    def matches(self, value: Any) -> bool:
        if value is None:
            return False
        if self.gt is not None and not value > self.gt:
            return False
        if self.gte is not None and not value >= self.gte:
            return False
        if self.lt is not None and not value < self.lt:
            return False
        if self.lte is not None and not value <= self.lte:
            return False
        return True


@dataclass(frozen=True)
class OrderBy:
    """Sort key for :meth:`LedgerStore.list`."""

    field: str
    descending: bool = False


Filter = Mapping[str, Any]
Ordering = Union[OrderBy, Sequence[OrderBy], None]


class LedgerStore(Protocol):
    """Record storage contract consumed by the business logic layer."""

    def get(self, entity: Entity, record_id: str) -> Optional[Any]:
        ...

    def list(self, entity: Entity, *, where: Optional[Filter] = None, order_by: Ordering = None) -> List[Any]:
        ...

    def create(self, entity: Entity, fields: Mapping[str, Any]) -> Any:
        ...

    def update(self, entity: Entity, record_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def delete(self, entity: Entity, record_id: str) -> None:
        ...

    def count(self, entity: Entity, where: Optional[Filter] = None) -> int:
        ...


def field_to_header(field_name: str) -> str:
    """Translate a dataclass field name into its worksheet header.

    ``purchase_id`` becomes ``PurchaseID`` and ``cash_paid`` becomes
    ``CashPaid``; the ``id`` segment is always upper-cased.
    """

    return "".join("ID" if part == "id" else part.capitalize() for part in field_name.split("_"))


def sheet_columns() -> Dict[str, Tuple[str, ...]]:
    """Return the header row of every managed worksheet keyed by sheet name."""

    return {binding.sheet_name: binding.headers for binding in BINDINGS.values()}


def generate_record_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable record identifier.

    Args:
        prefix (str): Entity designator such as ``"P"`` for purchases.
        when (datetime | None): Timestamp encoded into the identifier. Defaults
            to the current UTC time.

    Returns:
        str: Identifier formed as ``{prefix}{YYYYMMDDHHMMSSffffff}{suffix}``.

    The random suffix keeps identifiers unique when several records are written
    within the same microsecond, which happens routinely for purchase items.
    """

    when = when or datetime.now(UTC)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}{uuid.uuid4().hex[:6].upper()}"


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk wins.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute.

    Returns:
        configparser.ConfigParser: Parser holding the raw configuration. Missing
            sections are reported later by :func:`parse_settings`.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path)
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    Relative ``DataFile`` entries are anchored to ``base_path`` (normally the
    directory holding ``config.ini``) or to the current working directory.

    Raises:
        KeyError: If one of the required sections or options is missing from the
            configuration.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        business_name = parser.get("System", "BusinessName")
        schema_version = parser.get("System", "SchemaVersion")
        default_user = parser.get("Defaults", "DefaultUser")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        business_name=business_name,
        schema_version=schema_version,
        default_user_id=default_user,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook at ``destination``, creating parent folders on demand."""

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def validate_workbook_layout(workbook: Workbook) -> None:
    """Check that every managed sheet exists and starts with the expected headers.

    Extra trailing columns are tolerated so operators can keep notes next to
    the data.

    Raises:
        KeyError: If a sheet is missing or one of its leading headers differs.
    """

    for sheet_name, expected in sheet_columns().items():
        if sheet_name not in workbook.sheetnames:
            raise KeyError(f"Workbook is missing sheet: {sheet_name}")
        header = [cell.value for cell in workbook[sheet_name][1]][: len(expected)]
        if tuple(header) != expected:
            raise KeyError(f"Unexpected header in sheet '{sheet_name}': {header}")


def _to_decimal(raw: object) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal value: {raw!r}") from exc


def _to_int(raw: object) -> int:
    if raw is None or raw == "":
        return 0
    return int(Decimal(str(raw)))


def _to_bool(raw: object) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"true", "1", "yes"}
    return bool(raw)


def _to_text(raw: object) -> str:
    return str(raw) if raw is not None else ""


def _to_optional_text(raw: object) -> Optional[str]:
    if raw is None or raw == "":
        return None
    return str(raw)


_CONVERTERS: Dict[object, Callable[[object], Any]] = {
    Decimal: _to_decimal,
    int: _to_int,
    bool: _to_bool,
    str: _to_text,
    Optional[str]: _to_optional_text,
}


def _converters_for(row_type: type) -> Dict[str, Callable[[object], Any]]:
    hints = get_type_hints(row_type)
    return {name: _CONVERTERS[hints[name]] for name in (item.name for item in dataclass_fields(row_type))}


_ROW_CONVERTERS: Dict[type, Dict[str, Callable[[object], Any]]] = {
    binding.row_type: _converters_for(binding.row_type) for binding in BINDINGS.values()
}


def serialize_row(record: Any) -> List[object]:
    """Convert a row dataclass into its worksheet column ordering.

    :class:`~decimal.Decimal` values are kept as-is so Excel stores them as
    numbers without float rounding on the way in.
    """

    return [getattr(record, item.name) for item in dataclass_fields(record)]


def deserialize_row(binding: EntityBinding, raw_row: Sequence[object]) -> Any:
    """Convert raw cell values into the binding's row dataclass.

    Short rows are padded with ``None`` and extra trailing cells are ignored.
    Numeric columns become :class:`~decimal.Decimal` or ``int``, optional text
    columns stay ``None`` when blank, and identifiers are coerced to ``str`` so
    Excel's number guessing never leaks into lookups.
    """

    names = binding.field_names
    padded = list(raw_row[: len(names)]) + [None] * max(0, len(names) - len(raw_row))
    converters = _ROW_CONVERTERS[binding.row_type]
    values = {name: converters[name](raw) for name, raw in zip(names, padded)}
    return binding.row_type(**values)


def _matches(record: Any, where: Optional[Filter]) -> bool:
    if not where:
        return True
    for field_name, expected in where.items():
        if not hasattr(record, field_name):
            raise KeyError(f"Unknown filter field: {field_name}")
        actual = getattr(record, field_name)
        if isinstance(expected, Range):
            if not expected.matches(actual):
                return False
        elif actual != expected:
            return False
    return True


def _sort_records(records: List[Any], order_by: Ordering) -> List[Any]:
    if order_by is None:
        return records
    keys = [order_by] if isinstance(order_by, OrderBy) else list(order_by)
    # Stable sorts applied from the least to the most significant key.
    for key in reversed(keys):
        if records and not hasattr(records[0], key.field):
            raise KeyError(f"Unknown order field: {key.field}")
        records.sort(
            key=lambda record: (getattr(record, key.field) is None, getattr(record, key.field)),
            reverse=key.descending,
        )
    return records


class WorkbookLedgerStore:
    """:class:`LedgerStore` backed by an in-memory ``openpyxl`` workbook.

    Writes only touch the workbook object; saving it to disk is the caller's
    job (see :func:`save_workbook`). Identifiers and ``created_at`` stamps are
    generated here when the caller does not supply them.
    """

    def __init__(self, workbook: Workbook, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.workbook = workbook
        self._clock = clock or (lambda: datetime.now(UTC))

    def _binding(self, entity: Entity) -> EntityBinding:
        try:
            return BINDINGS[Entity(entity)]
        except (KeyError, ValueError) as exc:
            raise KeyError(f"Unknown entity: {entity}") from exc

    def _iter_records(self, binding: EntityBinding) -> Iterator[Tuple[int, Any]]:
        sheet = self.workbook[binding.sheet_name]
        for row_idx, raw in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
            if any(cell is not None for cell in raw):
                yield row_idx, deserialize_row(binding, raw)

    def _locate(self, binding: EntityBinding, record_id: str) -> Tuple[int, Any]:
        for row_idx, record in self._iter_records(binding):
            if getattr(record, binding.key_field) == record_id:
                return row_idx, record
        raise KeyError(f"{binding.entity.name.title()} not found: {record_id}")

    def _write_row(self, binding: EntityBinding, row_idx: int, record: Any) -> None:
        sheet = self.workbook[binding.sheet_name]
        # Assign through the cell: ``cell(..., value=None)`` leaves the old value.
        for col_idx, value in enumerate(serialize_row(record), start=1):
            sheet.cell(row=row_idx, column=col_idx).value = value

    def get(self, entity: Entity, record_id: str) -> Optional[Any]:
        binding = self._binding(entity)
        try:
            return self._locate(binding, record_id)[1]
        except KeyError:
            return None

    def list(self, entity: Entity, *, where: Optional[Filter] = None, order_by: Ordering = None) -> List[Any]:
        binding = self._binding(entity)
        records = [record for _, record in self._iter_records(binding) if _matches(record, where)]
        return _sort_records(records, order_by)

    def create(self, entity: Entity, fields: Mapping[str, Any]) -> Any:
        binding = self._binding(entity)
        values = dict(fields)
        unknown = sorted(set(values) - set(binding.field_names))
        if unknown:
            raise KeyError(f"Unknown {binding.entity.name.lower()} field(s): {', '.join(unknown)}")

        now = self._clock()
        if values.get(binding.key_field) is None:
            values[binding.key_field] = generate_record_id(ID_PREFIXES[binding.entity], when=now)
        elif self.get(entity, str(values[binding.key_field])) is not None:
            raise ValueError(f"Duplicate {binding.entity.name.lower()} id: {values[binding.key_field]}")
        if not values.get("created_at"):
            values["created_at"] = now.isoformat()

        record = deserialize_row(binding, [values.get(name) for name in binding.field_names])
        self.workbook[binding.sheet_name].append(serialize_row(record))
        log.debug("Created %s '%s'", binding.entity.name.lower(), getattr(record, binding.key_field))
        return record

    def update(self, entity: Entity, record_id: str, fields: Mapping[str, Any]) -> None:
        binding = self._binding(entity)
        unknown = sorted(set(fields) - set(binding.field_names))
        if unknown:
            raise KeyError(f"Unknown {binding.entity.name.lower()} field(s): {', '.join(unknown)}")
        if binding.key_field in fields and fields[binding.key_field] != record_id:
            raise KeyError(f"Cannot change {binding.key_field} of '{record_id}'")

        row_idx, current = self._locate(binding, record_id)
        merged = {**asdict(current), **fields}
        record = deserialize_row(binding, [merged[name] for name in binding.field_names])
        self._write_row(binding, row_idx, record)
        log.debug("Updated %s '%s' fields: %s", binding.entity.name.lower(), record_id, ", ".join(fields))

    def delete(self, entity: Entity, record_id: str) -> None:
        binding = self._binding(entity)
        row_idx, _ = self._locate(binding, record_id)
        self.workbook[binding.sheet_name].delete_rows(row_idx, 1)
        log.debug("Deleted %s '%s'", binding.entity.name.lower(), record_id)

    def count(self, entity: Entity, where: Optional[Filter] = None) -> int:
        return len(self.list(entity, where=where))
