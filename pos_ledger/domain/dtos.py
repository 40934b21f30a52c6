"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures that flow into and out of the ledger services:
    LineSpec (one proposed transaction line), JournalItemSpec (one line of a
    manual journal entry), AccountSpec (new chart entry), AdjustmentLine
    (stock count input), PostingEvent (a domain event awaiting posting) and
    the read-side records returned by selectors.

Architecture position:
    Domain -- pure functional core, zero I/O.  from_model() class methods are
    boundary converters invoked only from services and selectors.

Failure modes:
    - ValidationError when an amount is a float or not a number.
    - ValidationError on a PostingEvent payload missing a required field or
      carrying an unknown one.
    Line-level amount checks (check_amounts) run in the services that accept
    the lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from pos_ledger.exceptions import InvalidLineError, ValidationError

if TYPE_CHECKING:
    from pos_ledger.models.account import Account as AccountModel
    from pos_ledger.models.journal import JournalEntry as JournalEntryModel
    from pos_ledger.models.ledger import TransactionLine as TransactionLineModel

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str, what: str = "amount") -> Decimal:
    """Coerce an amount to Decimal.  Floats are refused: they carry binary noise."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{what} must be a Decimal, int or str, not {type(value).__name__}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{what} is not a valid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValidationError(f"{what} is not a valid amount: {value!r}")
    return result


def to_date(value: date | str, what: str = "date") -> date:
    """Coerce an ISO-8601 string or datetime to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{what} must be a date or ISO string, not {type(value).__name__}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{what} is not a valid ISO date: {value!r}") from exc


def check_amounts(index: int, debit: Decimal, credit: Decimal) -> None:
    """Exactly one of debit/credit must be strictly positive."""
    if debit < ZERO or credit < ZERO:
        raise InvalidLineError(index, "amounts must not be negative")
    if debit > ZERO and credit > ZERO:
        raise InvalidLineError(index, "a line carries either a debit or a credit, not both")
    if debit == ZERO and credit == ZERO:
        raise InvalidLineError(index, "a line must carry a positive debit or credit")


class AccountRole(str, Enum):
    """
    Well-known accounts the posting adapters depend on.

    The role -> code table lives in configuration and is resolved once by
    AccountRegistry.well_known_accounts().
    """

    CASH = "cash"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    INVENTORY = "inventory"
    ACCOUNTS_PAYABLE = "accounts_payable"
    SALES_TAX_PAYABLE = "sales_tax_payable"
    OWNER_EQUITY = "owner_equity"
    RETAINED_EARNINGS = "retained_earnings"
    SALES_REVENUE = "sales_revenue"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"


@dataclass(frozen=True)
class LineSpec:
    """
    Specification for one transaction line.

    Contract:
        Carries an account code (not id), a debit and a credit.  Exactly one
        of the two is strictly positive.  Group-level facts (reference tag,
        reference id, date) are supplied to LedgerStore.post_group().
    """

    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    reference_sub_id: str | None = None

    @classmethod
    def dr(
        cls,
        account_code: str,
        amount: Decimal | int | str,
        description: str | None = None,
        reference_sub_id: str | None = None,
    ) -> LineSpec:
        return cls(
            account_code=account_code,
            debit=to_decimal(amount),
            description=description,
            reference_sub_id=reference_sub_id,
        )

    @classmethod
    def cr(
        cls,
        account_code: str,
        amount: Decimal | int | str,
        description: str | None = None,
        reference_sub_id: str | None = None,
    ) -> LineSpec:
        return cls(
            account_code=account_code,
            credit=to_decimal(amount),
            description=description,
            reference_sub_id=reference_sub_id,
        )

    @property
    def signed_amount(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class JournalItemSpec:
    """One item of a manual journal entry, addressed by account id."""

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit, "debit"))
        object.__setattr__(self, "credit", to_decimal(self.credit, "credit"))


@dataclass(frozen=True)
class AccountSpec:
    """Input for AccountRegistry.create_account()."""

    code: str
    name: str
    type_id: UUID
    sub_type_id: UUID
    parent_id: UUID | None = None
    is_enabled: bool = True
    description: str | None = None


@dataclass(frozen=True)
class AdjustmentLine:
    """One counted product line of a stock adjustment."""

    current_quantity: Decimal
    adjusted_quantity: Decimal
    unit_cost: Decimal
    line_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "current_quantity", to_decimal(self.current_quantity, "current_quantity"))
        object.__setattr__(self, "adjusted_quantity", to_decimal(self.adjusted_quantity, "adjusted_quantity"))
        object.__setattr__(self, "unit_cost", to_decimal(self.unit_cost, "unit_cost"))

    @property
    def delta(self) -> Decimal:
        return self.adjusted_quantity - self.current_quantity

    @property
    def value(self) -> Decimal:
        return abs(self.delta) * self.unit_cost


class ReturnKind(str, Enum):
    REFUND = "refund"
    REPLACEMENT = "replacement"


class PostingKind(str, Enum):
    """Domain events that have a ledger counterpart."""

    SALE = "sale"
    RETURN = "return"
    REPLACEMENT = "replacement"
    STOCK_ADJUSTMENT = "stock_adjustment"
    PURCHASE = "purchase"
    PAYMENT = "payment"
    DAMAGED_GOODS = "damaged_goods"


# Payload fields each kind requires, and the fields holding amounts / dates.
_REQUIRED_FIELDS: dict[PostingKind, tuple[str, ...]] = {
    PostingKind.SALE: ("total",),
    PostingKind.RETURN: ("refund_value",),
    PostingKind.REPLACEMENT: ("replacement_value",),
    PostingKind.STOCK_ADJUSTMENT: ("increase_value", "decrease_value"),
    PostingKind.PURCHASE: ("total_amount",),
    PostingKind.PAYMENT: ("amount",),
    PostingKind.DAMAGED_GOODS: ("damaged_value",),
}

_OPTIONAL_FIELDS: dict[PostingKind, tuple[str, ...]] = {
    PostingKind.SALE: ("cost_estimate", "date", "customer", "order_number"),
    PostingKind.RETURN: ("kind", "date", "cost_estimate"),
    PostingKind.REPLACEMENT: ("date", "cost_estimate"),
    PostingKind.STOCK_ADJUSTMENT: ("reason", "date"),
    PostingKind.PURCHASE: ("payout_account_code", "date", "reference", "document_number"),
    PostingKind.PAYMENT: ("date", "memo"),
    PostingKind.DAMAGED_GOODS: ("date", "receipt_number"),
}

_DECIMAL_FIELDS = frozenset({
    "total",
    "cost_estimate",
    "refund_value",
    "replacement_value",
    "increase_value",
    "decrease_value",
    "total_amount",
    "amount",
    "damaged_value",
})

_DATE_FIELDS = frozenset({"date"})


@dataclass(frozen=True)
class PostingEvent:
    """
    A domain event handed to the posting outbox.

    Contract:
        ``event_id`` is the originating document id (order id, return id,
        ...).  ``payload`` holds the keyword arguments of the matching
        PostingAdapters method, minus the document id.

    Guarantees:
        to_payload() / from_payload() round-trip through JSON-safe values so
        a deferred event can be replayed exactly.
    """

    kind: PostingKind
    event_id: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        kind = PostingKind(self.kind)
        object.__setattr__(self, "kind", kind)
        missing = [name for name in _REQUIRED_FIELDS[kind] if self.payload.get(name) is None]
        if missing:
            raise ValidationError(f"{kind.value} event {self.event_id} is missing {', '.join(missing)}")
        unknown = set(self.payload) - set(_REQUIRED_FIELDS[kind]) - set(_OPTIONAL_FIELDS[kind])
        if unknown:
            raise ValidationError(f"{kind.value} event {self.event_id} has unknown fields {sorted(unknown)}")
        payload = dict(self.payload)
        for key, value in payload.items():
            if value is None:
                continue
            if key in _DECIMAL_FIELDS:
                payload[key] = to_decimal(value, key)
            elif key in _DATE_FIELDS:
                payload[key] = to_date(value, key)
        object.__setattr__(self, "payload", payload)
        object.__setattr__(self, "event_id", str(self.event_id))

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key, value in self.payload.items():
            if isinstance(value, Decimal):
                out[key] = str(value)
            elif isinstance(value, date):
                out[key] = value.isoformat()
            elif isinstance(value, Enum):
                out[key] = value.value
            else:
                out[key] = value
        return out

    @classmethod
    def from_payload(cls, kind: str, event_id: str, payload: Mapping[str, Any]) -> PostingEvent:
        return cls(kind=PostingKind(kind), event_id=event_id, payload=dict(payload))


# ---------------------------------------------------------------------------
# Read-side records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    """Read-side view of a chart entry."""

    id: UUID
    code: str
    name: str
    type_id: UUID
    type_name: str
    category: str
    sub_type_id: UUID
    sub_type_name: str
    parent_id: UUID | None
    is_enabled: bool
    description: str | None

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            type_id=model.type_id,
            type_name=model.account_type.name,
            category=model.account_type.category,
            sub_type_id=model.sub_type_id,
            sub_type_name=model.sub_type.name,
            parent_id=model.parent_id,
            is_enabled=model.is_enabled,
            description=model.description,
        )


@dataclass(frozen=True)
class LineRecord:
    """Read-side view of one TransactionLine."""

    id: UUID
    batch_id: UUID
    line_no: int
    account_id: UUID
    account_code: str
    account_name: str
    reference: str
    reference_id: str
    reference_sub_id: str | None
    date: date
    debit: Decimal
    credit: Decimal
    description: str | None

    @property
    def signed_amount(self) -> Decimal:
        return self.debit - self.credit

    @classmethod
    def from_model(cls, model: TransactionLineModel) -> LineRecord:
        return cls(
            id=model.id,
            batch_id=model.batch_id,
            line_no=model.line_no,
            account_id=model.account_id,
            account_code=model.account.code,
            account_name=model.account.name,
            reference=model.reference,
            reference_id=model.reference_id,
            reference_sub_id=model.reference_sub_id,
            date=model.date,
            debit=model.debit,
            credit=model.credit,
            description=model.description,
        )


@dataclass(frozen=True)
class JournalItemRecord:
    account_id: UUID
    account_code: str
    line_no: int
    debit: Decimal
    credit: Decimal
    description: str | None


@dataclass(frozen=True)
class JournalEntryRecord:
    """Header plus items of a manual journal entry."""

    id: UUID
    number: str
    seq: int
    date: date
    reference: str | None
    description: str
    total_debit: Decimal
    total_credit: Decimal
    reversal_of_id: UUID | None
    items: tuple[JournalItemRecord, ...]

    @classmethod
    def from_model(cls, model: JournalEntryModel) -> JournalEntryRecord:
        items = tuple(
            JournalItemRecord(
                account_id=item.account_id,
                account_code=item.account.code,
                line_no=item.line_no,
                debit=item.debit,
                credit=item.credit,
                description=item.description,
            )
            for item in sorted(model.items, key=lambda i: i.line_no)
        )
        return cls(
            id=model.id,
            number=model.number,
            seq=model.seq,
            date=model.date,
            reference=model.reference,
            description=model.description,
            total_debit=model.total_debit,
            total_credit=model.total_credit,
            reversal_of_id=model.reversal_of_id,
            items=items,
        )
