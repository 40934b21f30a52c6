"""
Module: pos_ledger.selectors.ledger_selector
Responsibility: Read-only ledger queries -- transaction line listings,
    account balances, per-account aggregates for reports and the global
    debit/credit totals.
Architecture position: Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - No stored balances.  Every figure is summed from TransactionLine rows
      at query time.
    - Line listings are ordered by date descending, then insertion order
      descending (posting batch seq), then line number within the batch.

Failure modes:
    - AccountNotFoundError from account_balance() for an unknown id.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session, joinedload

from pos_ledger.domain.dtos import LineRecord
from pos_ledger.exceptions import AccountNotFoundError
from pos_ledger.models.account import Account, AccountCategory, AccountSubType, AccountType
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.selectors.base import BaseSelector, as_decimal


@dataclass(frozen=True)
class AccountTotals:
    """Debit and credit totals of one account over a date window."""

    account_id: UUID
    account_code: str
    account_name: str
    category: AccountCategory
    type_name: str
    sub_type_name: str
    is_enabled: bool
    debit_total: Decimal
    credit_total: Decimal
    line_count: int

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


class LedgerSelector(BaseSelector):
    """
    Selector for ledger queries.

    Date bounds are inclusive on both ends.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def query_lines(
        self,
        account_id: UUID | None = None,
        reference: ReferenceTag | str | None = None,
        reference_id: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[LineRecord]:
        query = (
            select(TransactionLine)
            .join(PostingBatch, TransactionLine.batch_id == PostingBatch.id)
            .options(joinedload(TransactionLine.account))
            .order_by(
                TransactionLine.date.desc(),
                PostingBatch.seq.desc(),
                TransactionLine.line_no,
            )
        )
        if account_id is not None:
            query = query.where(TransactionLine.account_id == account_id)
        if reference is not None:
            query = query.where(TransactionLine.reference == ReferenceTag(reference).value)
        if reference_id is not None:
            query = query.where(TransactionLine.reference_id == str(reference_id))
        if start_date is not None:
            query = query.where(TransactionLine.date >= start_date)
        if end_date is not None:
            query = query.where(TransactionLine.date <= end_date)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        return [LineRecord.from_model(line) for line in self.session.execute(query).scalars()]

    def account_balance(self, account_id: UUID, as_of_date: date | None = None) -> Decimal:
        """
        sum(debit) - sum(credit) for the account through ``as_of_date``
        (inclusive); all lines when no date is given.
        """
        if self.session.get(Account, account_id) is None:
            raise AccountNotFoundError(str(account_id))

        query = select(
            func.sum(TransactionLine.debit),
            func.sum(TransactionLine.credit),
        ).where(TransactionLine.account_id == account_id)
        if as_of_date is not None:
            query = query.where(TransactionLine.date <= as_of_date)

        debit, credit = self.session.execute(query).one()
        return as_decimal(debit) - as_decimal(credit)

    def account_totals(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        categories: tuple[AccountCategory, ...] | None = None,
    ) -> list[AccountTotals]:
        """
        One row per account (including accounts with no lines in the window),
        ordered by account code.
        """
        line_filter = [TransactionLine.account_id == Account.id]
        if start_date is not None:
            line_filter.append(TransactionLine.date >= start_date)
        if end_date is not None:
            line_filter.append(TransactionLine.date <= end_date)

        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.is_enabled,
                AccountType.category,
                AccountType.name.label("type_name"),
                AccountSubType.name.label("sub_type_name"),
                func.sum(TransactionLine.debit).label("debit_total"),
                func.sum(TransactionLine.credit).label("credit_total"),
                func.count(TransactionLine.id).label("line_count"),
            )
            .select_from(Account)
            .join(AccountType, Account.type_id == AccountType.id)
            .join(AccountSubType, Account.sub_type_id == AccountSubType.id)
            .outerjoin(TransactionLine, and_(*line_filter))
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.is_enabled,
                AccountType.category,
                AccountType.name,
                AccountSubType.name,
            )
            .order_by(Account.code)
        )
        if categories is not None:
            query = query.where(AccountType.category.in_([AccountCategory(c).value for c in categories]))

        return [
            AccountTotals(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                category=AccountCategory(row.category),
                type_name=row.type_name,
                sub_type_name=row.sub_type_name,
                is_enabled=row.is_enabled,
                debit_total=as_decimal(row.debit_total),
                credit_total=as_decimal(row.credit_total),
                line_count=row.line_count,
            )
            for row in self.session.execute(query).all()
        ]

    def total_debits_credits(self, as_of_date: date | None = None) -> tuple[Decimal, Decimal]:
        """Global (sum of debits, sum of credits).  Equal whenever the ledger is sound."""
        query = select(func.sum(TransactionLine.debit), func.sum(TransactionLine.credit))
        if as_of_date is not None:
            query = query.where(TransactionLine.date <= as_of_date)
        debit, credit = self.session.execute(query).one()
        return as_decimal(debit), as_decimal(credit)

    def line_count(self, reference: ReferenceTag | str | None = None, reference_id: str | None = None) -> int:
        query = select(func.count(TransactionLine.id))
        if reference is not None:
            query = query.where(TransactionLine.reference == ReferenceTag(reference).value)
        if reference_id is not None:
            query = query.where(TransactionLine.reference_id == str(reference_id))
        return self.session.execute(query).scalar_one()
