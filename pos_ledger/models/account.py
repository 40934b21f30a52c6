"""
Module: pos_ledger.models.account
Responsibility: ORM persistence for the chart of accounts -- account types,
    sub-types and the postable accounts that every transaction line targets.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - Account.code is globally unique (uq_account_code).
    - AccountType.category is unique: exactly one row per category.
    - An Account referenced by a TransactionLine is never deleted; it is
      disabled instead (AccountRegistry + db/immutability.py).

Failure modes:
    - IntegrityError on duplicate code (surfaced as DuplicateAccountCodeError
      by AccountRegistry).
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_ledger.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from pos_ledger.models.ledger import TransactionLine


class NormalBalance(str, Enum):
    """Side on which an account's balance normally sits."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountCategory(str, Enum):
    """The six fixed account types of the chart."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    COST_OF_GOODS_SOLD = "cost_of_goods_sold"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> NormalBalance:
        if self in (AccountCategory.ASSET, AccountCategory.COST_OF_GOODS_SOLD, AccountCategory.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class AccountType(TrackedBase):
    """
    One of the six fixed account types.  Seeded once by
    AccountRegistry.initialize(); immutable thereafter.
    """

    __tablename__ = "account_types"

    __table_args__ = (
        UniqueConstraint("name", name="uq_account_type_name"),
        UniqueConstraint("category", name="uq_account_type_category"),
    )

    # Display name ("Assets", "Cost of Goods Sold", ...)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    category: Mapped[AccountCategory] = mapped_column(String(30), nullable=False)

    sub_types: Mapped[list["AccountSubType"]] = relationship(
        back_populates="account_type",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AccountType {self.name}>"


class AccountSubType(TrackedBase):
    """
    Named grouping under exactly one AccountType.

    Reporting granularity only; carries no balance logic.
    """

    __tablename__ = "account_sub_types"

    __table_args__ = (
        UniqueConstraint("type_id", "name", name="uq_account_sub_type_name"),
        Index("idx_account_sub_type_type", "type_id"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_types.id"),
        nullable=False,
    )

    account_type: Mapped[AccountType] = relationship(back_populates="sub_types")

    def __repr__(self) -> str:
        return f"<AccountSubType {self.name}>"


class Account(TrackedBase):
    """
    Chart of accounts entry -- the postable unit.

    Contract:
        Account.code is unique.  Once any TransactionLine references the
        account it can only be disabled, never deleted.

    Guarantees:
        - type_id and sub_type_id reference existing rows, and the sub-type
          belongs to the type (checked by AccountRegistry).
        - is_enabled=False blocks new postings (checked by LedgerStore).
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "type_id"),
        Index("idx_account_enabled", "is_enabled"),
    )

    # Human-readable identifier ("1060")
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_types.id"),
        nullable=False,
    )

    sub_type_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_sub_types.id"),
        nullable=False,
    )

    # Parent account for a hierarchical chart
    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    account_type: Mapped[AccountType] = relationship(lazy="joined")

    sub_type: Mapped[AccountSubType] = relationship(lazy="joined")

    transaction_lines: Mapped[list["TransactionLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def category(self) -> AccountCategory:
        return AccountCategory(self.account_type.category)
