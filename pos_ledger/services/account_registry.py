"""
AccountRegistry -- the chart of accounts catalog.

Responsibility:
    Seeds the six account types, their sub-types and the starter chart;
    creates, updates, lists and deletes accounts; and owns the single
    role -> account table that posting adapters resolve well-known accounts
    through.

Invariants enforced:
    - Account codes are globally unique (DuplicateAccountCodeError).
    - An account's sub-type belongs to its type; type, sub-type and parent
      exist (UnknownReferenceError).
    - An account referenced by any TransactionLine is never deleted
      (AccountReferencedError); it can be disabled instead.
    - Well-known accounts cannot be deleted while configured as such.

Failure modes:
    - PostingIntegrityError when a configured well-known account is missing
      or disabled.  Raised at startup by well_known_accounts() and again at
      posting time by require_accounts().
"""

from typing import Any, Mapping, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_ledger.config import ChartSeed, LedgerConfig
from pos_ledger.domain.dtos import AccountRole, AccountSpec
from pos_ledger.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    AccountTypeNotFoundError,
    AccountTypeReferencedError,
    ConflictError,
    DuplicateAccountCodeError,
    PostingIntegrityError,
    UnknownReferenceError,
    ValidationError,
)
from pos_ledger.logging_config import get_logger
from pos_ledger.models.account import Account, AccountCategory, AccountSubType, AccountType
from pos_ledger.models.journal import JournalItem
from pos_ledger.models.ledger import TransactionLine
from pos_ledger.services.base import BaseService

logger = get_logger("services.account_registry")

K = TypeVar("K")

_PATCHABLE = frozenset({
    "code",
    "name",
    "type_id",
    "sub_type_id",
    "parent_id",
    "is_enabled",
    "description",
})


class AccountRegistry(BaseService):
    """
    Chart of accounts service.

    Contract:
        Flushes, never commits.  Returns ORM rows; selectors provide the DTO
        read path.
    """

    def __init__(self, session: Session, config: LedgerConfig):
        super().__init__(session)
        self._chart: ChartSeed = config.chart
        self._well_known_codes: dict[AccountRole, str] = dict(config.well_known_accounts)
        self._verified = False

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        """
        Seed types, sub-types and the starter chart.

        No-op if any AccountType already exists.  Safe on every process
        start, including two processes starting at once: the loser of the
        unique-constraint race rolls back its savepoint and returns False.

        Returns:
            True if this call seeded the chart.
        """
        existing = self.session.execute(select(func.count(AccountType.id))).scalar_one()
        if existing:
            logger.debug("chart_already_initialized", extra={"account_types": existing})
            return False

        savepoint = self.session.begin_nested()
        try:
            types: dict[str, AccountType] = {}
            sub_types: dict[tuple[str, str], AccountSubType] = {}
            for seed_type in self._chart.types:
                account_type = AccountType(name=seed_type.name, category=seed_type.category.value)
                self.session.add(account_type)
                types[seed_type.name] = account_type
                for sub_name in seed_type.sub_types:
                    sub_type = AccountSubType(name=sub_name, account_type=account_type)
                    self.session.add(sub_type)
                    sub_types[(seed_type.name, sub_name)] = sub_type
            self.session.flush()

            for seed in self._chart.accounts:
                self.session.add(
                    Account(
                        code=seed.code,
                        name=seed.name,
                        type_id=types[seed.type_name].id,
                        sub_type_id=sub_types[(seed.type_name, seed.sub_type_name)].id,
                        is_enabled=True,
                        description=seed.description,
                    )
                )
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.info("chart_initialization_lost_race")
            return False

        logger.info(
            "chart_initialized",
            extra={
                "account_types": len(types),
                "sub_types": len(sub_types),
                "accounts": len(self._chart.accounts),
            },
        )
        return True

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, spec: AccountSpec) -> Account:
        """
        Create a chart entry.

        Raises:
            ValidationError: Empty code or name.
            DuplicateAccountCodeError: Code already in use.
            UnknownReferenceError: Type, sub-type or parent does not exist,
                or the sub-type belongs to another type.
        """
        code = (spec.code or "").strip()
        if not code or not (spec.name or "").strip():
            raise ValidationError("account code and name are required")

        self._check_type_and_sub_type(spec.type_id, spec.sub_type_id)
        if spec.parent_id is not None:
            self._require_parent(spec.parent_id)
        if self.get_account_by_code(code) is not None:
            raise DuplicateAccountCodeError(code)

        account = Account(
            code=code,
            name=spec.name.strip(),
            type_id=spec.type_id,
            sub_type_id=spec.sub_type_id,
            parent_id=spec.parent_id,
            is_enabled=spec.is_enabled,
            description=spec.description,
        )
        self._flush_unique(account, code)

        logger.info(
            "account_created",
            extra={"account_id": str(account.id), "account_code": code},
        )
        return account

    def update_account(self, account_id: UUID, patch: Mapping[str, Any]) -> Account:
        """
        Apply a partial update.

        ``patch`` keys are Account attribute names; unknown keys are a
        ValidationError.  Changing the code keeps the lines attached: they
        reference the account id, not its code.
        """
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValidationError(f"cannot update account fields: {sorted(unknown)}")

        account = self.get_account(account_id)

        if "code" in patch:
            code = (patch["code"] or "").strip()
            if not code:
                raise ValidationError("account code is required")
            if code != account.code:
                if self.get_account_by_code(code) is not None:
                    raise DuplicateAccountCodeError(code)
                if account.code in self._well_known_codes.values():
                    raise ConflictError(f"account {account.code} is a configured well-known account")
        if "name" in patch and not (patch["name"] or "").strip():
            raise ValidationError("account name is required")

        type_id = patch.get("type_id", account.type_id)
        sub_type_id = patch.get("sub_type_id", account.sub_type_id)
        if "type_id" in patch or "sub_type_id" in patch:
            self._check_type_and_sub_type(type_id, sub_type_id)

        if patch.get("parent_id") is not None:
            self._require_parent(patch["parent_id"])
            self._check_no_cycle(account.id, patch["parent_id"])

        changes = {k: (v.strip() if k in ("code", "name") else v) for k, v in patch.items()}
        self._flush_unique(account, changes.get("code", account.code), changes)
        # Relationships loaded before a type change would otherwise be stale.
        self.session.refresh(account)

        logger.info(
            "account_updated",
            extra={
                "account_id": str(account.id),
                "account_code": account.code,
                "fields": sorted(patch),
            },
        )
        return account

    def get_account(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def list_accounts(
        self,
        type_id: UUID | None = None,
        category: AccountCategory | None = None,
        enabled: bool | None = None,
    ) -> list[Account]:
        """Accounts ordered by code, optionally filtered by type and enabled flag."""
        query = select(Account).order_by(Account.code)
        if type_id is not None:
            query = query.where(Account.type_id == type_id)
        if category is not None:
            query = query.join(AccountType, Account.type_id == AccountType.id).where(
                AccountType.category == AccountCategory(category).value
            )
        if enabled is not None:
            query = query.where(Account.is_enabled.is_(enabled))
        return list(self.session.execute(query).scalars().unique())

    def delete_account(self, account_id: UUID) -> None:
        """
        Delete an unused account.

        Raises:
            AccountNotFoundError: Unknown id.
            AccountReferencedError: Any TransactionLine references it.
            ConflictError: It is a well-known account, has child accounts,
                or journal items reference it.
        """
        account = self.get_account(account_id)

        line_count = self.session.execute(
            select(func.count(TransactionLine.id)).where(TransactionLine.account_id == account.id)
        ).scalar_one()
        if line_count:
            raise AccountReferencedError(str(account.id), line_count)

        if account.code in self._well_known_codes.values():
            raise ConflictError(f"account {account.code} is a configured well-known account")

        children = self.session.execute(
            select(func.count(Account.id)).where(Account.parent_id == account.id)
        ).scalar_one()
        if children:
            raise ConflictError(f"account {account.code} has {children} child account(s)")

        items = self.session.execute(
            select(func.count(JournalItem.id)).where(JournalItem.account_id == account.id)
        ).scalar_one()
        if items:
            raise ConflictError(f"account {account.code} is used by {items} journal item(s)")

        self.session.delete(account)
        self.session.flush()
        logger.info(
            "account_deleted",
            extra={"account_id": str(account_id), "account_code": account.code},
        )

    # ------------------------------------------------------------------
    # Types and sub-types
    # ------------------------------------------------------------------

    def list_account_types(self) -> list[AccountType]:
        types = self.session.execute(select(AccountType)).scalars().all()
        order = list(AccountCategory)
        return sorted(types, key=lambda t: order.index(AccountCategory(t.category)))

    def get_account_type(self, type_id: UUID) -> AccountType:
        account_type = self.session.get(AccountType, type_id)
        if account_type is None:
            raise AccountTypeNotFoundError(str(type_id))
        return account_type

    def get_account_type_by_category(self, category: AccountCategory) -> AccountType:
        account_type = self.session.execute(
            select(AccountType).where(AccountType.category == AccountCategory(category).value)
        ).scalar_one_or_none()
        if account_type is None:
            raise AccountTypeNotFoundError(AccountCategory(category).value)
        return account_type

    def list_sub_types(self, type_id: UUID | None = None) -> list[AccountSubType]:
        query = select(AccountSubType).order_by(AccountSubType.name)
        if type_id is not None:
            query = query.where(AccountSubType.type_id == type_id)
        return list(self.session.execute(query).scalars())

    def delete_account_type(self, type_id: UUID) -> None:
        """
        Delete an account type and its sub-types.

        Raises:
            AccountTypeReferencedError: Any account still uses the type (and
                so, potentially, transaction lines do).
        """
        account_type = self.get_account_type(type_id)
        accounts = self.session.execute(
            select(func.count(Account.id)).where(Account.type_id == type_id)
        ).scalar_one()
        if accounts:
            raise AccountTypeReferencedError(str(type_id), f"{accounts} account(s) still use it")

        for sub_type in list(account_type.sub_types):
            self.session.delete(sub_type)
        self.session.delete(account_type)
        self.session.flush()
        logger.info(
            "account_type_deleted",
            extra={"type_id": str(type_id), "type_name": account_type.name},
        )

    # ------------------------------------------------------------------
    # Well-known accounts
    # ------------------------------------------------------------------

    def well_known_accounts(self) -> dict[AccountRole, str]:
        """
        The role -> account code table, verified against the database.

        Verification runs once per registry instance; call it at startup so a
        missing account fails there rather than on the first sale.

        Raises:
            PostingIntegrityError: A configured account is missing or disabled.
        """
        if not self._verified:
            self.require_accounts(self._well_known_codes)
            self._verified = True
            logger.info(
                "well_known_accounts_verified",
                extra={"roles": {role.value: code for role, code in self._well_known_codes.items()}},
            )
        return dict(self._well_known_codes)

    def code_for(self, role: AccountRole) -> str:
        return self._well_known_codes[role]

    def require_accounts(self, codes: Mapping[K, str]) -> dict[K, Account]:
        """
        Resolve role-keyed account codes in one query.

        Raises:
            PostingIntegrityError: Any code is missing or disabled.
        """
        wanted = set(codes.values())
        found = {
            account.code: account
            for account in self.session.execute(
                select(Account).where(Account.code.in_(wanted))
            ).scalars().unique()
        }
        resolved: dict[K, Account] = {}
        for role, code in codes.items():
            role_name = getattr(role, "value", str(role))
            account = found.get(code)
            if account is None:
                logger.error(
                    "posting_account_missing",
                    extra={"role": role_name, "account_code": code},
                )
                raise PostingIntegrityError(role_name, code, "account does not exist")
            if not account.is_enabled:
                logger.error(
                    "posting_account_disabled",
                    extra={"role": role_name, "account_code": code},
                )
                raise PostingIntegrityError(role_name, code, "account is disabled")
            resolved[role] = account
        return resolved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_type_and_sub_type(self, type_id: UUID, sub_type_id: UUID) -> None:
        if self.session.get(AccountType, type_id) is None:
            raise UnknownReferenceError("account_type", str(type_id))
        sub_type = self.session.get(AccountSubType, sub_type_id)
        if sub_type is None:
            raise UnknownReferenceError("account_sub_type", str(sub_type_id))
        if sub_type.type_id != type_id:
            raise UnknownReferenceError(
                "account_sub_type",
                f"{sub_type_id} does not belong to account type {type_id}",
            )

    def _require_parent(self, parent_id: UUID) -> None:
        if self.session.get(Account, parent_id) is None:
            raise UnknownReferenceError("account", str(parent_id))

    def _check_no_cycle(self, account_id: UUID, parent_id: UUID) -> None:
        """Walk up from the proposed parent; reaching the account itself is a cycle."""
        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None and current not in seen:
            if current == account_id:
                raise ValidationError("an account cannot be its own parent or ancestor")
            seen.add(current)
            current = self.session.execute(
                select(Account.parent_id).where(Account.id == current)
            ).scalar_one_or_none()

    def _flush_unique(
        self,
        account: Account,
        code: str,
        changes: Mapping[str, Any] | None = None,
    ) -> None:
        savepoint = self.session.begin_nested()
        try:
            for key, value in (changes or {}).items():
                setattr(account, key, value)
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            raise DuplicateAccountCodeError(code) from exc
