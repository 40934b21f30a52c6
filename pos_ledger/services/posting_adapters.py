"""
PostingAdapters -- domain events in, balanced posting groups out.

Responsibility:
    One method per inbound trigger from the surrounding POS modules (order
    completion, return approval and completion, stock adjustment approval,
    purchase finalization, supplier payment, damaged goods on receipt).  Each
    resolves the well-known accounts it needs, builds its lines with the pure
    posting rules and writes them through LedgerStore.post_group().

Invariants enforced:
    - Every group balances by construction (domain/posting_rules.py) and is
      checked again by the ledger store.
    - A required account that is missing or disabled raises
      PostingIntegrityError; nothing is written for the event.  Adapters
      never log-and-return.
    - Each posting carries an idempotency key derived from the originating
      document, so replays (outbox reconciliation, retried requests) post
      once.

Failure modes:
    - PostingIntegrityError, ValidationError subclasses from the store.
    - UnknownReferenceError for an unsupported purchase reference tag.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from pos_ledger.config import LedgerConfig
from pos_ledger.domain import posting_rules
from pos_ledger.domain.clock import Clock, SystemClock
from pos_ledger.domain.dtos import AccountRole, AdjustmentLine, LineSpec, ReturnKind
from pos_ledger.domain.idempotency import generate_idempotency_key
from pos_ledger.exceptions import UnknownReferenceError, ValidationError
from pos_ledger.logging_config import LogContext, get_logger
from pos_ledger.models.ledger import ReferenceTag
from pos_ledger.services.account_registry import AccountRegistry
from pos_ledger.services.base import BaseService
from pos_ledger.services.ledger_store import LedgerStore, PostingResult

logger = get_logger("services.posting_adapters")

_PURCHASE_DEFAULT_PAYOUT = {
    ReferenceTag.MARKET_PURCHASE: AccountRole.CASH,
    ReferenceTag.PURCHASE_ORDER: AccountRole.ACCOUNTS_PAYABLE,
}


class PostingAdapters(BaseService):
    """
    Ledger-side entry points for domain events.

    Contract:
        Flushes, never commits.  Returns the PostingResult of the group, or
        None when the event carries no monetary value.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        registry: AccountRegistry | None = None,
        ledger_store: LedgerStore | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._registry = registry or AccountRegistry(session, config)
        self._store = ledger_store or LedgerStore(session)
        self._clock = clock or SystemClock()
        self._cost_ratio = config.cogs_cost_ratio

    # ------------------------------------------------------------------
    # Sales and returns
    # ------------------------------------------------------------------

    def post_sale(
        self,
        order_id: UUID | str,
        total: Decimal,
        cost_estimate: Decimal | None = None,
        date: date | None = None,
        customer: str | None = None,
        order_number: str | None = None,
    ) -> PostingResult | None:
        """
        Order completed: Dr Cash / Cr Sales Revenue for the total, and
        Dr COGS / Cr Inventory for the cost.

        Without ``cost_estimate`` the cost is the configured fraction of the
        total.
        """
        cost = posting_rules.cost_of_sale(total, cost_estimate, self._cost_ratio)
        label = f"Order {order_number or order_id}"
        if customer:
            label = f"{label} - {customer}"
        codes = self._codes(
            AccountRole.CASH,
            AccountRole.SALES_REVENUE,
            AccountRole.COST_OF_GOODS_SOLD,
            AccountRole.INVENTORY,
        )
        return self._post(
            posting_rules.sale_lines(codes, total, cost, label),
            ReferenceTag.ORDER,
            order_id,
            "sale",
            date,
            label,
        )

    def post_return(
        self,
        return_id: UUID | str,
        refund_value: Decimal,
        kind: ReturnKind | str = ReturnKind.REFUND,
        date: date | None = None,
        cost_estimate: Decimal | None = None,
    ) -> PostingResult | None:
        """
        Return approved: the mirror image of a sale for the refunded value.

        Dr Sales Revenue / Cr Cash for ``refund_value``; Dr Inventory / Cr COGS
        for the cost of the returned goods (estimated like a sale's).  For a
        replacement return, call post_replacement() when the replacement
        ships.
        """
        kind = ReturnKind(kind)
        cost = posting_rules.cost_of_sale(refund_value, cost_estimate, self._cost_ratio)
        label = f"Return {return_id} ({kind.value})"
        codes = self._codes(
            AccountRole.CASH,
            AccountRole.SALES_REVENUE,
            AccountRole.COST_OF_GOODS_SOLD,
            AccountRole.INVENTORY,
        )
        return self._post(
            posting_rules.return_lines(codes, refund_value, cost, label),
            ReferenceTag.RETURN,
            return_id,
            "refund",
            date,
            label,
        )

    def post_replacement(
        self,
        return_id: UUID | str,
        replacement_value: Decimal,
        date: date | None = None,
        cost_estimate: Decimal | None = None,
    ) -> PostingResult | None:
        """Replacement shipped on return completion: a sale-like group tagged Return."""
        cost = posting_rules.cost_of_sale(replacement_value, cost_estimate, self._cost_ratio)
        label = f"Replacement - Return {return_id}"
        codes = self._codes(
            AccountRole.CASH,
            AccountRole.SALES_REVENUE,
            AccountRole.COST_OF_GOODS_SOLD,
            AccountRole.INVENTORY,
        )
        return self._post(
            posting_rules.sale_lines(codes, replacement_value, cost, label),
            ReferenceTag.RETURN,
            return_id,
            "replacement",
            date,
            label,
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def post_stock_adjustment(
        self,
        adjustment_id: UUID | str,
        increase_value: Decimal,
        decrease_value: Decimal,
        reason: str | None = None,
        date: date | None = None,
    ) -> PostingResult | None:
        """
        Adjustment approved: Dr Inventory / Cr COGS for the increase and
        Dr COGS / Cr Inventory for the decrease, in one group.
        """
        label = f"Adjustment {adjustment_id}"
        if reason:
            label = f"{label} - {reason}"
        codes = self._codes(AccountRole.INVENTORY, AccountRole.COST_OF_GOODS_SOLD)
        return self._post(
            posting_rules.adjustment_lines(codes, increase_value, decrease_value, label),
            ReferenceTag.ADJUSTMENT,
            adjustment_id,
            "adjustment",
            date,
            label,
        )

    def post_stock_adjustment_lines(
        self,
        adjustment_id: UUID | str,
        lines: Iterable[AdjustmentLine],
        reason: str | None = None,
        date: date | None = None,
    ) -> PostingResult | None:
        """Value per-line count deltas, then post_stock_adjustment()."""
        increase, decrease = posting_rules.summarize_adjustment(lines)
        return self.post_stock_adjustment(adjustment_id, increase, decrease, reason, date)

    def post_damaged_goods(
        self,
        receipt_id: UUID | str,
        damaged_value: Decimal,
        date: date | None = None,
        receipt_number: str | None = None,
    ) -> PostingResult | None:
        """Damaged goods found on receipt: Dr COGS / Cr Inventory.  Zero is a no-op."""
        label = f"GR {receipt_number or receipt_id}"
        codes = self._codes(AccountRole.INVENTORY, AccountRole.COST_OF_GOODS_SOLD)
        return self._post(
            posting_rules.damaged_goods_lines(codes, damaged_value, label),
            ReferenceTag.GOODS_RECEIPT,
            receipt_id,
            "damaged",
            date,
            label,
        )

    # ------------------------------------------------------------------
    # Procurement
    # ------------------------------------------------------------------

    def post_purchase(
        self,
        purchase_id: UUID | str,
        total_amount: Decimal,
        payout_account_code: str | None = None,
        date: date | None = None,
        reference: ReferenceTag | str = ReferenceTag.MARKET_PURCHASE,
        document_number: str | None = None,
    ) -> PostingResult | None:
        """
        Purchase added to inventory: Dr Inventory / Cr payout account.

        The payout account defaults to Cash for a market purchase and to
        Accounts Payable for a purchase order; ``payout_account_code``
        overrides either.
        """
        try:
            reference = ReferenceTag(reference)
        except ValueError:
            raise UnknownReferenceError("reference_tag", str(reference)) from None
        if reference not in _PURCHASE_DEFAULT_PAYOUT:
            raise UnknownReferenceError("reference_tag", f"{reference.value} is not a purchase")

        payout_role = _PURCHASE_DEFAULT_PAYOUT[reference]
        wanted = {
            AccountRole.INVENTORY.value: self._registry.code_for(AccountRole.INVENTORY),
            "payout": payout_account_code or self._registry.code_for(payout_role),
        }
        accounts = self._registry.require_accounts(wanted)
        label = f"{'PO' if reference is ReferenceTag.PURCHASE_ORDER else 'Market purchase'} {document_number or purchase_id}"
        return self._post(
            posting_rules.purchase_lines(
                accounts[AccountRole.INVENTORY.value].code,
                accounts["payout"].code,
                total_amount,
                label,
            ),
            reference,
            purchase_id,
            "purchase",
            date,
            label,
        )

    def post_payment(
        self,
        payment_id: UUID | str,
        amount: Decimal,
        date: date | None = None,
        memo: str | None = None,
    ) -> PostingResult | None:
        """Supplier paid: Dr Accounts Payable / Cr Cash."""
        label = memo or "Supplier payment"
        codes = self._codes(AccountRole.ACCOUNTS_PAYABLE, AccountRole.CASH)
        return self._post(
            posting_rules.payment_lines(codes, amount, label),
            ReferenceTag.PAYMENT,
            payment_id,
            "payment",
            date,
            label,
        )

    # ------------------------------------------------------------------

    def _codes(self, *roles: AccountRole) -> dict[AccountRole, str]:
        wanted = {role: self._registry.code_for(role) for role in roles}
        return {role: account.code for role, account in self._registry.require_accounts(wanted).items()}

    def _post(
        self,
        lines: Sequence[LineSpec],
        reference: ReferenceTag,
        reference_id: UUID | str,
        purpose: str,
        posting_date: date | None,
        description: str,
    ) -> PostingResult | None:
        reference_id = str(reference_id)
        if not reference_id:
            raise ValidationError(f"{reference.value} posting requires a document id")
        with LogContext.bind(reference=f"{reference.value}:{reference_id}"):
            if not lines:
                logger.info(
                    "posting_skipped_zero_value",
                    extra={"purpose": purpose, "reference_id": reference_id},
                )
                return None
            result = self._store.post_group(
                lines,
                reference=reference,
                reference_id=reference_id,
                date=posting_date or self._clock.today(),
                idempotency_key=generate_idempotency_key(reference.value, reference_id, purpose),
                description=description,
            )
            logger.info(
                "domain_event_posted",
                extra={
                    "purpose": purpose,
                    "batch_id": str(result.batch_id),
                    "batch_created": result.created,
                },
            )
            return result
