"""
Posting rules -- pure builders of balanced line sets per domain event.

Responsibility:
    Translate a domain event's monetary facts into the LineSpecs a posting
    adapter hands to LedgerStore.post_group().  No database access: account
    codes come from the well-known role table already resolved by the
    AccountRegistry.

Architecture position:
    Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every builder emits matched debit/credit pairs for the same amount, so
      each returned tuple balances by construction.
    - Zero-value pairs are omitted; an all-zero event yields an empty tuple.
    - Negative amounts are rejected with ValidationError.

Rules:
    sale            Dr Cash / Cr Sales Revenue           (total)
                    Dr COGS / Cr Inventory               (cost)
    return          Dr Sales Revenue / Cr Cash           (refund)
                    Dr Inventory / Cr COGS               (cost of refund)
    replacement     same shape as sale
    adjustment      Dr Inventory / Cr COGS               (increase)
                    Dr COGS / Cr Inventory               (decrease)
    purchase        Dr Inventory / Cr payout account     (total)
    payment         Dr Accounts Payable / Cr Cash        (amount)
    damaged goods   Dr COGS / Cr Inventory               (damaged value)
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from pos_ledger.domain.dtos import ZERO, AccountRole, AdjustmentLine, LineSpec
from pos_ledger.exceptions import ValidationError

CENT = Decimal("0.01")

Codes = Mapping[AccountRole, str]


def _non_negative(name: str, value: Decimal) -> Decimal:
    if value < ZERO:
        raise ValidationError(f"{name} must not be negative: {value}")
    return value


def _pair(
    debit_code: str,
    credit_code: str,
    amount: Decimal,
    description: str | None,
    sub_id: str | None = None,
) -> tuple[LineSpec, ...]:
    if amount == ZERO:
        return ()
    return (
        LineSpec.dr(debit_code, amount, description, sub_id),
        LineSpec.cr(credit_code, amount, description, sub_id),
    )


def totals(lines: Iterable[LineSpec]) -> tuple[Decimal, Decimal]:
    """(sum of debits, sum of credits)."""
    debit = ZERO
    credit = ZERO
    for line in lines:
        debit += line.debit
        credit += line.credit
    return debit, credit


def cost_of_sale(
    total: Decimal,
    cost_estimate: Decimal | None,
    cost_ratio: Decimal,
) -> Decimal:
    """
    Cost booked against a sale.

    The caller's estimate wins; without one the cost is the configured
    fraction of the sale total, rounded to the cent.
    """
    if cost_estimate is not None:
        return _non_negative("cost_estimate", cost_estimate)
    return (total * cost_ratio).quantize(CENT, rounding=ROUND_HALF_UP)


def sale_lines(codes: Codes, total: Decimal, cost: Decimal, label: str) -> tuple[LineSpec, ...]:
    _non_negative("total", total)
    _non_negative("cost", cost)
    return _pair(
        codes[AccountRole.CASH], codes[AccountRole.SALES_REVENUE], total, f"Sale - {label}", "revenue"
    ) + _pair(
        codes[AccountRole.COST_OF_GOODS_SOLD], codes[AccountRole.INVENTORY], cost, f"COGS - {label}", "cogs"
    )


def return_lines(codes: Codes, refund_value: Decimal, cost: Decimal, label: str) -> tuple[LineSpec, ...]:
    """Mirror image of sale_lines for the refunded value."""
    _non_negative("refund_value", refund_value)
    _non_negative("cost", cost)
    return _pair(
        codes[AccountRole.SALES_REVENUE], codes[AccountRole.CASH], refund_value, f"Refund - {label}", "revenue"
    ) + _pair(
        codes[AccountRole.INVENTORY],
        codes[AccountRole.COST_OF_GOODS_SOLD],
        cost,
        f"Inventory restored - {label}",
        "cogs",
    )


def adjustment_lines(
    codes: Codes,
    increase_value: Decimal,
    decrease_value: Decimal,
    label: str,
) -> tuple[LineSpec, ...]:
    _non_negative("increase_value", increase_value)
    _non_negative("decrease_value", decrease_value)
    return _pair(
        codes[AccountRole.INVENTORY],
        codes[AccountRole.COST_OF_GOODS_SOLD],
        increase_value,
        f"Stock increase - {label}",
        "increase",
    ) + _pair(
        codes[AccountRole.COST_OF_GOODS_SOLD],
        codes[AccountRole.INVENTORY],
        decrease_value,
        f"Stock decrease - {label}",
        "decrease",
    )


def summarize_adjustment(lines: Iterable[AdjustmentLine]) -> tuple[Decimal, Decimal]:
    """
    Aggregate per-line stock count deltas into (increase_value, decrease_value).

    Each line contributes |adjusted - current| * unit_cost to the side of its
    delta; unchanged lines contribute nothing.
    """
    increase = ZERO
    decrease = ZERO
    for line in lines:
        _non_negative("unit_cost", line.unit_cost)
        if line.delta > ZERO:
            increase += line.value
        elif line.delta < ZERO:
            decrease += line.value
    return increase, decrease


def purchase_lines(
    inventory_code: str,
    payout_code: str,
    total_amount: Decimal,
    label: str,
) -> tuple[LineSpec, ...]:
    _non_negative("total_amount", total_amount)
    return _pair(inventory_code, payout_code, total_amount, f"Purchase - {label}")


def payment_lines(codes: Codes, amount: Decimal, label: str) -> tuple[LineSpec, ...]:
    _non_negative("amount", amount)
    return _pair(
        codes[AccountRole.ACCOUNTS_PAYABLE], codes[AccountRole.CASH], amount, f"Payment - {label}"
    )


def damaged_goods_lines(codes: Codes, damaged_value: Decimal, label: str) -> tuple[LineSpec, ...]:
    _non_negative("damaged_value", damaged_value)
    return _pair(
        codes[AccountRole.COST_OF_GOODS_SOLD],
        codes[AccountRole.INVENTORY],
        damaged_value,
        f"Damaged goods - {label}",
    )

