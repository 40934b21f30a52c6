"""
ORM-level append-only enforcement for ledger rows.

TransactionLine is the single source of truth for every balance: once
written it is never updated.  Corrections are made by posting new,
offsetting lines.  The journal engine's hard delete removes lines with a
bulk DELETE statement, which is the only sanctioned removal path.

Accounts with transaction lines are protected from ORM deletes here as a
second line of defence behind AccountRegistry.delete_account().

To temporarily disable (TESTS ONLY):

    from pos_ledger.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, func, select
from sqlalchemy.orm import Session

from pos_ledger.exceptions import AccountReferencedError, ImmutabilityViolationError
from pos_ledger.logging_config import get_logger

logger = get_logger("db.immutability")


def _check_transaction_line_update(mapper, connection, target):
    """Transaction lines are write-once."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "TransactionLine",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="TransactionLine",
        entity_id=str(target.id),
        reason="Transaction lines are append-only; post an offsetting group instead",
    )


def _check_posting_batch_update(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "PostingBatch",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="PostingBatch",
        entity_id=str(target.id),
        reason="Posting batches are append-only",
    )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """
    Refuse ORM deletion of accounts referenced by transaction lines.

    Runs in before_flush, before the flush plan is finalized; mapper-level
    delete events fire too late to stop the statement.
    """
    from pos_ledger.models.account import Account
    from pos_ledger.models.ledger import TransactionLine

    for obj in list(session.deleted):
        if not isinstance(obj, Account):
            continue
        with session.no_autoflush:
            line_count = session.execute(
                select(func.count(TransactionLine.id)).where(
                    TransactionLine.account_id == obj.id
                )
            ).scalar_one()
        if line_count:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Account",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "line_count": line_count,
                },
            )
            raise AccountReferencedError(account_id=str(obj.id), line_count=line_count)


def register_immutability_listeners() -> None:
    """
    Register the append-only listeners.  Safe to call repeatedly.

    Call after all models are imported but before any writes.
    """
    from pos_ledger.models.ledger import PostingBatch, TransactionLine

    listeners = (
        (Session, "before_flush", _check_account_deletion_before_flush),
        (TransactionLine, "before_update", _check_transaction_line_update),
        (PostingBatch, "before_update", _check_posting_batch_update),
    )
    for target, name, fn in listeners:
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the append-only listeners.

    WARNING: Only for tests that intentionally violate the rules to verify
    detection.
    """
    from pos_ledger.models.ledger import PostingBatch, TransactionLine

    _safe_remove_listener(Session, "before_flush", _check_account_deletion_before_flush)
    _safe_remove_listener(TransactionLine, "before_update", _check_transaction_line_update)
    _safe_remove_listener(PostingBatch, "before_update", _check_posting_batch_update)
