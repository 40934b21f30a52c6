"""
BaseService -- common constructor for the write-side services.

Services receive a SQLAlchemy ``Session`` and persist with
``session.flush()``, never ``session.commit()``: the caller owns the
transaction so multi-step operations (journal header + items + posting
group) commit or roll back as one unit.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for ledger services.

    Guarantees:
        The service never calls ``session.commit()`` or
        ``session.rollback()``.  Savepoints (``begin_nested``) are the only
        transaction control a service uses.
    """

    def __init__(self, session: Session):
        self.session = session
