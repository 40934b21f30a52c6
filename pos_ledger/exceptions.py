"""
Typed exception hierarchy for the POS ledger.

Every error carries a class-level ``code`` (machine-readable, API-safe) and
stores its context as attributes, so callers catch by type and report by
data rather than parsing messages.

    LedgerError (base)
    |
    +-- ValidationError                 -> 4xx "bad request"
    |   +-- UnbalancedEntryError
    |   +-- EmptyEntryError
    |   +-- InvalidLineError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountInactiveError
    |   +-- UnknownReferenceError
    |
    +-- NotFoundError                   -> 4xx "not found"
    |   +-- AccountNotFoundError
    |   +-- AccountTypeNotFoundError
    |   +-- JournalEntryNotFoundError
    |   +-- PendingPostingNotFoundError
    |
    +-- ConflictError                   -> 4xx "conflict"
    |   +-- AccountReferencedError
    |   +-- AccountTypeReferencedError
    |   +-- EntryAlreadyReversedError
    |
    +-- PostingIntegrityError           -> adapter cannot resolve an account
    +-- ImmutabilityViolationError      -> UPDATE of an append-only row
    +-- ConfigurationError              -> malformed ledger configuration

Category codes:

Category     | Code                       | When raised
-------------|----------------------------|------------------------------------
Validation   | UNBALANCED_ENTRY           | Debits != credits beyond tolerance
             | EMPTY_ENTRY                | Entry or group with no lines
             | INVALID_LINE               | Negative, dual or zero debit/credit
             | DUPLICATE_ACCOUNT_CODE     | Account code already in use
             | ACCOUNT_INACTIVE           | Posting to a disabled account
             | UNKNOWN_REFERENCE          | Missing account/type/sub-type id
-------------|----------------------------|------------------------------------
Not found    | ACCOUNT_NOT_FOUND          | Unknown account id on read/update
             | ACCOUNT_TYPE_NOT_FOUND     | Unknown account type id
             | JOURNAL_ENTRY_NOT_FOUND    | Unknown journal entry id
             | PENDING_POSTING_NOT_FOUND  | Unknown outbox row id
-------------|----------------------------|------------------------------------
Conflict     | ACCOUNT_REFERENCED         | Delete of account with lines
             | ACCOUNT_TYPE_REFERENCED    | Delete of type still in use
             | ENTRY_ALREADY_REVERSED     | Second reversal of a journal entry
-------------|----------------------------|------------------------------------
Posting      | POSTING_INTEGRITY          | Well-known/payout account missing
Immutability | IMMUTABILITY_VIOLATION     | TransactionLine modified
Config       | CONFIGURATION_ERROR        | Bad YAML or missing keys
"""


class LedgerError(Exception):
    """
    Base exception for all ledger errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "LEDGER_ERROR"


# Validation


class ValidationError(LedgerError):
    """Input cannot be accepted as posted."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Total debits differ from total credits beyond the stated tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, tolerance: str = "0"):
        self.debits = debits
        self.credits = credits
        self.tolerance = tolerance
        super().__init__(
            f"unbalanced entry: debits={debits}, credits={credits} "
            f"(tolerance {tolerance})"
        )


class EmptyEntryError(ValidationError):
    """A journal entry or posting group was submitted without lines."""

    code: str = "EMPTY_ENTRY"

    def __init__(self, what: str = "journal entry"):
        self.what = what
        super().__init__(f"{what} must have at least one line")


class InvalidLineError(ValidationError):
    """A line carries a negative amount, both sides, or neither side."""

    code: str = "INVALID_LINE"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Invalid line {index}: {reason}")


class DuplicateAccountCodeError(ValidationError):
    """Account codes are globally unique."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountInactiveError(ValidationError):
    """Posting targets a disabled account."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str | None = None):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(
            f"Account {account_code or account_id} is disabled and cannot be posted to"
        )


class UnknownReferenceError(ValidationError):
    """A write references an account, type or sub-type that does not exist."""

    code: str = "UNKNOWN_REFERENCE"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Referenced {entity_type} does not exist: {entity_id}")


# Not found


class NotFoundError(LedgerError):
    """Unknown id on read, update or delete."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class AccountTypeNotFoundError(NotFoundError):
    code: str = "ACCOUNT_TYPE_NOT_FOUND"

    def __init__(self, type_id: str):
        self.type_id = type_id
        super().__init__(f"Account type not found: {type_id}")


class JournalEntryNotFoundError(NotFoundError):
    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class PendingPostingNotFoundError(NotFoundError):
    code: str = "PENDING_POSTING_NOT_FOUND"

    def __init__(self, pending_id: str):
        self.pending_id = pending_id
        super().__init__(f"Pending posting not found: {pending_id}")


# Conflict


class ConflictError(LedgerError):
    """The operation contradicts existing ledger state."""

    code: str = "CONFLICT"


class AccountReferencedError(ConflictError):
    """Account has transaction lines and cannot be deleted."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, line_count: int = 0):
        self.account_id = account_id
        self.line_count = line_count
        super().__init__(
            f"Cannot delete account {account_id}: referenced by "
            f"{line_count} transaction line(s)"
        )


class AccountTypeReferencedError(ConflictError):
    """Account type still has accounts or sub-types attached."""

    code: str = "ACCOUNT_TYPE_REFERENCED"

    def __init__(self, type_id: str, reason: str):
        self.type_id = type_id
        self.reason = reason
        super().__init__(f"Cannot delete account type {type_id}: {reason}")


class EntryAlreadyReversedError(ConflictError):
    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversal_id: str):
        self.entry_id = entry_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Journal entry {entry_id} already reversed by {reversal_id}"
        )


# Posting


class PostingIntegrityError(LedgerError):
    """
    A posting adapter cannot resolve a required account.

    The posting is aborted; nothing is written for the event.
    """

    code: str = "POSTING_INTEGRITY"

    def __init__(self, role: str, account_code: str | None, reason: str):
        self.role = role
        self.account_code = account_code
        self.reason = reason
        super().__init__(
            f"Cannot resolve {role} account ({account_code}): {reason}"
        )


# Immutability


class ImmutabilityViolationError(LedgerError):
    """Attempted to modify an append-only ledger record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration


class ConfigurationError(LedgerError):
    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid ledger configuration at '{key}': {reason}")
