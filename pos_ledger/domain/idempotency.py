"""
Idempotency key generation.

A posting group keyed by its originating event is written at most once,
even under retries, outbox replays and concurrent dispatch.
"""

from uuid import UUID


def generate_idempotency_key(
    reference: str,
    reference_id: UUID | str,
    purpose: str,
) -> str:
    """
    Generate the idempotency key for a posting group.

    Format: reference:reference_id:purpose

    ``purpose`` separates the groups one document legitimately produces
    (a return's refund and its replacement shipment, for example).

    Example:
        >>> generate_idempotency_key("Order", "ord-17", "sale")
        'Order:ord-17:sale'
    """
    return f"{reference}:{reference_id}:{purpose}"


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Split a key into (reference, reference_id, purpose).

    Raises:
        ValueError: If key format is invalid.
    """
    reference, sep, rest = key.partition(":")
    reference_id, sep2, purpose = rest.rpartition(":")
    if not sep or not sep2 or not reference or not reference_id or not purpose:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return reference, reference_id, purpose
