"""Pure domain layer: DTOs, clock, idempotency keys and posting rules."""
