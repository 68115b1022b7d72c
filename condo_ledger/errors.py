"""Ledger exception classes.

Every error carries a machine-readable code, the HTTP status the API layer
answers with, and a context dict (ids and amounts) so callers can decide
whether to retry or abort.
"""

from typing import Any


class LedgerError(Exception):
    """Base exception for ledger errors."""

    code = "ledger_error"
    http_status = 400

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class NotFoundError(LedgerError):
    """Referenced apartment, charge, payment, movement or account is absent."""

    code = "not_found"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: int):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class AlreadyLinkedError(LedgerError):
    """A movement or record already has a link partner."""

    code = "already_linked"
    http_status = 409


class InvalidLinkTargetError(LedgerError):
    """The requested link target cannot be linked (unknown type, wrong direction)."""

    code = "invalid_link_target"
    http_status = 400


class InvalidAmountError(LedgerError):
    """Amount is non-positive or non-finite."""

    code = "invalid_amount"
    http_status = 422


class DerivedFieldEditError(LedgerError):
    """Direct edit of a payment field that is derived from its bank movement."""

    code = "derived_field_edit"
    http_status = 409


class ChargeInUseError(LedgerError):
    """Charge cannot be removed while payment allocations reference it."""

    code = "charge_in_use"
    http_status = 409


class InconsistentStateError(LedgerError):
    """An operation would move a charge's amount_paid outside [0, amount].

    Signals a bug, never user error.
    """

    code = "inconsistent_state"
    http_status = 500


class ReportUnavailableError(LedgerError):
    """A report could not read all of its rows and was not produced."""

    code = "report_unavailable"
    http_status = 503


__all__ = [
    "LedgerError",
    "NotFoundError",
    "AlreadyLinkedError",
    "InvalidLinkTargetError",
    "InvalidAmountError",
    "DerivedFieldEditError",
    "ChargeInUseError",
    "InconsistentStateError",
    "ReportUnavailableError",
]
