"""Audit service for logging ledger cascades."""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from condo_ledger.models.audit_log import AuditLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class AuditService:
    """Service for audit log operations.

    Entries are added to the caller's session and committed with the
    operation they describe.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("payment", "movement", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("apply", "delete", etc.)
            actor: Operator who performed the action (optional)
            changes: Optional snapshot of amounts; Decimals are stored as strings

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=_jsonable(changes) if changes is not None else None,
        )
        db.add(audit)
        return audit


__all__ = ["AuditService"]
