"""Generated document lifecycle with transition validation."""

from __future__ import annotations

from enum import Enum

from hrms_core.exceptions import InvalidTransitionError


class DocumentStatus(str, Enum):
    """Generated document status values."""

    GENERATED = "generated"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DocumentLifecycle:
    """State machine for generated document status transitions.

    Allowed transitions:
    - generated → sent
    - sent → viewed
    - viewed → accepted
    - viewed → rejected
    - generated | sent | viewed → expired
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        DocumentStatus.GENERATED: [DocumentStatus.SENT, DocumentStatus.EXPIRED],
        DocumentStatus.SENT: [DocumentStatus.VIEWED, DocumentStatus.EXPIRED],
        DocumentStatus.VIEWED: [
            DocumentStatus.ACCEPTED,
            DocumentStatus.REJECTED,
            DocumentStatus.EXPIRED,
        ],
        DocumentStatus.ACCEPTED: [],  # Terminal state
        DocumentStatus.REJECTED: [],  # Terminal state
        DocumentStatus.EXPIRED: [],  # Terminal state
    }

    TERMINAL = {
        DocumentStatus.ACCEPTED,
        DocumentStatus.REJECTED,
        DocumentStatus.EXPIRED,
    }

    # Timestamp column stamped when a document enters the status
    TIMESTAMP_FIELDS: dict[str, str] = {
        DocumentStatus.SENT: "sent_at",
        DocumentStatus.VIEWED: "viewed_at",
        DocumentStatus.ACCEPTED: "decided_at",
        DocumentStatus.REJECTED: "decided_at",
        DocumentStatus.EXPIRED: "expired_at",
    }

    @staticmethod
    def coerce(status: str) -> DocumentStatus | None:
        """Parse a stored or submitted status; None when unknown."""
        try:
            return DocumentStatus(status)
        except ValueError:
            return None

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(cls.coerce(from_status), [])
        return cls.coerce(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if cls.coerce(to_status) is None:
            raise InvalidTransitionError(from_status, to_status, "unknown status")
        if not cls.can_transition(from_status, to_status):
            reason = "document is in a terminal state" if cls.is_terminal(from_status) else None
            raise InvalidTransitionError(from_status, to_status, reason)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(cls.coerce(current_status), []))

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return cls.coerce(status) in cls.TERMINAL

    @classmethod
    def can_expire(cls, status: str) -> bool:
        """Check if a document in this status may still expire."""
        return cls.can_transition(status, DocumentStatus.EXPIRED)
