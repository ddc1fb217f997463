"""Tests for the generated document lifecycle."""

import pytest

from hrms_core.exceptions import InvalidTransitionError
from hrms_core.services.state_machine import DocumentLifecycle, DocumentStatus


class TestDocumentLifecycle:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # generated → sent → viewed
        assert DocumentLifecycle.can_transition("generated", "sent") is True
        assert DocumentLifecycle.can_transition("sent", "viewed") is True

        # viewed → accepted | rejected
        assert DocumentLifecycle.can_transition("viewed", "accepted") is True
        assert DocumentLifecycle.can_transition("viewed", "rejected") is True

        # expiry from any non-terminal status
        for status in ("generated", "sent", "viewed"):
            assert DocumentLifecycle.can_transition(status, "expired") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip steps
        assert DocumentLifecycle.can_transition("generated", "viewed") is False
        assert DocumentLifecycle.can_transition("generated", "accepted") is False
        assert DocumentLifecycle.can_transition("sent", "accepted") is False

        # Can't go backwards
        assert DocumentLifecycle.can_transition("viewed", "sent") is False
        assert DocumentLifecycle.can_transition("accepted", "sent") is False

        # Terminal statuses
        assert DocumentLifecycle.can_transition("rejected", "accepted") is False
        assert DocumentLifecycle.can_transition("expired", "sent") is False
        assert DocumentLifecycle.can_transition("accepted", "expired") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            DocumentLifecycle.validate_transition("accepted", "sent")

        assert exc_info.value.from_status == "accepted"
        assert exc_info.value.to_status == "sent"
        assert exc_info.value.code == "INVALID_TRANSITION"
        assert "terminal" in str(exc_info.value)

    def test_validate_unknown_status(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            DocumentLifecycle.validate_transition("generated", "archived")

        assert exc_info.value.reason == "unknown status"

    def test_enum_and_string_are_interchangeable(self):
        assert DocumentLifecycle.can_transition(DocumentStatus.GENERATED, "sent") is True
        assert DocumentLifecycle.can_transition("sent", DocumentStatus.VIEWED) is True

    def test_get_next_statuses(self):
        assert DocumentLifecycle.get_next_statuses("viewed") == [
            DocumentStatus.ACCEPTED,
            DocumentStatus.REJECTED,
            DocumentStatus.EXPIRED,
        ]
        assert DocumentLifecycle.get_next_statuses("accepted") == []
        assert DocumentLifecycle.get_next_statuses("bogus") == []

    def test_terminal_statuses(self):
        assert DocumentLifecycle.is_terminal("accepted")
        assert DocumentLifecycle.is_terminal("rejected")
        assert DocumentLifecycle.is_terminal("expired")
        assert not DocumentLifecycle.is_terminal("viewed")

    def test_can_expire(self):
        assert DocumentLifecycle.can_expire("sent")
        assert not DocumentLifecycle.can_expire("expired")
