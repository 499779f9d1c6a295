"""Tests for the request status state machine."""

import pytest

from benefits_engine.services.state_machine import (
    ApprovalAction,
    InvalidTransitionError,
    RequestStateMachine,
    RequestStatus,
)


class TestRequestStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        assert RequestStateMachine.can_transition("Pending", "Pending") is True
        assert RequestStateMachine.can_transition("Pending", "Approved") is True
        assert RequestStateMachine.can_transition("Pending", "Rejected") is True
        assert RequestStateMachine.can_transition("Pending", "Cancelled") is True

        # Booking cancellation after approval, loan completion
        assert RequestStateMachine.can_transition("Approved", "Cancelled") is True
        assert RequestStateMachine.can_transition("Approved", "Completed") is True

    def test_terminal_states(self):
        """Rejected, Cancelled and Completed never move again."""
        for terminal in ("Rejected", "Cancelled", "Completed"):
            for target in RequestStatus:
                assert RequestStateMachine.can_transition(terminal, target.value) is False

        assert RequestStateMachine.can_transition("Approved", "Pending") is False
        assert RequestStateMachine.can_transition("Approved", "Rejected") is False

    def test_unknown_status_has_no_transitions(self):
        assert RequestStateMachine.can_transition("Draft", "Approved") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            RequestStateMachine.validate_transition("Rejected", "Approved")

        assert exc_info.value.from_status == "Rejected"
        assert exc_info.value.to_status == "Approved"

    def test_only_pending_is_decidable(self):
        assert RequestStateMachine.can_decide("Pending") is True
        for status in ("Approved", "Rejected", "Cancelled", "Completed"):
            assert RequestStateMachine.can_decide(status) is False


class TestApplyDecision:
    """Level arithmetic for approve/reject."""

    def test_approve_below_max_advances_level(self):
        t = RequestStateMachine.apply_decision("Pending", 1, 4, ApprovalAction.APPROVE)
        assert t.status == RequestStatus.PENDING
        assert t.approval_level == 2
        assert t.is_final is False

    def test_approve_at_max_is_final(self):
        t = RequestStateMachine.apply_decision("Pending", 4, 4, ApprovalAction.APPROVE)
        assert t.status == RequestStatus.APPROVED
        assert t.approval_level == 4
        assert t.is_final is True

    def test_single_level_chain(self):
        t = RequestStateMachine.apply_decision("Pending", 1, 1, ApprovalAction.APPROVE)
        assert t.status == RequestStatus.APPROVED
        assert t.approval_level == 1

    @pytest.mark.parametrize("level", [1, 2, 3, 4])
    def test_reject_is_final_and_keeps_level(self, level):
        t = RequestStateMachine.apply_decision("Pending", level, 4, ApprovalAction.REJECT)
        assert t.status == RequestStatus.REJECTED
        assert t.approval_level == level
        assert t.is_final is True

    def test_decision_on_terminal_request_raises(self):
        with pytest.raises(InvalidTransitionError):
            RequestStateMachine.apply_decision("Approved", 4, 4, ApprovalAction.APPROVE)

    def test_level_outside_chain_raises(self):
        with pytest.raises(InvalidTransitionError):
            RequestStateMachine.apply_decision("Pending", 3, 2, ApprovalAction.APPROVE)
        with pytest.raises(InvalidTransitionError):
            RequestStateMachine.apply_decision("Pending", 0, 2, ApprovalAction.APPROVE)
