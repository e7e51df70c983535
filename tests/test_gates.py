"""Tests for scaffoldflow.workflow.gates.

Covers blocking and suspended confirmation, single resolution of
requests, and the provided deciders.
"""

from unittest import mock

import pytest

from scaffoldflow.config import ConfirmationPurpose, DecisionOutcome, Severity
from scaffoldflow.errors import ConfirmationAlreadyResolvedError, InvalidTransitionError
from scaffoldflow.workflow.gates import (
    AutoApproveDecider,
    ConfirmationGate,
    ConfirmationRequest,
    ConsoleDecider,
    Decision,
    ScriptedDecider,
    format_request,
    parse_decision,
    parse_modifications,
)
from scaffoldflow.workflow.phase_specs import default_registry
from scaffoldflow.workflow.run import WorkflowRun

# =============================================================================
# Helpers
# =============================================================================


def _run() -> WorkflowRun:
    return WorkflowRun(registry=default_registry())


def _request(purpose=ConfirmationPurpose.PHASE_ENTRY, phase="migration") -> ConfirmationRequest:
    return ConfirmationRequest(
        phase=phase,
        purpose=purpose,
        description="Apply migrations",
        severity=Severity.DESTRUCTIVE,
    )


# =============================================================================
# ConfirmationRequest
# =============================================================================


class TestConfirmationRequest:
    """Tests for ConfirmationRequest resolution."""

    def test_resolves_once(self):
        request = _request()
        request.resolve(Decision.approve())

        assert request.is_resolved
        assert request.resolved_at is not None
        with pytest.raises(ConfirmationAlreadyResolvedError):
            request.resolve(Decision.reject())
        assert request.decision.outcome == DecisionOutcome.APPROVE

    def test_is_destructive(self):
        assert _request().is_destructive


class TestDecision:
    """Tests for Decision constructors."""

    def test_defer_copies_modifications(self):
        mods = {"force": True}
        decision = Decision.defer(mods, note="later")
        mods["force"] = False
        assert decision.modifications == {"force": True}
        assert decision.outcome == DecisionOutcome.DEFER
        assert not decision.approved


# =============================================================================
# ConfirmationGate
# =============================================================================


class TestConfirmationGate:
    """Tests for ConfirmationGate."""

    def test_suspended_without_decider(self):
        gate = ConfirmationGate()
        run = _run()

        request = gate.request_confirmation(run, "migration", "desc", Severity.DESTRUCTIVE)

        assert not request.is_resolved
        assert run.pending_request is request

    def test_blocking_decider_resolves_immediately(self):
        decider = mock.Mock(return_value=Decision.reject(note="no"))
        gate = ConfirmationGate(decider)
        run = _run()

        request = gate.request_confirmation(run, "migration", "desc", Severity.DESTRUCTIVE)

        decider.assert_called_once_with(request)
        assert request.decision.outcome == DecisionOutcome.REJECT
        assert run.pending_request is None

    def test_second_request_while_pending_raises(self):
        gate = ConfirmationGate()
        run = _run()
        gate.request_confirmation(run, "migration", "desc", Severity.DESTRUCTIVE)

        with pytest.raises(InvalidTransitionError):
            gate.request_confirmation(run, "migration", "again", Severity.DESTRUCTIVE)

    def test_resolve_pending_request(self):
        gate = ConfirmationGate()
        run = _run()
        gate.request_confirmation(run, "discovery", "desc", Severity.INFORMATIONAL)

        request = gate.resolve(run, Decision.approve())

        assert request.decision.approved
        assert run.pending_request is None
        assert run.latest_request is request

    def test_resolve_without_pending_request_raises(self):
        with pytest.raises(InvalidTransitionError):
            ConfirmationGate().resolve(_run(), Decision.approve())


# =============================================================================
# Deciders
# =============================================================================


class TestScriptedDecider:
    """Tests for ScriptedDecider."""

    def test_scripted_then_default(self):
        decider = ScriptedDecider({"migration": [Decision.reject(), Decision.approve()]})

        assert decider(_request()).outcome == DecisionOutcome.REJECT
        assert decider(_request()).outcome == DecisionOutcome.APPROVE
        assert decider(_request()).outcome == DecisionOutcome.APPROVE
        assert len(decider.seen) == 3

    def test_purpose_specific_key_wins(self):
        decider = ScriptedDecider(
            {
                ("testing", ConfirmationPurpose.REMEDIATION): Decision.reject(),
                "testing": Decision.defer(),
            }
        )
        remediation = _request(ConfirmationPurpose.REMEDIATION, phase="testing")
        entry = _request(phase="testing")

        assert decider(remediation).outcome == DecisionOutcome.REJECT
        assert decider(entry).outcome == DecisionOutcome.DEFER

    def test_auto_approve_phase_entry(self):
        decision = AutoApproveDecider()(_request())

        assert decision.approved
        assert decision.note == "auto-approved"

    def test_auto_approve_rejects_remediation(self):
        request = _request(ConfirmationPurpose.REMEDIATION, phase="testing")

        assert AutoApproveDecider()(request).outcome == DecisionOutcome.REJECT
        assert AutoApproveDecider(approve_rollbacks=True)(request).outcome == (
            DecisionOutcome.REJECT
        )

    def test_auto_approve_rollback_needs_opt_in(self):
        request = _request(ConfirmationPurpose.ROLLBACK, phase="simplification")

        assert AutoApproveDecider()(request).outcome == DecisionOutcome.REJECT
        assert AutoApproveDecider(approve_rollbacks=True)(request).approved


class TestConsoleDecider:
    """Tests for ConsoleDecider and its parsing helpers."""

    @pytest.mark.parametrize(
        "answer,expected",
        [
            ("y", DecisionOutcome.APPROVE),
            (" YES ", DecisionOutcome.APPROVE),
            ("n", DecisionOutcome.REJECT),
            ("defer", DecisionOutcome.DEFER),
            ("maybe", None),
        ],
    )
    def test_parse_decision(self, answer, expected):
        assert parse_decision(answer) == expected

    def test_repeats_until_valid(self):
        answers = iter(["what", "", "n"])
        output = []
        decider = ConsoleDecider(input_fn=lambda prompt: next(answers), output_fn=output.append)

        decision = decider(_request())

        assert decision.outcome == DecisionOutcome.REJECT
        assert output.count("Please answer y, n or d.") == 2

    def test_defer_collects_modifications_and_note(self):
        answers = iter(["d", "force=true, paths=app/", "use soft deletes"])
        decider = ConsoleDecider(input_fn=lambda prompt: next(answers), output_fn=lambda s: None)

        decision = decider(_request())

        assert decision.outcome == DecisionOutcome.DEFER
        assert decision.modifications == {"force": True, "paths": "app/"}
        assert decision.note == "use soft deletes"

    def test_defer_reasks_on_bad_pair(self):
        answers = iter(["d", "force", "", ""])
        output = []
        decider = ConsoleDecider(input_fn=lambda prompt: next(answers), output_fn=output.append)

        decision = decider(_request())

        assert decision.outcome == DecisionOutcome.DEFER
        assert decision.modifications == {}
        assert "Expected key=value, got 'force'" in output

    def test_end_of_input_rejects(self):
        def closed(prompt):
            raise EOFError

        output = []
        decision = ConsoleDecider(input_fn=closed, output_fn=output.append)(_request())

        assert decision.outcome == DecisionOutcome.REJECT
        assert decision.note == "end of input"
        assert "No answer (end of input); rejecting." in output

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("", {}),
            ("count=3", {"count": 3}),
            (" soft_deletes = yes , table=posts ,", {"soft_deletes": True, "table": "posts"}),
            ("note=", {"note": None}),
        ],
    )
    def test_parse_modifications(self, text, expected):
        assert parse_modifications(text) == expected

    @pytest.mark.parametrize("text", ["force", "=true", "tags=[a"])
    def test_parse_modifications_rejects(self, text):
        with pytest.raises(ValueError):
            parse_modifications(text)

    def test_format_request_warns_for_destructive(self):
        text = format_request(_request(ConfirmationPurpose.ROLLBACK))
        assert "Rollback Proposed: migration" in text
        assert "destructive" in text
