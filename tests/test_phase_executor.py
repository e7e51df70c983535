"""Tests for PhaseExecutor.

The executor runs a phase's actions in order, records artifacts as each
action succeeds, stops at the first failure and skips actions that an
earlier attempt already completed.
"""

from dataclasses import replace

import pytest

from scaffoldflow.collaborators.base import CollaboratorAdapter
from scaffoldflow.config import ArtifactKind
from scaffoldflow.workflow.phase_executor import PhaseExecutor, PhaseOutcome
from scaffoldflow.workflow.phase_registry import ActionSpec
from scaffoldflow.workflow.phase_specs import (
    CODE_FORMATTER,
    CODE_SIMPLIFIER,
    SIMPLIFICATION_PHASE,
    default_registry,
)
from scaffoldflow.workflow.run import WorkflowRun

from conftest import FakeTool, artifact

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def run(spec_document):
    return WorkflowRun(registry=default_registry(), spec_document=spec_document)


@pytest.fixture
def executor(adapter):
    return PhaseExecutor(adapter)


# =============================================================================
# PhaseOutcome
# =============================================================================


class TestPhaseOutcome:
    """Tests for the outcome label."""

    @pytest.mark.parametrize(
        "success,partial,label",
        [(True, False, "success"), (False, True, "partial"), (False, False, "failed")],
    )
    def test_label(self, success, partial, label):
        outcome = PhaseOutcome(phase="x", success=success, partial=partial)
        assert outcome.label == label


# =============================================================================
# Execution
# =============================================================================


class TestPhaseExecutorRun:
    """Tests for PhaseExecutor.run."""

    def test_all_actions_succeed(self, executor, run, tools):
        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert outcome.success
        assert outcome.executed_actions == ["simplify", "format"]
        assert len(outcome.artifacts) == 2
        assert run.completed_actions["simplification"] == ["simplify", "format"]
        assert len(tools[CODE_SIMPLIFIER].calls) == 1
        assert len(tools[CODE_FORMATTER].calls) == 1

    def test_artifacts_attributed_to_phase_and_action(self, executor, run):
        executor.run(SIMPLIFICATION_PHASE, run)

        recorded = run.ledger.for_phase("simplification")
        assert [(a.action, a.kind) for a in recorded] == [
            ("simplify", ArtifactKind.FORMATTED_FILE),
            ("format", ArtifactKind.FORMATTED_FILE),
        ]

    def test_first_action_failure_is_not_partial(self, executor, run, tools):
        tools[CODE_SIMPLIFIER].fail_next("agent crashed")

        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert not outcome.success
        assert not outcome.partial
        assert outcome.label == "failed"
        assert outcome.failed_action == "simplify"
        assert outcome.error_detail == "agent crashed"
        assert tools[CODE_FORMATTER].calls == []
        assert len(run.ledger) == 0

    def test_later_failure_is_partial_and_keeps_artifacts(self, executor, run, tools):
        tools[CODE_FORMATTER].fail_next("pint: syntax error")

        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert outcome.label == "partial"
        assert outcome.failed_action == "format"
        assert [a.action for a in run.ledger] == ["simplify"]
        assert run.completed_actions["simplification"] == ["simplify"]

    def test_retry_skips_completed_actions(self, executor, run, tools):
        tools[CODE_FORMATTER].fail_next()
        executor.run(SIMPLIFICATION_PHASE, run)

        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert outcome.success
        assert outcome.skipped_actions == ["simplify"]
        assert outcome.executed_actions == ["format"]
        assert len(tools[CODE_SIMPLIFIER].calls) == 1
        assert len(run.ledger.query(kind=ArtifactKind.FORMATTED_FILE)) == 2

    def test_payload_overrides_are_merged(self, executor, run, tools):
        phase = replace(
            SIMPLIFICATION_PHASE,
            actions=(
                ActionSpec(name="simplify", collaborator_id=CODE_SIMPLIFIER, payload={"level": 1}),
            ),
        )
        run.payload_overrides["simplification"] = {"level": 3, "paths": ["app/"]}

        executor.run(phase, run)

        payload, _ = tools[CODE_SIMPLIFIER].calls[0]
        assert payload == {"level": 3, "paths": ["app/"]}

    def test_context_carries_run_and_snapshot(self, executor, run, tools, spec_document):
        run.ledger.record("generation", [artifact(ArtifactKind.MODEL, "Post.php")])

        executor.run(SIMPLIFICATION_PHASE, run)

        _, context = tools[CODE_FORMATTER].calls[0]
        assert context.run_id == run.run_id
        assert context.phase == "simplification"
        assert context.action == "format"
        assert context.spec_document is spec_document
        # Snapshot taken after 'simplify' recorded its artifact
        assert [a.identifier for a in context.ledger_snapshot] == [
            "Post.php",
            "app/Models/Post.php",
        ]

    def test_unknown_collaborator_fails_phase(self, run):
        executor = PhaseExecutor(CollaboratorAdapter([FakeTool(CODE_SIMPLIFIER)]))

        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert outcome.failed_action == "format"
        assert "Unknown collaborator" in outcome.error_detail

    def test_missing_expected_kind_only_warns(self, executor, run, tools, caplog):
        tools[CODE_SIMPLIFIER].then([artifact(ArtifactKind.MODEL, "Post.php")])

        outcome = executor.run(SIMPLIFICATION_PHASE, run)

        assert outcome.success
        assert "produced no 'formatted-file' artifacts" in caplog.text
