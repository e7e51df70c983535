"""Tests for scaffoldflow.workflow.preconditions."""

from scaffoldflow.config import ArtifactKind, PhaseStatus
from scaffoldflow.workflow.ledger import Artifact
from scaffoldflow.workflow.phase_specs import default_registry
from scaffoldflow.workflow.preconditions import check_precondition
from scaffoldflow.workflow.run import WorkflowRun


def _run() -> WorkflowRun:
    return WorkflowRun(registry=default_registry())


class TestCheckPrecondition:
    """Tests for check_precondition."""

    def test_trivial_precondition_passes(self):
        run = _run()
        result = check_precondition(run.registry.get_by_name("discovery"), run)
        assert result.passed

    def test_fails_when_required_phase_incomplete(self):
        run = _run()
        result = check_precondition(run.registry.get_by_name("generation"), run)

        assert not result.passed
        assert "spec parsed" in result.message
        assert result.details["missing_phases"] == ["discovery"]
        assert result.details["missing_artifact_kinds"] == ["entity"]

    def test_passes_once_phase_completed_with_artifacts(self):
        run = _run()
        run.ledger.record("discovery", [Artifact(kind=ArtifactKind.ENTITY, identifier="Post")])
        run.phase_status["discovery"] = PhaseStatus.COMPLETED

        result = check_precondition(run.registry.get_by_name("generation"), run)
        assert result.passed

    def test_artifacts_from_partial_phase_do_not_count(self):
        run = _run()
        run.phase_status["discovery"] = PhaseStatus.COMPLETED
        run.ledger.record("discovery", [Artifact(kind=ArtifactKind.ENTITY, identifier="Post")])
        run.ledger.record(
            "generation", [Artifact(kind=ArtifactKind.MIGRATION, identifier="create_posts")]
        )
        run.phase_status["generation"] = PhaseStatus.PARTIAL

        result = check_precondition(run.registry.get_by_name("migration"), run)

        assert not result.passed
        assert result.details["missing_phases"] == ["generation"]
        assert result.details["missing_artifact_kinds"] == ["migration"]
