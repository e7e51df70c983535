"""Tests for scaffoldflow.workflow.ledger.

Covers recording with phase attribution, filtering, grouping and the
append-only guarantee of snapshots.
"""

import pytest
from pydantic import ValidationError

from scaffoldflow.config import ArtifactKind
from scaffoldflow.workflow.ledger import Artifact, ArtifactLedger, group_artifacts


class TestArtifact:
    """Tests for the Artifact model."""

    def test_is_frozen(self):
        item = Artifact(kind=ArtifactKind.MODEL, identifier="Post")
        with pytest.raises(ValidationError):
            item.identifier = "User"

    def test_kind_accepts_string_value(self):
        item = Artifact(kind="admin-resource", identifier="PostResource")
        assert item.kind == ArtifactKind.ADMIN_RESOURCE

    def test_attributed_to_returns_copy(self):
        item = Artifact(kind=ArtifactKind.MODEL, identifier="Post", action="scaffold")
        moved = item.attributed_to("generation")
        assert moved.phase == "generation"
        assert moved.action == "scaffold"
        assert item.phase == ""


class TestArtifactLedger:
    """Tests for ArtifactLedger."""

    def test_record_attributes_to_phase(self):
        ledger = ArtifactLedger()
        stored = ledger.record(
            "generation",
            [Artifact(kind=ArtifactKind.MODEL, identifier="Post", phase="somewhere-else")],
            action="scaffold",
        )
        assert stored[0].phase == "generation"
        assert stored[0].action == "scaffold"
        assert len(ledger) == 1

    def test_query_by_kind_and_phase(self):
        ledger = ArtifactLedger()
        ledger.record("discovery", [Artifact(kind=ArtifactKind.ENTITY, identifier="Post")])
        ledger.record(
            "generation",
            [
                Artifact(kind=ArtifactKind.MODEL, identifier="Post.php"),
                Artifact(kind=ArtifactKind.MIGRATION, identifier="create_posts"),
            ],
        )

        assert [a.identifier for a in ledger.query(kind=ArtifactKind.MODEL)] == ["Post.php"]
        assert len(ledger.query(phase="generation")) == 2
        assert ledger.query(kind=ArtifactKind.ENTITY, phase="generation") == []
        assert ledger.for_phase("discovery")[0].identifier == "Post"

    def test_summarize_groups_by_phase_then_kind(self):
        ledger = ArtifactLedger()
        ledger.record(
            "generation",
            [
                Artifact(kind=ArtifactKind.MODEL, identifier="Post.php"),
                Artifact(kind=ArtifactKind.MODEL, identifier="User.php"),
                Artifact(kind=ArtifactKind.MIGRATION, identifier="create_posts"),
            ],
        )
        ledger.record("testing", [Artifact(kind=ArtifactKind.TEST, identifier="PostTest.php")])

        assert ledger.summarize() == {
            "generation": {"model": ["Post.php", "User.php"], "migration": ["create_posts"]},
            "testing": {"test": ["PostTest.php"]},
        }

    def test_snapshot_is_immutable_and_append_only(self):
        ledger = ArtifactLedger()
        ledger.record("discovery", [Artifact(kind=ArtifactKind.ENTITY, identifier="Post")])
        before = ledger.snapshot()

        ledger.record("generation", [Artifact(kind=ArtifactKind.MODEL, identifier="Post.php")])
        after = ledger.snapshot()

        assert isinstance(before, tuple)
        assert len(before) == 1
        assert after[: len(before)] == before

    def test_has_no_removal_operation(self):
        ledger = ArtifactLedger()
        assert not hasattr(ledger, "remove")
        assert not hasattr(ledger, "delete")

    def test_empty_record_is_noop(self):
        ledger = ArtifactLedger()
        assert ledger.record("generation", []) == []
        assert len(ledger) == 0


def test_group_artifacts_empty():
    assert group_artifacts([]) == {}
