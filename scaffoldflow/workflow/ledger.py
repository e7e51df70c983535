"""Artifact Ledger: append-only record of everything collaborators produced.

Artifacts are historical fact. Nothing is ever removed from the ledger,
even when a collaborator-level rollback later undoes the files behind
them; a rollback appends a new ``reverted`` artifact instead.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from scaffoldflow.config import ArtifactKind

logger = logging.getLogger(__name__)


class Artifact(BaseModel):
    """A record of something produced by a collaborator.

    Example:
    ```python
    Artifact(
        kind=ArtifactKind.MODEL,
        identifier="app/Models/Post.php",
        phase="generation",
        action="scaffold",
    )
    ```
    """

    model_config = ConfigDict(frozen=True)

    kind: ArtifactKind = Field(description="What sort of thing was produced")
    identifier: str = Field(description="Name or path of the produced thing")
    phase: str = Field(default="", description="Phase that produced it")
    action: str = Field(default="", description="Action within the phase that produced it")
    metadata: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def attributed_to(self, phase: str, action: str = "") -> "Artifact":
        """Return a copy attributed to the given phase and action."""
        return self.model_copy(update={"phase": phase, "action": action or self.action})


def group_artifacts(artifacts: Iterable[Artifact]) -> dict[str, dict[str, list[str]]]:
    """Group artifact identifiers by phase, then by kind.

    Phases and kinds keep the order in which they were first recorded.

    Returns:
        ``{phase: {kind_value: [identifier, ...]}}``
    """
    report: dict[str, dict[str, list[str]]] = {}
    for artifact in artifacts:
        by_kind = report.setdefault(artifact.phase, {})
        by_kind.setdefault(artifact.kind.value, []).append(artifact.identifier)
    return report


class ArtifactLedger:
    """Append-only store of artifacts, keyed by the phase that produced them.

    The ledger is owned by a single WorkflowRun. Only ``record`` adds to it;
    there is no removal operation.
    """

    def __init__(self) -> None:
        self._artifacts: list[Artifact] = []

    def record(self, phase: str, artifacts: Iterable[Artifact], action: str = "") -> list[Artifact]:
        """Append artifacts under ``phase``.

        Artifacts are re-attributed to ``phase`` so a collaborator cannot
        record into another phase's history.

        Args:
            phase: Name of the producing phase
            artifacts: Artifacts reported by a collaborator
            action: Name of the producing action (optional)

        Returns:
            The artifacts as stored
        """
        stored = [artifact.attributed_to(phase, action) for artifact in artifacts]
        self._artifacts.extend(stored)
        if stored:
            logger.debug(f"Ledger: recorded {len(stored)} artifact(s) for phase '{phase}'")
        return stored

    def query(
        self,
        kind: ArtifactKind | None = None,
        phase: str | None = None,
    ) -> list[Artifact]:
        """Return artifacts filtered by kind and/or phase, in recording order."""
        return [
            a
            for a in self._artifacts
            if (kind is None or a.kind == kind) and (phase is None or a.phase == phase)
        ]

    def for_phase(self, phase: str) -> list[Artifact]:
        """Return every artifact recorded for ``phase``."""
        return self.query(phase=phase)

    def snapshot(self) -> tuple[Artifact, ...]:
        """Immutable view of the ledger at this moment."""
        return tuple(self._artifacts)

    def summarize(self) -> dict[str, dict[str, list[str]]]:
        """Group artifact identifiers by phase, then by kind (see ``group_artifacts``)."""
        return group_artifacts(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def __iter__(self):
        return iter(self._artifacts)
