"""Built-in collaborators that need no external tool.

- SpecDiscoveryCollaborator: turns the parsed spec document into
  ``entity`` and ``endpoint`` artifacts for the Discovery phase.
- SummaryReportCollaborator: renders the artifacts produced so far as a
  markdown report, optionally written to disk.
"""

import logging
from pathlib import Path
from typing import Any

from scaffoldflow.config import ArtifactKind
from scaffoldflow.workflow.ledger import Artifact, group_artifacts
from scaffoldflow.workflow.phase_specs import SPEC_DISCOVERY, SUMMARY_REPORT

from .base import Collaborator, CollaboratorResult, InvocationContext

logger = logging.getLogger(__name__)


class SpecDiscoveryCollaborator(Collaborator):
    """Reports the entities and endpoint groups of the run's spec document."""

    collaborator_id = SPEC_DISCOVERY

    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        spec = context.spec_document
        if spec is None:
            return CollaboratorResult.failure("No spec document was supplied to the run")
        if not spec.entities:
            return CollaboratorResult.failure(f"Spec '{spec.name}' declares no entities")

        artifacts = []
        for entity in spec.entities:
            artifacts.append(
                Artifact(
                    kind=ArtifactKind.ENTITY,
                    identifier=entity.name,
                    metadata={
                        "attributes": [a.name for a in entity.attributes],
                        "relationships": [f"{r.type}:{r.target}" for r in entity.relationships],
                    },
                )
            )
        for group in spec.endpoint_groups:
            artifacts.append(
                Artifact(
                    kind=ArtifactKind.ENDPOINT,
                    identifier=group.name,
                    metadata={"prefix": group.prefix, "entities": list(group.entities)},
                )
            )

        logger.info(
            f"Discovered {len(spec.entities)} entities and "
            f"{len(spec.endpoint_groups)} endpoint groups in '{spec.name}'"
        )
        return CollaboratorResult.success(artifacts)


def render_artifact_report(title: str, artifacts: tuple[Artifact, ...]) -> str:
    """Render artifacts grouped by phase and kind as markdown."""
    lines = [f"# {title}", ""]
    grouped = group_artifacts(artifacts)
    if not grouped:
        lines.append("No artifacts were produced.")
        return "\n".join(lines) + "\n"

    for phase, by_kind in grouped.items():
        lines.append(f"## {phase}")
        lines.append("")
        for kind, identifiers in by_kind.items():
            lines.append(f"**{kind}** ({len(identifiers)})")
            lines.extend(f"- {identifier}" for identifier in identifiers)
            lines.append("")
    return "\n".join(lines)


class SummaryReportCollaborator(Collaborator):
    """Renders the ledger as a report artifact.

    Payload:
        output_path: Optional file the markdown report is written to
        title: Optional report heading
    """

    collaborator_id = SUMMARY_REPORT

    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        title = payload.get("title") or f"Scaffolding report for {context.run_id}"
        report = render_artifact_report(title, context.ledger_snapshot)

        identifier = "run-summary"
        output_path = payload.get("output_path")
        if output_path:
            path = Path(output_path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(report)
            identifier = str(path)
            logger.info(f"Summary report written to {path}")

        return CollaboratorResult.success(
            [
                Artifact(
                    kind=ArtifactKind.REPORT,
                    identifier=identifier,
                    metadata={
                        "artifact_count": len(context.ledger_snapshot),
                        "markdown": report,
                    },
                )
            ]
        )


def builtin_collaborators() -> list[Collaborator]:
    """Collaborators every adapter gets unless the project overrides them."""
    return [SpecDiscoveryCollaborator(), SummaryReportCollaborator()]
