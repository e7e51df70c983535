"""Run summary: what a run produced and what to do next.

Built from a WorkflowRun at any point (typically after it reaches a
terminal or failed state). ``model_dump()`` gives structured data,
``to_markdown()`` the plain-text report printed by the CLI.
"""

from typing import Any

from pydantic import BaseModel, Field

from scaffoldflow.config import PhaseStatus, RunStatus

from .run import WorkflowRun


class PhaseSummary(BaseModel):
    """Status and artifacts of one phase."""

    name: str
    display_name: str
    status: str
    artifacts: dict[str, list[str]] = Field(default_factory=dict)

    @property
    def artifact_count(self) -> int:
        return sum(len(ids) for ids in self.artifacts.values())


class DecisionRecord(BaseModel):
    """A confirmation request and how it was answered."""

    phase: str
    purpose: str
    severity: str
    outcome: str | None = None  # None while pending
    note: str = ""


class RunSummary(BaseModel):
    """Report for a whole run."""

    run_id: str
    status: str
    terminal_label: str
    phases: list[PhaseSummary] = Field(default_factory=list)
    artifact_count: int = 0
    decisions: list[DecisionRecord] = Field(default_factory=list)
    last_error: dict[str, Any] | None = None
    follow_ups: list[str] = Field(default_factory=list)

    def to_markdown(self) -> str:
        """Render the summary as markdown."""
        lines = [
            f"# Run {self.run_id}",
            "",
            f"**Result:** {self.terminal_label}",
            f"**Artifacts:** {self.artifact_count}",
            "",
            "## Phases",
            "",
            "| Phase | Status | Artifacts |",
            "|-------|--------|-----------|",
        ]
        for phase in self.phases:
            lines.append(f"| {phase.display_name} | {phase.status} | {phase.artifact_count} |")
        lines.append("")

        produced = [p for p in self.phases if p.artifacts]
        if produced:
            lines.append("## Artifacts")
            lines.append("")
            for phase in produced:
                lines.append(f"### {phase.display_name}")
                for kind, identifiers in phase.artifacts.items():
                    lines.append(f"- **{kind}**: {', '.join(identifiers)}")
                lines.append("")

        if self.last_error:
            lines.append("## Error")
            lines.append("")
            lines.append(f"{self.last_error['type']}: {self.last_error['message']}")
            if self.last_error.get("detail"):
                lines.append("")
                lines.append("```")
                lines.append(self.last_error["detail"])
                lines.append("```")
            lines.append("")

        if self.follow_ups:
            lines.append("## Next Steps")
            lines.append("")
            lines.extend(f"- {item}" for item in self.follow_ups)
            lines.append("")

        return "\n".join(lines)


def _follow_ups(run: WorkflowRun) -> list[str]:
    items = []
    phase = run.current_phase

    if run.status == RunStatus.FAILED and phase is not None:
        items.append(f"Fix the problem in {phase.display_name}, then retry the phase.")
        if phase.remediation_hint:
            items.append(phase.remediation_hint)
    elif run.status == RunStatus.WAITING_ON_CONFIRMATION and run.pending_request is not None:
        request = run.pending_request
        items.append(
            f"Answer the pending {request.purpose.value} confirmation for {request.phase}."
        )
    elif run.status == RunStatus.IN_PROGRESS and phase is not None:
        items.append(f"Run paused at {phase.display_name}; advance the run to continue.")
    elif run.status == RunStatus.ABANDONED and phase is not None:
        items.append(f"Run abandoned at {phase.display_name}; start a new run to continue.")

    for definition in run.registry:
        status = run.phase_status[definition.name]
        if status == PhaseStatus.SKIPPED:
            items.append(f"{definition.display_name} was skipped; run it later if needed.")
        elif status == PhaseStatus.ROLLED_BACK:
            items.append(f"{definition.display_name} was rolled back; its changes were undone.")

    if run.status == RunStatus.COMPLETED:
        items.append("Review the generated files and commit them.")

    return items


def build_run_summary(run: WorkflowRun) -> RunSummary:
    """Summarize ``run``'s phases, artifacts, decisions and next steps."""
    grouped = run.ledger.summarize()
    phases = [
        PhaseSummary(
            name=definition.name,
            display_name=definition.display_name,
            status=run.phase_status[definition.name].value,
            artifacts=grouped.get(definition.name, {}),
        )
        for definition in run.registry
    ]
    decisions = [
        DecisionRecord(
            phase=request.phase,
            purpose=request.purpose.value,
            severity=request.severity.value,
            outcome=request.decision.outcome.value if request.decision else None,
            note=request.decision.note if request.decision else "",
        )
        for request in run.requests
    ]
    return RunSummary(
        run_id=run.run_id,
        status=run.status.value,
        terminal_label=run.terminal_label,
        phases=phases,
        artifact_count=len(run.ledger),
        decisions=decisions,
        last_error=run.last_error.to_dict() if run.last_error else None,
        follow_ups=_follow_ups(run),
    )
