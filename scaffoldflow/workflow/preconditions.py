"""Precondition evaluation for phases.

A phase may only start once its precondition holds against the run.
Only artifacts from fully completed phases count: artifacts recorded by a
phase that ended ``partial`` remain in the ledger but do not satisfy
downstream preconditions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from .phase_registry import PhaseDefinition
from .run import WorkflowRun

logger = logging.getLogger(__name__)


@dataclass
class PreconditionResult:
    """Result of precondition evaluation.

    Attributes:
        passed: Whether every check held
        message: Human-readable summary message
        details: Per-check information (missing phases, missing kinds)
    """

    passed: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


def check_precondition(phase: PhaseDefinition, run: WorkflowRun) -> PreconditionResult:
    """Evaluate ``phase``'s precondition against the run.

    Args:
        phase: Phase about to start
        run: Current run (ledger and phase statuses)

    Returns:
        PreconditionResult with pass/fail status and details
    """
    precondition = phase.precondition
    if precondition.is_trivial:
        return PreconditionResult(passed=True, message="No precondition")

    missing_phases = [
        name for name in precondition.completed_phases if not run.is_phase_completed(name)
    ]

    completed = set(run.completed_phase_names())
    available_kinds = {a.kind for a in run.ledger if a.phase in completed}
    missing_kinds = [k.value for k in precondition.artifact_kinds if k not in available_kinds]

    if not missing_phases and not missing_kinds:
        label = precondition.description or "precondition"
        return PreconditionResult(passed=True, message=f"{label}: satisfied")

    problems = []
    if missing_phases:
        problems.append(f"phases not completed: {', '.join(missing_phases)}")
    if missing_kinds:
        problems.append(f"no artifacts of kind: {', '.join(missing_kinds)}")

    label = precondition.description or "precondition"
    message = f"{phase.display_name} cannot start, {label} unmet ({'; '.join(problems)})"
    logger.warning(message)

    return PreconditionResult(
        passed=False,
        message=message,
        details={"missing_phases": missing_phases, "missing_artifact_kinds": missing_kinds},
    )
