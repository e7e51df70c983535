"""Phase Executor: runs one phase's actions in order.

Execution pattern for a phase:
1. Skip actions that already succeeded in an earlier attempt
2. Invoke each remaining action through the collaborator adapter
3. Record each action's artifacts in the ledger as soon as it succeeds
4. Stop at the first failure; the remaining actions are not invoked

The executor never retries and never decides what happens after a failure.
That is the engine's job, driven by the phase's error policy.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from scaffoldflow.collaborators.base import CollaboratorAdapter, InvocationContext
from scaffoldflow.errors import CollaboratorFailureError
from scaffoldflow.telemetry import phase_span, record_error

from .ledger import Artifact
from .phase_registry import ActionSpec, PhaseDefinition
from .run import WorkflowRun

logger = logging.getLogger(__name__)


@dataclass
class PhaseOutcome:
    """Result of executing a phase.

    Attributes:
        phase: Phase name
        success: Every action succeeded
        artifacts: Artifacts recorded during this attempt
        executed_actions: Actions invoked during this attempt, in order
        skipped_actions: Actions skipped because an earlier attempt completed them
        failed_action: Name of the action that failed, if any
        error_detail: Raw error reported by the failing collaborator
        partial: Some of the phase's actions succeeded before the failure
    """

    phase: str
    success: bool
    artifacts: list[Artifact] = field(default_factory=list)
    executed_actions: list[str] = field(default_factory=list)
    skipped_actions: list[str] = field(default_factory=list)
    failed_action: str | None = None
    error_detail: str | None = None
    partial: bool = False
    duration_seconds: float = 0.0

    @property
    def label(self) -> str:
        """``success``, ``partial`` or ``failed``."""
        if self.success:
            return "success"
        return "partial" if self.partial else "failed"


class PhaseExecutor:
    """Executes the actions of a phase through the collaborator adapter."""

    def __init__(self, adapter: CollaboratorAdapter):
        self.adapter = adapter

    def run(self, phase: PhaseDefinition, run: WorkflowRun) -> PhaseOutcome:
        """Execute ``phase`` for ``run``.

        Args:
            phase: Phase to execute
            run: Run whose ledger receives the artifacts

        Returns:
            PhaseOutcome describing what happened
        """
        completed = run.completed_actions.setdefault(phase.name, [])
        outcome = PhaseOutcome(phase=phase.name, success=True)
        start_time = time.time()

        logger.info("=" * 60)
        logger.info(f"PHASE: {phase.display_name}")
        logger.info("=" * 60)

        with phase_span(phase.name, phase.display_name, [a.name for a in phase.actions]) as span:
            for spec in phase.actions:
                if spec.name in completed:
                    logger.info(f"{phase.name}/{spec.name} already completed - skipping")
                    outcome.skipped_actions.append(spec.name)
                    continue

                outcome.executed_actions.append(spec.name)
                result = self.adapter.invoke(
                    spec.collaborator_id,
                    self._build_payload(spec, phase, run),
                    InvocationContext(
                        run_id=run.run_id,
                        phase=phase.name,
                        action=spec.name,
                        spec_document=run.spec_document,
                        ledger_snapshot=run.ledger.snapshot(),
                    ),
                )

                if not result.ok:
                    outcome.success = False
                    outcome.failed_action = spec.name
                    outcome.error_detail = result.error_detail or "collaborator reported failure"
                    outcome.partial = bool(completed)
                    record_error(
                        span,
                        CollaboratorFailureError(
                            outcome.error_detail, phase=phase.name, action=spec.name
                        ),
                        spec.name,
                    )
                    logger.error(
                        f"{phase.display_name} stopped at '{spec.name}': {outcome.error_detail}"
                    )
                    break

                stored = run.ledger.record(phase.name, result.artifacts, action=spec.name)
                outcome.artifacts.extend(stored)
                completed.append(spec.name)
                self._check_expected_kind(spec, stored)

            outcome.duration_seconds = time.time() - start_time
            span.set_attribute("phase.outcome", outcome.label)
            span.set_attribute("phase.artifact_count", len(outcome.artifacts))
            span.set_attribute("phase.duration_seconds", outcome.duration_seconds)

        logger.info(
            f"{phase.display_name} finished: {outcome.label} "
            f"({len(outcome.artifacts)} artifact(s), {outcome.duration_seconds:.1f}s)"
        )
        return outcome

    def _build_payload(
        self, spec: ActionSpec, phase: PhaseDefinition, run: WorkflowRun
    ) -> dict[str, Any]:
        """Action payload with any overrides supplied through a deferred decision."""
        payload = dict(spec.payload)
        payload.update(run.payload_overrides.get(phase.name, {}))
        return payload

    def _check_expected_kind(self, spec: ActionSpec, stored: list[Artifact]) -> None:
        if spec.expects is None:
            return
        if not any(a.kind == spec.expects for a in stored):
            logger.warning(
                f"Action '{spec.name}' produced no '{spec.expects.value}' artifacts "
                f"({len(stored)} other artifact(s))"
            )
