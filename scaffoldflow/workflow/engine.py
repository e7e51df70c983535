"""Workflow Engine: the public API for driving a scaffolding run.

The engine owns exactly one active run at a time. Each call moves the run
from one rest point to the next:

    engine = WorkflowEngine(adapter, decider=AutoApproveDecider())
    run = engine.start(spec_document)
    status = engine.run_to_completion(run)
    print(engine.summarize(run).to_markdown())

Without a decider, confirmation requests stay pending and the caller
answers them with ``resolve``:

    engine = WorkflowEngine(adapter)
    run = engine.start(spec_document)
    engine.advance(run)                       # waiting-on-confirmation
    engine.resolve(run, Decision.approve())   # runs the phase
"""

import logging
from collections.abc import Callable
from typing import Any

from burr.core import Application

from scaffoldflow.collaborators.base import CollaboratorAdapter
from scaffoldflow.collaborators.builtin import builtin_collaborators
from scaffoldflow.config import EngineSettings, PhaseStatus, RunStatus
from scaffoldflow.errors import InvalidTransitionError
from scaffoldflow.telemetry import workflow_span

from .gates import ConfirmationGate, Decider, Decision
from .phase_executor import PhaseExecutor
from .phase_registry import PhaseRegistry
from .phase_specs import default_registry
from .run import TransitionEvent, WorkflowRun
from .summary import RunSummary, build_run_summary
from .workflow_builder import REST_POINTS, build_workflow

logger = logging.getLogger(__name__)

# Events after which the current phase must be re-entered explicitly
REARM_EVENTS = ("remediation_applied", "phase_rolled_back")


class WorkflowEngine:
    """Drives a WorkflowRun through its phase table.

    Attributes:
        registry: Ordered phase definitions
        adapter: Collaborator adapter used by every phase
        gate: Confirmation gate (blocking if a decider was given)
        executor: Phase executor
        settings: Engine settings (tracking)
        on_transition: Callback receiving every TransitionEvent
    """

    def __init__(
        self,
        adapter: CollaboratorAdapter | None = None,
        registry: PhaseRegistry | None = None,
        decider: Decider | None = None,
        settings: EngineSettings | None = None,
        on_transition: Callable[[TransitionEvent], None] | None = None,
        on_phase_start: Callable[[str, int, int], None] | None = None,
    ):
        self.registry = registry or default_registry()
        self.adapter = adapter or CollaboratorAdapter()
        for collaborator in builtin_collaborators():
            if not self.adapter.has(collaborator.collaborator_id):
                self.adapter.register(collaborator)

        self.gate = ConfirmationGate(decider)
        self.executor = PhaseExecutor(self.adapter)
        self.settings = settings or EngineSettings()
        self.on_transition = on_transition
        self.on_phase_start = on_phase_start

        self._run: WorkflowRun | None = None
        self._app: Application | None = None

    # =========================================================================
    # Events
    # =========================================================================

    def emit(
        self,
        run: WorkflowRun,
        kind: str,
        phase: str | None = None,
        message: str = "",
        **data: Any,
    ) -> TransitionEvent:
        """Record a transition event and deliver it to ``on_transition``."""
        event = run.record_event(kind, phase, message, **data)
        logger.info(f"[{run.run_id}] {kind}" + (f" ({phase})" if phase else ""))

        if self.on_transition:
            try:
                self.on_transition(event)
            except (TypeError, AttributeError, ValueError) as e:
                logger.error(f"on_transition callback failed: {e}")

        return event

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    @property
    def active_run(self) -> WorkflowRun | None:
        return self._run

    def start(self, spec_document: Any = None) -> WorkflowRun:
        """Create a run for ``spec_document`` and its state machine.

        Raises:
            InvalidTransitionError: If another run is still active
        """
        if self._run is not None and not self._run.status.is_terminal:
            raise InvalidTransitionError(
                f"Run {self._run.run_id} is still active; abandon or finish it first"
            )

        run = WorkflowRun(registry=self.registry, spec_document=spec_document)
        self._run = run
        self._app = build_workflow(
            run,
            self,
            on_phase_start=self.on_phase_start,
            enable_tracking=self.settings.enable_tracking,
            tracking_project=self.settings.tracking_project,
        )

        logger.info("=" * 60)
        logger.info(f"RUN STARTED: {run.run_id}")
        logger.info(f"Phases: {', '.join(self.registry.names())}")
        logger.info("=" * 60)

        self.emit(run, "run_started", None, f"{len(self.registry)} phases")
        return run

    def discard(self, run: WorkflowRun) -> None:
        """Release a finished run.

        Raises:
            InvalidTransitionError: If the run is not completed or abandoned
        """
        self._check_owned(run)
        if not run.status.is_terminal:
            raise InvalidTransitionError(
                f"Run {run.run_id} is {run.status.value}; only finished runs can be discarded"
            )
        self._run = None
        self._app = None
        logger.info(f"Run {run.run_id} discarded")

    def _check_owned(self, run: WorkflowRun) -> None:
        if run is not self._run:
            raise InvalidTransitionError(f"Run {run.run_id} is not active in this engine")

    def _check_movable(self, run: WorkflowRun) -> None:
        self._check_owned(run)
        if run.status.is_terminal:
            raise InvalidTransitionError(f"Run {run.run_id} is already {run.status.value}")

    # =========================================================================
    # Stepping
    # =========================================================================

    def _step(self, run: WorkflowRun, operation: str) -> RunStatus:
        """Run the state machine to the next rest point."""
        with workflow_span("scaffold", run.run_id, operation=operation) as span:
            halted_at, _, _ = self._app.run(halt_after=REST_POINTS)
            span.set_attribute("run.status", run.status.value)
            span.set_attribute("workflow.halted_at", halted_at.name)
            phase = run.current_phase
            if phase is not None:
                span.set_attribute("phase.name", phase.name)

        logger.info(f"Run {run.run_id} at rest after {halted_at.name}: {run.status.value}")
        return run.status

    def advance(self, run: WorkflowRun) -> RunStatus:
        """Move the run forward by one phase (or up to the next confirmation).

        Raises:
            InvalidTransitionError: If the run is finished, failed, or waiting
        """
        self._check_movable(run)
        if run.status == RunStatus.FAILED:
            raise InvalidTransitionError(
                f"Run {run.run_id} failed at {run.current_phase.name}; call retry_phase first",
                phase=run.current_phase.name,
            )
        if run.pending_request is not None:
            raise InvalidTransitionError(
                f"Run {run.run_id} waits on {run.pending_request.request_id}; call resolve",
                phase=run.pending_request.phase,
            )
        return self._step(run, "advance")

    def resolve(self, run: WorkflowRun, decision: Decision) -> RunStatus:
        """Answer the pending confirmation and continue to the next rest point.

        Raises:
            InvalidTransitionError: If the run is not waiting on a confirmation
        """
        self._check_movable(run)
        self.gate.resolve(run, decision)
        return self._step(run, "resolve")

    def retry_phase(self, run: WorkflowRun) -> RunStatus:
        """Re-arm a failed phase after the user fixed the cause.

        The next ``advance`` re-runs the phase; actions that already
        succeeded are skipped.

        Raises:
            InvalidTransitionError: If the run has not failed
        """
        self._check_movable(run)
        if run.status != RunStatus.FAILED:
            raise InvalidTransitionError(
                f"Run {run.run_id} is {run.status.value}; only failed runs can be retried"
            )

        phase = run.current_phase
        if run.phase_status[phase.name] == PhaseStatus.FAILED:
            run.phase_status[phase.name] = PhaseStatus.PENDING
        run.last_error = None
        run.status = RunStatus.IN_PROGRESS
        self.emit(run, "phase_retry_requested", phase.name)
        return run.status

    def run_to_completion(self, run: WorkflowRun) -> RunStatus:
        """Advance until the run completes, fails or waits on a confirmation.

        Also stops after a phase was rolled back or had a fix applied. The
        re-armed phase runs again only on the next advance, so a
        collaborator that keeps failing cannot loop an unattended run.
        """
        status = run.status
        while (
            not status.is_terminal
            and status != RunStatus.FAILED
            and run.pending_request is None
        ):
            seen = len(run.events)
            status = self.advance(run)
            rearmed = [e for e in run.events[seen:] if e.kind in REARM_EVENTS]
            if rearmed:
                event = rearmed[-1]
                logger.info(f"Run {run.run_id} paused after {event.kind} ({event.phase})")
                break
        return status

    def abandon(self, run: WorkflowRun) -> RunStatus:
        """Stop the run for good at its current phase.

        A pending confirmation is rejected so no request is left open.
        """
        self._check_movable(run)
        request = run.pending_request
        if request is not None:
            request.resolve(Decision.reject(note="run abandoned"))

        run.status = RunStatus.ABANDONED
        phase = run.current_phase
        self.emit(run, "run_abandoned", phase.name if phase else None, run.terminal_label)

        logger.info("=" * 60)
        logger.info(f"RUN ABANDONED: {run.run_id} ({run.terminal_label})")
        logger.info("=" * 60)
        return run.status

    def summarize(self, run: WorkflowRun) -> RunSummary:
        """Build the run summary (available in any state)."""
        return build_run_summary(run)
