"""Burr Actions for the phase state machine.

One generic set of actions drives every phase of the declarative phase
table. The run aggregate and the engine live in Burr state; each action
mutates the run and writes ``next_step``, which the transitions in
:mod:`scaffoldflow.workflow.workflow_builder` route on.

The @action decorator specifies:
- reads: State keys this action needs to read
- writes: State keys this action will write to
"""

import logging
from typing import TYPE_CHECKING

from burr.core import State, action

from scaffoldflow.collaborators.base import InvocationContext
from scaffoldflow.config import (
    ArtifactKind,
    ConfirmationPurpose,
    DecisionOutcome,
    ErrorPolicy,
    PhaseStatus,
    RunStatus,
    Severity,
)
from scaffoldflow.errors import (
    CollaboratorFailureError,
    ConfirmationRejectedError,
    PreconditionUnmetError,
    RollbackFailureError,
)

from .gates import ConfirmationRequest
from .ledger import Artifact
from .phase_registry import PhaseDefinition
from .preconditions import check_precondition
from .run import WorkflowRun

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)

# Routing keys written to ``next_step``
CHECK = "check"
CONFIRM = "confirm"
WAIT = "wait"
DECIDE = "decide"
EXECUTE = "execute"
ERROR_POLICY = "error_policy"
ROLLBACK = "rollback"
CHECKPOINT = "checkpoint"
HALT = "halt"
COMPLETE = "complete"


# =============================================================================
# Helpers
# =============================================================================


def _unpack(state: State) -> tuple[WorkflowRun, "WorkflowEngine", PhaseDefinition]:
    run: WorkflowRun = state["run"]
    engine: WorkflowEngine = state["engine"]
    return run, engine, run.current_phase


def _route(state: State, next_step: str) -> State:
    return state.update(next_step=next_step)


def _fail(engine: "WorkflowEngine", run: WorkflowRun, error, kind: str = "run_failed") -> str:
    run.status = RunStatus.FAILED
    run.last_error = error
    engine.emit(run, kind, error.phase, str(error), error=error.to_dict())
    return HALT


def _after_request(run: WorkflowRun, request: ConfirmationRequest) -> str:
    """Route to the decision if the gate already has one, otherwise suspend."""
    if request.is_resolved:
        return DECIDE
    run.status = RunStatus.WAITING_ON_CONFIRMATION
    return WAIT


def _raise_request(
    engine: "WorkflowEngine",
    run: WorkflowRun,
    phase: PhaseDefinition,
    description: str,
    severity: Severity,
    purpose: ConfirmationPurpose,
) -> str:
    request = engine.gate.request_confirmation(run, phase.name, description, severity, purpose)
    next_step = _after_request(run, request)
    engine.emit(
        run,
        "confirmation_requested",
        phase.name,
        description,
        request_id=request.request_id,
        purpose=purpose.value,
        severity=severity.value,
    )
    return next_step


# =============================================================================
# Phase selection and gating
# =============================================================================


@action(reads=["run", "engine"], writes=["next_step"])
def select_phase(state: State) -> State:
    """Move to the first phase that is neither completed nor skipped."""
    run: WorkflowRun = state["run"]
    engine: WorkflowEngine = state["engine"]

    index = run.next_unexecuted_index()
    if index is None:
        return _route(state, COMPLETE)

    run.current_index = index
    run.status = RunStatus.IN_PROGRESS
    phase = run.registry.get(index)
    engine.emit(run, "phase_selected", phase.name, f"{phase.display_name}: {phase.goal}")
    return _route(state, CHECK)


@action(reads=["run", "engine"], writes=["next_step"])
def check_phase_precondition(state: State) -> State:
    """Fail the run before any collaborator runs if the precondition does not hold."""
    run, engine, phase = _unpack(state)

    result = check_precondition(phase, run)
    if not result.passed:
        run.phase_status[phase.name] = PhaseStatus.FAILED
        error = PreconditionUnmetError(result.message, phase=phase.name, detail=str(result.details))
        return _route(state, _fail(engine, run, error, kind="precondition_unmet"))

    if phase.requires_confirmation and phase.name not in run.approvals:
        return _route(state, CONFIRM)
    return _route(state, EXECUTE)


@action(reads=["run", "engine"], writes=["next_step"])
def request_confirmation(state: State) -> State:
    """Ask to enter the phase."""
    run, engine, phase = _unpack(state)

    description = phase.confirmation_description()
    overrides = run.payload_overrides.get(phase.name)
    if overrides:
        description += f"\nRequested changes: {overrides}"

    next_step = _raise_request(
        engine,
        run,
        phase,
        description,
        phase.confirmation_severity,
        ConfirmationPurpose.PHASE_ENTRY,
    )
    return _route(state, next_step)


@action(reads=["run"], writes=["next_step"])
def await_decision(state: State) -> State:
    """Rest point while a confirmation request is pending."""
    run: WorkflowRun = state["run"]
    logger.info(f"Run {run.run_id} waiting on {run.pending_request.request_id}")
    return _route(state, DECIDE)


@action(reads=["run", "engine"], writes=["next_step"])
def apply_decision(state: State) -> State:
    """Act on the most recently resolved confirmation request."""
    run, engine, phase = _unpack(state)
    request = run.latest_request
    decision = request.decision
    run.status = RunStatus.IN_PROGRESS
    engine.emit(
        run,
        "confirmation_resolved",
        phase.name,
        decision.note,
        request_id=request.request_id,
        purpose=request.purpose.value,
        outcome=decision.outcome.value,
    )

    if request.purpose == ConfirmationPurpose.PHASE_ENTRY:
        next_step = _apply_entry_decision(engine, run, phase, request)
    elif request.purpose == ConfirmationPurpose.REMEDIATION:
        next_step = _apply_remediation_decision(engine, run, phase, request)
    else:
        next_step = _apply_rollback_decision(engine, run, phase, request)
    return _route(state, next_step)


def _apply_entry_decision(
    engine: "WorkflowEngine",
    run: WorkflowRun,
    phase: PhaseDefinition,
    request: ConfirmationRequest,
) -> str:
    decision = request.decision

    if decision.outcome == DecisionOutcome.APPROVE:
        run.approvals.add(phase.name)
        return EXECUTE

    if decision.outcome == DecisionOutcome.DEFER:
        run.payload_overrides.setdefault(phase.name, {}).update(decision.modifications)
        engine.emit(
            run,
            "phase_deferred",
            phase.name,
            decision.note,
            modifications=dict(decision.modifications),
        )
        return CHECKPOINT

    if phase.optional:
        run.phase_status[phase.name] = PhaseStatus.SKIPPED
        engine.emit(run, "phase_skipped", phase.name, f"{phase.display_name} declined")
        return CHECKPOINT

    run.phase_status[phase.name] = PhaseStatus.FAILED
    error = ConfirmationRejectedError(
        f"{phase.display_name} was not confirmed",
        phase=phase.name,
        detail=decision.note,
    )
    return _fail(engine, run, error, kind="confirmation_rejected")


def _apply_remediation_decision(
    engine: "WorkflowEngine",
    run: WorkflowRun,
    phase: PhaseDefinition,
    request: ConfirmationRequest,
) -> str:
    decision = request.decision
    failure = run.last_error

    if decision.outcome == DecisionOutcome.APPROVE:
        # Re-armed only; the phase re-runs on the caller's next advance
        if run.phase_status[phase.name] == PhaseStatus.FAILED:
            run.phase_status[phase.name] = PhaseStatus.PENDING
        run.last_error = None
        engine.emit(run, "remediation_applied", phase.name, decision.note)
        return CHECKPOINT

    if decision.outcome == DecisionOutcome.DEFER:
        run.payload_overrides.setdefault(phase.name, {}).update(decision.modifications)
        run.status = RunStatus.FAILED
        engine.emit(run, "remediation_deferred", phase.name, decision.note)
        return HALT

    error = ConfirmationRejectedError(
        f"Fix for {phase.display_name} was declined",
        phase=phase.name,
        action=failure.action if failure else None,
        detail=failure.detail if failure else decision.note,
    )
    return _fail(engine, run, error, kind="remediation_declined")


def _apply_rollback_decision(
    engine: "WorkflowEngine",
    run: WorkflowRun,
    phase: PhaseDefinition,
    request: ConfirmationRequest,
) -> str:
    if request.decision.outcome == DecisionOutcome.APPROVE:
        return ROLLBACK

    # Declined rollback behaves like abort
    run.status = RunStatus.FAILED
    engine.emit(
        run,
        "rollback_declined",
        phase.name,
        str(run.last_error),
        error=run.last_error.to_dict() if run.last_error else None,
    )
    return HALT


# =============================================================================
# Execution and recovery
# =============================================================================


@action(reads=["run", "engine"], writes=["next_step"])
def execute_phase(state: State) -> State:
    """Run the phase's actions through the phase executor."""
    run, engine, phase = _unpack(state)

    run.phase_status[phase.name] = PhaseStatus.IN_PROGRESS
    engine.emit(run, "phase_started", phase.name)

    outcome = engine.executor.run(phase, run)

    if outcome.success:
        run.phase_status[phase.name] = PhaseStatus.COMPLETED
        engine.emit(
            run,
            "phase_completed",
            phase.name,
            artifacts=len(outcome.artifacts),
            skipped_actions=outcome.skipped_actions,
        )
        if run.next_unexecuted_index() is None:
            return _route(state, COMPLETE)
        return _route(state, CHECKPOINT)

    run.phase_status[phase.name] = PhaseStatus.PARTIAL if outcome.partial else PhaseStatus.FAILED
    run.last_error = CollaboratorFailureError(
        f"{phase.display_name} failed at '{outcome.failed_action}'",
        phase=phase.name,
        action=outcome.failed_action,
        detail=outcome.error_detail or "",
    )
    engine.emit(
        run,
        "phase_failed",
        phase.name,
        str(run.last_error),
        outcome=outcome.label,
        error=run.last_error.to_dict(),
    )
    return _route(state, ERROR_POLICY)


@action(reads=["run", "engine"], writes=["next_step"])
def apply_error_policy(state: State) -> State:
    """Dispatch a phase failure to the phase's error policy."""
    run, engine, phase = _unpack(state)
    error = run.last_error

    if phase.error_policy == ErrorPolicy.PROMPT_FOR_FIX:
        description = f"{error}\n{error.detail}".strip()
        if phase.remediation_hint:
            description += f"\n\nSuggested fix: {phase.remediation_hint}"
        description += "\nApprove once the fix is applied to re-run the phase."
        next_step = _raise_request(
            engine,
            run,
            phase,
            description,
            Severity.INFORMATIONAL,
            ConfirmationPurpose.REMEDIATION,
        )
        return _route(state, next_step)

    if phase.can_offer_rollback():
        description = (
            f"{error}\n{error.detail}".strip()
            + f"\n\nRoll back {phase.display_name} via '{phase.rollback.name}' "
            f"(collaborator {phase.rollback.collaborator_id})?"
        )
        next_step = _raise_request(
            engine,
            run,
            phase,
            description,
            Severity.DESTRUCTIVE,
            ConfirmationPurpose.ROLLBACK,
        )
        return _route(state, next_step)

    if phase.error_policy == ErrorPolicy.OFFER_ROLLBACK:
        logger.warning(f"{phase.display_name} is not reversible; aborting instead of rollback")

    return _route(state, _fail(engine, run, error))


@action(reads=["run", "engine"], writes=["next_step"])
def rollback_phase(state: State) -> State:
    """Invoke the phase's inverse collaborator and return to the prior boundary."""
    run, engine, phase = _unpack(state)
    spec = phase.rollback
    failure = run.last_error

    logger.info(f"Rolling back {phase.display_name} via '{spec.name}'")
    result = engine.adapter.invoke(
        spec.collaborator_id,
        dict(spec.payload),
        InvocationContext(
            run_id=run.run_id,
            phase=phase.name,
            action=spec.name,
            spec_document=run.spec_document,
            ledger_snapshot=run.ledger.snapshot(),
        ),
    )

    if not result.ok:
        run.phase_status[phase.name] = PhaseStatus.FAILED
        error = RollbackFailureError(
            f"Rollback of {phase.display_name} failed",
            phase=phase.name,
            action=spec.name,
            detail=result.error_detail or "",
        )
        return _route(state, _fail(engine, run, error, kind="rollback_failed"))

    reverted = Artifact(
        kind=ArtifactKind.REVERTED,
        identifier=phase.name,
        metadata={
            "rollback_action": spec.name,
            "reverted_artifacts": [a.identifier for a in run.ledger.for_phase(phase.name)],
            "failure": failure.to_dict() if failure else None,
        },
    )
    run.ledger.record(phase.name, [*result.artifacts, reverted], action=spec.name)

    run.phase_status[phase.name] = PhaseStatus.ROLLED_BACK
    run.completed_actions.pop(phase.name, None)
    run.approvals.discard(phase.name)
    run.last_error = None
    run.status = RunStatus.IN_PROGRESS
    engine.emit(run, "phase_rolled_back", phase.name, f"{phase.display_name} rolled back")
    return _route(state, CHECKPOINT)


# =============================================================================
# Rest points
# =============================================================================


@action(reads=["run"], writes=["next_step"])
def checkpoint(state: State) -> State:
    """Rest point at a stable phase boundary."""
    return _route(state, CHECK)


@action(reads=["run"], writes=["next_step"])
def halt_run(state: State) -> State:
    """Rest point for a failed run; ``retry_phase`` re-enters from here."""
    run: WorkflowRun = state["run"]
    logger.error(f"Run {run.run_id} halted: {run.last_error}")
    return _route(state, CHECK)


@action(reads=["run", "engine"], writes=["next_step"])
def complete_run(state: State) -> State:
    """Terminal action: every phase is completed or skipped."""
    run: WorkflowRun = state["run"]
    engine: WorkflowEngine = state["engine"]

    run.status = RunStatus.COMPLETED
    engine.emit(run, "run_completed", None, f"{len(run.ledger)} artifact(s) recorded")

    logger.info("=" * 60)
    logger.info(f"RUN COMPLETED: {run.run_id}")
    logger.info("=" * 60)
    return _route(state, COMPLETE)
