"""Builds the Burr Application that drives a workflow run.

The state machine is the same for every phase table: phases are data
consumed by the generic actions in :mod:`scaffoldflow.workflow.burr_actions`.
The engine runs the application with ``halt_after=REST_POINTS`` so that each
call stops at a stable boundary.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from burr.core import Application, ApplicationBuilder, default, when
from burr.lifecycle import PostRunStepHook, PreRunStepHook
from burr.tracking import LocalTrackingClient

from . import burr_actions as actions
from .run import WorkflowRun

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State machine definition
# ---------------------------------------------------------------------------

ACTIONS: dict[str, Callable] = {
    "select_phase": actions.select_phase,
    "check_precondition": actions.check_phase_precondition,
    "request_confirmation": actions.request_confirmation,
    "await_decision": actions.await_decision,
    "apply_decision": actions.apply_decision,
    "execute_phase": actions.execute_phase,
    "apply_error_policy": actions.apply_error_policy,
    "rollback": actions.rollback_phase,
    "checkpoint": actions.checkpoint,
    "halt_run": actions.halt_run,
    "complete_run": actions.complete_run,
}

TRANSITIONS: list[tuple] = [
    ("select_phase", "complete_run", when(next_step=actions.COMPLETE)),
    ("select_phase", "check_precondition", default),
    ("check_precondition", "halt_run", when(next_step=actions.HALT)),
    ("check_precondition", "request_confirmation", when(next_step=actions.CONFIRM)),
    ("check_precondition", "execute_phase", default),
    ("request_confirmation", "await_decision", when(next_step=actions.WAIT)),
    ("request_confirmation", "apply_decision", default),
    ("await_decision", "apply_decision"),
    ("apply_decision", "execute_phase", when(next_step=actions.EXECUTE)),
    ("apply_decision", "rollback", when(next_step=actions.ROLLBACK)),
    ("apply_decision", "halt_run", when(next_step=actions.HALT)),
    ("apply_decision", "checkpoint", default),
    ("execute_phase", "apply_error_policy", when(next_step=actions.ERROR_POLICY)),
    ("execute_phase", "complete_run", when(next_step=actions.COMPLETE)),
    ("execute_phase", "checkpoint", default),
    ("apply_error_policy", "await_decision", when(next_step=actions.WAIT)),
    ("apply_error_policy", "apply_decision", when(next_step=actions.DECIDE)),
    ("apply_error_policy", "halt_run", default),
    ("rollback", "halt_run", when(next_step=actions.HALT)),
    ("rollback", "checkpoint", default),
    ("checkpoint", "select_phase"),
    ("halt_run", "select_phase"),
]

ENTRYPOINT = "select_phase"

# Actions after which a call to the application returns control to the caller
REST_POINTS = ["await_decision", "checkpoint", "halt_run", "complete_run"]


# ---------------------------------------------------------------------------
# Lifecycle Hooks
# ---------------------------------------------------------------------------


@dataclass
class PhaseProgressHook(PostRunStepHook, PreRunStepHook):
    """Hook that logs every step and reports phase changes."""

    run: WorkflowRun
    on_phase_start: Callable[[str, int, int], None] | None = None

    def pre_run_step(self, *, action, **kwargs):
        """Called before each action runs."""
        phase = self.run.current_phase
        logger.debug(f"Step: {action.name} (phase={phase.name if phase else '-'})")

        if action.name == "execute_phase" and phase is not None and self.on_phase_start:
            try:
                self.on_phase_start(phase.name, self.run.current_index, len(self.run.registry))
            except (TypeError, AttributeError, ValueError) as e:
                logger.error(f"on_phase_start callback failed: {e}")

    def post_run_step(self, *, action, state, **kwargs):
        """Called after each action completes."""
        logger.debug(
            f"Completed step: {action.name} -> {state.get('next_step', '')} "
            f"(run={self.run.status.value})"
        )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def build_workflow(
    run: WorkflowRun,
    engine: "WorkflowEngine",
    on_phase_start: Callable[[str, int, int], None] | None = None,
    enable_tracking: bool = False,
    tracking_project: str = "scaffoldflow",
    **extra_state: Any,
) -> Application:
    """Build the Burr Application for ``run``.

    Args:
        run: Run aggregate the actions mutate
        engine: Engine providing the gate, executor and event emitter
        on_phase_start: Callback when a phase starts executing
        enable_tracking: Record steps with Burr's local tracking client
        tracking_project: Burr tracking project name
        **extra_state: Extra state values

    Returns:
        Burr Application instance
    """
    logger.info("=" * 60)
    logger.info(f"CREATING WORKFLOW: {run.run_id} ({len(run.registry)} phases)")
    logger.info("=" * 60)

    tracker = None
    if enable_tracking:
        try:
            tracker = LocalTrackingClient(project=tracking_project)
            logger.info(f"Burr tracking enabled: {tracking_project}")
        except (OSError, RuntimeError) as e:
            logger.warning(f"Could not enable tracking: {e}")

    # NOTE: run and engine are live Python objects held in Burr state. The
    # actions mutate the run in place; nothing relies on Burr persistence.
    state: dict[str, Any] = {
        "run": run,
        "engine": engine,
        "next_step": "",
    }
    state.update(extra_state)

    builder = (
        ApplicationBuilder()
        .with_actions(**ACTIONS)
        .with_transitions(*TRANSITIONS)
        .with_state(**state)
        .with_entrypoint(ENTRYPOINT)
        .with_hooks(PhaseProgressHook(run=run, on_phase_start=on_phase_start))
        .with_identifiers(app_id=run.run_id)
    )

    if tracker:
        builder = builder.with_tracker(tracker)

    return builder.build()
