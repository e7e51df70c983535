"""Workflow orchestration core for scaffoldflow.

Phase definitions are data; a Burr state machine runs them in order with
confirmation gates, an append-only artifact ledger and per-phase error
policies.
"""

from .gates import (
    AutoApproveDecider,
    ConfirmationGate,
    ConfirmationRequest,
    ConsoleDecider,
    Decision,
    ScriptedDecider,
)
from .ledger import Artifact, ArtifactLedger
from .phase_registry import ActionSpec, PhaseDefinition, PhaseRegistry, Precondition
from .phase_specs import DEFAULT_PHASES, default_registry, registry_from_dicts
from .preconditions import PreconditionResult, check_precondition
from .run import TransitionEvent, WorkflowRun
from .summary import RunSummary, build_run_summary


# Lazy import for modules that depend on the collaborator adapter and Burr,
# which themselves import from this package
def __getattr__(name):
    """Lazy import for the engine and executor."""
    if name == "WorkflowEngine":
        from .engine import WorkflowEngine

        return WorkflowEngine
    if name in ("PhaseExecutor", "PhaseOutcome"):
        from . import phase_executor

        return getattr(phase_executor, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Engine (lazy loaded)
    "WorkflowEngine",
    "PhaseExecutor",
    "PhaseOutcome",
    # Gates
    "AutoApproveDecider",
    "ConfirmationGate",
    "ConfirmationRequest",
    "ConsoleDecider",
    "Decision",
    "ScriptedDecider",
    # Ledger
    "Artifact",
    "ArtifactLedger",
    # Phase table
    "ActionSpec",
    "PhaseDefinition",
    "PhaseRegistry",
    "Precondition",
    "DEFAULT_PHASES",
    "default_registry",
    "registry_from_dicts",
    "PreconditionResult",
    "check_precondition",
    # Run
    "TransitionEvent",
    "WorkflowRun",
    "RunSummary",
    "build_run_summary",
]
