"""WorkflowRun: the top-level aggregate for one invocation of the workflow.

The run owns the ledger, every confirmation request and the transition
log. It is mutated only by the workflow engine (through burr actions);
the phase executor appends to the ledger via ``ArtifactLedger.record``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from scaffoldflow.config import PhaseStatus, RunStatus
from scaffoldflow.errors import WorkflowError

from .ledger import ArtifactLedger
from .phase_registry import PhaseDefinition, PhaseRegistry

if TYPE_CHECKING:
    from scaffoldflow.project.spec_document import SpecDocument

    from .gates import ConfirmationRequest


@dataclass(frozen=True)
class TransitionEvent:
    """One observable step in the run's history."""

    kind: str  # e.g. "phase_started", "phase_failed", "confirmation_requested"
    phase: str | None
    run_status: RunStatus
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class WorkflowRun:
    """State of a single workflow run.

    Attributes:
        registry: Ordered phase definitions (never mutated)
        spec_document: Parsed declarative spec the run scaffolds
        run_id: Unique run identifier
        status: Overall run status
        current_index: Position of the phase the run is at
        ledger: Artifacts produced so far
        phase_status: Status per phase name
        completed_actions: Action names that succeeded, per phase
        approvals: Phases whose entry confirmation was approved
        payload_overrides: Payload changes requested via deferred decisions
        requests: Every confirmation request raised, in order
        events: Transition log
        last_error: Most recent failure, if any
    """

    registry: PhaseRegistry
    spec_document: "SpecDocument | None" = None
    run_id: str = field(default_factory=lambda: f"run-{uuid.uuid4().hex[:8]}")
    status: RunStatus = RunStatus.NOT_STARTED
    current_index: int = 0
    ledger: ArtifactLedger = field(default_factory=ArtifactLedger)
    phase_status: dict[str, PhaseStatus] = field(default_factory=dict)
    completed_actions: dict[str, list[str]] = field(default_factory=dict)
    approvals: set[str] = field(default_factory=set)
    payload_overrides: dict[str, dict[str, Any]] = field(default_factory=dict)
    requests: list["ConfirmationRequest"] = field(default_factory=list)
    events: list[TransitionEvent] = field(default_factory=list)
    last_error: WorkflowError | None = None

    def __post_init__(self) -> None:
        for phase in self.registry:
            self.phase_status.setdefault(phase.name, PhaseStatus.PENDING)

    # =========================================================================
    # Phase position
    # =========================================================================

    @property
    def current_phase(self) -> PhaseDefinition | None:
        """Phase at the current position, or None once every phase is done."""
        if self.current_index >= len(self.registry):
            return None
        return self.registry.get(self.current_index)

    def next_unexecuted_index(self) -> int | None:
        """First phase that is neither completed nor skipped."""
        for index, phase in enumerate(self.registry):
            if self.phase_status[phase.name] not in (PhaseStatus.COMPLETED, PhaseStatus.SKIPPED):
                return index
        return None

    def is_phase_completed(self, name: str) -> bool:
        return self.phase_status.get(name) == PhaseStatus.COMPLETED

    def completed_phase_names(self) -> list[str]:
        return [p.name for p in self.registry if self.is_phase_completed(p.name)]

    # =========================================================================
    # Confirmation requests
    # =========================================================================

    @property
    def pending_request(self) -> "ConfirmationRequest | None":
        """The unresolved confirmation request, if the run is waiting on one."""
        if self.requests and not self.requests[-1].is_resolved:
            return self.requests[-1]
        return None

    @property
    def latest_request(self) -> "ConfirmationRequest | None":
        return self.requests[-1] if self.requests else None

    # =========================================================================
    # Events
    # =========================================================================

    def record_event(
        self,
        kind: str,
        phase: str | None = None,
        message: str = "",
        **data: Any,
    ) -> TransitionEvent:
        """Append a transition event reflecting the run's current status."""
        event = TransitionEvent(
            kind=kind,
            phase=phase,
            run_status=self.status,
            message=message,
            data=data,
        )
        self.events.append(event)
        return event

    @property
    def terminal_label(self) -> str:
        """``completed``, ``failed``, ``abandoned-at-phase-N`` or the live status."""
        if self.status == RunStatus.ABANDONED:
            return f"abandoned-at-phase-{self.current_index + 1}"
        return self.status.value
