"""Confirmation gates: the single suspension point of a run.

A gate is a decision point where an external actor (a human at the
console, or a policy in automation) must approve before the run may
proceed. Three flavours are raised by the engine:

- plan confirmation (informational, rejection means "stop, no damage done")
- destructive-operation confirmation (rejection guarantees no side effect)
- optional-step solicitation (rejection skips the optional phase)

Remediation prompts and rollback proposals travel through the same gate.

A gate either blocks on a ``decider`` callable, or, without one, leaves the
request pending so the run halts in ``waiting-on-confirmation`` until the
caller supplies a decision.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import yaml

from scaffoldflow.config import ConfirmationPurpose, DecisionOutcome, Severity
from scaffoldflow.errors import ConfirmationAlreadyResolvedError, InvalidTransitionError

from .run import WorkflowRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Decision:
    """Answer to a confirmation request.

    Attributes:
        outcome: approve, reject or defer
        note: Free-text reason supplied by the actor
        modifications: Payload changes requested with a deferral
    """

    outcome: DecisionOutcome
    note: str = ""
    modifications: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def approve(cls, note: str = "") -> "Decision":
        return cls(DecisionOutcome.APPROVE, note=note)

    @classmethod
    def reject(cls, note: str = "") -> "Decision":
        return cls(DecisionOutcome.REJECT, note=note)

    @classmethod
    def defer(cls, modifications: dict[str, Any] | None = None, note: str = "") -> "Decision":
        return cls(DecisionOutcome.DEFER, note=note, modifications=dict(modifications or {}))

    @property
    def approved(self) -> bool:
        return self.outcome == DecisionOutcome.APPROVE


@dataclass
class ConfirmationRequest:
    """A pending (or resolved) decision blocking a phase.

    Resolved exactly once; the decision is immutable afterwards.
    """

    phase: str
    purpose: ConfirmationPurpose
    description: str
    severity: Severity
    request_id: str = field(default_factory=lambda: f"confirm-{uuid.uuid4().hex[:8]}")
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    decision: Decision | None = None
    resolved_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.decision is not None

    @property
    def is_destructive(self) -> bool:
        return self.severity == Severity.DESTRUCTIVE

    def resolve(self, decision: Decision) -> None:
        """Record the decision.

        Raises:
            ConfirmationAlreadyResolvedError: If a decision was already recorded
        """
        if self.decision is not None:
            raise ConfirmationAlreadyResolvedError(
                f"Confirmation {self.request_id} was already resolved "
                f"({self.decision.outcome.value})",
                phase=self.phase,
            )
        self.decision = decision
        self.resolved_at = datetime.now(UTC)
        logger.info(
            f"Confirmation {self.request_id} for '{self.phase}' "
            f"({self.purpose.value}) resolved: {decision.outcome.value}"
        )


Decider = Callable[[ConfirmationRequest], Decision]


class ConfirmationGate:
    """Raises confirmation requests for a run and records their decisions."""

    def __init__(self, decider: Decider | None = None):
        """Initialize the gate.

        Args:
            decider: Blocking callable that answers a request. When None,
                requests stay pending until ``resolve`` is called.
        """
        self.decider = decider

    def request_confirmation(
        self,
        run: WorkflowRun,
        phase: str,
        description: str,
        severity: Severity,
        purpose: ConfirmationPurpose = ConfirmationPurpose.PHASE_ENTRY,
    ) -> ConfirmationRequest:
        """Raise a request and, with a decider, block until it is answered.

        Args:
            run: Run the request belongs to
            phase: Phase the request blocks
            description: Consequences shown to the actor
            severity: informational or destructive
            purpose: phase entry, remediation or rollback

        Returns:
            The request, resolved if a decider is configured
        """
        if run.pending_request is not None:
            raise InvalidTransitionError(
                f"Run {run.run_id} already waits on {run.pending_request.request_id}",
                phase=phase,
            )

        request = ConfirmationRequest(
            phase=phase,
            purpose=purpose,
            description=description,
            severity=severity,
        )
        run.requests.append(request)
        logger.info(
            f"Confirmation requested for '{phase}' ({purpose.value}, {severity.value})"
        )

        if self.decider is not None:
            request.resolve(self.decider(request))

        return request

    def resolve(self, run: WorkflowRun, decision: Decision) -> ConfirmationRequest:
        """Answer the run's pending request.

        Raises:
            InvalidTransitionError: If the run is not waiting on a request
        """
        request = run.pending_request
        if request is None:
            raise InvalidTransitionError(f"Run {run.run_id} has no pending confirmation")
        request.resolve(decision)
        return request


# =============================================================================
# Deciders
# =============================================================================


class AutoApproveDecider:
    """Answers requests for unattended runs (``--yes``).

    Phase entry is approved. Remediation requests are rejected, since no
    one is there to apply a fix. Rollback proposals are approved only when
    ``approve_rollbacks`` is set.
    """

    def __init__(self, approve_rollbacks: bool = False):
        self.approve_rollbacks = approve_rollbacks

    def __call__(self, request: ConfirmationRequest) -> Decision:
        if request.purpose == ConfirmationPurpose.REMEDIATION:
            return Decision.reject(note="unattended run cannot apply a fix")
        if request.purpose == ConfirmationPurpose.ROLLBACK and not self.approve_rollbacks:
            return Decision.reject(note="rollbacks are not approved for this run")
        return Decision.approve(note="auto-approved")


class ScriptedDecider:
    """Answers requests from a prepared script.

    The script maps a phase name (or ``(phase, purpose)`` pair) to the
    decisions to hand out in order. Unscripted requests get ``default``.
    """

    def __init__(
        self,
        script: dict[Any, Iterable[Decision] | Decision] | None = None,
        default: Decision | None = None,
    ):
        self._script: dict[Any, list[Decision]] = {}
        for key, value in (script or {}).items():
            self._script[key] = [value] if isinstance(value, Decision) else list(value)
        self.default = default or Decision.approve()
        self.seen: list[ConfirmationRequest] = []

    def __call__(self, request: ConfirmationRequest) -> Decision:
        self.seen.append(request)
        for key in ((request.phase, request.purpose), request.phase):
            queue = self._script.get(key)
            if queue:
                return queue.pop(0)
        return self.default


_CHOICES = {
    "y": DecisionOutcome.APPROVE,
    "yes": DecisionOutcome.APPROVE,
    "n": DecisionOutcome.REJECT,
    "no": DecisionOutcome.REJECT,
    "d": DecisionOutcome.DEFER,
    "defer": DecisionOutcome.DEFER,
}


def parse_decision(user_input: str) -> DecisionOutcome | None:
    """Parse a console answer into an outcome, or None if invalid."""
    return _CHOICES.get(user_input.strip().lower())


def format_request(request: ConfirmationRequest) -> str:
    """Format a request for display."""
    headings = {
        ConfirmationPurpose.PHASE_ENTRY: "Confirmation Required",
        ConfirmationPurpose.REMEDIATION: "Fix Required",
        ConfirmationPurpose.ROLLBACK: "Rollback Proposed",
    }
    lines = [
        f"## {headings[request.purpose]}: {request.phase}",
        "",
        request.description,
        "",
    ]
    if request.is_destructive:
        lines.append("**Warning:** this operation is destructive.")
        lines.append("")
    lines.append("Proceed? [y]es / [n]o / [d]efer")
    return "\n".join(lines)


def parse_modifications(text: str) -> dict[str, Any]:
    """Parse ``key=value`` pairs separated by commas into a payload dict.

    Values are read as YAML scalars, so ``force=true`` gives a boolean.

    Raises:
        ValueError: If a pair has no ``=`` or an empty key
    """
    modifications: dict[str, Any] = {}
    for pair in text.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected key=value, got '{pair}'")
        try:
            modifications[key.strip()] = yaml.safe_load(value.strip())
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid value for '{key.strip()}': {e}") from e
    return modifications


class ConsoleDecider:
    """Asks at the console, repeating until the answer is valid.

    End of input counts as a rejection.
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print,
    ):
        self.input_fn = input_fn
        self.output_fn = output_fn

    def __call__(self, request: ConfirmationRequest) -> Decision:
        self.output_fn(format_request(request))
        try:
            return self._ask(request)
        except EOFError:
            self.output_fn("No answer (end of input); rejecting.")
            return Decision.reject(note="end of input")

    def _ask(self, request: ConfirmationRequest) -> Decision:
        while True:
            outcome = parse_decision(self.input_fn("> "))
            if outcome is None:
                self.output_fn("Please answer y, n or d.")
                continue
            if outcome == DecisionOutcome.DEFER:
                return self._ask_deferral()
            return Decision(outcome)

    def _ask_deferral(self) -> Decision:
        while True:
            answer = self.input_fn("Changes as key=value, comma-separated (blank for none): ")
            try:
                modifications = parse_modifications(answer)
            except ValueError as e:
                self.output_fn(str(e))
                continue
            note = self.input_fn("Note (optional): ")
            return Decision.defer(modifications, note=note.strip())
