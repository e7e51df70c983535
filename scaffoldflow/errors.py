"""Error taxonomy for the orchestration core.

Every failure that reaches the invoking actor carries the phase, the
action (when one was running) and the raw detail reported by the
collaborator, so the caller can decide what to do next.
"""


class WorkflowError(Exception):
    """Base class for all orchestration errors."""

    def __init__(
        self,
        message: str,
        phase: str | None = None,
        action: str | None = None,
        detail: str = "",
    ):
        super().__init__(message)
        self.phase = phase
        self.action = action
        self.detail = detail

    def to_dict(self) -> dict[str, str | None]:
        """Structured form used in transition events and run summaries."""
        return {
            "type": type(self).__name__,
            "message": str(self),
            "phase": self.phase,
            "action": self.action,
            "detail": self.detail,
        }


class PreconditionUnmetError(WorkflowError):
    """A phase's precondition does not hold against the ledger."""


class CollaboratorFailureError(WorkflowError):
    """An invoked collaborator reported failure."""


class ConfirmationRejectedError(WorkflowError):
    """The external actor declined a confirmation request."""


class RollbackFailureError(WorkflowError):
    """An inverse collaborator invocation failed. Always fatal."""


class InvalidTransitionError(WorkflowError):
    """The requested operation is not valid in the run's current state."""


class ConfirmationAlreadyResolvedError(WorkflowError):
    """A decision was supplied for a request that already has one."""


class ConfigurationError(WorkflowError):
    """A phase table, project config or spec document is invalid."""
