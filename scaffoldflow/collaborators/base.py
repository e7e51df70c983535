"""Collaborator contract and the adapter that invokes collaborators.

A collaborator is any external tool or agent a phase action calls: the
scaffolding generator, a migration runner, a code-simplification agent,
a test runner. The orchestration core only knows its coarse contract:

    invoke(payload, context) -> CollaboratorResult(ok, artifacts, error_detail)

The adapter is the only place that turns arbitrary failures (exceptions,
unknown ids) into that uniform shape. Side effects happen entirely inside
the collaborator; the adapter only reports them.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from scaffoldflow.config import MAX_ERROR_DETAIL_CHARS
from scaffoldflow.workflow.ledger import Artifact

if TYPE_CHECKING:
    from scaffoldflow.project.spec_document import SpecDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvocationContext:
    """Read-only information handed to a collaborator alongside its payload."""

    run_id: str
    phase: str
    action: str
    spec_document: "SpecDocument | None" = None
    ledger_snapshot: tuple[Artifact, ...] = ()


@dataclass
class CollaboratorResult:
    """Uniform result of a collaborator invocation."""

    ok: bool
    artifacts: list[Artifact] = field(default_factory=list)
    error_detail: str | None = None
    duration_seconds: float = 0.0

    @classmethod
    def success(cls, artifacts: list[Artifact] | None = None) -> "CollaboratorResult":
        return cls(ok=True, artifacts=list(artifacts or []))

    @classmethod
    def failure(cls, error_detail: str) -> "CollaboratorResult":
        return cls(ok=False, error_detail=_truncate(error_detail))


def _truncate(text: str, limit: int = MAX_ERROR_DETAIL_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class Collaborator(ABC):
    """An external tool the orchestration core can invoke."""

    collaborator_id: str

    @abstractmethod
    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        """Run the tool and report what it produced."""


class CallableCollaborator(Collaborator):
    """Wraps a Python callable as a collaborator.

    The callable receives ``(payload, context)`` and may return a
    CollaboratorResult, a list of artifacts (success) or None (success,
    nothing produced). Raising is reported as a failure by the adapter.
    """

    def __init__(
        self,
        collaborator_id: str,
        fn: Callable[[dict[str, Any], InvocationContext], Any],
    ):
        self.collaborator_id = collaborator_id
        self.fn = fn

    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        result = self.fn(payload, context)
        if isinstance(result, CollaboratorResult):
            return result
        if result is None:
            return CollaboratorResult.success()
        return CollaboratorResult.success(list(result))


class CollaboratorAdapter:
    """Registry of collaborators with a uniform ``invoke`` entry point.

    Example:
        adapter = CollaboratorAdapter()
        adapter.register(CommandCollaborator("migrator", ["php", "artisan", "migrate"]))
        result = adapter.invoke("migrator", {}, context)
        if not result.ok:
            print(result.error_detail)
    """

    def __init__(self, collaborators: list[Collaborator] | None = None):
        self._collaborators: dict[str, Collaborator] = {}
        for collaborator in collaborators or []:
            self.register(collaborator)

    def register(self, collaborator: Collaborator) -> None:
        """Add or replace a collaborator under its id."""
        if collaborator.collaborator_id in self._collaborators:
            logger.info(f"Replacing collaborator '{collaborator.collaborator_id}'")
        self._collaborators[collaborator.collaborator_id] = collaborator

    def has(self, collaborator_id: str) -> bool:
        return collaborator_id in self._collaborators

    def ids(self) -> list[str]:
        return sorted(self._collaborators)

    def invoke(
        self,
        collaborator_id: str,
        payload: dict[str, Any],
        context: InvocationContext,
    ) -> CollaboratorResult:
        """Invoke a collaborator and normalize its result.

        Args:
            collaborator_id: Registry key
            payload: Input for the collaborator
            context: Run/phase/action information

        Returns:
            CollaboratorResult; never raises for collaborator-side failures
        """
        collaborator = self._collaborators.get(collaborator_id)
        if collaborator is None:
            logger.error(f"No collaborator registered for '{collaborator_id}'")
            return CollaboratorResult.failure(f"Unknown collaborator: {collaborator_id}")

        logger.info(f"Invoking {collaborator_id} for {context.phase}/{context.action}")
        start_time = time.time()

        try:
            result = collaborator.invoke(payload, context)
        except Exception as e:  # Intentional catch-all: collaborator boundary
            logger.error(f"Collaborator {collaborator_id} raised: {e}", exc_info=True)
            result = CollaboratorResult.failure(f"{type(e).__name__}: {e}")

        result.duration_seconds = time.time() - start_time

        if result.ok:
            logger.info(
                f"{collaborator_id} succeeded in {result.duration_seconds:.2f}s "
                f"({len(result.artifacts)} artifact(s))"
            )
        else:
            logger.error(f"{collaborator_id} failed: {result.error_detail}")

        return result
