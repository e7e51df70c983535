"""Phase definitions and the registry that orders them.

Phases are configuration data, not code branches: each PhaseDefinition
describes its precondition, ordered actions, confirmation gate, error
policy and rollback action. The engine consumes an ordered PhaseRegistry
with a single generic loop, so phases can be added, reordered or given a
different rollback strategy without touching the engine.
"""

from dataclasses import dataclass, field
from typing import Any

from scaffoldflow.config import ArtifactKind, ErrorPolicy, Severity
from scaffoldflow.errors import ConfigurationError


@dataclass(frozen=True)
class ActionSpec:
    """A single collaborator invocation within a phase.

    Attributes:
        name: Action identifier, unique within its phase
        collaborator_id: Registry key of the collaborator to invoke
        payload: Input passed to the collaborator
        expects: Artifact kind the collaborator is expected to produce
    """

    name: str
    collaborator_id: str
    payload: dict[str, Any] = field(default_factory=dict)
    expects: ArtifactKind | None = None


@dataclass(frozen=True)
class Precondition:
    """Predicate evaluated against the run before a phase may start.

    Attributes:
        description: Human-readable condition (e.g. "spec parsed")
        completed_phases: Phases that must have fully succeeded
        artifact_kinds: Artifact kinds that must exist in the ledger,
            produced by a fully completed phase
    """

    description: str = ""
    completed_phases: tuple[str, ...] = ()
    artifact_kinds: tuple[ArtifactKind, ...] = ()

    @property
    def is_trivial(self) -> bool:
        return not self.completed_phases and not self.artifact_kinds


@dataclass(frozen=True)
class PhaseDefinition:
    """Immutable definition of a workflow phase.

    This is the single source of truth for how a phase is gated, executed
    and recovered.
    """

    # Identifiers
    name: str  # e.g., "generation" (slug, used in ledger and events)
    display_name: str  # e.g., "Generation"
    goal: str  # User-facing explanation of what this phase does

    # Work
    actions: tuple[ActionSpec, ...] = ()
    precondition: Precondition = field(default_factory=Precondition)

    # Gating
    requires_confirmation: bool = False
    confirmation_severity: Severity = Severity.INFORMATIONAL
    optional: bool = False  # Declining the confirmation skips the phase

    # Recovery
    reversible: bool = False
    error_policy: ErrorPolicy = ErrorPolicy.ABORT
    rollback: ActionSpec | None = None  # Inverse collaborator invocation
    remediation_hint: str = ""

    def can_offer_rollback(self) -> bool:
        """Rollback is only ever offered for reversible phases with an inverse action."""
        return (
            self.error_policy == ErrorPolicy.OFFER_ROLLBACK
            and self.reversible
            and self.rollback is not None
        )

    def confirmation_description(self) -> str:
        """Description shown when asking to enter this phase."""
        lines = [f"{self.display_name}: {self.goal}"]
        for spec in self.actions:
            lines.append(f"  - {spec.name} (via {spec.collaborator_id})")
        if self.confirmation_severity == Severity.DESTRUCTIVE:
            lines.append("This step changes files or database state.")
        if self.optional:
            lines.append("This step is optional; declining skips it.")
        return "\n".join(lines)


class PhaseRegistry:
    """Ordered, validated collection of phase definitions.

    Positions are 0-based; a run refers to phases by position.
    """

    def __init__(self, phases: list[PhaseDefinition]):
        self._phases = list(phases)
        self._by_name = {p.name: p for p in self._phases}
        self._validate()

    def _validate(self) -> None:
        if not self._phases:
            raise ConfigurationError("A workflow needs at least one phase")

        if len(self._by_name) != len(self._phases):
            raise ConfigurationError("Phase names must be unique")

        for index, phase in enumerate(self._phases):
            if not phase.actions:
                raise ConfigurationError(f"Phase '{phase.name}' has no actions", phase=phase.name)

            action_names = [a.name for a in phase.actions]
            if len(set(action_names)) != len(action_names):
                raise ConfigurationError(
                    f"Phase '{phase.name}' has duplicate action names", phase=phase.name
                )

            earlier = {p.name for p in self._phases[:index]}
            for required in phase.precondition.completed_phases:
                if required not in earlier:
                    raise ConfigurationError(
                        f"Phase '{phase.name}' requires '{required}', "
                        "which is not an earlier phase",
                        phase=phase.name,
                    )

            if phase.error_policy == ErrorPolicy.OFFER_ROLLBACK and phase.rollback is None:
                raise ConfigurationError(
                    f"Phase '{phase.name}' offers rollback but defines no rollback action",
                    phase=phase.name,
                )

    # =========================================================================
    # Lookups
    # =========================================================================

    def get(self, index: int) -> PhaseDefinition:
        """Get phase by position."""
        return self._phases[index]

    def get_by_name(self, name: str) -> PhaseDefinition:
        """Get phase by name.

        Raises:
            KeyError: If no phase has that name
        """
        if name not in self._by_name:
            raise KeyError(f"Unknown phase: {name}")
        return self._by_name[name]

    def index_of(self, name: str) -> int:
        """0-based position of a phase."""
        return self._phases.index(self.get_by_name(name))

    def names(self) -> list[str]:
        """Ordered phase names."""
        return [p.name for p in self._phases]

    def __len__(self) -> int:
        return len(self._phases)

    def __iter__(self):
        return iter(self._phases)
