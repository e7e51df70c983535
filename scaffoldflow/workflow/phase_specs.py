"""Declarative phase table for the guided scaffolding workflow.

The default table drives the flow

    discovery -> generation -> migration -> admin_resources
        -> simplification -> testing -> summary

Each entry is plain data. Projects can replace the table from their
``scaffoldflow.yaml`` (see :mod:`scaffoldflow.project.project_config`),
which is converted through :func:`phase_from_dict`.
"""

from typing import Any

from scaffoldflow.config import ArtifactKind, ErrorPolicy, Severity
from scaffoldflow.errors import ConfigurationError

from .phase_registry import ActionSpec, PhaseDefinition, PhaseRegistry, Precondition

# ---------------------------------------------------------------------------
# Collaborator identifiers used by the default table
# ---------------------------------------------------------------------------

SPEC_DISCOVERY = "spec-discovery"
SCAFFOLD_GENERATOR = "scaffold-generator"
SCAFFOLD_ERASER = "scaffold-eraser"
MIGRATOR = "migrator"
MIGRATION_ROLLBACK = "migration-rollback"
ADMIN_RESOURCE_GENERATOR = "admin-resource-generator"
CODE_SIMPLIFIER = "code-simplifier"
CODE_FORMATTER = "code-formatter"
SIMPLIFICATION_REVERT = "simplification-revert"
TEST_GENERATOR = "test-generator"
TEST_RUNNER = "test-runner"
SUMMARY_REPORT = "summary-report"


# ---------------------------------------------------------------------------
# Phase Definitions
# ---------------------------------------------------------------------------

DISCOVERY_PHASE = PhaseDefinition(
    name="discovery",
    display_name="Discovery",
    goal=(
        "Review the parsed specification: entities, relationships and endpoint "
        "groups that the following phases will scaffold."
    ),
    actions=(
        ActionSpec(name="discover", collaborator_id=SPEC_DISCOVERY, expects=ArtifactKind.ENTITY),
    ),
    requires_confirmation=True,
    confirmation_severity=Severity.INFORMATIONAL,
    error_policy=ErrorPolicy.ABORT,
)

GENERATION_PHASE = PhaseDefinition(
    name="generation",
    display_name="Generation",
    goal="Generate models, controllers and migrations for every entity.",
    actions=(
        ActionSpec(name="scaffold", collaborator_id=SCAFFOLD_GENERATOR, expects=ArtifactKind.MODEL),
    ),
    precondition=Precondition(
        description="spec parsed",
        completed_phases=("discovery",),
        artifact_kinds=(ArtifactKind.ENTITY,),
    ),
    requires_confirmation=True,
    confirmation_severity=Severity.DESTRUCTIVE,
    reversible=True,
    error_policy=ErrorPolicy.OFFER_ROLLBACK,
    rollback=ActionSpec(name="erase-scaffold", collaborator_id=SCAFFOLD_ERASER),
)

MIGRATION_PHASE = PhaseDefinition(
    name="migration",
    display_name="Migration",
    goal="Apply the generated migrations to the development database.",
    actions=(ActionSpec(name="migrate", collaborator_id=MIGRATOR, expects=ArtifactKind.MIGRATION),),
    precondition=Precondition(
        description="migrations generated",
        completed_phases=("generation",),
        artifact_kinds=(ArtifactKind.MIGRATION,),
    ),
    requires_confirmation=True,
    confirmation_severity=Severity.DESTRUCTIVE,
    reversible=True,
    error_policy=ErrorPolicy.OFFER_ROLLBACK,
    rollback=ActionSpec(name="rollback-migrations", collaborator_id=MIGRATION_ROLLBACK),
)

ADMIN_RESOURCES_PHASE = PhaseDefinition(
    name="admin_resources",
    display_name="Admin Resources",
    goal="Generate admin panel resources for the migrated models.",
    actions=(
        ActionSpec(
            name="generate-admin",
            collaborator_id=ADMIN_RESOURCE_GENERATOR,
            expects=ArtifactKind.ADMIN_RESOURCE,
        ),
    ),
    precondition=Precondition(
        description="models migrated",
        completed_phases=("migration",),
        artifact_kinds=(ArtifactKind.MODEL,),
    ),
    requires_confirmation=True,
    confirmation_severity=Severity.INFORMATIONAL,
    optional=True,
    error_policy=ErrorPolicy.PROMPT_FOR_FIX,
    remediation_hint="Check the admin panel package is installed, then confirm to retry.",
)

SIMPLIFICATION_PHASE = PhaseDefinition(
    name="simplification",
    display_name="Simplification",
    goal="Refine the generated code and run the formatter over it.",
    actions=(
        ActionSpec(
            name="simplify",
            collaborator_id=CODE_SIMPLIFIER,
            expects=ArtifactKind.FORMATTED_FILE,
        ),
        ActionSpec(
            name="format",
            collaborator_id=CODE_FORMATTER,
            expects=ArtifactKind.FORMATTED_FILE,
        ),
    ),
    precondition=Precondition(
        description="code generated",
        completed_phases=("generation",),
    ),
    reversible=True,
    error_policy=ErrorPolicy.OFFER_ROLLBACK,
    rollback=ActionSpec(name="revert-simplification", collaborator_id=SIMPLIFICATION_REVERT),
)

TESTING_PHASE = PhaseDefinition(
    name="testing",
    display_name="Testing",
    goal="Generate feature tests for each endpoint group and run the suite.",
    actions=(
        ActionSpec(
            name="generate-tests", collaborator_id=TEST_GENERATOR, expects=ArtifactKind.TEST
        ),
        ActionSpec(name="run-tests", collaborator_id=TEST_RUNNER),
    ),
    precondition=Precondition(
        description="code generated",
        completed_phases=("generation",),
        artifact_kinds=(ArtifactKind.MODEL,),
    ),
    error_policy=ErrorPolicy.PROMPT_FOR_FIX,
    remediation_hint="Fix the failing tests or generated code, then confirm to re-run.",
)

SUMMARY_PHASE = PhaseDefinition(
    name="summary",
    display_name="Summary",
    goal="Report everything produced during the run.",
    actions=(
        ActionSpec(name="report", collaborator_id=SUMMARY_REPORT, expects=ArtifactKind.REPORT),
    ),
    error_policy=ErrorPolicy.ABORT,
)

DEFAULT_PHASES: list[PhaseDefinition] = [
    DISCOVERY_PHASE,
    GENERATION_PHASE,
    MIGRATION_PHASE,
    ADMIN_RESOURCES_PHASE,
    SIMPLIFICATION_PHASE,
    TESTING_PHASE,
    SUMMARY_PHASE,
]


def default_registry() -> PhaseRegistry:
    """Registry for the default scaffolding workflow."""
    return PhaseRegistry(DEFAULT_PHASES)


# ---------------------------------------------------------------------------
# Conversion from configuration data
# ---------------------------------------------------------------------------


def _action_from_dict(data: dict[str, Any]) -> ActionSpec:
    expects = data.get("expects")
    return ActionSpec(
        name=data["name"],
        collaborator_id=data["collaborator"],
        payload=dict(data.get("payload") or {}),
        expects=ArtifactKind(expects) if expects else None,
    )


def phase_from_dict(data: dict[str, Any]) -> PhaseDefinition:
    """Build a PhaseDefinition from a plain mapping (e.g. parsed YAML).

    Args:
        data: Mapping with keys matching PhaseDefinition fields; actions use
            ``{"name", "collaborator", "payload", "expects"}``

    Returns:
        PhaseDefinition

    Raises:
        ConfigurationError: If a required key is missing or a value is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Phase entry must be a mapping, got {data!r}")
    name = data.get("name", "<unnamed>")
    try:
        precondition_data = data.get("precondition") or {}
        rollback_data = data.get("rollback")
        return PhaseDefinition(
            name=data["name"],
            display_name=data.get("display_name") or data["name"].replace("_", " ").title(),
            goal=data.get("goal", ""),
            actions=tuple(_action_from_dict(a) for a in data.get("actions", [])),
            precondition=Precondition(
                description=precondition_data.get("description", ""),
                completed_phases=tuple(precondition_data.get("completed_phases", [])),
                artifact_kinds=tuple(
                    ArtifactKind(k) for k in precondition_data.get("artifact_kinds", [])
                ),
            ),
            requires_confirmation=bool(data.get("requires_confirmation", False)),
            confirmation_severity=Severity(data.get("confirmation_severity", "informational")),
            optional=bool(data.get("optional", False)),
            reversible=bool(data.get("reversible", False)),
            error_policy=ErrorPolicy(data.get("error_policy", "abort")),
            rollback=_action_from_dict(rollback_data) if rollback_data else None,
            remediation_hint=data.get("remediation_hint", ""),
        )
    except KeyError as e:
        raise ConfigurationError(f"Phase '{name}' is missing required key {e}", phase=name) from e
    except ValueError as e:
        raise ConfigurationError(f"Phase '{name}' has an invalid value: {e}", phase=name) from e
    except (AttributeError, TypeError) as e:
        # Nested values of the wrong shape, e.g. a string precondition
        raise ConfigurationError(f"Phase '{name}' is malformed: {e}", phase=name) from e


def registry_from_dicts(phases: list[dict[str, Any]]) -> PhaseRegistry:
    """Build and validate a registry from configuration data."""
    return PhaseRegistry([phase_from_dict(p) for p in phases])
