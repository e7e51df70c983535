"""Centralized configuration for scaffoldflow.

This module provides a single source of truth for status values, policy
names and configuration constants used across the orchestration core.

Design Principles:
- Enums for type-safe status values
- All timeout and tracking defaults in one place
- No imports from the rest of the package (safe to import anywhere)
"""

import os
from dataclasses import dataclass
from enum import Enum

# =============================================================================
# Enums for Type Safety
# =============================================================================


class RunStatus(Enum):
    """Lifecycle status of a WorkflowRun."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    WAITING_ON_CONFIRMATION = "waiting-on-confirmation"
    FAILED = "failed"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings."""
        return [status.value for status in cls]

    @property
    def is_terminal(self) -> bool:
        """Completed and abandoned runs never move again."""
        return self in (RunStatus.COMPLETED, RunStatus.ABANDONED)


class PhaseStatus(Enum):
    """Status of a single phase within a run."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled-back"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings."""
        return [status.value for status in cls]


class ErrorPolicy(Enum):
    """What the engine does when a phase fails."""

    ABORT = "abort"
    PROMPT_FOR_FIX = "prompt_for_fix"
    OFFER_ROLLBACK = "offer_rollback"


class Severity(Enum):
    """Severity of a confirmation request.

    INFORMATIONAL: plan review, rejection means "stop, no damage done".
    DESTRUCTIVE: the phase writes state (migrations, overwriting generation).
    """

    INFORMATIONAL = "informational"
    DESTRUCTIVE = "destructive"


class DecisionOutcome(Enum):
    """Possible answers to a confirmation request."""

    APPROVE = "approve"
    REJECT = "reject"
    DEFER = "defer"


class ConfirmationPurpose(Enum):
    """Why a confirmation request was raised."""

    PHASE_ENTRY = "phase-entry"
    REMEDIATION = "remediation"
    ROLLBACK = "rollback"


class ArtifactKind(Enum):
    """Kinds of artifacts recorded in the ledger."""

    ENTITY = "entity"
    ENDPOINT = "endpoint"
    MODEL = "model"
    CONTROLLER = "controller"
    MIGRATION = "migration"
    ADMIN_RESOURCE = "admin-resource"
    TEST = "test"
    FORMATTED_FILE = "formatted-file"
    REPORT = "report"
    REVERTED = "reverted"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid kind values as strings."""
        return [kind.value for kind in cls]


# =============================================================================
# Collaborator Defaults
# =============================================================================

# Seconds an external command may run before it is reported as failed
DEFAULT_COMMAND_TIMEOUT = 600.0

# Maximum characters of stderr/stdout kept in an error detail
MAX_ERROR_DETAIL_CHARS = 2000

# Project configuration file looked up in the working directory
DEFAULT_CONFIG_FILE = "scaffoldflow.yaml"


# =============================================================================
# Engine Settings
# =============================================================================

# Burr tracking project name (used when tracking is enabled)
DEFAULT_TRACKING_PROJECT = "scaffoldflow"


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings for the workflow engine.

    Attributes:
        enable_tracking: Record runs with Burr's local tracking client
        tracking_project: Burr tracking project name
        command_timeout: Default timeout for command collaborators
    """

    enable_tracking: bool = False
    tracking_project: str = DEFAULT_TRACKING_PROJECT
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Create settings from environment variables."""
        tracking = os.getenv("SCAFFOLDFLOW_TRACKING", "false").lower() in ("true", "1", "yes")
        return cls(
            enable_tracking=tracking,
            tracking_project=os.getenv("SCAFFOLDFLOW_TRACKING_PROJECT", DEFAULT_TRACKING_PROJECT),
            command_timeout=float(
                os.getenv("SCAFFOLDFLOW_COMMAND_TIMEOUT", str(DEFAULT_COMMAND_TIMEOUT))
            ),
        )
