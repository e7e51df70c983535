"""Collaborator adapter: the uniform way phases talk to external tools."""

from .base import (
    CallableCollaborator,
    Collaborator,
    CollaboratorAdapter,
    CollaboratorResult,
    InvocationContext,
)
from .builtin import (
    SpecDiscoveryCollaborator,
    SummaryReportCollaborator,
    builtin_collaborators,
    render_artifact_report,
)
from .command import CommandCollaborator, MalformedOutputError

__all__ = [
    "CallableCollaborator",
    "Collaborator",
    "CollaboratorAdapter",
    "CollaboratorResult",
    "CommandCollaborator",
    "InvocationContext",
    "MalformedOutputError",
    "SpecDiscoveryCollaborator",
    "SummaryReportCollaborator",
    "builtin_collaborators",
    "render_artifact_report",
]
