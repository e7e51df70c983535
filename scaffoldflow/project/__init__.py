"""Inputs of a run: the spec document and the project configuration."""

from .project_config import CollaboratorConfig, ProjectConfig, load_project_config
from .spec_document import (
    EndpointGroup,
    Entity,
    EntityAttribute,
    EntityRelationship,
    SpecDocument,
    load_spec_document,
)

__all__ = [
    "CollaboratorConfig",
    "EndpointGroup",
    "Entity",
    "EntityAttribute",
    "EntityRelationship",
    "ProjectConfig",
    "SpecDocument",
    "load_project_config",
    "load_spec_document",
]
