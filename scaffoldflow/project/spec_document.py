"""Pydantic models for the declarative spec a run scaffolds.

The spec document is already-parsed content: entities with their
attributes and relationships, plus endpoint groupings. It is loaded from a
YAML or JSON file and handed to the Discovery phase.

Example spec.yaml:
    name: blog
    entities:
      - name: Post
        attributes:
          - {name: title, type: string}
          - {name: body, type: text, nullable: true}
        relationships:
          - {type: belongs_to, target: User}
      - name: User
        attributes:
          - {name: email, type: string, unique: true}
    endpoint_groups:
      - {name: admin, prefix: /admin, entities: [Post, User]}
"""

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from scaffoldflow.errors import ConfigurationError


class EntityAttribute(BaseModel):
    """A single field/column of an entity."""

    name: str
    type: str = "string"  # string, text, integer, boolean, datetime, uuid
    nullable: bool = False
    unique: bool = False
    default: str | None = None


class EntityRelationship(BaseModel):
    """How an entity is connected to another one."""

    type: str  # has_many, belongs_to, has_one, belongs_to_many
    target: str  # Entity name
    foreign_key: str | None = None


class Entity(BaseModel):
    """Domain entity to scaffold (e.g., Post, User)."""

    name: str
    attributes: list[EntityAttribute] = Field(default_factory=list)
    relationships: list[EntityRelationship] = Field(default_factory=list)
    soft_deletes: bool = False


class EndpointGroup(BaseModel):
    """A set of entities exposed under one route prefix."""

    name: str
    prefix: str = ""
    entities: list[str] = Field(default_factory=list)
    middleware: list[str] = Field(default_factory=list)


class SpecDocument(BaseModel):
    """Parsed declarative specification."""

    name: str = "app"
    entities: list[Entity] = Field(default_factory=list)
    endpoint_groups: list[EndpointGroup] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "SpecDocument":
        names = [e.name for e in self.entities]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate entity names: {', '.join(duplicates)}")

        known = set(names)
        for entity in self.entities:
            for rel in entity.relationships:
                if rel.target not in known:
                    raise ValueError(
                        f"entity '{entity.name}' relates to unknown entity '{rel.target}'"
                    )
        for group in self.endpoint_groups:
            unknown = [n for n in group.entities if n not in known]
            if unknown:
                raise ValueError(
                    f"endpoint group '{group.name}' references unknown entities: "
                    f"{', '.join(unknown)}"
                )
        return self

    def get_entity(self, name: str) -> Entity | None:
        return next((e for e in self.entities if e.name == name), None)


def load_spec_document(path: Path | str) -> SpecDocument:
    """Load a spec document from a YAML or JSON file.

    Args:
        path: File ending in .json, or anything else parsed as YAML

    Returns:
        Validated SpecDocument

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Spec file not found: {path}")

    text = path.read_text()
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not parse spec file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Spec file {path} must contain a mapping")

    try:
        return SpecDocument.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid spec file {path}", detail=str(e)) from e
