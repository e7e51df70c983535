"""Shared test fixtures and helpers.

Provides scripted fake collaborators for every collaborator id in the
default phase table, a small spec document, and engine factories.
"""

from typing import Any

import pytest

from scaffoldflow.collaborators.base import (
    Collaborator,
    CollaboratorAdapter,
    CollaboratorResult,
    InvocationContext,
)
from scaffoldflow.config import ArtifactKind
from scaffoldflow.project.spec_document import (
    EndpointGroup,
    Entity,
    EntityAttribute,
    EntityRelationship,
    SpecDocument,
)
from scaffoldflow.workflow import phase_specs
from scaffoldflow.workflow.engine import WorkflowEngine
from scaffoldflow.workflow.ledger import Artifact

# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeTool(Collaborator):
    """Collaborator that replays scripted results and records every call.

    Queued results are consumed first; afterwards every call returns
    ``default``. A queued item may be a CollaboratorResult, a list of
    artifacts (success) or an exception to raise.
    """

    def __init__(self, collaborator_id: str, default: list[Artifact] | None = None):
        self.collaborator_id = collaborator_id
        self.default = list(default or [])
        self.queue: list[Any] = []
        self.calls: list[tuple[dict[str, Any], InvocationContext]] = []

    def then(self, *results: Any) -> "FakeTool":
        self.queue.extend(results)
        return self

    def fail_next(self, detail: str = "tool exploded") -> "FakeTool":
        return self.then(CollaboratorResult.failure(detail))

    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        self.calls.append((dict(payload), context))
        result = self.queue.pop(0) if self.queue else list(self.default)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, CollaboratorResult):
            return result
        return CollaboratorResult.success(result)


def artifact(kind: ArtifactKind, identifier: str) -> Artifact:
    return Artifact(kind=kind, identifier=identifier)


def _default_tools() -> dict[str, FakeTool]:
    tools = [
        FakeTool(
            phase_specs.SCAFFOLD_GENERATOR,
            [
                artifact(ArtifactKind.MODEL, "app/Models/Post.php"),
                artifact(ArtifactKind.CONTROLLER, "app/Http/Controllers/PostController.php"),
                artifact(ArtifactKind.MIGRATION, "database/migrations/create_posts_table.php"),
            ],
        ),
        FakeTool(phase_specs.SCAFFOLD_ERASER),
        FakeTool(
            phase_specs.MIGRATOR,
            [artifact(ArtifactKind.MIGRATION, "create_posts_table")],
        ),
        FakeTool(phase_specs.MIGRATION_ROLLBACK),
        FakeTool(
            phase_specs.ADMIN_RESOURCE_GENERATOR,
            [artifact(ArtifactKind.ADMIN_RESOURCE, "app/Admin/PostResource.php")],
        ),
        FakeTool(
            phase_specs.CODE_SIMPLIFIER,
            [artifact(ArtifactKind.FORMATTED_FILE, "app/Models/Post.php")],
        ),
        FakeTool(
            phase_specs.CODE_FORMATTER,
            [artifact(ArtifactKind.FORMATTED_FILE, "app/Http/Controllers/PostController.php")],
        ),
        FakeTool(phase_specs.SIMPLIFICATION_REVERT),
        FakeTool(
            phase_specs.TEST_GENERATOR,
            [artifact(ArtifactKind.TEST, "tests/Feature/PostTest.php")],
        ),
        FakeTool(phase_specs.TEST_RUNNER),
    ]
    return {tool.collaborator_id: tool for tool in tools}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tools() -> dict[str, FakeTool]:
    """Fake collaborators keyed by collaborator id (built-ins excluded)."""
    return _default_tools()


@pytest.fixture
def adapter(tools) -> CollaboratorAdapter:
    return CollaboratorAdapter(list(tools.values()))


@pytest.fixture
def spec_document() -> SpecDocument:
    return SpecDocument(
        name="blog",
        entities=[
            Entity(
                name="Post",
                attributes=[
                    EntityAttribute(name="title"),
                    EntityAttribute(name="body", type="text", nullable=True),
                ],
                relationships=[EntityRelationship(type="belongs_to", target="User")],
            ),
            Entity(name="User", attributes=[EntityAttribute(name="email", unique=True)]),
        ],
        endpoint_groups=[EndpointGroup(name="admin", prefix="/admin", entities=["Post", "User"])],
    )


@pytest.fixture
def make_engine(adapter):
    """Factory for engines sharing the fake adapter."""

    def _make(**kwargs) -> WorkflowEngine:
        return WorkflowEngine(adapter, **kwargs)

    return _make
