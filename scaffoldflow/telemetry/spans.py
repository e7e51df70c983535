"""Custom spans for workflow and phase-level tracing.

Span Hierarchy:
    workflow_span (one per engine step)
    └── phase_span (per phase execution)
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Span, StatusCode

logger = logging.getLogger(__name__)


def get_tracer() -> trace.Tracer:
    """Get the tracer for scaffoldflow spans.

    Without an initialized tracer provider this is the API's no-op tracer.
    """
    return trace.get_tracer("scaffoldflow.workflow")


@contextmanager
def workflow_span(
    workflow_name: str,
    run_id: str,
    **attributes: Any,
) -> Generator[Span, None, None]:
    """Create a span for one step of a workflow run.

    Args:
        workflow_name: Name of the workflow (e.g., "scaffold")
        run_id: Run identifier for correlation
        **attributes: Additional span attributes

    Example:
        with workflow_span("scaffold", run.run_id) as span:
            span.set_attribute("run.status", run.status.value)
    """
    span_attributes = {
        "workflow.name": workflow_name,
        "run.id": run_id,
    }
    span_attributes.update(attributes)

    with get_tracer().start_as_current_span(
        name=f"workflow:{workflow_name}",
        attributes=span_attributes,
    ) as span:
        try:
            yield span
            span.set_status(StatusCode.OK)
        except Exception as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, str(e))
            raise


@contextmanager
def phase_span(
    phase_name: str,
    display_name: str,
    action_names: list[str] | None = None,
    **attributes: Any,
) -> Generator[Span, None, None]:
    """Create a span for a phase execution.

    Args:
        phase_name: Phase identifier (e.g., "migration")
        display_name: Human-readable phase name
        action_names: Actions the phase will run
        **attributes: Additional span attributes

    Example:
        with phase_span("migration", "Migration") as span:
            span.set_attribute("phase.outcome", "success")
    """
    span_attributes: dict[str, Any] = {
        "phase.name": phase_name,
        "phase.display_name": display_name,
    }

    if action_names:
        span_attributes["phase.action_count"] = len(action_names)
        span_attributes["phase.actions"] = ",".join(action_names)

    span_attributes.update(attributes)

    with get_tracer().start_as_current_span(
        name=f"phase:{phase_name}",
        attributes=span_attributes,
    ) as span:
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, str(e))
            raise


def record_error(span: Span, error: Exception, action_name: str | None = None) -> None:
    """Record an error on a span with structured attributes.

    Args:
        span: The span to record the error on
        error: The exception that occurred
        action_name: Action that failed, if known
    """
    error_message = str(error)

    span.set_attribute("error", True)
    span.set_attribute("error.type", type(error).__name__)
    span.set_attribute("error.message", error_message[:500])  # Truncate for safety

    if action_name:
        span.set_attribute("error.action", action_name)

    span.record_exception(error)
    span.set_status(StatusCode.ERROR, error_message[:100])
