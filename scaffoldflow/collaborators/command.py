"""Collaborator backed by an external command-line tool.

The tool is executed via subprocess in the project directory. The action
payload (plus the run context) is written to the tool's stdin as JSON, and
``payload["args"]`` is appended to the command line. The tool reports what
it produced on stdout, in one of three formats:

- ``json``: a list of artifacts, or ``{"artifacts": [...]}``. Each item is
  either a string identifier or ``{"kind", "identifier", "metadata"}``.
- ``lines``: one identifier per non-empty line.
- ``none``: nothing is parsed; success produces no artifacts.

Non-zero exit codes, missing executables, timeouts and malformed output are
reported as failures with the relevant stderr/stdout attached.
"""

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from scaffoldflow.config import DEFAULT_COMMAND_TIMEOUT, ArtifactKind
from scaffoldflow.workflow.ledger import Artifact

from .base import Collaborator, CollaboratorResult, InvocationContext

logger = logging.getLogger(__name__)

OutputFormat = Literal["json", "lines", "none"]


class MalformedOutputError(ValueError):
    """Tool output could not be parsed into artifacts."""


class CommandCollaborator(Collaborator):
    """Runs an external command and parses its artifact report.

    Example:
        generator = CommandCollaborator(
            "scaffold-generator",
            ["php", "artisan", "blueprint:build", "--json"],
            cwd="/path/to/app",
            output_format="json",
            artifact_kind=ArtifactKind.MODEL,
        )
    """

    def __init__(
        self,
        collaborator_id: str,
        command: list[str],
        cwd: Path | str | None = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        output_format: OutputFormat = "json",
        artifact_kind: ArtifactKind = ArtifactKind.FORMATTED_FILE,
        env: dict[str, str] | None = None,
    ):
        """Initialize the command collaborator.

        Args:
            collaborator_id: Registry key
            command: Executable and fixed arguments
            cwd: Working directory (default: current directory)
            timeout: Seconds before the command is reported as failed
            output_format: How stdout is parsed into artifacts
            artifact_kind: Kind used for items that do not name one
            env: Extra environment variables
        """
        if not command:
            raise ValueError(f"Collaborator '{collaborator_id}' needs a command")
        self.collaborator_id = collaborator_id
        self.command = list(command)
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout
        self.output_format = output_format
        self.artifact_kind = artifact_kind
        self.env = env

    def _build_stdin(self, payload: dict[str, Any], context: InvocationContext) -> str:
        document = {
            "run_id": context.run_id,
            "phase": context.phase,
            "action": context.action,
            "payload": payload,
        }
        if context.spec_document is not None:
            document["spec"] = context.spec_document.model_dump(mode="json")
        return json.dumps(document)

    def _run(self, args: list[str], stdin: str) -> subprocess.CompletedProcess:
        env = {**os.environ, **self.env} if self.env else None
        return subprocess.run(
            [*self.command, *args],
            cwd=self.cwd,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            env=env,
        )

    def invoke(self, payload: dict[str, Any], context: InvocationContext) -> CollaboratorResult:
        args = [str(a) for a in payload.get("args", [])]
        cmd_display = " ".join([*self.command, *args])

        try:
            result = self._run(args, self._build_stdin(payload, context))
        except FileNotFoundError:
            return CollaboratorResult.failure(f"Command not found: {self.command[0]}")
        except subprocess.TimeoutExpired:
            return CollaboratorResult.failure(
                f"Command timed out after {self.timeout:.0f}s: {cmd_display}"
            )

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            return CollaboratorResult.failure(
                f"Command failed with exit code {result.returncode}: {cmd_display}\n{output}"
            )

        try:
            artifacts = self.parse_output(result.stdout)
        except MalformedOutputError as e:
            return CollaboratorResult.failure(f"Malformed output from {cmd_display}: {e}")

        return CollaboratorResult.success(artifacts)

    # =========================================================================
    # Output Parsing
    # =========================================================================

    def parse_output(self, stdout: str) -> list[Artifact]:
        """Parse stdout into artifacts according to ``output_format``.

        Raises:
            MalformedOutputError: If the output does not match the format
        """
        if self.output_format == "none":
            return []

        if self.output_format == "lines":
            return [
                Artifact(kind=self.artifact_kind, identifier=line.strip())
                for line in stdout.splitlines()
                if line.strip()
            ]

        if not stdout.strip():
            return []

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise MalformedOutputError(f"invalid JSON ({e.msg} at line {e.lineno})") from e

        if isinstance(data, dict):
            data = data.get("artifacts")
        if not isinstance(data, list):
            raise MalformedOutputError("expected a list of artifacts")

        return [self._artifact_from_item(item) for item in data]

    def _artifact_from_item(self, item: Any) -> Artifact:
        if isinstance(item, str):
            return Artifact(kind=self.artifact_kind, identifier=item)
        if not isinstance(item, dict):
            raise MalformedOutputError(f"unexpected artifact entry: {item!r}")

        try:
            return Artifact(
                kind=ArtifactKind(item.get("kind", self.artifact_kind.value)),
                identifier=item["identifier"],
                metadata=item.get("metadata") or {},
            )
        except KeyError as e:
            raise MalformedOutputError(f"artifact entry missing {e}") from e
        except (ValueError, ValidationError) as e:
            raise MalformedOutputError(f"invalid artifact entry {item!r}: {e}") from e
