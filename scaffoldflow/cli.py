"""Command-line entry point.

Usage:
    scaffoldflow run spec.yaml                    # interactive confirmations
    scaffoldflow run spec.yaml --yes              # approve phase entries unattended
    scaffoldflow run spec.yaml --yes --approve-rollbacks
    scaffoldflow run spec.yaml --config ci.yaml --report summary.md
    scaffoldflow phases                           # show the phase table
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from scaffoldflow.collaborators.builtin import builtin_collaborators
from scaffoldflow.config import DEFAULT_CONFIG_FILE, EngineSettings, RunStatus
from scaffoldflow.errors import ConfigurationError
from scaffoldflow.project.project_config import ProjectConfig, load_project_config
from scaffoldflow.project.spec_document import load_spec_document
from scaffoldflow.telemetry import TelemetryConfig, init_telemetry, shutdown_telemetry
from scaffoldflow.workflow.engine import WorkflowEngine
from scaffoldflow.workflow.gates import AutoApproveDecider, ConsoleDecider
from scaffoldflow.workflow.phase_registry import PhaseRegistry
from scaffoldflow.workflow.run import TransitionEvent, WorkflowRun

load_dotenv()

logger = logging.getLogger(__name__)

# Transition kinds echoed to the console during a run
_ECHOED_EVENTS = {
    "phase_started": ">>",
    "phase_completed": "ok",
    "phase_failed": "!!",
    "phase_skipped": "--",
    "phase_rolled_back": "<<",
    "precondition_unmet": "!!",
}


def _print_event(event: TransitionEvent) -> None:
    marker = _ECHOED_EVENTS.get(event.kind)
    if marker:
        print(f"{marker} {event.phase}: {event.kind.replace('_', ' ')}")


def _load_config(config_path: str | None) -> ProjectConfig:
    if config_path:
        return load_project_config(config_path)
    default = Path(DEFAULT_CONFIG_FILE)
    if default.exists():
        return load_project_config(default)
    logger.info(f"No {DEFAULT_CONFIG_FILE} found; only built-in collaborators are available")
    return ProjectConfig(base_dir=Path.cwd())


def format_phase_table(registry: PhaseRegistry) -> str:
    """Plain-text listing of the phase table."""
    lines = []
    for position, phase in enumerate(registry, start=1):
        flags = []
        if phase.requires_confirmation:
            flags.append(f"confirm:{phase.confirmation_severity.value}")
        if phase.optional:
            flags.append("optional")
        if phase.reversible:
            flags.append("reversible")
        flags.append(f"on-error:{phase.error_policy.value}")
        actions = ", ".join(f"{a.name}<{a.collaborator_id}>" for a in phase.actions)
        lines.append(f"{position}. {phase.display_name} [{' '.join(flags)}]")
        lines.append(f"   {phase.goal}")
        lines.append(f"   actions: {actions}")
        if phase.precondition.description:
            lines.append(f"   requires: {phase.precondition.description}")
    return "\n".join(lines)


def _ask_retry(run: WorkflowRun) -> bool:
    phase = run.current_phase
    print(f"\n{run.last_error}")
    if run.last_error is not None and run.last_error.detail:
        print(run.last_error.detail)
    try:
        answer = input(f"Retry {phase.display_name} after fixing the problem? [y/n] ")
    except EOFError:
        print()
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_run(args: argparse.Namespace) -> int:
    """Run the workflow for a spec document."""
    spec = load_spec_document(args.spec)
    config = _load_config(args.config)

    settings = EngineSettings.from_env()
    if config.tracking and not settings.enable_tracking:
        settings = replace(settings, enable_tracking=True)

    registry = config.build_registry()
    adapter = config.build_adapter(settings)
    builtin_ids = [c.collaborator_id for c in builtin_collaborators()]
    missing = config.missing_collaborators(registry, builtin_ids)
    if missing:
        print(f"WARNING: no command configured for: {', '.join(missing)}")

    if args.yes:
        decider = AutoApproveDecider(approve_rollbacks=args.approve_rollbacks)
    else:
        decider = ConsoleDecider()
    engine = WorkflowEngine(
        adapter,
        registry=registry,
        decider=decider,
        settings=settings,
        on_transition=_print_event,
    )

    run = engine.start(spec)
    status = engine.run_to_completion(run)
    # Unattended runs stop at the first pause; a person at the console
    # already answered the fix or rollback prompt, so carry on
    while not args.yes:
        if status == RunStatus.FAILED:
            if not _ask_retry(run):
                break
            engine.retry_phase(run)
        elif status != RunStatus.IN_PROGRESS:
            break
        status = engine.run_to_completion(run)

    summary = engine.summarize(run)
    report = summary.to_markdown()
    print()
    print(report)

    if args.report:
        Path(args.report).write_text(report)
        print(f"Report written to {args.report}")

    return 0 if status == RunStatus.COMPLETED else 1


def cmd_phases(args: argparse.Namespace) -> int:
    """Print the phase table in effect."""
    config = _load_config(args.config)
    print(format_phase_table(config.build_registry()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scaffoldflow",
        description="Guided, confirmation-gated scaffolding from a declarative spec",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the workflow for a spec document")
    run_parser.add_argument("spec", type=str, help="Spec document (YAML or JSON)")
    run_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=f"Project configuration (default: ./{DEFAULT_CONFIG_FILE} if present)",
    )
    run_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Approve phase entries without asking (fixes are declined)",
    )
    run_parser.add_argument(
        "--approve-rollbacks",
        action="store_true",
        help="With --yes, roll back a failed reversible phase instead of stopping",
    )
    run_parser.add_argument(
        "--report",
        type=str,
        default=None,
        help="Write the run summary (markdown) to this file",
    )
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    run_parser.set_defaults(handler=cmd_run)

    phases_parser = subparsers.add_parser("phases", help="Show the phase table")
    phases_parser.add_argument("--config", type=str, default=None, help="Project configuration")
    phases_parser.add_argument("--verbose", "-v", action="store_true", help="Show debug logging")
    phases_parser.set_defaults(handler=cmd_phases)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    telemetry_config = TelemetryConfig.from_env()
    if args.verbose:
        telemetry_config.log_level = "DEBUG"
    init_telemetry(telemetry_config)

    try:
        exit_code = args.handler(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        if e.detail:
            print(e.detail)
        exit_code = 2
    finally:
        shutdown_telemetry()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
