#!/usr/bin/env python3
"""
Moodle Autopilot Runner

Usage:
    moodle-autopilot <workflow.yaml>              # Run a workflow
    moodle-autopilot <workflow.yaml> --dry-run    # Validate without connecting
    moodle-autopilot --list-steps                 # List available step types

The access token is read from the environment variable named by the
config key moodle.token_env (default: MOODLE_TOKEN).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

from .config import load_config, resolve_token, validate_config_file
from .core import (
    AutopilotError,
    ExecutionResult,
    OutputMode,
    StepRegistry,
    TraceLevel,
    WorkflowEngine,
    validate_workflow,
)

logger = logging.getLogger(__name__)


def setup_logging(output_mode: OutputMode) -> None:
    """Configure logging based on output mode."""
    # Determine log level for our code
    if output_mode == OutputMode.QUIET:
        level = logging.WARNING
    elif output_mode == OutputMode.DEBUG:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )

    # Suppress library loggers unless in debug mode
    if output_mode != OutputMode.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def trace_level_for(output_mode: OutputMode) -> TraceLevel:
    if output_mode == OutputMode.DEBUG:
        return TraceLevel.DETAILED
    if output_mode == OutputMode.NORMAL:
        return TraceLevel.STEPS
    return TraceLevel.ERRORS


def print_summary(result: ExecutionResult) -> None:
    """Print the outcome of a run."""
    print()
    print("=" * 60)
    print(f"EXECUTION {'COMPLETE' if result.success else 'FAILED'}")
    print("=" * 60)
    print(f"Duration: {result.duration_seconds:.2f}s")
    print(f"Steps executed: {result.steps_executed}")

    if result.errors:
        print(f"\nErrors: {len(result.errors)}")
        for record in result.errors:
            print(f"  [{record.error_type}] {record.message}")
            if record.step:
                print(f"    step: {record.step}")
            for key, value in record.context.items():
                print(f"    {key}: {value}")

    if result.context:
        print("\nContext:")
        for step_id, output in result.context.items():
            print(f"  {step_id}: {', '.join(output) or '-'}")


async def run_workflow(
    workflow_path: Path,
    url: str | None = None,
    config: dict[str, Any] | None = None,
    dry_run: bool = False,
    output_mode: OutputMode = OutputMode.NORMAL,
    token: str | None = None,
    transport: Any = None,
) -> int:
    """Run a workflow and return exit code."""
    config = config or load_config()

    # Import steps to register them
    from . import steps  # noqa: F401

    logger.info(f"Loading workflow: {workflow_path}")

    validation_report = validate_workflow(workflow_path)
    for warning in validation_report.warnings:
        logger.warning(str(warning))
    if not validation_report.valid:
        print(validation_report.format())
        return 1

    logger.info("✓ Validation passed")

    if dry_run:
        logger.info("Dry run - skipping execution")
        return 0

    token = token or resolve_token(config)
    if not token:
        logger.error(f"No access token: set {config['moodle']['token_env']}")
        return 1

    engine = WorkflowEngine(output_mode=output_mode, trace_level=trace_level_for(output_mode))

    try:
        engine.load_workflow(workflow_path)
        if url is None and engine.workflow.environment is None:
            url = config["moodle"]["url"]
        session = await engine.connect(
            token,
            url=url,
            timeout=config["moodle"]["timeout"],
            transport=transport,
        )
    except AutopilotError as e:
        logger.error(e.describe())
        return 1

    try:
        result = await engine.execute()
    finally:
        await session.close()

    print_summary(result)
    if output_mode == OutputMode.DEBUG:
        print()
        print(engine.tracer.format_summary())
    return 0 if result.success else 1


def main():
    parser = argparse.ArgumentParser(
        description="Run Moodle automation workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument("workflow", type=Path, nargs="?", help="Path to workflow YAML file")
    parser.add_argument("--url", help="Moodle base URL (overrides the workflow's environment)")
    parser.add_argument("--config", "-c", type=Path, help="Config file (default: config.local.yaml)")
    parser.add_argument("--dry-run", action="store_true", help="Validate only")
    parser.add_argument(
        "--list-steps",
        action="store_true",
        help="List available step types"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only print warnings and errors")
    verbosity.add_argument("--debug", "-d", action="store_true", help="Print debug output")

    args = parser.parse_args()

    # Handle --list-steps
    if args.list_steps:
        from . import steps  # noqa: F401

        registry = StepRegistry.get_instance()
        print(f"{'Step Type':<32} {'Description'}")
        print("-" * 80)
        for step_type in registry.list_types():
            manifest = registry.get_manifest(step_type)
            print(f"{step_type:<32} {manifest['description']}")
        sys.exit(0)

    if args.workflow is None:
        print("Error: Workflow file is required", file=sys.stderr)
        parser.print_usage()
        sys.exit(1)

    if not args.workflow.exists():
        print(f"Error: Workflow file not found: {args.workflow}", file=sys.stderr)
        sys.exit(1)

    config_errors = validate_config_file(args.config)
    if config_errors:
        for error in config_errors:
            print(f"Config error: {error}", file=sys.stderr)
        sys.exit(1)

    if args.quiet:
        output_mode = OutputMode.QUIET
    elif args.debug:
        output_mode = OutputMode.DEBUG
    else:
        output_mode = OutputMode.NORMAL

    setup_logging(output_mode)

    exit_code = asyncio.run(run_workflow(
        args.workflow,
        url=args.url,
        config=load_config(args.config),
        dry_run=args.dry_run,
        output_mode=output_mode,
    ))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
