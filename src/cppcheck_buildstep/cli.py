"""Command-line entry point for previewing and running the cppcheck build step."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from cppcheck_buildstep.compose import compose_command, config_advisories
from cppcheck_buildstep.config import load_analysis_config
from cppcheck_buildstep.errors import ConfigurationError
from cppcheck_buildstep.logging import get_logger, setup_logging, with_fields
from cppcheck_buildstep.problem_details import render_problem
from cppcheck_buildstep.settings import BuildStepSettings, get_settings
from cppcheck_buildstep.step import perform

if TYPE_CHECKING:
    from cppcheck_buildstep.config import AnalysisConfig

__all__ = [
    "app",
    "preview",
    "run",
]

LOGGER = get_logger(__name__)

CONFIG_ERROR_EXIT_CODE = 2

app = typer.Typer(
    help="Run cppcheck as a build step.", no_args_is_help=True, add_completion=False
)

ConfigOption = Annotated[
    Path,
    typer.Option(
        "--config",
        "-c",
        help="JSON analysis configuration (structured or flat persisted shape).",
        metavar="FILE",
    ),
]


def _load(config_path: Path) -> tuple[BuildStepSettings, AnalysisConfig]:
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.log_format)
        config = load_analysis_config(config_path)
    except ConfigurationError as exc:
        if exc.problem is not None:
            typer.echo(render_problem(exc.problem), err=True)
        else:
            typer.echo(exc.message, err=True)
        raise typer.Exit(code=CONFIG_ERROR_EXIT_CODE) from exc
    return settings, config


@app.command()
def preview(config_path: ConfigOption) -> None:
    """Print the command line the build step would run, without running it."""
    settings, config = _load(config_path)
    command = compose_command(config, settings.resolve_executable())
    typer.echo(command.render())
    for advisory in config_advisories(config):
        typer.echo(f"{advisory.severity}: {advisory.message}", err=True)


@app.command()
def run(
    config_path: ConfigOption,
    workspace: Annotated[
        Path,
        typer.Option(
            "--workspace",
            "-w",
            help="Build workspace the analyzer runs in.",
            metavar="DIR",
        ),
    ] = Path(),
    build_id: Annotated[
        str | None,
        typer.Option("--build-id", help="Correlation id attached to log records."),
    ] = None,
) -> None:
    """Run cppcheck inside WORKSPACE, forwarding its output to stdout.

    Raises
    ------
    typer.Exit
        Raised with code 1 when the analyzer could not be run to termination.
    """
    settings, config = _load(config_path)
    outcome = perform(
        config,
        workspace,
        log_sink=sys.stdout,
        settings=settings,
        build_id=build_id,
    )
    logger = with_fields(LOGGER, operation="cli_run", state=outcome.state.value)
    if outcome.failed:
        if outcome.problem is not None:
            typer.echo(render_problem(outcome.problem), err=True)
        logger.error("Build step failed")
        raise typer.Exit(code=1)
    logger.info("Build step finished", extra={"returncode": outcome.returncode})


if __name__ == "__main__":  # pragma: no cover - manual execution entrypoint
    app()
