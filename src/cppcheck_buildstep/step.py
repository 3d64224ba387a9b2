"""The cppcheck build step.

:func:`perform` is the single entry point a build host calls: it composes the
command line from the step's :class:`AnalysisConfig`, resolves the analyzer
from the injected settings, runs it inside the workspace and reports a
:class:`StepOutcome`. Process-layer failures are logged and reported, never
raised, so a broken analyzer installation cannot crash the host.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from cppcheck_buildstep.compose import ComposedCommand, compose_command, config_advisories
from cppcheck_buildstep.errors import AnalyzerExecutionError
from cppcheck_buildstep.logging import CorrelationContext, get_logger, with_fields
from cppcheck_buildstep.problem_details import analyzer_launch_problem_details
from cppcheck_buildstep.process import ProcessRunner
from cppcheck_buildstep.settings import BuildStepSettings, get_settings

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path
    from typing import TextIO

    from cppcheck_buildstep.config import AnalysisConfig
    from cppcheck_buildstep.problem_details import ProblemDetailsDict

__all__ = [
    "END_MARKER",
    "START_MARKER",
    "StepOutcome",
    "StepState",
    "perform",
]

LOGGER = get_logger(__name__)

START_MARKER: Final[str] = "[Cppchecker] Starting the cppcheck."
END_MARKER: Final[str] = "[Cppchecker] Ending the cppcheck."


class StepState(StrEnum):
    """Lifecycle of one analyzer invocation."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """What the build step reports back to its host.

    ``returncode`` is informational: a non-zero analyzer exit status still
    yields ``TERMINATED``.
    """

    state: StepState
    command: ComposedCommand
    diagnostic_path: Path
    returncode: int | None = None
    duration_seconds: float | None = None
    problem: ProblemDetailsDict | None = None

    @property
    def failed(self) -> bool:
        return self.state is StepState.FAILED


def perform(
    config: AnalysisConfig,
    workspace: Path,
    *,
    log_sink: TextIO,
    settings: BuildStepSettings | None = None,
    env: Mapping[str, str] | None = None,
    runner: ProcessRunner | None = None,
    build_id: str | None = None,
) -> StepOutcome:
    """Run cppcheck for ``config`` inside ``workspace``.

    Parameters
    ----------
    config : AnalysisConfig
        Analyzer options for this step.
    workspace : Path
        Build workspace root; the working directory of the analyzer and the
        base of the diagnostic output file.
    log_sink : TextIO
        Build log receiving the start/end markers and the analyzer's stdout.
    settings : BuildStepSettings | None, optional
        Global executable settings. Defaults to the environment-derived
        settings.
    env : Mapping[str, str] | None, optional
        Environment snapshot of the calling build. Defaults to ``os.environ``.
    runner : ProcessRunner | None, optional
        Process runner to use. Defaults to a runner honouring
        ``settings.metrics_enabled``.
    build_id : str | None, optional
        Correlation id attached to every log record emitted by the step.

    Returns
    -------
    StepOutcome
        ``TERMINATED`` with the analyzer's exit status, or ``FAILED`` with a
        Problem Details payload.

    Raises
    ------
    SettingsError
        Raised before anything is written to ``log_sink`` when ``settings``
        is omitted and the ``CPPCHECK_*`` environment fails validation.
        Hosts that must not fail here resolve settings themselves, as the
        CLI does.
    """
    resolved_settings = settings if settings is not None else get_settings()
    process_runner = runner or ProcessRunner(metrics_enabled=resolved_settings.metrics_enabled)
    command = compose_command(config, resolved_settings.resolve_executable())
    diagnostic_path = workspace / command.diagnostic_file

    with CorrelationContext(build_id):
        logger = with_fields(LOGGER, operation="cppcheck_step", workspace=str(workspace))
        for advisory in config_advisories(config):
            logger.warning(advisory.message, extra={"field": advisory.field})
        logger.info(
            "Composed analyzer command",
            extra={"command_line": command.render(), "state": StepState.NOT_STARTED.value},
        )

        _write_marker(log_sink, START_MARKER)
        try:
            logger.debug("Launching analyzer", extra={"state": StepState.RUNNING.value})
            result = process_runner.run(
                command.argv,
                cwd=workspace,
                env=env,
                stdout_sink=log_sink,
                diagnostic_path=diagnostic_path,
            )
        except AnalyzerExecutionError as exc:
            logger.exception(
                "cppcheck build step failed",
                extra={"reason": exc.reason, "state": StepState.FAILED.value},
            )
            outcome = StepOutcome(
                state=StepState.FAILED,
                command=command,
                diagnostic_path=diagnostic_path,
                problem=exc.problem,
            )
        except OSError as exc:
            logger.exception(
                "cppcheck build step failed",
                extra={"reason": "io_error", "state": StepState.FAILED.value},
            )
            outcome = StepOutcome(
                state=StepState.FAILED,
                command=command,
                diagnostic_path=diagnostic_path,
                problem=analyzer_launch_problem_details(
                    command.argv, detail=str(exc), errno=exc.errno
                ),
            )
        else:
            logger.info(
                "Analyzer terminated",
                extra={"returncode": result.returncode, "state": StepState.TERMINATED.value},
            )
            outcome = StepOutcome(
                state=StepState.TERMINATED,
                command=command,
                diagnostic_path=diagnostic_path,
                returncode=result.returncode,
                duration_seconds=result.duration_seconds,
            )
        _write_marker(log_sink, END_MARKER)
    return outcome


def _write_marker(log_sink: TextIO, marker: str) -> None:
    try:
        log_sink.write(marker + "\n")
        log_sink.flush()
    except (OSError, ValueError):
        LOGGER.exception("Cannot write to the build log", extra={"marker": marker})
