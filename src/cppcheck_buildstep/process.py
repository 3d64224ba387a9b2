"""Launch the analyzer process and route its output streams.

The runner pins the working directory to the build workspace, hands the
process an environment snapshot, writes the diagnostic stream (stderr)
straight into a workspace file and forwards standard output line-by-line to
the build's live log. Both streams are drained while the caller blocks on the
exit status, so a chatty analyzer can never stall on a full pipe.

Launch, stream and interruption failures are raised as
:class:`~cppcheck_buildstep.errors.AnalyzerExecutionError` with a Problem
Details payload. The analyzer's own exit status is returned, never raised.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING

from cppcheck_buildstep.errors import AnalyzerExecutionError
from cppcheck_buildstep.logging import get_logger
from cppcheck_buildstep.metrics import observe_analyzer_run
from cppcheck_buildstep.problem_details import (
    analyzer_interrupted_problem_details,
    analyzer_launch_problem_details,
    analyzer_missing_problem_details,
    analyzer_stream_problem_details,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from typing import TextIO

    from cppcheck_buildstep.logging import LoggerAdapter

__all__ = [
    "AnalyzerRunResult",
    "ProcessRunner",
    "resolve_executable",
    "snapshot_environment",
]

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AnalyzerRunResult:
    """Outcome of an analyzer process that ran to termination."""

    command: tuple[str, ...]
    returncode: int
    duration_seconds: float
    diagnostic_path: Path


def snapshot_environment(env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a private copy of ``env`` (or of ``os.environ`` when ``None``)."""
    source = os.environ if env is None else env
    return {str(key): str(value) for key, value in source.items()}


def resolve_executable(executable: str, env: Mapping[str, str], command: Sequence[str]) -> str:
    """Resolve ``executable`` against the ``PATH`` of ``env``.

    Names containing a directory component are returned unchanged; bare names
    are looked up on the search path and returned as absolute paths.

    Raises
    ------
    AnalyzerExecutionError
        Raised when a bare name cannot be found on the search path.
    """
    if Path(executable).name != executable:
        return executable
    resolved = shutil.which(executable, path=env.get("PATH"))
    if resolved is None:
        detail = f"Executable '{executable}' could not be found on the search path"
        problem = analyzer_missing_problem_details(command, executable=executable, detail=detail)
        raise AnalyzerExecutionError(
            detail, command=command, reason="missing_executable", problem=problem
        )
    return resolved


class _StdoutPump(threading.Thread):
    """Copy the child's stdout into the build log until the pipe closes."""

    def __init__(self, source: IO[bytes], sink: TextIO) -> None:
        super().__init__(name="cppcheck-stdout", daemon=True)
        self._source = source
        self._sink = sink
        self.error: Exception | None = None

    def run(self) -> None:
        try:
            for raw in iter(self._source.readline, b""):
                self._sink.write(raw.decode("utf-8", errors="replace"))
                self._sink.flush()
        except (OSError, ValueError) as exc:
            self.error = exc
            # Keep reading so the child does not block on a full pipe.
            with contextlib.suppress(OSError, ValueError):
                for _ in iter(self._source.readline, b""):
                    pass


@dataclass(slots=True)
class ProcessRunner:
    """Run the analyzer with workspace-pinned cwd and routed output streams."""

    metrics_enabled: bool = True
    logger: LoggerAdapter = field(default_factory=lambda: get_logger(__name__))

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path,
        stdout_sink: TextIO,
        diagnostic_path: Path,
        env: Mapping[str, str] | None = None,
    ) -> AnalyzerRunResult:
        """Execute ``command`` and block until it terminates.

        Parameters
        ----------
        command : Sequence[str]
            Executable followed by its arguments.
        cwd : Path
            Working directory; must exist.
        stdout_sink : TextIO
            Text sink receiving the analyzer's standard output.
        diagnostic_path : Path
            File created (or truncated) to receive the diagnostic stream.
        env : Mapping[str, str] | None, optional
            Environment snapshot for the child. Defaults to ``os.environ``.

        Returns
        -------
        AnalyzerRunResult
            Exit status and timing of the terminated process.

        Raises
        ------
        AnalyzerExecutionError
            Raised when the process cannot be launched, when either stream
            cannot be routed, or when the wait is interrupted.
        """
        if not command:
            message = "Command must contain at least one argument"
            raise AnalyzerExecutionError(message, command=[], reason="launch_failed")

        with observe_analyzer_run(
            command, cwd=cwd, metrics_enabled=self.metrics_enabled
        ) as observation:
            try:
                result = self._run_observed(command, cwd, env, stdout_sink, diagnostic_path)
            except AnalyzerExecutionError as exc:
                observation.failure(exc.reason)
                raise
            observation.success(result.returncode)
            self.logger.debug(
                "Analyzer exited",
                extra={"operation": "analyzer_run", "returncode": result.returncode},
            )
            return result

    def _run_observed(
        self,
        command: Sequence[str],
        cwd: Path,
        env: Mapping[str, str] | None,
        stdout_sink: TextIO,
        diagnostic_path: Path,
    ) -> AnalyzerRunResult:
        start = time.monotonic()
        snapshot = snapshot_environment(env)
        executable = resolve_executable(command[0], snapshot, command)
        final_command = (executable, *command[1:])

        if not cwd.is_dir():
            detail = f"Working directory '{cwd}' does not exist"
            problem = analyzer_launch_problem_details(final_command, detail=detail)
            raise AnalyzerExecutionError(
                detail, command=final_command, reason="launch_failed", problem=problem
            )

        diagnostic = self._open_diagnostic(diagnostic_path, final_command)
        with diagnostic:
            process = self._spawn(final_command, cwd, snapshot, diagnostic)
            with process:
                returncode = self._wait(process, final_command, stdout_sink)
        return AnalyzerRunResult(
            command=final_command,
            returncode=returncode,
            duration_seconds=time.monotonic() - start,
            diagnostic_path=diagnostic_path,
        )

    @staticmethod
    def _open_diagnostic(path: Path, command: tuple[str, ...]) -> IO[bytes]:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return path.open("wb")
        except OSError as exc:
            detail = f"Cannot open diagnostic output file '{path}': {exc}"
            problem = analyzer_stream_problem_details(
                command, stream="stderr", detail=detail, path=path
            )
            raise AnalyzerExecutionError(
                detail, command=command, reason="stream_failed", problem=problem
            ) from exc

    @staticmethod
    def _spawn(
        command: tuple[str, ...],
        cwd: Path,
        env: Mapping[str, str],
        diagnostic: IO[bytes],
    ) -> subprocess.Popen[bytes]:
        try:
            return subprocess.Popen(
                command,
                cwd=str(cwd),
                env=dict(env),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=diagnostic,
            )
        except FileNotFoundError as exc:
            detail = f"Executable '{command[0]}' not found: {exc}"
            problem = analyzer_missing_problem_details(
                command, executable=command[0], detail=detail
            )
            raise AnalyzerExecutionError(
                detail, command=command, reason="missing_executable", problem=problem
            ) from exc
        except OSError as exc:
            detail = f"Cannot launch '{command[0]}': {exc}"
            problem = analyzer_launch_problem_details(command, detail=detail, errno=exc.errno)
            raise AnalyzerExecutionError(
                detail, command=command, reason="launch_failed", problem=problem
            ) from exc

    @staticmethod
    def _wait(
        process: subprocess.Popen[bytes],
        command: tuple[str, ...],
        stdout_sink: TextIO,
    ) -> int:
        if process.stdout is None:  # pragma: no cover - stdout is always piped
            message = "Analyzer stdout pipe is unavailable"
            raise AnalyzerExecutionError(message, command=command, reason="stream_failed")
        pump = _StdoutPump(process.stdout, stdout_sink)
        pump.start()
        try:
            returncode = process.wait()
            pump.join()
        except KeyboardInterrupt as exc:
            process.kill()
            process.wait()
            pump.join()
            problem = analyzer_interrupted_problem_details(command)
            message = "Analyzer run interrupted"
            raise AnalyzerExecutionError(
                message, command=command, reason="interrupted", problem=problem
            ) from exc
        if pump.error is not None:
            detail = f"Forwarding analyzer output failed: {pump.error}"
            problem = analyzer_stream_problem_details(command, stream="stdout", detail=detail)
            raise AnalyzerExecutionError(
                detail, command=command, reason="stream_failed", problem=problem
            ) from pump.error
        return returncode
