"""Prometheus metrics and structured logs for analyzer runs.

:func:`observe_analyzer_run` wraps a single analyzer invocation, timing it and
recording its outcome. Metrics are registered once at import time on the
default Prometheus registry under well-known names.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from prometheus_client import Counter, Histogram

from cppcheck_buildstep.logging import get_logger, with_fields

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from cppcheck_buildstep.logging import LoggerAdapter

LOGGER = get_logger(__name__)

ANALYZER_RUNS_TOTAL: Final = Counter(
    "cppcheck_runs_total",
    "Total analyzer invocations",
    labelnames=["status"],
)

ANALYZER_FAILURES_TOTAL: Final = Counter(
    "cppcheck_failures_total",
    "Analyzer invocations that failed to launch or complete, grouped by reason",
    labelnames=["reason"],
)

ANALYZER_DURATION_SECONDS: Final = Histogram(
    "cppcheck_run_duration_seconds",
    "Analyzer invocation duration in seconds",
    labelnames=["status"],
)


@dataclass(slots=True)
class AnalyzerRunObservation:
    """Captures runtime details for a single analyzer invocation."""

    command: Sequence[str]
    cwd: Path
    metrics_enabled: bool = True
    tool: str = field(init=False)
    status: str = field(default="success", init=False)
    failure_reason: str | None = field(default=None, init=False)
    returncode: int | None = field(default=None, init=False)
    start_time: float = field(default_factory=time.monotonic, init=False)

    def __post_init__(self) -> None:
        self.tool = Path(self.command[0]).name if self.command else "<unknown>"

    def success(self, returncode: int) -> None:
        """Record that the process terminated with ``returncode``."""
        self.status = "success"
        self.returncode = returncode
        self.failure_reason = None

    def failure(self, reason: str) -> None:
        """Record that the run failed for ``reason``."""
        self.status = "error"
        self.failure_reason = reason

    def duration_seconds(self) -> float:
        return time.monotonic() - self.start_time


@contextmanager
def observe_analyzer_run(
    command: Sequence[str],
    *,
    cwd: Path,
    metrics_enabled: bool = True,
) -> Iterator[AnalyzerRunObservation]:
    """Record metrics and a structured log entry for an analyzer invocation.

    Parameters
    ----------
    command : Sequence[str]
        Command being executed.
    cwd : Path
        Working directory of the process.
    metrics_enabled : bool, optional
        Record Prometheus metrics. Defaults to ``True``.

    Yields
    ------
    AnalyzerRunObservation
        Observation the caller marks as success or failure.

    Notes
    -----
    Exceptions raised inside the block are recorded as failures (reason
    ``"exception"`` unless the caller already set one) and re-raised.
    """
    observation = AnalyzerRunObservation(
        command=command, cwd=cwd, metrics_enabled=metrics_enabled
    )
    logger = with_fields(
        LOGGER,
        operation="analyzer_run",
        tool=observation.tool,
        command=list(command),
        cwd=str(cwd),
    )
    try:
        yield observation
    except BaseException:
        if observation.status == "success":
            observation.failure("exception")
        _record(observation, logger)
        raise
    else:
        _record(observation, logger)


def _record(observation: AnalyzerRunObservation, logger: LoggerAdapter) -> None:
    duration = observation.duration_seconds()
    status = observation.status
    if observation.metrics_enabled:
        ANALYZER_RUNS_TOTAL.labels(status=status).inc()
        ANALYZER_DURATION_SECONDS.labels(status=status).observe(duration)
    extra: dict[str, object] = {
        "duration_ms": duration * 1000,
        "status": status,
        "returncode": observation.returncode,
    }
    if status == "error":
        reason = observation.failure_reason or "unknown"
        if observation.metrics_enabled:
            ANALYZER_FAILURES_TOTAL.labels(reason=reason).inc()
        extra["reason"] = reason
        logger.error("Analyzer run failed", extra=extra)
    else:
        logger.info("Analyzer run completed", extra=extra)


__all__: Final[list[str]] = [
    "ANALYZER_DURATION_SECONDS",
    "ANALYZER_FAILURES_TOTAL",
    "ANALYZER_RUNS_TOTAL",
    "AnalyzerRunObservation",
    "observe_analyzer_run",
]
