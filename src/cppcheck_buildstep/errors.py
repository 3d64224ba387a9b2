"""Typed exception hierarchy with Problem Details support.

All build step exceptions inherit from :class:`BuildStepError`, which carries
an RFC 9457 Problem Details payload describing the failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cppcheck_buildstep.problem_details import JsonValue, ProblemDetailsDict

__all__ = [
    "AnalyzerExecutionError",
    "BuildStepError",
    "ConfigurationError",
    "SettingsError",
]


class BuildStepError(RuntimeError):
    """Base exception for build step failures.

    Parameters
    ----------
    message : str
        Human-readable error message.
    problem : ProblemDetailsDict | None, optional
        RFC 9457 Problem Details payload.
    """

    def __init__(self, message: str, *, problem: ProblemDetailsDict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.problem = problem


class ConfigurationError(BuildStepError):
    """Raised when a persisted analysis configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        problem: ProblemDetailsDict | None = None,
        errors: Sequence[dict[str, JsonValue]] = (),
    ) -> None:
        super().__init__(message, problem=problem)
        self.errors: tuple[dict[str, JsonValue], ...] = tuple(errors)


class SettingsError(ConfigurationError):
    """Raised when the environment-derived executable settings fail validation."""


class AnalyzerExecutionError(BuildStepError):
    """Raised when the analyzer process cannot be launched, streamed or awaited.

    Parameters
    ----------
    message : str
        Human-readable error message.
    command : Sequence[str]
        Command that failed.
    reason : str
        Machine-readable failure reason (``missing_executable``,
        ``launch_failed``, ``stream_failed`` or ``interrupted``).
    problem : ProblemDetailsDict | None, optional
        RFC 9457 Problem Details payload.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        reason: str,
        problem: ProblemDetailsDict | None = None,
    ) -> None:
        super().__init__(message, problem=problem)
        self.command: tuple[str, ...] = tuple(command)
        self.reason = reason
