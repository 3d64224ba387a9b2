"""Problem Details helpers for RFC 9457 compliance.

Every failure the build step reports (invalid configuration, a missing
analyzer, a broken output stream) is described by a Problem Details payload so
hosts can render or persist it without parsing free-form messages.

Examples
--------
>>> from cppcheck_buildstep.problem_details import (
...     ProblemDetailsParams,
...     build_problem_details,
...     render_problem,
... )
>>> problem = build_problem_details(
...     ProblemDetailsParams(
...         type="https://cppcheck-buildstep.dev/problems/analyzer-missing",
...         title="Analyzer executable not found",
...         status=500,
...         detail="Executable 'cppcheck' could not be resolved",
...         instance="urn:analyzer:cppcheck:missing",
...     )
... )
>>> assert "analyzer-missing" in render_problem(problem)
"""

# pylint: disable=redefined-builtin

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = [
    "PROBLEM_TYPE_BASE",
    "JsonPrimitive",
    "JsonValue",
    "ProblemDetailsDict",
    "ProblemDetailsParams",
    "analyzer_interrupted_problem_details",
    "analyzer_launch_problem_details",
    "analyzer_missing_problem_details",
    "analyzer_stream_problem_details",
    "build_problem_details",
    "coerce_optional_dict",
    "config_invalid_problem_details",
    "render_problem",
]
__all__.sort()

PROBLEM_TYPE_BASE: Final[str] = "https://cppcheck-buildstep.dev/problems"

# Type aliases for JSON values (RFC 7159 compatible)
JsonPrimitive = str | int | float | bool | None
JsonValue = JsonPrimitive | list["JsonValue"] | dict[str, "JsonValue"]

ProblemDetailsDict = dict[str, JsonValue]


def coerce_optional_dict(
    mapping: Mapping[str, JsonValue] | None,
) -> dict[str, JsonValue] | None:
    """Return ``mapping`` as a ``dict`` when non-empty, otherwise ``None``."""
    if mapping is None:
        return None
    materialised = {str(key): value for key, value in mapping.items()}
    if not materialised:
        return None
    return materialised


@dataclass(frozen=True, slots=True)
class ProblemDetailsParams:
    """Core fields required to build a Problem Details payload."""

    type: str
    title: str
    status: int
    detail: str
    instance: str
    extensions: Mapping[str, JsonValue] | None = None


def build_problem_details(params: ProblemDetailsParams) -> ProblemDetailsDict:
    """Build an RFC 9457 Problem Details payload.

    Extension members are merged at the top level of the payload, as the RFC
    recommends.

    Parameters
    ----------
    params : ProblemDetailsParams
        Structured fields describing the Problem Details payload.

    Returns
    -------
    ProblemDetailsDict
        Problem Details payload conforming to RFC 9457.
    """
    payload: ProblemDetailsDict = {
        "type": params.type,
        "title": params.title,
        "status": params.status,
        "detail": params.detail,
        "instance": params.instance,
    }
    extensions = coerce_optional_dict(params.extensions)
    if extensions:
        for key, value in extensions.items():
            payload[key] = value
    return payload


def _analyzer_problem(
    category: str,
    command: Sequence[str],
    *,
    title: str,
    detail: str,
    status: int = 500,
    extensions: Mapping[str, JsonValue] | None = None,
) -> ProblemDetailsDict:
    command_list = [str(part) for part in command]
    tool_name = Path(command_list[0]).name if command_list else "<unknown>"
    merged: dict[str, JsonValue] = {"command": list(command_list)}
    additional = coerce_optional_dict(extensions)
    if additional:
        merged.update(additional)
    return build_problem_details(
        ProblemDetailsParams(
            type=f"{PROBLEM_TYPE_BASE}/{category}",
            title=title,
            status=status,
            detail=detail,
            instance=f"urn:analyzer:{tool_name}:{category.removeprefix('analyzer-')}",
            extensions=merged,
        )
    )


def analyzer_missing_problem_details(
    command: Sequence[str],
    *,
    executable: str,
    detail: str,
) -> ProblemDetailsDict:
    """Return Problem Details describing an analyzer that could not be found.

    Parameters
    ----------
    command : Sequence[str]
        Command that was about to be launched.
    executable : str
        Executable name or path that failed to resolve.
    detail : str
        Detailed error message.

    Returns
    -------
    ProblemDetailsDict
        Problem Details payload.
    """
    return _analyzer_problem(
        "analyzer-missing",
        command or [executable],
        title="Analyzer executable not found",
        detail=detail,
        extensions={"executable": executable},
    )


def analyzer_launch_problem_details(
    command: Sequence[str],
    *,
    detail: str,
    errno: int | None = None,
) -> ProblemDetailsDict:
    """Return Problem Details describing an operating-system launch failure."""
    extensions: dict[str, JsonValue] = {}
    if errno is not None:
        extensions["errno"] = errno
    return _analyzer_problem(
        "analyzer-launch-failed",
        command,
        title="Analyzer could not be launched",
        detail=detail,
        extensions=extensions,
    )


def analyzer_stream_problem_details(
    command: Sequence[str],
    *,
    stream: str,
    detail: str,
    path: Path | None = None,
) -> ProblemDetailsDict:
    """Return Problem Details describing a failure while routing an output stream.

    Parameters
    ----------
    command : Sequence[str]
        Command whose stream failed.
    stream : str
        ``"stdout"`` or ``"stderr"``.
    detail : str
        Detailed error message.
    path : Path | None, optional
        File the stream was routed to, when applicable.

    Returns
    -------
    ProblemDetailsDict
        Problem Details payload.
    """
    extensions: dict[str, JsonValue] = {"stream": stream}
    if path is not None:
        extensions["path"] = path.as_posix()
    return _analyzer_problem(
        "analyzer-stream-failed",
        command,
        title="Analyzer output could not be routed",
        detail=detail,
        extensions=extensions,
    )


def analyzer_interrupted_problem_details(command: Sequence[str]) -> ProblemDetailsDict:
    """Return Problem Details describing an interrupted wait on the analyzer."""
    tool = Path(command[0]).name if command else "analyzer"
    return _analyzer_problem(
        "analyzer-interrupted",
        command,
        title="Analyzer run interrupted",
        detail=f"Waiting for '{tool}' was interrupted; the process was terminated",
        status=499,
    )


def config_invalid_problem_details(
    *,
    source: str,
    detail: str,
    errors: Sequence[dict[str, JsonValue]] = (),
) -> ProblemDetailsDict:
    """Return Problem Details describing an analysis configuration that failed validation."""
    return build_problem_details(
        ProblemDetailsParams(
            type=f"{PROBLEM_TYPE_BASE}/config-invalid",
            title="Invalid analysis configuration",
            status=422,
            detail=detail,
            instance=f"urn:config:{source}:invalid",
            extensions={"errors": list(errors)} if errors else None,
        )
    )


def render_problem(problem: ProblemDetailsDict) -> str:
    """Render Problem Details as a minified JSON string (no trailing newline)."""
    return json.dumps(problem, default=str)
