"""Tests for Problem Details builders."""

from __future__ import annotations

import json
from pathlib import Path

from cppcheck_buildstep.problem_details import (
    PROBLEM_TYPE_BASE,
    ProblemDetailsParams,
    analyzer_interrupted_problem_details,
    analyzer_launch_problem_details,
    analyzer_missing_problem_details,
    analyzer_stream_problem_details,
    build_problem_details,
    config_invalid_problem_details,
    render_problem,
)


def test_build_merges_extensions_at_top_level() -> None:
    """Extension members sit next to the standard members."""
    problem = build_problem_details(
        ProblemDetailsParams(
            type=f"{PROBLEM_TYPE_BASE}/example",
            title="Example",
            status=400,
            detail="Something",
            instance="urn:example",
            extensions={"hint": "retry"},
        )
    )

    assert problem == {
        "type": f"{PROBLEM_TYPE_BASE}/example",
        "title": "Example",
        "status": 400,
        "detail": "Something",
        "instance": "urn:example",
        "hint": "retry",
    }


def test_missing_analyzer() -> None:
    """The missing-analyzer payload names the executable and tool."""
    problem = analyzer_missing_problem_details(
        ["/opt/bin/cppcheck", "."], executable="/opt/bin/cppcheck", detail="not found"
    )

    assert problem["type"] == f"{PROBLEM_TYPE_BASE}/analyzer-missing"
    assert problem["instance"] == "urn:analyzer:cppcheck:missing"
    assert problem["command"] == ["/opt/bin/cppcheck", "."]
    assert problem["executable"] == "/opt/bin/cppcheck"


def test_launch_failure_errno_is_optional() -> None:
    """errno is only present when known."""
    without = analyzer_launch_problem_details(["cppcheck"], detail="no")
    with_errno = analyzer_launch_problem_details(["cppcheck"], detail="no", errno=13)

    assert "errno" not in without
    assert with_errno["errno"] == 13
    assert with_errno["instance"] == "urn:analyzer:cppcheck:launch-failed"


def test_stream_failure_records_path() -> None:
    """The stream payload names the stream and, when given, the file."""
    problem = analyzer_stream_problem_details(
        ["cppcheck"], stream="stderr", detail="denied", path=Path("out/result.xml")
    )

    assert problem["stream"] == "stderr"
    assert problem["path"] == "out/result.xml"


def test_interrupted_status() -> None:
    """Interruption uses a client-closed status and names the tool."""
    problem = analyzer_interrupted_problem_details(["/usr/bin/cppcheck", "."])

    assert problem["status"] == 499
    assert "'cppcheck'" in str(problem["detail"])


def test_config_invalid_lists_errors() -> None:
    """Config payloads include validation errors only when present."""
    errors = [{"loc": ["checks", "0"], "msg": "bad", "type": "enum"}]

    assert "errors" not in config_invalid_problem_details(source="a.json", detail="x")
    problem = config_invalid_problem_details(source="a.json", detail="x", errors=errors)
    assert problem["errors"] == errors
    assert problem["status"] == 422


def test_render_is_minified_json() -> None:
    """render_problem emits single-line JSON."""
    problem = analyzer_launch_problem_details(["cppcheck"], detail="no")

    rendered = render_problem(problem)

    assert "\n" not in rendered
    assert json.loads(rendered) == problem
