"""Tests for the cppcheck-buildstep command line."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from cppcheck_buildstep import cli
from cppcheck_buildstep.step import END_MARKER, START_MARKER

if TYPE_CHECKING:
    from pathlib import Path

RUNNER = CliRunner()


@pytest.fixture(autouse=True)
def _no_root_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from reconfiguring the root logger during tests."""
    monkeypatch.setattr(cli, "setup_logging", lambda *_args, **_kwargs: None)


def _write_config(tmp_path: Path, values: dict[str, object]) -> Path:
    path = tmp_path / "step.json"
    path.write_text(json.dumps(values), encoding="utf-8")
    return path


class TestPreview:
    """Tests for the preview command."""

    def test_prints_composed_command(self, tmp_path: Path) -> None:
        """preview prints the rendered command line."""
        config = _write_config(
            tmp_path,
            {
                "enAll": True,
                "enStyle": True,
                "inconclusive": True,
                "target": "src",
                "oFile": "out.xml",
                "xml": True,
                "xmlVer": True,
            },
        )

        result = RUNNER.invoke(cli.app, ["preview", "--config", str(config)])

        assert result.exit_code == 0
        assert (
            "cppcheck --enable=all,style --inconclusive --xml --xml-version=2 src 2>out.xml"
            in result.output
        )

    def test_uses_configured_executable(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The executable follows the CPPCHECK_* settings."""
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", "/opt/cppcheck/bin/cppcheck")
        config = _write_config(tmp_path, {})

        result = RUNNER.invoke(cli.app, ["preview", "--config", str(config)])

        assert result.exit_code == 0
        assert "/opt/cppcheck/bin/cppcheck . 2>cppcheck-result.txt" in result.output

    def test_prints_advisories(self, tmp_path: Path) -> None:
        """Advisories are reported alongside the preview."""
        config = _write_config(tmp_path, {"xmlVer": True})

        result = RUNNER.invoke(cli.app, ["preview", "--config", str(config)])

        assert result.exit_code == 0
        assert "warning: --xml-version=2 is passed without --xml" in result.output

    def test_invalid_config_exits_with_problem(self, tmp_path: Path) -> None:
        """Invalid configuration prints Problem Details and exits 2."""
        config = _write_config(tmp_path, {"enEverything": True})

        result = RUNNER.invoke(cli.app, ["preview", "--config", str(config)])

        assert result.exit_code == cli.CONFIG_ERROR_EXIT_CODE
        assert "/problems/config-invalid" in result.output

    def test_invalid_settings_exit_with_problem(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Invalid CPPCHECK_* settings are configuration errors too."""
        monkeypatch.setenv("CPPCHECK_LOG_LEVEL", "chatty")
        config = _write_config(tmp_path, {})

        result = RUNNER.invoke(cli.app, ["preview", "--config", str(config)])

        assert result.exit_code == cli.CONFIG_ERROR_EXIT_CODE
        assert "/problems/settings-invalid" in result.output


class TestRun:
    """Tests for the run command."""

    def test_runs_analyzer_in_workspace(
        self,
        tmp_path: Path,
        workspace: Path,
        fake_cppcheck: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """run forwards analyzer output between the markers and exits 0."""
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", str(fake_cppcheck))
        monkeypatch.setenv("CPPCHECK_METRICS_ENABLED", "false")
        config = _write_config(tmp_path, {"quiet": True, "target": "src"})

        result = RUNNER.invoke(
            cli.app,
            ["run", "--config", str(config), "--workspace", str(workspace), "--build-id", "b-1"],
        )

        assert result.exit_code == 0
        assert START_MARKER in result.output
        assert "cppcheck -q src" in result.output
        assert END_MARKER in result.output
        assert (workspace / "cppcheck-result.txt").exists()

    def test_nonzero_analyzer_exit_still_succeeds(
        self,
        tmp_path: Path,
        workspace: Path,
        fake_cppcheck: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """The analyzer's own exit status does not fail the step."""
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", str(fake_cppcheck))
        monkeypatch.setenv("FAKE_CPPCHECK_EXIT", "1")
        config = _write_config(tmp_path, {})

        result = RUNNER.invoke(
            cli.app, ["run", "--config", str(config), "--workspace", str(workspace)]
        )

        assert result.exit_code == 0

    def test_missing_executable_exits_one(
        self, tmp_path: Path, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failed launch exits 1 after writing both markers."""
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", str(tmp_path / "missing" / "cppcheck"))
        config = _write_config(tmp_path, {})

        result = RUNNER.invoke(
            cli.app, ["run", "--config", str(config), "--workspace", str(workspace)]
        )

        assert result.exit_code == 1
        assert START_MARKER in result.output
        assert END_MARKER in result.output
        assert "/problems/analyzer-missing" in result.output

    def test_missing_config_file(self, tmp_path: Path, workspace: Path) -> None:
        """An unreadable configuration file exits 2."""
        result = RUNNER.invoke(
            cli.app,
            ["run", "--config", str(tmp_path / "absent.json"), "--workspace", str(workspace)],
        )

        assert result.exit_code == cli.CONFIG_ERROR_EXIT_CODE
