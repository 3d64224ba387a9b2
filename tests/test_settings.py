"""Tests for environment-driven build step settings."""

from __future__ import annotations

import pytest

from cppcheck_buildstep.errors import SettingsError
from cppcheck_buildstep.settings import (
    DEFAULT_EXECUTABLE,
    BuildStepSettings,
    get_settings,
    load_settings,
    reset_settings_cache,
)


class TestResolveExecutable:
    """Tests for BuildStepSettings.resolve_executable."""

    def test_default_uses_bare_name(self) -> None:
        """The default settings run the analyzer found on the search path."""
        assert BuildStepSettings().resolve_executable() == DEFAULT_EXECUTABLE

    def test_explicit_path_used_when_default_disabled(self) -> None:
        """A configured path is used once the default is switched off."""
        settings = BuildStepSettings(use_default=False, exe_path="/opt/cppcheck/bin/cppcheck")

        assert settings.resolve_executable() == "/opt/cppcheck/bin/cppcheck"

    def test_explicit_path_ignored_while_default_enabled(self) -> None:
        """use_default wins over a configured path."""
        settings = BuildStepSettings(use_default=True, exe_path="/opt/cppcheck/bin/cppcheck")

        assert settings.resolve_executable() == DEFAULT_EXECUTABLE

    @pytest.mark.parametrize("exe_path", [None, "", "   "])
    def test_missing_path_falls_back_to_default(self, exe_path: str | None) -> None:
        """Without a usable path the bare name is used even with the default off."""
        settings = BuildStepSettings(use_default=False, exe_path=exe_path)

        assert settings.exe_path is None
        assert settings.resolve_executable() == DEFAULT_EXECUTABLE


class TestEnvironment:
    """Tests for CPPCHECK_* environment variables."""

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables populate every field."""
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", " /usr/local/bin/cppcheck ")
        monkeypatch.setenv("CPPCHECK_METRICS_ENABLED", "0")
        monkeypatch.setenv("CPPCHECK_LOG_LEVEL", "debug")
        monkeypatch.setenv("CPPCHECK_LOG_FORMAT", "text")

        settings = BuildStepSettings()

        assert settings.resolve_executable() == "/usr/local/bin/cppcheck"
        assert settings.metrics_enabled is False
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "text"

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """An unknown log level is rejected with Problem Details."""
        monkeypatch.setenv("CPPCHECK_LOG_LEVEL", "LOUD")

        with pytest.raises(SettingsError) as exc_info:
            load_settings(BuildStepSettings)

        problem = exc_info.value.problem
        assert problem is not None
        assert problem["type"] == "https://cppcheck-buildstep.dev/problems/settings-invalid"
        assert problem["settings_class"] == "BuildStepSettings"
        assert exc_info.value.errors

    def test_get_settings_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """get_settings re-reads the environment only after a cache reset."""
        first = get_settings()
        monkeypatch.setenv("CPPCHECK_USE_DEFAULT", "false")
        monkeypatch.setenv("CPPCHECK_EXE_PATH", "/opt/cppcheck")

        assert get_settings() is first

        reset_settings_cache()

        assert get_settings().resolve_executable() == "/opt/cppcheck"

    def test_settings_are_frozen(self) -> None:
        """Settings cannot be mutated once loaded."""
        settings = BuildStepSettings()

        with pytest.raises(ValueError, match="frozen"):
            settings.use_default = False  # type: ignore[misc]
