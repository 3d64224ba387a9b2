"""Run the cppcheck static analyzer as a build step."""

from __future__ import annotations

from cppcheck_buildstep.compose import ComposedCommand, compose_arguments, compose_command
from cppcheck_buildstep.config import AnalysisConfig, load_analysis_config
from cppcheck_buildstep.errors import (
    AnalyzerExecutionError,
    BuildStepError,
    ConfigurationError,
    SettingsError,
)
from cppcheck_buildstep.process import ProcessRunner
from cppcheck_buildstep.settings import BuildStepSettings
from cppcheck_buildstep.step import StepOutcome, StepState, perform

__all__ = [
    "AnalysisConfig",
    "AnalyzerExecutionError",
    "BuildStepError",
    "BuildStepSettings",
    "ComposedCommand",
    "ConfigurationError",
    "ProcessRunner",
    "SettingsError",
    "StepOutcome",
    "StepState",
    "compose_arguments",
    "compose_command",
    "load_analysis_config",
    "perform",
]
