"""Typed, environment-driven settings for the build step.

The build host owns a single global choice: run the ``cppcheck`` found on the
search path, or run an explicitly configured executable. This module loads that
choice (plus logging and metrics switches) from ``CPPCHECK_*`` environment
variables through ``pydantic_settings``. Settings are resolved once per
invocation and passed explicitly into the step; nothing reads them from module
state during composition or execution.

Validation errors are surfaced as :class:`SettingsError` exceptions carrying
RFC 9457 Problem Details payloads.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Final, Literal, TypeVar

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cppcheck_buildstep.errors import SettingsError
from cppcheck_buildstep.problem_details import (
    PROBLEM_TYPE_BASE,
    JsonValue,
    ProblemDetailsParams,
    build_problem_details,
)

__all__: Final[list[str]] = [
    "DEFAULT_EXECUTABLE",
    "BuildStepSettings",
    "get_settings",
    "load_settings",
    "reset_settings_cache",
]

DEFAULT_EXECUTABLE: Final[str] = "cppcheck"

_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_SETTINGS_CACHE: dict[str, BuildStepSettings] = {}


class BuildStepSettings(BaseSettings):
    """Global configuration shared by every cppcheck build step."""

    model_config = SettingsConfigDict(
        env_prefix="CPPCHECK_", case_sensitive=False, extra="ignore", frozen=True
    )

    use_default: bool = Field(
        default=True,
        description="Run the cppcheck found on the search path instead of exe_path",
    )
    exe_path: str | None = Field(
        default=None,
        description="Explicit analyzer executable used when use_default is false",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Record Prometheus metrics for analyzer runs",
    )
    log_level: str = Field(default="INFO", description="Root log level for the CLI")
    log_format: Literal["json", "text"] = Field(
        default="json", description="Log record format for the CLI"
    )

    @field_validator("exe_path", mode="before")
    @classmethod
    def _normalise_exe_path(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            upper = value.strip().upper()
            if upper not in _LOG_LEVELS:
                message = f"Invalid log level: {value!r}"
                raise ValueError(message)
            return upper
        return value

    def resolve_executable(self) -> str:
        """Return the analyzer executable to launch.

        Returns
        -------
        str
            ``exe_path`` when ``use_default`` is false and a path is
            configured, otherwise the bare name ``cppcheck``.
        """
        if not self.use_default and self.exe_path:
            return self.exe_path
        return DEFAULT_EXECUTABLE


SettingsT = TypeVar("SettingsT", bound=BaseSettings)


def load_settings(
    settings_factory: Callable[[], SettingsT] | type[SettingsT],
) -> SettingsT:
    """Instantiate settings via ``settings_factory`` with structured error handling.

    Parameters
    ----------
    settings_factory : Callable[[], SettingsT] | type[SettingsT]
        Zero-argument callable that returns a ``BaseSettings`` subclass.

    Returns
    -------
    SettingsT
        Validated settings instance.

    Raises
    ------
    SettingsError
        Raised when validation fails; the errors are converted to Problem Details.
    """
    try:
        return settings_factory()
    except ValidationError as exc:
        attr_name: object = getattr(settings_factory, "__name__", None)
        settings_name = (
            attr_name if isinstance(attr_name, str) else settings_factory.__class__.__name__
        )
        raw_errors: Sequence[object] = exc.errors()
        error_dicts = tuple(_as_error_dict(err) for err in raw_errors)
        problem = build_problem_details(
            ProblemDetailsParams(
                type=f"{PROBLEM_TYPE_BASE}/settings-invalid",
                title="Invalid build step settings",
                status=500,
                detail="Failed to load build step configuration",
                instance=f"urn:settings:{settings_name}:invalid",
                extensions={"errors": list(error_dicts), "settings_class": settings_name},
            )
        )
        message = "Failed to load build step settings"
        raise SettingsError(message, problem=problem, errors=error_dicts) from exc


def get_settings() -> BuildStepSettings:
    """Return the cached environment-derived settings."""
    cached = _SETTINGS_CACHE.get("default")
    if cached is None:
        cached = load_settings(BuildStepSettings)
        _SETTINGS_CACHE["default"] = cached
    return cached


def reset_settings_cache() -> None:
    """Drop the cached settings so the next lookup re-reads the environment."""
    _SETTINGS_CACHE.clear()


def _as_error_dict(error: object) -> dict[str, JsonValue]:
    if isinstance(error, dict):
        return {str(key): _to_jsonable(value) for key, value in error.items()}
    return {"detail": _to_jsonable(error)}


def _to_jsonable(value: object) -> JsonValue:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(key): _to_jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_jsonable(item) for item in value]
    return repr(value)
