"""Analysis options for a single cppcheck build step.

:class:`AnalysisConfig` is the immutable, validated form of everything a user
selects for one analyzer invocation. It is built once per build step from the
host's persisted settings and handed to the composer and the process runner.

Two input shapes are accepted:

* the structured shape, with ``checks``, ``standards`` and ``suppressions``
  given as collections of names;
* the flat persisted shape used by build hosts (``oFile``, ``enAll``,
  ``cpp11``, ``unmatchSuppress``, ...), where every option is its own
  boolean toggle.

Examples
--------
>>> config = AnalysisConfig.model_validate(
...     {"target": " src ", "enAll": True, "enStyle": True, "xml": True}
... )
>>> config.target
'src'
>>> sorted(config.checks)
[<CheckCategory.ALL: 'all'>, <CheckCategory.STYLE: 'style'>]
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path, PurePath
from typing import Any, ClassVar, Final

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from cppcheck_buildstep.errors import ConfigurationError
from cppcheck_buildstep.logging import get_logger
from cppcheck_buildstep.problem_details import JsonValue, config_invalid_problem_details

__all__ = [
    "DEFAULT_TARGET",
    "AnalysisConfig",
    "CheckCategory",
    "LanguageStandard",
    "Suppression",
    "load_analysis_config",
]

LOGGER = get_logger(__name__)

DEFAULT_TARGET: Final[str] = "."
DEFAULT_TEXT_OUTPUT: Final[str] = "cppcheck-result.txt"
DEFAULT_XML_OUTPUT: Final[str] = "cppcheck-result.xml"


class CheckCategory(StrEnum):
    """Additional check categories passed through ``--enable``.

    Declaration order is the serialization order.
    """

    ALL = "all"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"
    UNUSED_FUNCTION = "unusedFunction"
    MISSING_INCLUDE = "missingInclude"


class LanguageStandard(StrEnum):
    """Language standards passed through ``--std``."""

    POSIX = "posix"
    C89 = "c89"
    C99 = "c99"
    C11 = "c11"
    CPP03 = "c++03"
    CPP11 = "c++11"


class Suppression(StrEnum):
    """Warning ids passed through ``--suppress``."""

    UNMATCHED_SUPPRESSION = "unmatchedSuppression"
    UNUSED_FUNCTION = "unusedFunction"
    VARIABLE_SCOPE = "variableScope"


# Flat persisted toggle name -> (structured field, enum member).
_PERSISTED_TOGGLES: Final[dict[str, tuple[str, StrEnum]]] = {
    "enAll": ("checks", CheckCategory.ALL),
    "enWarn": ("checks", CheckCategory.WARNING),
    "enStyle": ("checks", CheckCategory.STYLE),
    "enPerformance": ("checks", CheckCategory.PERFORMANCE),
    "enPortability": ("checks", CheckCategory.PORTABILITY),
    "enInfo": ("checks", CheckCategory.INFORMATION),
    "enUnusedFunc": ("checks", CheckCategory.UNUSED_FUNCTION),
    "enMissingInc": ("checks", CheckCategory.MISSING_INCLUDE),
    "posix": ("standards", LanguageStandard.POSIX),
    "c89": ("standards", LanguageStandard.C89),
    "c99": ("standards", LanguageStandard.C99),
    "c11": ("standards", LanguageStandard.C11),
    "cpp03": ("standards", LanguageStandard.CPP03),
    "cpp11": ("standards", LanguageStandard.CPP11),
    "unmatchSuppress": ("suppressions", Suppression.UNMATCHED_SUPPRESSION),
    "unusedFunc": ("suppressions", Suppression.UNUSED_FUNCTION),
    "varScope": ("suppressions", Suppression.VARIABLE_SCOPE),
}

_STRING_FIELDS: Final[tuple[str, ...]] = (
    "output_file",
    "oFile",
    "target",
    "symbol",
    "include_dir",
    "includeDir",
)
_OPTIONAL_STRING_FIELDS: Final[tuple[str, ...]] = ("symbol", "include_dir", "includeDir")


_TOGGLE_ADAPTER: Final[TypeAdapter[bool]] = TypeAdapter(bool)


def _toggle_enabled(name: str, value: object) -> bool:
    try:
        return _TOGGLE_ADAPTER.validate_python(value)
    except ValidationError as exc:
        raise PydanticCustomError(
            "bool_parsing",
            "Toggle {toggle} should be a valid boolean, got {value}",
            {"toggle": name, "value": repr(value)},
        ) from exc


def _fold_toggles(data: dict[str, Any]) -> dict[str, Any]:
    folded: dict[str, set[object]] = {}
    for name, (field_name, member) in _PERSISTED_TOGGLES.items():
        if name not in data:
            continue
        current = data.get(field_name)
        if current is not None and not isinstance(current, (list, tuple, set, frozenset)):
            # Left in place; field validation reports both keys.
            continue
        enabled = _toggle_enabled(name, data.pop(name))
        selected = folded.setdefault(field_name, set(current or ()))
        if enabled:
            selected.add(member)
    data.update({field_name: list(selected) for field_name, selected in folded.items()})
    return data


class AnalysisConfig(BaseModel):
    """Immutable analyzer options for one build step invocation.

    Attributes
    ----------
    output_file : str
        File, relative to the workspace, receiving the analyzer's diagnostic
        stream. Absolute paths and ``..`` components are rejected. Empty
        selects a default (see :attr:`resolved_output_file`).
    target : str
        Path or glob to analyze. Empty composes to ``.``.
    dump : bool
        Emit ``--dump``.
    symbol : str | None
        Preprocessor symbol for ``-D``; ``None`` when blank.
    checks : frozenset[CheckCategory]
        Categories aggregated into the single ``--enable=`` token.
    force : bool
        Emit ``-f``.
    include_dir : str | None
        Include directory for ``-I``; ``None`` when blank.
    inconclusive, quiet, verbose : bool
        Emit ``--inconclusive``, ``-q`` and ``-v`` respectively.
    standards : frozenset[LanguageStandard]
        Standards emitted as independent ``--std=`` tokens.
    suppressions : frozenset[Suppression]
        Warning ids emitted as independent ``--suppress=`` tokens.
    xml, xml_version : bool
        Emit ``--xml`` and ``--xml-version=2``, each from its own toggle.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
    )

    output_file: str = Field(default="", validation_alias=AliasChoices("output_file", "oFile"))
    target: str = ""
    dump: bool = False
    symbol: str | None = None
    checks: frozenset[CheckCategory] = frozenset()
    force: bool = False
    include_dir: str | None = Field(
        default=None, validation_alias=AliasChoices("include_dir", "includeDir")
    )
    inconclusive: bool = False
    quiet: bool = False
    standards: frozenset[LanguageStandard] = frozenset()
    suppressions: frozenset[Suppression] = frozenset()
    verbose: bool = False
    xml: bool = False
    xml_version: bool = Field(default=False, validation_alias=AliasChoices("xml_version", "xmlVer"))

    @model_validator(mode="before")
    @classmethod
    def _normalise_input(cls, value: object) -> object:
        if not isinstance(value, dict):
            return value
        data = dict(value)
        for name in _STRING_FIELDS:
            raw = data.get(name)
            if raw is None:
                continue
            if not isinstance(raw, str):
                continue
            trimmed = raw.strip()
            if not trimmed and name in _OPTIONAL_STRING_FIELDS:
                data[name] = None
            else:
                data[name] = trimmed
        return _fold_toggles(data)

    @field_validator("output_file")
    @classmethod
    def _output_file_in_workspace(cls, value: str) -> str:
        path = PurePath(value)
        if path.is_absolute() or ".." in path.parts:
            message = f"Output file must be relative to the workspace: {value!r}"
            raise ValueError(message)
        return value

    @property
    def resolved_output_file(self) -> str:
        """Return the diagnostic file name, substituting the default when blank."""
        if self.output_file:
            return self.output_file
        return DEFAULT_XML_OUTPUT if self.xml else DEFAULT_TEXT_OUTPUT


def _error_dicts(exc: ValidationError) -> list[dict[str, JsonValue]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": str(error.get("msg", "")),
            "type": str(error.get("type", "")),
        }
        for error in exc.errors()
    ]


def load_analysis_config(path: Path) -> AnalysisConfig:
    """Load an :class:`AnalysisConfig` from a JSON document.

    Parameters
    ----------
    path : Path
        JSON file in either the structured or the flat persisted shape.

    Returns
    -------
    AnalysisConfig
        Validated configuration.

    Raises
    ------
    ConfigurationError
        Raised when the file cannot be read or fails validation. The error
        carries a Problem Details payload listing every validation error.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        problem = config_invalid_problem_details(source=path.name, detail=str(exc))
        message = f"Cannot read analysis configuration {path}"
        raise ConfigurationError(message, problem=problem) from exc

    try:
        config = AnalysisConfig.model_validate_json(raw)
    except ValidationError as exc:
        errors = _error_dicts(exc)
        problem = config_invalid_problem_details(
            source=path.name,
            detail=f"{len(errors)} validation error(s) in {path.name}",
            errors=errors,
        )
        message = f"Invalid analysis configuration {path}"
        raise ConfigurationError(message, problem=problem, errors=errors) from exc

    LOGGER.debug(
        "Loaded analysis configuration",
        extra={"operation": "load_config", "path": path.as_posix()},
    )
    return config
