"""Compose the cppcheck command line from an :class:`AnalysisConfig`.

Composition is a pure function of the configuration: no I/O, no settings
lookups, no global state. The token order below is fixed so identical
configurations always produce byte-identical command lines.

Token order
-----------
1. ``--dump``
2. ``-D<symbol>``
3. ``--enable=<categories>`` (one token, categories comma-joined)
4. ``-f``
5. ``-I<dir>``
6. ``--inconclusive``
7. ``-q``
8. ``--std=<standard>`` (one token per selected standard)
9. ``--suppress=<id>`` (one token per selected suppression)
10. ``-v``
11. ``--xml``
12. ``--xml-version=2``
13. target (``.`` when blank)

The diagnostic stream redirection is not an argument: it is carried by
:attr:`ComposedCommand.diagnostic_file` and applied by the process runner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Literal

from cppcheck_buildstep.config import (
    DEFAULT_TARGET,
    AnalysisConfig,
    CheckCategory,
    LanguageStandard,
    Suppression,
)

__all__ = [
    "Advisory",
    "ComposedCommand",
    "compose_arguments",
    "compose_command",
    "config_advisories",
]

XML_VERSION_HINT: Final[str] = "Please use the new version if you can."


@dataclass(frozen=True, slots=True)
class ComposedCommand:
    """Executable, ordered arguments and diagnostic file for one invocation."""

    executable: str
    arguments: tuple[str, ...]
    diagnostic_file: str

    @property
    def argv(self) -> tuple[str, ...]:
        """Return the full argument vector handed to the process runner."""
        return (self.executable, *self.arguments)

    def render(self) -> str:
        """Return the command line as a shell-style preview string.

        Examples
        --------
        >>> ComposedCommand("cppcheck", ("--xml", "src"), "out.xml").render()
        'cppcheck --xml src 2>out.xml'
        """
        return " ".join((*self.argv, f"2>{self.diagnostic_file}"))


@dataclass(frozen=True, slots=True)
class Advisory:
    """Non-blocking observation about a configuration."""

    field: str
    severity: Literal["warning", "info"]
    message: str


def _enable_token(checks: frozenset[CheckCategory]) -> str | None:
    selected = [category.value for category in CheckCategory if category in checks]
    if not selected:
        return None
    return "--enable=" + ",".join(selected)


def compose_arguments(config: AnalysisConfig) -> tuple[str, ...]:
    """Serialize ``config`` into the analyzer's ordered argument tokens.

    Parameters
    ----------
    config : AnalysisConfig
        Validated analysis options.

    Returns
    -------
    tuple[str, ...]
        Argument tokens, excluding the executable and the stream redirection.
    """
    tokens: list[str] = []
    if config.dump:
        tokens.append("--dump")
    if config.symbol:
        tokens.append(f"-D{config.symbol}")
    enable = _enable_token(config.checks)
    if enable is not None:
        tokens.append(enable)
    if config.force:
        tokens.append("-f")
    if config.include_dir:
        tokens.append(f"-I{config.include_dir}")
    if config.inconclusive:
        tokens.append("--inconclusive")
    if config.quiet:
        tokens.append("-q")
    tokens.extend(
        f"--std={standard.value}" for standard in LanguageStandard if standard in config.standards
    )
    tokens.extend(
        f"--suppress={suppression.value}"
        for suppression in Suppression
        if suppression in config.suppressions
    )
    if config.verbose:
        tokens.append("-v")
    if config.xml:
        tokens.append("--xml")
    # Emitted from its own toggle; see config_advisories for the --xml coupling.
    if config.xml_version:
        tokens.append("--xml-version=2")
    tokens.append(config.target or DEFAULT_TARGET)
    return tuple(tokens)


def compose_command(config: AnalysisConfig, executable: str) -> ComposedCommand:
    """Bundle ``executable`` with the composed arguments and diagnostic file."""
    return ComposedCommand(
        executable=executable,
        arguments=compose_arguments(config),
        diagnostic_file=config.resolved_output_file,
    )


def config_advisories(config: AnalysisConfig) -> tuple[Advisory, ...]:
    """Return advisories for ``config`` without altering composition.

    Parameters
    ----------
    config : AnalysisConfig
        Validated analysis options.

    Returns
    -------
    tuple[Advisory, ...]
        Advisories in a stable order; empty when nothing is worth reporting.
    """
    advisories: list[Advisory] = []
    if config.xml_version and not config.xml:
        advisories.append(
            Advisory(
                field="xml_version",
                severity="warning",
                message="--xml-version=2 is passed without --xml and has no effect",
            )
        )
    if config.xml and not config.xml_version:
        advisories.append(Advisory(field="xml_version", severity="warning", message=XML_VERSION_HINT))
    if len(config.standards) > 1:
        names = ", ".join(s.value for s in LanguageStandard if s in config.standards)
        advisories.append(
            Advisory(
                field="standards",
                severity="warning",
                message=f"Multiple language standards selected ({names}); all are passed",
            )
        )
    return tuple(advisories)
