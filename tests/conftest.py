"""Shared pytest fixtures for the cppcheck build step tests.

This module provides:
- isolation from ``CPPCHECK_*`` environment variables and the settings cache
- a fake ``cppcheck`` executable that echoes its arguments and working directory
- a workspace directory factory
"""

from __future__ import annotations

import os
import stat
import sys
import textwrap
from typing import TYPE_CHECKING

import pytest

from cppcheck_buildstep.settings import reset_settings_cache

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

FAKE_CPPCHECK_SOURCE = textwrap.dedent(
    """\
    import os
    import sys

    print("cppcheck " + " ".join(sys.argv[1:]))
    print("cwd=" + os.getcwd())
    sys.stderr.write("<results version=\\"2\\"/>\\n")
    sys.exit(int(os.environ.get("FAKE_CPPCHECK_EXIT", "0")))
    """
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop ``CPPCHECK_*`` variables and the cached settings around each test."""
    for key in list(os.environ):
        if key.upper().startswith("CPPCHECK_"):
            monkeypatch.delenv(key)
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def fake_bin(tmp_path: Path) -> Path:
    """Return a directory holding an executable named ``cppcheck``."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "cppcheck"
    script.write_text(f"#!{sys.executable}\n{FAKE_CPPCHECK_SOURCE}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return bin_dir


@pytest.fixture
def fake_cppcheck(fake_bin: Path) -> Path:
    """Return the absolute path of the fake ``cppcheck`` executable."""
    return fake_bin / "cppcheck"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Return an empty build workspace."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path
