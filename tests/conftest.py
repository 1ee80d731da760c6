"""Pytest fixtures for Elec Downloader tests."""

import os
import stat
import sys
from pathlib import Path
from typing import Callable, Sequence

import pytest

from elec_downloader.services.jobs import JobRegistry

FAKE_DOWNLOADER = """#!{python}
import os
import sys
import time

with open({record!r}, "w", encoding="utf-8") as f:
    f.write(os.getcwd() + "\\n")
    f.write("\\n".join(sys.argv[1:]))

for line in {lines!r}:
    stream = sys.stderr if line.startswith("ERROR") else sys.stdout
    stream.write(line + "\\n")
    stream.flush()

time.sleep({sleep!r})
sys.exit({exit_code!r})
"""


@pytest.fixture
def registry() -> JobRegistry:
    """Fresh, empty job registry."""
    return JobRegistry()


@pytest.fixture
def make_downloader(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an executable that impersonates the downloader.

    The script records its working directory and arguments to
    ``<tmp_path>/invocation.txt``, prints the given lines (lines starting with
    ``ERROR`` go to stderr), sleeps, then exits with the given status.
    """
    if os.name == "nt":
        pytest.skip("fake downloader relies on a shebang line")

    def _make(
        lines: Sequence[str] = (),
        exit_code: int = 0,
        sleep: float = 0.0,
        name: str = "youtube-dl",
    ) -> Path:
        path = tmp_path / name
        path.write_text(
            FAKE_DOWNLOADER.format(
                python=sys.executable,
                record=str(tmp_path / "invocation.txt"),
                lines=list(lines),
                sleep=sleep,
                exit_code=exit_code,
            ),
            encoding="utf-8",
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
