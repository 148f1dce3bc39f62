"""Typed interfaces for external build tools."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from libprovision.models import BuildResult, BuildTarget


@dataclass(frozen=True, slots=True)
class CommandResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Builder(Protocol):
    def configure(self, working_tree: Path, target: BuildTarget) -> CommandResult:
        """Run the project's build-configuration step once with the full option set."""

    def compile(
        self,
        working_tree: Path,
        target: BuildTarget,
        artifacts: Sequence[str],
    ) -> BuildResult:
        """Build exactly the named target and return the produced artifact paths."""


def run_tool(
    command: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
) -> CommandResult:
    """Run an external tool to completion, capturing its output.

    Raises ``FileNotFoundError`` when the executable itself is missing so the
    caller can map it onto its own error type.
    """
    merged_env = dict(os.environ)
    if env:
        merged_env.update(env)
    completed = subprocess.run(
        list(command),
        cwd=str(cwd),
        env=merged_env,
        capture_output=True,
        text=True,
        check=False,
    )
    return CommandResult(
        command=tuple(command),
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )
