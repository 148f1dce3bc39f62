"""CMake builder: configure once, then build a single named target."""

from __future__ import annotations

import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from libprovision.builders.base import CommandResult, run_tool
from libprovision.errors import CompilationError, ConfigurationError
from libprovision.models import BuildResult, BuildTarget


@dataclass(slots=True)
class CMakeBuilder:
    tool: str = "cmake"
    jobs: int | None = None
    env: Mapping[str, str] = field(default_factory=dict)

    def configure_command(self, working_tree: Path, target: BuildTarget) -> tuple[str, ...]:
        definitions = [f"-D{key}={value}" for key, value in target.rendered_options().items()]
        return (self.tool, "-S", str(working_tree), "-B", str(working_tree), *definitions)

    def compile_command(self, working_tree: Path, target: BuildTarget) -> tuple[str, ...]:
        command = [self.tool, "--build", str(working_tree), "--target", target.name]
        if self.jobs is not None:
            command.extend(["--parallel", str(self.jobs)])
        return tuple(command)

    def configure(self, working_tree: Path, target: BuildTarget) -> CommandResult:
        working_tree = Path(working_tree).resolve()
        self._ensure_tool(target)
        command = self.configure_command(working_tree, target)
        result = self._run(command, working_tree, target, error=ConfigurationError)
        if not result.ok:
            raise ConfigurationError(
                "Build configuration failed.",
                hint="Check the option set and that all system prerequisites are installed.",
                context={
                    "operation": "configure",
                    "target": target.name,
                    "command": " ".join(command),
                    "returncode": str(result.returncode),
                },
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def compile(
        self,
        working_tree: Path,
        target: BuildTarget,
        artifacts: Sequence[str],
    ) -> BuildResult:
        working_tree = Path(working_tree).resolve()
        command = self.compile_command(working_tree, target)
        result = self._run(command, working_tree, target, error=CompilationError)
        if not result.ok:
            raise CompilationError(
                f"Compilation of target `{target.name}` failed.",
                hint="Inspect the compiler output above; the working tree is kept for diagnosis.",
                context={
                    "operation": "compile",
                    "target": target.name,
                    "command": " ".join(command),
                    "returncode": str(result.returncode),
                },
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        produced = tuple(working_tree / artifact for artifact in artifacts)
        missing = [str(path) for path in produced if not path.is_file()]
        if missing:
            raise CompilationError(
                f"Target `{target.name}` built but did not produce every expected artifact.",
                hint="Check that the artifact list matches the target's build outputs.",
                context={
                    "operation": "compile",
                    "target": target.name,
                    "missing": ", ".join(missing),
                },
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return BuildResult(working_tree=working_tree, target=target.name, artifacts=produced)

    def _run(
        self,
        command: tuple[str, ...],
        working_tree: Path,
        target: BuildTarget,
        *,
        error: type[ConfigurationError] | type[CompilationError],
    ) -> CommandResult:
        try:
            return run_tool(command, cwd=working_tree, env=self.env)
        except FileNotFoundError as exc:
            raise error(
                f"`{self.tool}` executable not found.",
                hint="Install CMake and ensure it is available in PATH.",
                context={"target": target.name, "command": " ".join(command)},
            ) from exc

    def _ensure_tool(self, target: BuildTarget) -> None:
        if shutil.which(self.tool) is None:
            raise ConfigurationError(
                f"`{self.tool}` executable not found.",
                hint="Install CMake and ensure it is available in PATH.",
                context={"operation": "configure", "target": target.name, "tool": self.tool},
            )
