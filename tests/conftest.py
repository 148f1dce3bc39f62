"""Shared test fixtures."""

from __future__ import annotations

import stat
import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from libprovision.models import BuildTarget, PipelineConfig, SourceReference, install_dir_for
from libprovision.policy import Policy

FAKE_CMAKE = """#!/bin/sh
if [ "$1" = "--build" ]; then
    tree="$2"
    target="$4"
    if [ ! -f "$tree/CMakeCache.txt" ]; then
        echo "Error: could not load cache" >&2
        exit 1
    fi
    if [ "$target" = "broken_target" ]; then
        echo "make: *** No rule to make target 'broken_target'.  Stop." >&2
        exit 2
    fi
    while IFS= read -r artifact; do
        [ -n "$artifact" ] || continue
        mkdir -p "$tree/$(dirname "$artifact")"
        printf 'shared object %s built for %s\\n' "$artifact" "$target" > "$tree/$artifact"
    done < "$tree/outputs.txt"
    echo "[100%] Built target $target"
    exit 0
fi
for arg in "$@"; do
    case "$arg" in
        -DINVALID_OPTION=*)
            echo "CMake Error: unsupported option INVALID_OPTION" >&2
            exit 1
            ;;
    esac
done
printf '%s\\n' "$@" > "$4/CMakeCache.txt"
echo "-- Configuring done"
"""

RepoFactory = Callable[..., tuple[str, str]]


@pytest.fixture
def fake_cmake(tmp_path: Path) -> Path:
    """Executable stand-in for cmake that builds the files listed in outputs.txt."""
    path = tmp_path / "bin" / "cmake"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(FAKE_CMAKE, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_source_repo(tmp_path: Path) -> RepoFactory:
    """Create a local git repository; returns its file:// URL and head commit."""

    def factory(
        outputs: Sequence[str] = ("libX.so", "libX_c.so"),
        *,
        branch: str = "main-pinned",
        name: str = "upstream",
    ) -> tuple[str, str]:
        path = tmp_path / name
        path.mkdir(parents=True, exist_ok=True)
        run_git(["init", "--quiet"], cwd=path)
        run_git(["checkout", "--quiet", "-b", branch], cwd=path)
        run_git(["config", "user.email", "provision@example.com"], cwd=path)
        run_git(["config", "user.name", "Provision Test"], cwd=path)
        run_git(["config", "uploadpack.allowAnySHA1InWant", "true"], cwd=path)

        (path / "CMakeLists.txt").write_text("project(X C)\n", encoding="utf-8")
        (path / "outputs.txt").write_text("\n".join(outputs) + "\n", encoding="utf-8")
        run_git(["add", "CMakeLists.txt", "outputs.txt"], cwd=path)
        run_git(["commit", "--quiet", "-m", "initial"], cwd=path)
        return path.as_uri(), run_git(["rev-parse", "HEAD"], cwd=path)

    return factory


@pytest.fixture
def allow_mutable() -> Policy:
    return Policy(mutable_ref_policy="allow")


@pytest.fixture
def x_config(tmp_path: Path, make_source_repo: RepoFactory) -> PipelineConfig:
    """Configuration for the sample project X with artifacts libX.so and libX_c.so."""
    repo, _ = make_source_repo()
    return PipelineConfig(
        source=SourceReference(repo=repo, revision="main-pinned", depth=1),
        target=BuildTarget(name="libX", options={"shared": True, "tests": False}),
        artifacts=("libX.so", "libX_c.so"),
        working_tree=tmp_path / "work" / "X",
        install_dir=install_dir_for("X", home=tmp_path / "home"),
    )


def run_git(argv: list[str], *, cwd: Path) -> str:
    completed = subprocess.run(
        ["git", *argv],
        cwd=cwd,
        check=False,
        text=True,
        capture_output=True,
    )
    if completed.returncode != 0:
        raise RuntimeError(f"git {' '.join(argv)} failed: {completed.stderr.strip()}")
    return completed.stdout.strip()
