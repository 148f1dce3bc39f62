"""Shallow, revision-pinned git acquisition into a working tree."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path

from libprovision.errors import AcquisitionError
from libprovision.models import FetchResult, SourceReference
from libprovision.policy import Policy, enforce_mutable_ref_policy, ensure_network_allowed


def fetch_source(
    source: SourceReference,
    working_tree: str | Path,
    *,
    policy: Policy | None = None,
    git: str = "git",
) -> FetchResult:
    """Fetch ``source`` at its pinned revision into ``working_tree``.

    The clone is performed in a temporary sibling directory and moved into
    place only once it has succeeded, so a failed fetch leaves nothing behind
    and never touches an unrelated pre-existing directory.
    """
    effective_policy = policy if policy is not None else Policy()
    destination = Path(working_tree)
    _ensure_destination_free(destination)
    ensure_network_allowed(policy=effective_policy, operation="fetch_source")
    mutable_ref = not source.is_commit
    enforce_mutable_ref_policy(
        revision=source.revision,
        policy=effective_policy,
        mutable_ref=mutable_ref,
    )

    parent = destination.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
        temp_root = Path(tempfile.mkdtemp(prefix=f".{destination.name}-fetch-", dir=str(parent)))
    except OSError as exc:
        raise _filesystem_error("Unable to prepare working tree location.", parent, exc) from exc
    try:
        if source.is_commit:
            _fetch_commit(source, temp_root, git=git)
        else:
            _run_git(
                [
                    "clone",
                    "--quiet",
                    "--branch",
                    source.revision,
                    "--depth",
                    str(source.depth),
                    source.repo,
                    str(temp_root),
                ],
                source=source,
                git=git,
            )
        commit = _run_git(["rev-parse", "HEAD"], source=source, git=git, cwd=temp_root)
        try:
            if destination.exists():
                # Only an empty directory can reach this point.
                destination.rmdir()
            shutil.move(str(temp_root), destination)
        except OSError as exc:
            raise _filesystem_error(
                "Unable to move fetched source into the working tree.", destination, exc
            ) from exc
    finally:
        if temp_root.exists():
            shutil.rmtree(temp_root, ignore_errors=True)

    return FetchResult(path=destination, commit=commit, mutable_ref=mutable_ref)


def _fetch_commit(source: SourceReference, checkout: Path, *, git: str) -> None:
    _run_git(["init", "--quiet"], source=source, git=git, cwd=checkout)
    _run_git(["remote", "add", "origin", source.repo], source=source, git=git, cwd=checkout)
    _run_git(
        ["fetch", "--quiet", "--depth", str(source.depth), "origin", source.revision],
        source=source,
        git=git,
        cwd=checkout,
    )
    _run_git(["checkout", "--quiet", "--detach", "FETCH_HEAD"], source=source, git=git, cwd=checkout)


def _ensure_destination_free(destination: Path) -> None:
    if not destination.exists():
        return
    if not destination.is_dir():
        raise AcquisitionError(
            "Working tree path is occupied by a file.",
            hint="Remove the file or choose a different working tree path.",
            context={"operation": "fetch_source", "path": str(destination)},
        )
    try:
        occupied = any(destination.iterdir())
    except OSError as exc:
        raise _filesystem_error("Unable to inspect working tree path.", destination, exc) from exc
    if occupied:
        raise AcquisitionError(
            "Working tree path already exists and is not empty.",
            hint="Remove the leftover directory from a previous run before fetching again.",
            context={"operation": "fetch_source", "path": str(destination)},
        )


def _run_git(
    argv: list[str],
    *,
    source: SourceReference,
    git: str,
    cwd: Path | None = None,
) -> str:
    command = [git, *argv]
    try:
        completed = subprocess.run(
            command,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as exc:
        raise AcquisitionError(
            f"`{git}` executable not found.",
            hint="Install git and ensure it is available in PATH.",
            context={"operation": "fetch_source", "argv": " ".join(command)},
        ) from exc
    if completed.returncode != 0:
        raise AcquisitionError(
            "Git command failed.",
            hint="Ensure the repository is reachable and the revision exists.",
            context={
                "operation": "fetch_source",
                "repo": source.repo,
                "revision": source.revision,
                "argv": " ".join(command),
            },
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
    return completed.stdout.strip()


def _filesystem_error(message: str, path: Path, exc: OSError) -> AcquisitionError:
    return AcquisitionError(
        message,
        hint="Check that the working tree path and its parents are writable directories.",
        context={"operation": "fetch_source", "path": str(path), "error": str(exc)},
    )
