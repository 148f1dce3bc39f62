"""Copy built shared libraries into the persistent installation directory."""

from __future__ import annotations

import hashlib
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from libprovision.errors import StagingError
from libprovision.models import StagedArtifact


def stage_artifacts(artifacts: Sequence[Path], install_dir: str | Path) -> tuple[StagedArtifact, ...]:
    """Copy ``artifacts`` into ``install_dir``, preserving filenames.

    Every source is checked before anything is copied, so a missing artifact
    leaves the installation directory untouched. Existing files with the same
    name are replaced atomically.
    """
    destination_dir = Path(install_dir)
    missing = [str(path) for path in artifacts if not Path(path).is_file()]
    if missing:
        raise StagingError(
            "Build output is missing expected artifacts.",
            hint="Compilation did not produce every file in the artifact set; rebuild.",
            context={"operation": "stage", "missing": ", ".join(missing)},
        )

    try:
        destination_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StagingError(
            "Unable to create installation directory.",
            hint="Check permissions on the parent directory.",
            context={"operation": "stage", "path": str(destination_dir), "error": str(exc)},
        ) from exc

    staged: list[StagedArtifact] = []
    for source in artifacts:
        source_path = Path(source)
        target = destination_dir / source_path.name
        try:
            _replace_file(source_path, target)
            digest = file_sha256(target)
        except OSError as exc:
            raise StagingError(
                "Unable to copy artifact into installation directory.",
                hint="Check that the installation directory is writable.",
                context={
                    "operation": "stage",
                    "source": str(source_path),
                    "destination": str(target),
                    "error": str(exc),
                },
            ) from exc
        staged.append(
            StagedArtifact(
                name=source_path.name,
                source=source_path,
                destination=target,
                sha256=digest,
            )
        )
    return tuple(staged)


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _replace_file(source: Path, target: Path) -> None:
    temp_target = target.with_name(f".{target.name}.staging")
    try:
        shutil.copy2(source, temp_target)
        os.replace(temp_target, target)
    finally:
        if temp_target.exists():
            temp_target.unlink()
