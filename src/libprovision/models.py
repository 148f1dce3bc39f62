"""Core typed dataclasses for pipeline configuration, state and results."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath

from libprovision.errors import ValidationError

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{40}$")

OptionValue = bool | str

DEFAULT_REPO = "https://github.com/Enet4/faiss.git"
DEFAULT_REVISION = "c_api_head"
DEFAULT_PROJECT = "faiss"
DEFAULT_TARGET = "faiss_c"
DEFAULT_ARTIFACTS = ("faiss/libfaiss.so", "c_api/libfaiss_c.so")
DEFAULT_SEARCH_PATH_VARIABLE = "LD_LIBRARY_PATH"


class BuildType(StrEnum):
    DEBUG = "Debug"
    RELEASE = "Release"


DEFAULT_OPTIONS: Mapping[str, OptionValue] = {
    "FAISS_ENABLE_C_API": True,
    "BUILD_SHARED_LIBS": True,
    "FAISS_ENABLE_PYTHON": False,
    "BUILD_TESTING": False,
    "CMAKE_BUILD_TYPE": BuildType.RELEASE.value,
}


class PipelineState(StrEnum):
    """Linear pipeline states; ``COMPLETE`` means registered and cleaned."""

    UNINITIALIZED = "uninitialized"
    FETCHED = "fetched"
    BUILT = "built"
    STAGED = "staged"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class SourceReference:
    repo: str
    revision: str
    depth: int = 1

    def __post_init__(self) -> None:
        if not self.repo:
            raise ValidationError("Source reference requires a repository location.")
        if not self.revision:
            raise ValidationError(
                "Source reference requires a revision.",
                context={"repo": self.repo},
            )
        if isinstance(self.depth, bool) or not isinstance(self.depth, int) or self.depth < 1:
            raise ValidationError(
                "Clone depth must be a positive integer.",
                hint="Use depth=1 for a shallow fetch of the pinned revision.",
                context={"repo": self.repo, "depth": str(self.depth)},
            )

    @property
    def is_commit(self) -> bool:
        return COMMIT_PATTERN.fullmatch(self.revision) is not None


@dataclass(frozen=True, slots=True)
class BuildTarget:
    name: str
    options: Mapping[str, OptionValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("Build target requires a name.")
        for key, value in self.options.items():
            if not key:
                raise ValidationError(
                    "Build option names must be non-empty.",
                    context={"target": self.name},
                )
            if not isinstance(value, (bool, str)):
                raise ValidationError(
                    "Build option values must be booleans or strings.",
                    context={"target": self.name, "option": key, "value": repr(value)},
                )

    def rendered_options(self) -> dict[str, str]:
        """Return the option mapping with booleans rendered as ``ON``/``OFF``."""
        rendered: dict[str, str] = {}
        for key, value in self.options.items():
            if isinstance(value, bool):
                rendered[key] = "ON" if value else "OFF"
            else:
                rendered[key] = value
        return rendered


def install_dir_for(project: str, *, home: Path | None = None) -> Path:
    """Derive the user-scoped installation directory ``<home>/.<project>_c``."""
    base = home if home is not None else Path.home()
    return base / f".{project}_c"


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    source: SourceReference
    target: BuildTarget
    artifacts: tuple[str, ...]
    working_tree: Path
    install_dir: Path
    search_path_variable: str = DEFAULT_SEARCH_PATH_VARIABLE

    def __post_init__(self) -> None:
        if not self.artifacts:
            raise ValidationError(
                "Artifact set must name at least one file.",
                context={"target": self.target.name},
            )
        names: set[str] = set()
        for artifact in self.artifacts:
            path = PurePosixPath(artifact)
            if not artifact or path.is_absolute() or ".." in path.parts:
                raise ValidationError(
                    "Artifact paths must be relative to the working tree.",
                    context={"artifact": artifact},
                )
            if path.name in names:
                raise ValidationError(
                    "Artifact filenames must be unique; staging preserves basenames.",
                    context={"artifact": artifact},
                )
            names.add(path.name)
        if not self.search_path_variable:
            raise ValidationError("Search path variable name must be non-empty.")

    @property
    def artifact_names(self) -> tuple[str, ...]:
        return tuple(PurePosixPath(artifact).name for artifact in self.artifacts)

    @classmethod
    def default(
        cls,
        *,
        working_tree: Path | None = None,
        home: Path | None = None,
    ) -> PipelineConfig:
        return cls(
            source=SourceReference(repo=DEFAULT_REPO, revision=DEFAULT_REVISION, depth=1),
            target=BuildTarget(name=DEFAULT_TARGET, options=dict(DEFAULT_OPTIONS)),
            artifacts=DEFAULT_ARTIFACTS,
            working_tree=working_tree if working_tree is not None else Path(DEFAULT_PROJECT),
            install_dir=install_dir_for(DEFAULT_PROJECT, home=home),
        )


@dataclass(frozen=True, slots=True)
class FetchResult:
    path: Path
    commit: str
    mutable_ref: bool


@dataclass(frozen=True, slots=True)
class BuildResult:
    working_tree: Path
    target: str
    artifacts: tuple[Path, ...]


@dataclass(frozen=True, slots=True)
class StagedArtifact:
    name: str
    source: Path
    destination: Path
    sha256: str


@dataclass(slots=True)
class ProvisionResult:
    state: PipelineState
    install_dir: Path
    staged: tuple[StagedArtifact, ...] = ()
    search_path: str = ""
    export_line: str = ""
    receipt_path: Path | None = None
    commit: str | None = None
    skipped: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.COMPLETE
