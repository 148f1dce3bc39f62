"""Four-stage provisioning pipeline: fetch, build, stage, register and clean."""

from __future__ import annotations

import os
import warnings
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from libprovision.builders import Builder, CMakeBuilder
from libprovision.environment import export_line, register_search_path, remove_working_tree
from libprovision.errors import (
    CleanupError,
    ProvisionError,
    ProvisionWarning,
    RegistrationError,
    StagingError,
    ValidationError,
)
from libprovision.fetch import fetch_source
from libprovision.models import (
    BuildResult,
    FetchResult,
    PipelineConfig,
    PipelineState,
    ProvisionResult,
    StagedArtifact,
)
from libprovision.observability import StructuredLogger
from libprovision.policy import Policy
from libprovision.receipt import (
    RECEIPT_FILENAME,
    InstallReceipt,
    build_fingerprint,
    read_receipt,
    write_receipt,
)
from libprovision.staging import stage_artifacts


@dataclass(slots=True)
class Pipeline:
    """Drives one provisioning run through its linear state machine.

    A fatal error leaves :attr:`state` at the last stage that completed and is
    re-raised with ``failed_stage`` and ``state`` filled in. Cleanup only runs
    on the success path, so a failed build keeps its working tree.
    """

    config: PipelineConfig
    builder: Builder = field(default_factory=CMakeBuilder)
    policy: Policy = field(default_factory=Policy)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    git: str = "git"
    skip_if_current: bool = False
    _state: PipelineState = field(init=False, default=PipelineState.UNINITIALIZED)
    _build: BuildResult | None = field(init=False, default=None, repr=False)
    _staged: tuple[StagedArtifact, ...] = field(init=False, default=(), repr=False)
    _receipt_path: Path | None = field(init=False, default=None, repr=False)
    _commit: str | None = field(init=False, default=None, repr=False)
    _skipped: bool = field(init=False, default=False, repr=False)
    _warnings: list[str] = field(init=False, default_factory=list, repr=False)

    @property
    def state(self) -> PipelineState:
        return self._state

    def run(self) -> ProvisionResult:
        if self.skip_if_current and self._adopt_current_install():
            return self.register_and_clean()
        self.acquire()
        self.build()
        self.stage()
        return self.register_and_clean()

    def acquire(self) -> FetchResult:
        self._require(PipelineState.UNINITIALIZED, stage="acquire")
        source = self.config.source
        with self._stage("acquire"):
            self._log(
                "fetch_start",
                "acquire",
                f"Fetching {source.repo} at {source.revision} (depth {source.depth}).",
            )
            result = fetch_source(
                source,
                self.config.working_tree,
                policy=self.policy,
                git=self.git,
            )
        self._commit = result.commit
        self._state = PipelineState.FETCHED
        self._log(
            "fetch_complete",
            "acquire",
            f"Fetched commit {result.commit} into {result.path}.",
            extra={"commit": result.commit, "mutable_ref": result.mutable_ref},
        )
        return result

    def build(self) -> BuildResult:
        self._require(PipelineState.FETCHED, stage="build")
        tree = self.config.working_tree
        target = self.config.target
        with self._stage("configure"):
            self._log(
                "configure_start",
                "configure",
                f"Configuring {tree} for target {target.name}.",
                extra={"options": target.rendered_options()},
            )
            self.builder.configure(tree, target)
        with self._stage("compile"):
            self._log("compile_start", "compile", f"Building target {target.name}.")
            result = self.builder.compile(tree, target, self.config.artifacts)
        self._build = result
        self._state = PipelineState.BUILT
        self._log(
            "compile_complete",
            "compile",
            f"Built target {target.name}.",
            extra={"artifacts": [str(path) for path in result.artifacts]},
        )
        return result

    def stage(self) -> tuple[StagedArtifact, ...]:
        self._require(PipelineState.BUILT, stage="stage")
        build = self._build
        if build is None:
            raise ValidationError(
                "Cannot run `stage` without a build result.",
                context={"stage": "stage", "state": self._state.value},
            )
        install_dir = self.config.install_dir
        with self._stage("stage"):
            staged = stage_artifacts(build.artifacts, install_dir)
            receipt = InstallReceipt.from_run(
                self.config,
                commit=self._commit or "",
                staged=staged,
            )
            try:
                receipt_path = write_receipt(receipt, install_dir)
            except OSError as exc:
                raise StagingError(
                    "Unable to write install receipt.",
                    hint="Check that the installation directory is writable.",
                    context={"operation": "stage", "path": str(install_dir), "error": str(exc)},
                ) from exc
        self._staged = staged
        self._receipt_path = receipt_path
        self._state = PipelineState.STAGED
        for artifact in staged:
            self._log(
                "stage_artifact",
                "stage",
                f"Staged {artifact.name} into {install_dir}.",
                extra={"sha256": artifact.sha256},
            )
        return staged

    def register_and_clean(self) -> ProvisionResult:
        self._require(PipelineState.STAGED, stage="register")
        install_dir = self.config.install_dir
        variable = self.config.search_path_variable
        search_path = self.environ.get(variable, "")
        try:
            updated = register_search_path(self.environ, variable, install_dir)
        except RegistrationError as exc:
            self._warn("register", exc)
        else:
            self.environ = updated
            search_path = updated[variable]
            self._log("register", "register", f"Registered {install_dir} in {variable}.")

        try:
            removed = remove_working_tree(self.config.working_tree)
        except CleanupError as exc:
            self._warn("cleanup", exc)
        else:
            if removed:
                self._log("cleanup", "cleanup", f"Removed working tree {self.config.working_tree}.")
            else:
                self._log("cleanup", "cleanup", "Working tree already absent.")

        self._state = PipelineState.COMPLETE
        return ProvisionResult(
            state=self._state,
            install_dir=install_dir,
            staged=self._staged,
            search_path=search_path,
            export_line=export_line(variable, search_path) if search_path else "",
            receipt_path=self._receipt_path,
            commit=self._commit,
            skipped=self._skipped,
            warnings=list(self._warnings),
        )

    def _adopt_current_install(self) -> bool:
        """Reuse a previous install whose receipt matches the current inputs."""
        self._require(PipelineState.UNINITIALIZED, stage="acquire")
        install_dir = self.config.install_dir
        try:
            receipt = read_receipt(install_dir)
        except ValidationError as exc:
            self._log(
                "skip_check",
                "acquire",
                "Install receipt is unreadable; rebuilding.",
                level="warning",
                extra={"code": exc.code, "error": exc.message, **exc.context},
            )
            return False
        if receipt is None:
            return False
        if receipt.fingerprint != build_fingerprint(self.config):
            self._log("skip_check", "acquire", "Install receipt is stale; rebuilding.")
            return False
        verification = receipt.verify(install_dir)
        if not verification.ok:
            self._log(
                "skip_check",
                "acquire",
                "Installed artifacts do not match receipt; rebuilding.",
                extra={"mismatches": [item.name for item in verification.mismatches]},
            )
            return False
        self._staged = tuple(
            StagedArtifact(
                name=name,
                source=install_dir / name,
                destination=install_dir / name,
                sha256=digest,
            )
            for name, digest in sorted(receipt.artifacts.items())
        )
        self._commit = receipt.commit
        self._receipt_path = install_dir / RECEIPT_FILENAME
        self._skipped = True
        self._state = PipelineState.STAGED
        self._log(
            "skip_current",
            "acquire",
            f"Artifacts in {install_dir} are current; skipping fetch and build.",
            extra={"commit": receipt.commit},
        )
        return True

    @contextmanager
    def _stage(self, name: str) -> Iterator[None]:
        try:
            yield
        except ProvisionError as exc:
            exc.failed_stage = name
            exc.state = self._state.value
            self._log(
                "stage_failed",
                name,
                f"{name} failed: {exc.message}",
                level="error",
                extra={"code": exc.code},
            )
            raise

    def _require(self, expected: PipelineState, *, stage: str) -> None:
        if self._state is not expected:
            raise ValidationError(
                f"Cannot run `{stage}` from state `{self._state.value}`.",
                hint=f"`{stage}` requires state `{expected.value}`.",
                context={"stage": stage, "state": self._state.value},
            )

    def _warn(self, stage: str, exc: ProvisionError) -> None:
        message = f"{stage} did not complete: {exc.message}"
        self._warnings.append(message)
        self._log(
            f"{stage}_warning",
            stage,
            message,
            level="warning",
            extra={"code": exc.code, **exc.context},
        )
        warnings.warn(message, ProvisionWarning, stacklevel=3)

    def _log(
        self,
        operation: str,
        stage: str,
        message: str,
        *,
        level: str = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.logger.log(
            operation=operation,
            stage=stage,
            message=message,
            level=level,
            extra=extra,
        )


def provision(
    config: PipelineConfig | None = None,
    *,
    builder: Builder | None = None,
    policy: Policy | None = None,
    logger: StructuredLogger | None = None,
    environ: Mapping[str, str] | None = None,
    skip_if_current: bool = False,
) -> ProvisionResult:
    """Run the full pipeline for ``config`` (the FAISS C defaults when omitted)."""
    pipeline = Pipeline(
        config=config if config is not None else PipelineConfig.default(),
        builder=builder if builder is not None else CMakeBuilder(),
        policy=policy if policy is not None else Policy(),
        logger=logger if logger is not None else StructuredLogger(),
        environ=dict(environ) if environ is not None else dict(os.environ),
        skip_if_current=skip_if_current,
    )
    return pipeline.run()
