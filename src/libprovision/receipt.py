"""Install receipt: what was staged, from which inputs, and how to verify it."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import cbor2

from libprovision.errors import ValidationError
from libprovision.models import PipelineConfig, StagedArtifact
from libprovision.staging import file_sha256

RECEIPT_FILENAME = ".libprovision-receipt.json"

MismatchReason = Literal["missing_actual", "value_mismatch"]


@dataclass(frozen=True, slots=True)
class ReceiptMismatch:
    name: str
    reason: MismatchReason
    expected: str | None
    actual: str | None


@dataclass(frozen=True, slots=True)
class VerificationResult:
    ok: bool
    mismatches: tuple[ReceiptMismatch, ...] = ()


def build_fingerprint(config: PipelineConfig) -> str:
    """Digest of the canonical CBOR encoding of every input that shapes the build."""
    payload = {
        "repo": config.source.repo,
        "revision": config.source.revision,
        "depth": config.source.depth,
        "target": config.target.name,
        "options": dict(sorted(config.target.rendered_options().items())),
        "artifacts": list(config.artifact_names),
    }
    return hashlib.sha256(cbor2.dumps(payload, canonical=True)).hexdigest()


@dataclass(frozen=True, slots=True)
class InstallReceipt:
    fingerprint: str
    repo: str
    revision: str
    commit: str
    target: str
    options: dict[str, str] = field(default_factory=dict)
    artifacts: dict[str, str] = field(default_factory=dict)
    schema_version: int = 1

    @classmethod
    def from_run(
        cls,
        config: PipelineConfig,
        *,
        commit: str,
        staged: tuple[StagedArtifact, ...],
    ) -> InstallReceipt:
        return cls(
            fingerprint=build_fingerprint(config),
            repo=config.source.repo,
            revision=config.source.revision,
            commit=commit,
            target=config.target.name,
            options=config.target.rendered_options(),
            artifacts={artifact.name: artifact.sha256 for artifact in staged},
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def verify(self, install_dir: str | Path) -> VerificationResult:
        root = Path(install_dir)
        mismatches: list[ReceiptMismatch] = []
        for name, expected in sorted(self.artifacts.items()):
            candidate = root / name
            if not candidate.is_file():
                mismatches.append(
                    ReceiptMismatch(name=name, reason="missing_actual", expected=expected, actual=None)
                )
                continue
            actual = file_sha256(candidate)
            if actual != expected:
                mismatches.append(
                    ReceiptMismatch(name=name, reason="value_mismatch", expected=expected, actual=actual)
                )
        return VerificationResult(ok=not mismatches, mismatches=tuple(mismatches))

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "fingerprint": self.fingerprint,
            "repo": self.repo,
            "revision": self.revision,
            "commit": self.commit,
            "target": self.target,
            "options": dict(sorted(self.options.items())),
            "artifacts": dict(sorted(self.artifacts.items())),
        }


def write_receipt(receipt: InstallReceipt, install_dir: str | Path) -> Path:
    path = Path(install_dir) / RECEIPT_FILENAME
    receipt.to_json(path)
    return path


def read_receipt(install_dir: str | Path) -> InstallReceipt | None:
    """Load the receipt from ``install_dir``; ``None`` when there is none."""
    path = Path(install_dir) / RECEIPT_FILENAME
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            "Install receipt is not valid JSON.",
            hint="Delete the receipt to force a fresh provisioning run.",
            context={"path": str(path)},
        ) from exc
    if not isinstance(payload, dict):
        raise ValidationError("Install receipt has invalid structure.", context={"path": str(path)})
    return InstallReceipt(
        fingerprint=_required_str(payload, "fingerprint", path),
        repo=_required_str(payload, "repo", path),
        revision=_required_str(payload, "revision", path),
        commit=_required_str(payload, "commit", path),
        target=_required_str(payload, "target", path),
        options=_required_str_map(payload, "options", path),
        artifacts=_required_str_map(payload, "artifacts", path),
        schema_version=int(payload.get("schema_version", 1)),
    )


def _required_str(payload: dict[str, Any], key: str, path: Path) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid receipt `{key}` value.", context={"path": str(path)})
    return value


def _required_str_map(payload: dict[str, Any], key: str, path: Path) -> dict[str, str]:
    value = payload.get(key)
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValidationError(f"Invalid receipt `{key}` value.", context={"path": str(path)})
    return dict(value)
