"""Policy configuration and enforcement helpers."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Literal

from libprovision.errors import PolicyError, ValidationError

MutableRefPolicy = Literal["warn", "error", "allow"]
NetworkMode = Literal["online", "offline"]

MUTABLE_REF_POLICIES: tuple[MutableRefPolicy, ...] = ("warn", "error", "allow")
NETWORK_MODES: tuple[NetworkMode, ...] = ("online", "offline")


class MutableRefWarning(UserWarning):
    """Warning raised when fetching a mutable git ref."""


@dataclass(frozen=True, slots=True)
class Policy:
    mutable_ref_policy: MutableRefPolicy = "warn"
    network_mode: NetworkMode = "online"

    def __post_init__(self) -> None:
        if self.mutable_ref_policy not in MUTABLE_REF_POLICIES:
            raise ValidationError(
                f"Unsupported mutable_ref_policy value: {self.mutable_ref_policy}",
            )
        if self.network_mode not in NETWORK_MODES:
            raise ValidationError(f"Unsupported network_mode value: {self.network_mode}")


def ensure_network_allowed(*, policy: Policy, operation: str) -> None:
    if policy.network_mode == "offline":
        raise PolicyError(
            "Network operations are disabled by policy.",
            hint="Switch policy.network_mode to 'online' for this operation.",
            context={"operation": operation},
        )


def enforce_mutable_ref_policy(*, revision: str, policy: Policy, mutable_ref: bool) -> None:
    if not mutable_ref:
        return
    if policy.mutable_ref_policy == "allow":
        return
    if policy.mutable_ref_policy == "warn":
        warnings.warn(
            f"Mutable git ref `{revision}` was requested; result is not inherently reproducible.",
            MutableRefWarning,
            stacklevel=3,
        )
        return
    raise PolicyError(
        "Mutable git refs are not allowed by policy.",
        hint="Use a full 40-char commit SHA or relax mutable_ref_policy.",
        context={"operation": "fetch_source", "revision": revision},
    )
