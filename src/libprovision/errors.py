"""Typed provisioning error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

GENERIC_FAILURE_EXIT_CODE = 1


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    VALIDATION = "E_VALIDATION"
    POLICY = "E_POLICY"
    ACQUISITION = "E_ACQUISITION"
    CONFIGURATION = "E_CONFIGURATION"
    COMPILATION = "E_COMPILATION"
    STAGING = "E_STAGING"
    REGISTRATION = "E_REGISTRATION"
    CLEANUP = "E_CLEANUP"


class ProvisionError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]
    failed_stage: str | None
    state: str | None

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})
        self.failed_stage = None
        self.state = None

    @property
    def exit_code(self) -> int:
        return GENERIC_FAILURE_EXIT_CODE

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        if self.failed_stage is not None:
            payload["failed_stage"] = self.failed_stage
        if self.state is not None:
            payload["state"] = self.state
        return payload


class ToolError(ProvisionError):
    """Error raised when an external tool (git, cmake) exits unsuccessfully.

    The captured output is kept verbatim so callers can show the tool's own
    diagnostics without reinterpreting them.
    """

    returncode: int | None
    stdout: str
    stderr: str

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def exit_code(self) -> int:
        if self.returncode is not None and self.returncode > 0:
            return self.returncode
        return GENERIC_FAILURE_EXIT_CODE

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        if self.returncode is not None:
            payload["returncode"] = self.returncode
        return payload


class ValidationError(ProvisionError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class PolicyError(ProvisionError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


class AcquisitionError(ToolError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.ACQUISITION,
            hint=hint,
            context=context,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )


class ConfigurationError(ToolError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.CONFIGURATION,
            hint=hint,
            context=context,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )


class CompilationError(ToolError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.COMPILATION,
            hint=hint,
            context=context,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )


class StagingError(ProvisionError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.STAGING, hint=hint, context=context)


class RegistrationError(ProvisionError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REGISTRATION, hint=hint, context=context)


class CleanupError(ProvisionError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CLEANUP, hint=hint, context=context)


class ProvisionWarning(UserWarning):
    """Warning emitted for non-fatal registration or cleanup failures."""


__all__ = [
    "AcquisitionError",
    "CleanupError",
    "CompilationError",
    "ConfigurationError",
    "ErrorCode",
    "GENERIC_FAILURE_EXIT_CODE",
    "PolicyError",
    "ProvisionError",
    "ProvisionWarning",
    "RegistrationError",
    "StagingError",
    "ToolError",
    "ValidationError",
]
