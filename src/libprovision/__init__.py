"""Public package entrypoint for the native library provisioning pipeline."""

from .environment import append_search_path, export_line, register_search_path, remove_working_tree
from .errors import (
    AcquisitionError,
    CleanupError,
    CompilationError,
    ConfigurationError,
    ErrorCode,
    PolicyError,
    ProvisionError,
    ProvisionWarning,
    RegistrationError,
    StagingError,
    ValidationError,
)
from .models import (
    BuildTarget,
    BuildType,
    PipelineConfig,
    PipelineState,
    ProvisionResult,
    SourceReference,
    StagedArtifact,
)
from .pipeline import Pipeline, provision
from .policy import Policy

__all__ = [
    "AcquisitionError",
    "BuildTarget",
    "BuildType",
    "CleanupError",
    "CompilationError",
    "ConfigurationError",
    "ErrorCode",
    "Pipeline",
    "PipelineConfig",
    "PipelineState",
    "Policy",
    "PolicyError",
    "ProvisionError",
    "ProvisionResult",
    "ProvisionWarning",
    "RegistrationError",
    "SourceReference",
    "StagedArtifact",
    "StagingError",
    "ValidationError",
    "append_search_path",
    "export_line",
    "provision",
    "register_search_path",
    "remove_working_tree",
]
