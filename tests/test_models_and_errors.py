from pathlib import Path

import pytest

from libprovision.errors import (
    AcquisitionError,
    CleanupError,
    CompilationError,
    ConfigurationError,
    ErrorCode,
    PolicyError,
    RegistrationError,
    StagingError,
    ValidationError,
)
from libprovision.models import (
    DEFAULT_ARTIFACTS,
    BuildTarget,
    BuildType,
    PipelineConfig,
    SourceReference,
    install_dir_for,
)


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        ValidationError("bad input"),
        PolicyError("offline"),
        AcquisitionError("clone failed"),
        ConfigurationError("bad option"),
        CompilationError("toolchain error"),
        StagingError("missing artifact"),
        RegistrationError("env"),
        CleanupError("busy"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.VALIDATION.value,
        ErrorCode.POLICY.value,
        ErrorCode.ACQUISITION.value,
        ErrorCode.CONFIGURATION.value,
        ErrorCode.COMPILATION.value,
        ErrorCode.STAGING.value,
        ErrorCode.REGISTRATION.value,
        ErrorCode.CLEANUP.value,
    ]


def test_tool_errors_propagate_the_tool_exit_code() -> None:
    assert CompilationError("boom", returncode=2).exit_code == 2
    assert ConfigurationError("boom").exit_code == 1
    assert AcquisitionError("boom", returncode=-9).exit_code == 1
    assert StagingError("boom").exit_code == 1


def test_error_to_dict_includes_hint_and_context() -> None:
    error = CompilationError(
        "compile failed",
        hint="read the log",
        context={"target": "faiss_c"},
        returncode=2,
        stderr="undefined reference",
    )
    payload = error.to_dict()
    assert payload["code"] == "E_COMPILATION"
    assert payload["message"] == "compile failed"
    assert payload["hint"] == "read the log"
    assert payload["context"] == {"target": "faiss_c"}
    assert payload["returncode"] == 2
    assert "Hint: read the log" in str(error)


@pytest.mark.parametrize("depth", [0, -1, True])
def test_source_reference_rejects_invalid_depth(depth: int) -> None:
    with pytest.raises(ValidationError):
        SourceReference(repo="https://example.com/x.git", revision="main", depth=depth)


def test_source_reference_requires_repo_and_revision() -> None:
    with pytest.raises(ValidationError):
        SourceReference(repo="", revision="main")
    with pytest.raises(ValidationError):
        SourceReference(repo="https://example.com/x.git", revision="")


def test_source_reference_detects_commit_ids() -> None:
    assert SourceReference(repo="r", revision="a" * 40).is_commit
    assert not SourceReference(repo="r", revision="c_api_head").is_commit


def test_build_target_renders_booleans_as_cmake_switches() -> None:
    target = BuildTarget(
        name="faiss_c",
        options={"BUILD_SHARED_LIBS": True, "BUILD_TESTING": False, "CMAKE_BUILD_TYPE": "Release"},
    )
    assert target.rendered_options() == {
        "BUILD_SHARED_LIBS": "ON",
        "BUILD_TESTING": "OFF",
        "CMAKE_BUILD_TYPE": "Release",
    }


def test_build_target_rejects_non_scalar_options() -> None:
    with pytest.raises(ValidationError):
        BuildTarget(name="faiss_c", options={"JOBS": 4})  # type: ignore[dict-item]


@pytest.mark.parametrize(
    "artifacts",
    [(), ("/abs/libfaiss.so",), ("../libfaiss.so",), ("a/libX.so", "b/libX.so")],
)
def test_pipeline_config_validates_artifact_set(tmp_path: Path, artifacts: tuple[str, ...]) -> None:
    with pytest.raises(ValidationError):
        PipelineConfig(
            source=SourceReference(repo="r", revision="main"),
            target=BuildTarget(name="libX"),
            artifacts=artifacts,
            working_tree=tmp_path / "work",
            install_dir=tmp_path / "install",
        )


def test_default_config_provisions_faiss_c_api(tmp_path: Path) -> None:
    config = PipelineConfig.default(home=tmp_path)

    assert config.source.repo == "https://github.com/Enet4/faiss.git"
    assert config.source.revision == "c_api_head"
    assert config.source.depth == 1
    assert config.target.name == "faiss_c"
    assert config.target.rendered_options() == {
        "FAISS_ENABLE_C_API": "ON",
        "BUILD_SHARED_LIBS": "ON",
        "FAISS_ENABLE_PYTHON": "OFF",
        "BUILD_TESTING": "OFF",
        "CMAKE_BUILD_TYPE": BuildType.RELEASE.value,
    }
    assert config.artifacts == DEFAULT_ARTIFACTS
    assert config.artifact_names == ("libfaiss.so", "libfaiss_c.so")
    assert config.working_tree == Path("faiss")
    assert config.install_dir == tmp_path / ".faiss_c"
    assert config.search_path_variable == "LD_LIBRARY_PATH"


def test_install_dir_follows_home_relative_convention(tmp_path: Path) -> None:
    assert install_dir_for("X", home=tmp_path) == tmp_path / ".X_c"
