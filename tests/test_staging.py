import hashlib
from pathlib import Path

import pytest

from libprovision.errors import StagingError
from libprovision.staging import stage_artifacts


def _build_outputs(tmp_path: Path) -> list[Path]:
    build = tmp_path / "build"
    (build / "faiss").mkdir(parents=True)
    (build / "c_api").mkdir(parents=True)
    core = build / "faiss" / "libfaiss.so"
    c_api = build / "c_api" / "libfaiss_c.so"
    core.write_bytes(b"\x7fELF core library")
    c_api.write_bytes(b"\x7fELF c api library")
    return [core, c_api]


def test_staging_copies_every_artifact_byte_for_byte(tmp_path: Path) -> None:
    artifacts = _build_outputs(tmp_path)
    install_dir = tmp_path / "home" / ".faiss_c"

    staged = stage_artifacts(artifacts, install_dir)

    assert [item.name for item in staged] == ["libfaiss.so", "libfaiss_c.so"]
    for source, item in zip(artifacts, staged, strict=True):
        assert item.destination == install_dir / source.name
        assert item.destination.read_bytes() == source.read_bytes()
        assert item.sha256 == hashlib.sha256(source.read_bytes()).hexdigest()


def test_staging_overwrites_previous_versions(tmp_path: Path) -> None:
    artifacts = _build_outputs(tmp_path)
    install_dir = tmp_path / "install"
    install_dir.mkdir()
    (install_dir / "libfaiss.so").write_bytes(b"stale")
    (install_dir / "unrelated.so").write_bytes(b"keep")

    stage_artifacts(artifacts, install_dir)

    assert (install_dir / "libfaiss.so").read_bytes() == b"\x7fELF core library"
    assert (install_dir / "unrelated.so").read_bytes() == b"keep"
    assert sorted(path.name for path in install_dir.iterdir()) == [
        "libfaiss.so",
        "libfaiss_c.so",
        "unrelated.so",
    ]


def test_staging_is_idempotent_for_existing_directory(tmp_path: Path) -> None:
    artifacts = _build_outputs(tmp_path)
    install_dir = tmp_path / "install"

    first = stage_artifacts(artifacts, install_dir)
    second = stage_artifacts(artifacts, install_dir)

    assert [item.sha256 for item in first] == [item.sha256 for item in second]


def test_missing_artifact_leaves_install_dir_untouched(tmp_path: Path) -> None:
    artifacts = _build_outputs(tmp_path)
    artifacts[1].unlink()
    install_dir = tmp_path / "install"
    install_dir.mkdir()
    (install_dir / "libfaiss.so").write_bytes(b"previous")

    with pytest.raises(StagingError) as excinfo:
        stage_artifacts(artifacts, install_dir)

    assert "libfaiss_c.so" in excinfo.value.context["missing"]
    assert (install_dir / "libfaiss.so").read_bytes() == b"previous"
    assert sorted(path.name for path in install_dir.iterdir()) == ["libfaiss.so"]


def test_unwritable_destination_is_a_staging_error(tmp_path: Path) -> None:
    artifacts = _build_outputs(tmp_path)
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory\n", encoding="utf-8")

    with pytest.raises(StagingError):
        stage_artifacts(artifacts, blocker / "install")


def test_unreadable_staged_copy_is_a_staging_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    artifacts = _build_outputs(tmp_path)
    install_dir = tmp_path / "home" / ".faiss_c"

    def unreadable(path: Path) -> str:
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("libprovision.staging.file_sha256", unreadable)

    with pytest.raises(StagingError) as excinfo:
        stage_artifacts(artifacts, install_dir)

    assert excinfo.value.context["destination"] == str(install_dir / "libfaiss.so")
    assert isinstance(excinfo.value.__cause__, PermissionError)
