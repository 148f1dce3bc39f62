from pathlib import Path

import pytest

from libprovision.config import dump_config, load_config, parse_config, serialize_config
from libprovision.errors import ValidationError
from libprovision.models import PipelineConfig


def test_config_round_trips_through_json(tmp_path: Path) -> None:
    config = PipelineConfig.default(home=tmp_path, working_tree=tmp_path / "faiss")

    path = dump_config(config, tmp_path / "provision.json")

    assert load_config(path) == config
    assert parse_config(serialize_config(config)) == config


def test_parse_config_defaults_depth_and_search_path_variable() -> None:
    config = parse_config(
        """
        {
          "source": {"repo": "https://example.com/x.git", "revision": "main-pinned"},
          "target": {"name": "libX", "options": {"shared": true, "tests": false}},
          "artifacts": ["libX.so", "libX_c.so"],
          "working_tree": "X",
          "install_dir": "/tmp/.X_c"
        }
        """
    )

    assert config.source.depth == 1
    assert config.search_path_variable == "LD_LIBRARY_PATH"
    assert config.target.rendered_options() == {"shared": "ON", "tests": "OFF"}


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[]",
        '{"source": {"repo": "r"}, "target": {"name": "t"}, "artifacts": ["a"], '
        '"working_tree": "w", "install_dir": "i"}',
        '{"source": {"repo": "r", "revision": "v"}, "target": {"name": "t", "options": {"x": 1}}, '
        '"artifacts": ["a"], "working_tree": "w", "install_dir": "i"}',
    ],
)
def test_parse_config_rejects_invalid_payloads(raw: str) -> None:
    with pytest.raises(ValidationError):
        parse_config(raw)


def test_load_config_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError) as excinfo:
        load_config(tmp_path / "missing.json")
    assert excinfo.value.hint is not None
