"""JSON configuration files for the provisioning pipeline."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from libprovision.errors import ValidationError
from libprovision.models import (
    DEFAULT_SEARCH_PATH_VARIABLE,
    BuildTarget,
    OptionValue,
    PipelineConfig,
    SourceReference,
)


def serialize_config(config: PipelineConfig) -> str:
    payload = {
        "source": {
            "repo": config.source.repo,
            "revision": config.source.revision,
            "depth": config.source.depth,
        },
        "target": {
            "name": config.target.name,
            "options": dict(config.target.options),
        },
        "artifacts": list(config.artifacts),
        "working_tree": str(config.working_tree),
        "install_dir": str(config.install_dir),
        "search_path_variable": config.search_path_variable,
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_config(raw: str) -> PipelineConfig:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid configuration JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise ValidationError("Invalid configuration payload type.")

    source = _required_dict(payload, "source")
    target = _required_dict(payload, "target")
    return PipelineConfig(
        source=SourceReference(
            repo=_required_str(source, "repo"),
            revision=_required_str(source, "revision"),
            depth=_optional_int(source, "depth", default=1),
        ),
        target=BuildTarget(
            name=_required_str(target, "name"),
            options=_required_options(target, "options"),
        ),
        artifacts=tuple(_required_str_list(payload, "artifacts")),
        working_tree=Path(_required_str(payload, "working_tree")).expanduser(),
        install_dir=Path(_required_str(payload, "install_dir")).expanduser(),
        search_path_variable=payload.get("search_path_variable") or DEFAULT_SEARCH_PATH_VARIABLE,
    )


def load_config(path: str | Path) -> PipelineConfig:
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ValidationError(
            "Configuration file does not exist.",
            hint="Generate one with `libprovision show-config > provision.json`.",
            context={"path": str(config_path)},
        ) from exc
    return parse_config(raw)


def dump_config(config: PipelineConfig, path: str | Path) -> Path:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(serialize_config(config), encoding="utf-8")
    return config_path


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"Invalid configuration `{key}` value.")
    return value


def _optional_int(payload: dict[str, Any], key: str, *, default: int) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Invalid configuration `{key}` value.")
    return value


def _required_dict(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    if not isinstance(value, dict):
        raise ValidationError(f"Invalid configuration `{key}` value.")
    return value


def _required_str_list(payload: dict[str, Any], key: str) -> list[str]:
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationError(f"Invalid configuration `{key}` value.")
    return list(value)


def _required_options(payload: dict[str, Any], key: str) -> dict[str, OptionValue]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValidationError(f"Invalid configuration `{key}` value.")
    parsed: dict[str, OptionValue] = {}
    for name, option in value.items():
        if not isinstance(option, (bool, str)):
            raise ValidationError(
                "Build option values must be booleans or strings.",
                context={"option": str(name)},
            )
        parsed[str(name)] = option
    return parsed
