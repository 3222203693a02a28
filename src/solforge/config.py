"""Resolution of project configuration into a :class:`CompilerConfig`.

Loading and merging configuration from several places is left to callers;
this module validates one already-merged mapping (or one JSON file) and
fills in defaults.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, cast

from solforge.errors import ConfigResolutionError
from solforge.models import (
    BACKEND_KINDS,
    DEFAULT_DOCKER_IMAGE,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SOURCE_DIR,
    DEFAULT_TIMEOUT,
    OUTPUT_TYPES,
    BackendKind,
    CompilerConfig,
    OutputType,
)

# Names used by older project configs.
BACKEND_ALIASES: dict[str, BackendKind] = {
    "native": "native",
    "module": "module",
    "solcjs": "module",
    "solcx": "module",
    "container": "container",
    "docker": "container",
    "dockerized-solc": "container",
}
OUTPUT_TYPE_ALIASES: dict[str, OutputType] = {
    "multiple": "artifacts",
}


def load_config(path: str | Path) -> CompilerConfig:
    """Read a JSON config file.

    Relative directories resolve against ``rootDirectory`` when set, otherwise
    against the current working directory, not the file's location.
    """
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigResolutionError(
            "Config file does not exist.",
            context={"path": str(config_path)},
        ) from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigResolutionError(
            "Invalid config JSON.",
            hint=str(exc),
            context={"path": str(config_path)},
        ) from exc
    if not isinstance(payload, dict):
        raise ConfigResolutionError(
            "Config file must contain a JSON object.",
            context={"path": str(config_path)},
        )
    return resolve_config(payload)


def resolve_config(
    payload: Mapping[str, Any],
    *,
    base_dir: str | Path | None = None,
) -> CompilerConfig:
    """Validate a config mapping and return an immutable :class:`CompilerConfig`.

    Relative directories are resolved against ``rootDirectory`` when given,
    otherwise against *base_dir* (default: the current directory).
    """
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    root_raw = _optional_str(payload, "rootDirectory")
    root_dir = _resolve_dir(base, root_raw) if root_raw else base.resolve()

    backend = _backend_kind(payload)
    output_type = _output_type(payload)
    compiler_version = _optional_str(payload, "compilerVersion")
    if backend == "container" and not compiler_version:
        raise ConfigResolutionError(
            "The container backend requires `compilerVersion`.",
            hint="Pin a version such as \"0.8.24\" so the matching image can be selected.",
            context={"field": "compilerVersion"},
        )

    source_raw = _optional_str(payload, "sourceDirectory") or DEFAULT_SOURCE_DIR
    output_raw = _optional_str(payload, "outputDirectory") or DEFAULT_OUTPUT_DIR
    source_dir = _resolve_dir(root_dir, source_raw)
    output_dir = _resolve_dir(root_dir, output_raw)
    allowed_paths = tuple(
        _resolve_dir(root_dir, item) for item in _optional_str_list(payload, "compilerAllowedPaths")
    )

    return CompilerConfig(
        name=_optional_str(payload, "name") or root_dir.name,
        source_dir=source_dir,
        output_dir=output_dir,
        root_dir=root_dir,
        backend=backend,
        compiler_version=compiler_version,
        output_type=output_type,
        compiler_settings=_optional_dict(payload, "compilerOptions"),
        allowed_paths=allowed_paths,
        solc_executable=_optional_str(payload, "solcExecutable") or "solc",
        docker_image=_optional_str(payload, "dockerImage") or DEFAULT_DOCKER_IMAGE,
        timeout=_timeout(payload),
        human_readable_abi=_optional_bool(payload, "outputHumanReadableAbi"),
    )


def _backend_kind(payload: Mapping[str, Any]) -> BackendKind:
    raw = payload.get("backendKind", payload.get("compilerType", "native"))
    if not isinstance(raw, str) or raw not in BACKEND_ALIASES:
        raise ConfigResolutionError(
            "Unsupported compiler backend.",
            hint=f"Use one of: {', '.join(BACKEND_KINDS)}.",
            context={"field": "backendKind", "value": str(raw)},
        )
    return BACKEND_ALIASES[raw]


def _output_type(payload: Mapping[str, Any]) -> OutputType:
    raw = payload.get("outputType", "all")
    if isinstance(raw, str) and raw in OUTPUT_TYPE_ALIASES:
        return OUTPUT_TYPE_ALIASES[raw]
    if not isinstance(raw, str) or raw not in OUTPUT_TYPES:
        raise ConfigResolutionError(
            "Unsupported output type.",
            hint=f"Use one of: {', '.join(OUTPUT_TYPES)}.",
            context={"field": "outputType", "value": str(raw)},
        )
    return cast(OutputType, raw)


def _timeout(payload: Mapping[str, Any]) -> float | None:
    if "timeout" not in payload:
        return DEFAULT_TIMEOUT
    value = payload["timeout"]
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigResolutionError(
            "Invalid config `timeout` value.",
            hint="Use a positive number of seconds, or null for no limit.",
            context={"field": "timeout", "value": str(value)},
        )
    return float(value)


def _resolve_dir(base: Path, value: str) -> Path:
    path = Path(value)
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigResolutionError(f"Invalid config `{key}` value.", context={"field": key})
    return value


def _optional_bool(payload: Mapping[str, Any], key: str) -> bool:
    value = payload.get(key, False)
    if not isinstance(value, bool):
        raise ConfigResolutionError(f"Invalid config `{key}` value.", context={"field": key})
    return value


def _optional_dict(payload: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ConfigResolutionError(f"Invalid config `{key}` value.", context={"field": key})
    return dict(value)


def _optional_str_list(payload: Mapping[str, Any], key: str) -> list[str]:
    value = payload.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
        raise ConfigResolutionError(f"Invalid config `{key}` value.", context={"field": key})
    return list(value)
