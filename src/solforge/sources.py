"""Source discovery and compiler request assembly."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from solforge.errors import ConfigResolutionError
from solforge.models import DEFAULT_OUTPUT_SELECTION, CompilerConfig, SourceSet

SOURCE_SUFFIX = ".sol"


def discover_sources(source_dir: Path, *, root_dir: Path) -> SourceSet:
    """Find every ``.sol`` file under *source_dir*, sorted by path."""
    if not source_dir.is_dir():
        raise ConfigResolutionError(
            "Source directory does not exist.",
            hint="Set `sourceDirectory` to the folder holding your contracts.",
            context={"path": str(source_dir)},
        )
    root = root_dir.resolve()
    found = {path.resolve() for path in source_dir.rglob(f"*{SOURCE_SUFFIX}") if path.is_file()}
    paths = sorted(found)
    for path in paths:
        if not path.is_relative_to(root):
            raise ConfigResolutionError(
                "Source file lies outside the project root.",
                hint="Source unit names are relative to the root; move the file or the root.",
                context={"path": str(path), "root": str(root)},
            )
    return SourceSet(root_dir=root, paths=tuple(paths))


def build_standard_input(config: CompilerConfig, sources: SourceSet) -> dict[str, Any]:
    """Return the standard-JSON compiler request for *sources*."""
    settings = copy.deepcopy(dict(config.compiler_settings))
    settings["outputSelection"] = _merge_output_selection(settings.get("outputSelection"))
    return {
        "language": "Solidity",
        "sources": {
            sources.unit_name(path): {"content": path.read_text(encoding="utf-8")}
            for path in sources.paths
        },
        "settings": settings,
    }


def _merge_output_selection(user: Any) -> dict[str, dict[str, list[str]]]:
    merged = copy.deepcopy(DEFAULT_OUTPUT_SELECTION)
    if user is None:
        return merged
    if not isinstance(user, Mapping):
        raise ConfigResolutionError(
            "Invalid `outputSelection` compiler option.",
            context={"field": "compilerOptions.outputSelection"},
        )
    for file_key, contracts in user.items():
        if not isinstance(contracts, Mapping):
            raise ConfigResolutionError(
                "Invalid `outputSelection` compiler option.",
                context={"field": f"compilerOptions.outputSelection.{file_key}"},
            )
        target = merged.setdefault(str(file_key), {})
        for contract_key, outputs in contracts.items():
            selected = target.setdefault(str(contract_key), [])
            for output in outputs:
                if output not in selected:
                    selected.append(output)
    return merged
