"""Deterministic, atomic persistence of artifacts and combined output."""

from __future__ import annotations

import json
import os
import shutil
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from solforge.errors import OutputLockError
from solforge.models import COMBINED_OUTPUT_FILENAME, SourceSet
from solforge.normalize import extract_deployed_bytecode, iter_contracts


def serialize_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def write_json_atomic(payload: Any, path: str | Path) -> Path:
    """Write *payload* so readers see either the old file or the complete new one."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
    try:
        temp_path.write_text(serialize_json(payload), encoding="utf-8")
        os.replace(temp_path, target)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    return target


def artifact_filename(contract_name: str) -> str:
    return f"{contract_name}.json"


def write_artifact(artifact: Mapping[str, Any], directory: str | Path) -> Path:
    path = Path(directory) / artifact_filename(artifact["contractName"])
    return write_json_atomic(artifact, path)


def build_combined_output(
    raw_output: Mapping[str, Any],
    artifacts: Mapping[str, Mapping[str, Any]],
    sources: SourceSet,
) -> dict[str, Any]:
    """Aggregate every contract and source into one document.

    *artifacts* is keyed by ``"<source>:<Name>"``.
    """
    contracts: dict[str, Any] = {}
    for source_name, contract_name, fragment in iter_contracts(raw_output):
        key = f"{source_name}:{contract_name}"
        artifact = artifacts.get(key)
        if artifact is None:
            continue
        entry: dict[str, Any] = {
            "abi": artifact["abi"],
            "bin": artifact["bytecode"],
            "bin-runtime": extract_deployed_bytecode(fragment) or "",
        }
        if "metadata" in artifact:
            entry["metadata"] = artifact["metadata"]
        contracts[key] = entry

    raw_sources = raw_output.get("sources")
    source_list = _source_list(raw_sources, sources)
    combined_sources: dict[str, Any] = {}
    for name in source_list:
        source = raw_sources.get(name) if isinstance(raw_sources, Mapping) else None
        ast = source.get("ast", source.get("AST")) if isinstance(source, Mapping) else None
        combined_sources[name] = {"AST": ast}

    return {
        "contracts": contracts,
        "sources": combined_sources,
        "sourceList": source_list,
    }


def write_combined_output(combined: Mapping[str, Any], directory: str | Path) -> Path:
    return write_json_atomic(combined, Path(directory) / COMBINED_OUTPUT_FILENAME)


@contextmanager
def staged_output_dir(output_dir: Path) -> Iterator[Path]:
    """Yield an empty staging directory that replaces *output_dir* on success.

    On any exception the staging directory is removed and *output_dir* is left
    exactly as it was.
    """
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = output_dir.with_name(f".{output_dir.name}.staging-{uuid.uuid4().hex[:12]}")
    staging.mkdir()
    try:
        yield staging
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    _swap_into_place(staging, output_dir)


@contextmanager
def output_dir_lock(output_dir: Path) -> Iterator[Path]:
    """Hold an exclusive lock file next to *output_dir* for the duration of a run."""
    lock_path = output_dir.with_name(f"{output_dir.name}.lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError as exc:
        raise OutputLockError(
            "Another compilation is writing to this output directory.",
            hint="Wait for it to finish, or delete the lock file if no run is active.",
            context={"path": str(lock_path)},
        ) from exc
    try:
        os.write(fd, f"{os.getpid()}\n".encode())
    finally:
        os.close(fd)
    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)


def _swap_into_place(staging: Path, output_dir: Path) -> None:
    backup: Path | None = None
    if output_dir.exists():
        backup = output_dir.with_name(f".{output_dir.name}.previous-{uuid.uuid4().hex[:12]}")
        os.replace(output_dir, backup)
    try:
        os.replace(staging, output_dir)
    except BaseException:
        if backup is not None:
            os.replace(backup, output_dir)
        shutil.rmtree(staging, ignore_errors=True)
        raise
    if backup is not None:
        if backup.is_dir():
            shutil.rmtree(backup)
        else:
            backup.unlink()


def _source_list(raw_sources: Any, sources: SourceSet) -> list[str]:
    if isinstance(raw_sources, Mapping) and raw_sources:
        def order(name: str) -> tuple[int, str]:
            entry = raw_sources.get(name)
            source_id = entry.get("id") if isinstance(entry, Mapping) else None
            return (source_id if isinstance(source_id, int) else len(raw_sources), name)

        return sorted((str(name) for name in raw_sources), key=order)
    return list(sources.unit_names)
