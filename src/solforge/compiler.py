"""Compilation orchestrator: config → backend → diagnostics → artifacts on disk."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from solforge.abi import human_readable_abi
from solforge.backends import CompilerBackend, get_backend
from solforge.config import load_config, resolve_config
from solforge.diagnostics import classify
from solforge.errors import CompilationDiagnosticsError, ConfigResolutionError
from solforge.models import (
    CompileRequest,
    CompileResult,
    CompilerConfig,
    DiagnosticsReport,
    SourceSet,
)
from solforge.normalize import iter_contracts, normalize_contract
from solforge.observability import StructuredLogger
from solforge.output import (
    artifact_filename,
    build_combined_output,
    output_dir_lock,
    staged_output_dir,
    write_artifact,
    write_combined_output,
)
from solforge.sources import build_standard_input, discover_sources

ConfigInput = CompilerConfig | Mapping[str, Any] | str | Path


def compile_project(
    config: ConfigInput,
    *,
    backend: CompilerBackend | None = None,
    logger: StructuredLogger | None = None,
) -> CompileResult:
    """Compile every source under the configured directory and write artifacts.

    *config* may be a resolved :class:`CompilerConfig`, a config mapping or a
    path to a JSON config file. Nothing is written unless the whole run
    succeeds; on success the output directory is replaced in one step.

    Two runs must not target the same output directory at once; a lock file
    next to it rejects the second run with :class:`OutputLockError`.
    """
    resolved = _resolve(config)
    log = logger if logger is not None else StructuredLogger()
    log.log(
        operation="compile_start",
        backend=resolved.backend,
        message="Starting compilation.",
        extra={"name": resolved.name, "output_dir": str(resolved.output_dir)},
    )

    sources = discover_sources(resolved.source_dir, root_dir=resolved.root_dir)
    if not sources.paths:
        raise ConfigResolutionError(
            "No Solidity sources found.",
            hint="Check `sourceDirectory` points at a folder containing .sol files.",
            context={"path": str(resolved.source_dir)},
        )

    raw_output = _invoke_backend(
        backend if backend is not None else get_backend(resolved),
        _request_for(resolved, sources),
        log,
    )

    report = classify(raw_output)
    _log_diagnostics(report, log, backend=resolved.backend)
    if report.failed:
        log.log(
            operation="compile_failed",
            backend=resolved.backend,
            level="error",
            message="Compilation failed with blocking errors.",
            extra={"errors": len(report.errors)},
        )
        raise CompilationDiagnosticsError(
            "Compilation failed.",
            diagnostics=report.diagnostics,
            hint="Fix the reported errors; no artifacts were written.",
            context={"name": resolved.name, "errors": str(len(report.errors))},
        )

    artifacts = _normalize_all(raw_output, resolved, log)
    result = CompileResult(config=resolved, sources=sources, report=report)

    with output_dir_lock(resolved.output_dir):
        with staged_output_dir(resolved.output_dir) as staging:
            if resolved.writes_artifacts:
                for artifact in _by_filename(artifacts, log).values():
                    write_artifact(artifact, staging)
                    result.artifacts[artifact["contractName"]] = (
                        resolved.output_dir / artifact_filename(artifact["contractName"])
                    )
            if resolved.writes_combined:
                combined = build_combined_output(raw_output, artifacts, sources)
                combined_path = write_combined_output(combined, staging)
                result.combined_path = resolved.output_dir / combined_path.name

    for name, path in sorted(result.artifacts.items()):
        log.log(
            operation="artifact_written",
            backend=resolved.backend,
            contract=name,
            message="Wrote contract artifact.",
            extra={"path": str(path)},
        )
    log.log(
        operation="compile_complete",
        backend=resolved.backend,
        message="Compilation finished.",
        extra={
            "outcome": report.outcome.value,
            "artifacts": len(result.artifacts),
            "warnings": len(report.warnings),
        },
    )
    return result


def _resolve(config: ConfigInput) -> CompilerConfig:
    if isinstance(config, CompilerConfig):
        return config
    if isinstance(config, (str, Path)):
        return load_config(config)
    return resolve_config(config)


def _request_for(config: CompilerConfig, sources: SourceSet) -> CompileRequest:
    return CompileRequest(
        standard_input=build_standard_input(config, sources),
        sources=sources,
        root_dir=config.root_dir,
        compiler_version=config.compiler_version,
        allowed_paths=config.allowed_paths,
        timeout=config.timeout,
    )


def _invoke_backend(
    backend: CompilerBackend,
    request: CompileRequest,
    log: StructuredLogger,
) -> dict[str, Any]:
    log.log(
        operation="backend_invoke",
        backend=backend.name,
        message="Invoking compiler backend.",
        extra={"sources": len(request.sources), "version": request.compiler_version},
    )
    try:
        backend.prepare(request)
        return backend.compile(request)
    finally:
        backend.cleanup(request)


def _log_diagnostics(report: DiagnosticsReport, log: StructuredLogger, *, backend: str) -> None:
    for diagnostic in report.diagnostics:
        log.log(
            operation="diagnostic",
            backend=backend,
            source=diagnostic.file,
            level="error" if diagnostic.is_error else "warning",
            message=diagnostic.render(),
        )


def _normalize_all(
    raw_output: Mapping[str, Any],
    config: CompilerConfig,
    log: StructuredLogger,
) -> dict[str, dict[str, Any]]:
    """Return artifacts keyed by ``"<source>:<Name>"`` in sorted order."""
    minimal = config.output_type == "minimal"
    artifacts: dict[str, dict[str, Any]] = {}
    for source_name, contract_name, fragment in iter_contracts(raw_output):
        artifact = normalize_contract(contract_name, fragment, source_name, minimal=minimal)
        if config.human_readable_abi:
            artifact["humanReadableAbi"] = human_readable_abi(artifact["abi"])
        artifacts[f"{source_name}:{contract_name}"] = artifact
        log.log(
            operation="normalize",
            backend=config.backend,
            source=source_name,
            contract=contract_name,
            message="Normalized contract output.",
        )
    return artifacts


def _by_filename(
    artifacts: Mapping[str, dict[str, Any]],
    log: StructuredLogger,
) -> dict[str, dict[str, Any]]:
    """Collapse artifacts onto their file names; later sources win on a clash."""
    by_name: dict[str, dict[str, Any]] = {}
    for key, artifact in artifacts.items():
        filename = artifact_filename(artifact["contractName"])
        if filename in by_name:
            log.log(
                operation="duplicate_contract",
                contract=artifact["contractName"],
                source=key.rpartition(":")[0],
                level="warning",
                message="Contract name defined in several sources; keeping the last one.",
            )
        by_name[filename] = artifact
    return by_name
