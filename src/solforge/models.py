"""Core typed dataclasses for compiler configuration, requests and results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Literal

BackendKind = Literal["native", "module", "container"]
OutputType = Literal["artifacts", "combined", "all", "minimal"]
Severity = Literal["error", "warning", "info"]

BACKEND_KINDS: tuple[BackendKind, ...] = ("native", "module", "container")
OUTPUT_TYPES: tuple[OutputType, ...] = ("artifacts", "combined", "all", "minimal")

DEFAULT_SOURCE_DIR = "./contracts"
DEFAULT_OUTPUT_DIR = "./build"
DEFAULT_TIMEOUT = 300.0
DEFAULT_DOCKER_IMAGE = "ethereum/solc"
COMBINED_OUTPUT_FILENAME = "Combined-Json.json"

# Always requested from the compiler; user settings may add to it.
DEFAULT_OUTPUT_SELECTION: dict[str, dict[str, list[str]]] = {
    "*": {
        "*": [
            "abi",
            "evm.bytecode",
            "evm.deployedBytecode",
            "evm.methodIdentifiers",
            "metadata",
        ],
        "": ["ast"],
    }
}


@dataclass(frozen=True, slots=True)
class CompilerConfig:
    name: str
    source_dir: Path
    output_dir: Path
    root_dir: Path
    backend: BackendKind = "native"
    compiler_version: str | None = None
    output_type: OutputType = "all"
    compiler_settings: Mapping[str, Any] = field(default_factory=dict)
    allowed_paths: tuple[Path, ...] = ()
    solc_executable: str = "solc"
    docker_image: str = DEFAULT_DOCKER_IMAGE
    timeout: float | None = DEFAULT_TIMEOUT
    human_readable_abi: bool = False

    @property
    def writes_artifacts(self) -> bool:
        return self.output_type in ("artifacts", "all", "minimal")

    @property
    def writes_combined(self) -> bool:
        return self.output_type in ("combined", "all")


@dataclass(frozen=True, slots=True)
class SourceSet:
    """Sorted, unique absolute source paths and their source unit names."""

    root_dir: Path
    paths: tuple[Path, ...] = ()

    def unit_name(self, path: Path) -> str:
        return path.relative_to(self.root_dir).as_posix()

    @property
    def unit_names(self) -> tuple[str, ...]:
        return tuple(self.unit_name(path) for path in self.paths)

    def __len__(self) -> int:
        return len(self.paths)


@dataclass(frozen=True, slots=True)
class Diagnostic:
    severity: str
    message: str
    formatted_message: str | None = None
    type: str | None = None
    file: str | None = None
    start: int | None = None
    end: int | None = None

    @property
    def is_error(self) -> bool:
        return self.severity not in ("warning", "info")

    def render(self) -> str:
        if self.formatted_message:
            return self.formatted_message.rstrip()
        location = ""
        if self.file:
            location = self.file if self.start is None else f"{self.file}:{self.start}"
            location += ": "
        kind = self.type or self.severity.capitalize()
        return f"{location}{kind}: {self.message}"

    def to_dict(self) -> dict[str, object]:
        return {
            "severity": self.severity,
            "message": self.message,
            "formattedMessage": self.formatted_message,
            "type": self.type,
            "file": self.file,
            "start": self.start,
            "end": self.end,
        }


class Outcome(StrEnum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DiagnosticsReport:
    outcome: Outcome
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def errors(self) -> tuple[Diagnostic, ...]:
        return tuple(item for item in self.diagnostics if item.is_error)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(item for item in self.diagnostics if not item.is_error)

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED


@dataclass(frozen=True, slots=True)
class CompileRequest:
    """Everything a backend needs for one invocation."""

    standard_input: Mapping[str, Any]
    sources: SourceSet
    root_dir: Path
    compiler_version: str | None = None
    allowed_paths: tuple[Path, ...] = ()
    timeout: float | None = DEFAULT_TIMEOUT


@dataclass(slots=True)
class CompileResult:
    config: CompilerConfig
    sources: SourceSet
    report: DiagnosticsReport
    artifacts: dict[str, Path] = field(default_factory=dict)
    combined_path: Path | None = None

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return self.report.warnings

    def artifact_for(self, contract_name: str) -> Path | None:
        return self.artifacts.get(contract_name)


__all__ = [
    "BACKEND_KINDS",
    "BackendKind",
    "COMBINED_OUTPUT_FILENAME",
    "CompileRequest",
    "CompileResult",
    "CompilerConfig",
    "DEFAULT_DOCKER_IMAGE",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_OUTPUT_SELECTION",
    "DEFAULT_SOURCE_DIR",
    "DEFAULT_TIMEOUT",
    "Diagnostic",
    "DiagnosticsReport",
    "OUTPUT_TYPES",
    "Outcome",
    "OutputType",
    "Severity",
    "SourceSet",
]
