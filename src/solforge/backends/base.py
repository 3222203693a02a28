"""Protocol for compiler backends and helpers shared by the implementations."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from solforge.errors import BackendInvocationError, BackendTimeout
from solforge.models import CompileRequest


@dataclass(frozen=True, slots=True)
class MountSpec:
    source: Path
    target: str
    read_only: bool = True


class CompilerBackend(Protocol):
    name: str

    def prepare(self, request: CompileRequest) -> None:
        """Verify prerequisites and acquire backend runtime resources."""

    def compile(self, request: CompileRequest) -> dict[str, Any]:
        """Run the compiler and return its raw output document."""

    def cleanup(self, request: CompileRequest) -> None:
        """Release backend runtime resources."""


def encode_request(request: CompileRequest) -> str:
    return json.dumps(request.standard_input, sort_keys=True)


def decode_output(stdout: str, *, backend: str) -> dict[str, Any]:
    """Parse a standard-JSON response; anything but a JSON object is an error."""
    try:
        payload = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise BackendInvocationError(
            "Compiler returned malformed output.",
            hint=str(exc),
            context={
                "backend": backend,
                "operation": "decode",
                "stdout": stdout[:2000],
            },
        ) from exc
    if not isinstance(payload, dict):
        raise BackendInvocationError(
            "Compiler output is not a JSON object.",
            context={"backend": backend, "operation": "decode"},
        )
    return payload


def run_compiler(
    cmd: Sequence[str],
    *,
    request: CompileRequest,
    backend: str,
    cwd: Path | None = None,
) -> dict[str, Any]:
    """Pipe the request through *cmd* and decode the full response.

    ``subprocess.run`` kills the child when the timeout expires, so no process
    outlives this call.
    """
    try:
        result = subprocess.run(
            list(cmd),
            input=encode_request(request),
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=request.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise BackendTimeout(
            "Compiler did not respond in time.",
            hint="Raise `timeout` in the config or check the compiler is not stuck.",
            context={
                "backend": backend,
                "operation": "compile",
                "timeout": str(request.timeout),
                "command": " ".join(cmd),
            },
        ) from exc
    except OSError as exc:
        raise BackendInvocationError(
            "Failed to start compiler process.",
            hint=str(exc),
            context={"backend": backend, "operation": "compile", "command": " ".join(cmd)},
        ) from exc

    if result.returncode != 0:
        raise BackendInvocationError(
            "Compiler exited with a non-zero status.",
            hint="Check compiler output for details.",
            context={
                "backend": backend,
                "operation": "compile",
                "returncode": str(result.returncode),
                "stderr": result.stderr[-2000:] if result.stderr else "",
                "command": " ".join(cmd),
            },
        )
    return decode_output(result.stdout, backend=backend)


def run_tool(
    cmd: Sequence[str],
    *,
    request: CompileRequest,
    backend: str,
    operation: str,
) -> subprocess.CompletedProcess[str]:
    """Run a helper command bounded by ``request.timeout``.

    The exit status is left to the caller; only a timeout or a failure to
    start is raised here.
    """
    try:
        return subprocess.run(
            list(cmd),
            capture_output=True,
            text=True,
            timeout=request.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise BackendTimeout(
            f"`{cmd[0]}` did not finish in time.",
            hint="Raise `timeout` in the config.",
            context={
                "backend": backend,
                "operation": operation,
                "timeout": str(request.timeout),
                "command": " ".join(cmd),
            },
        ) from exc
    except OSError as exc:
        raise BackendInvocationError(
            f"Failed to start `{cmd[0]}`.",
            hint=str(exc),
            context={"backend": backend, "operation": operation, "command": " ".join(cmd)},
        ) from exc


def allow_paths_args(paths: Sequence[Path | str]) -> list[str]:
    if not paths:
        return []
    return ["--allow-paths", ",".join(str(path) for path in paths)]
