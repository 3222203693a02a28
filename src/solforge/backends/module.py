"""Compilation with compilers managed by the ``py-solc-x`` library.

``solcx`` installs and locates versioned ``solc`` binaries; the selected
binary is then driven over standard JSON like the native backend, so
``request.timeout`` bounds the call and compiler diagnostics come back in the
output document.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import solcx
from solcx.exceptions import SolcInstallationError, SolcNotInstalled
from solcx.install import get_executable

from solforge.backends.base import allow_paths_args, run_compiler
from solforge.errors import BackendInvocationError
from solforge.models import CompileRequest


@dataclass(slots=True)
class SolcxBackend:
    name: str = "module"
    install_missing: bool = True

    def prepare(self, request: CompileRequest) -> None:
        version = request.compiler_version
        if version is None:
            return
        installed = {str(item) for item in solcx.get_installed_solc_versions()}
        if version.lstrip("v") in installed:
            return
        if not self.install_missing:
            raise BackendInvocationError(
                f"solc {version} is not installed for py-solc-x.",
                hint="Run solcx.install_solc() or enable install_missing.",
                context={"backend": self.name, "operation": "prepare", "version": version},
            )
        try:
            solcx.install_solc(version)
        except (SolcInstallationError, ValueError, OSError) as exc:
            raise BackendInvocationError(
                f"Failed to install solc {version}.",
                hint=str(exc),
                context={"backend": self.name, "operation": "prepare", "version": version},
            ) from exc

    def compile(self, request: CompileRequest) -> dict[str, Any]:
        binary = self._executable(request)
        cmd = [
            str(binary),
            "--standard-json",
            *allow_paths_args((request.root_dir, *request.allowed_paths)),
        ]
        return run_compiler(cmd, request=request, backend=self.name, cwd=request.root_dir)

    def cleanup(self, request: CompileRequest) -> None:
        pass

    def _executable(self, request: CompileRequest) -> Path:
        try:
            return Path(get_executable(request.compiler_version))
        except (SolcNotInstalled, ValueError) as exc:
            raise BackendInvocationError(
                "py-solc-x has no matching solc installed.",
                hint=str(exc),
                context={
                    "backend": self.name,
                    "operation": "compile",
                    "version": request.compiler_version or "",
                },
            ) from exc


