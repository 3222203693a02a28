"""Native compilation via an installed ``solc`` executable.

The request is piped to ``solc --standard-json`` on stdin and the response is
read from stdout. When a compiler version is pinned, ``solc --version`` must
report it before anything is compiled.
"""

from __future__ import annotations

import re
import shutil
from dataclasses import dataclass
from typing import Any

from solforge.backends.base import allow_paths_args, run_compiler, run_tool
from solforge.errors import BackendInvocationError
from solforge.models import CompileRequest

_VERSION_PATTERN = re.compile(r"Version:\s*(\d+\.\d+\.\d+)")


@dataclass(slots=True)
class NativeSolcBackend:
    name: str = "native"
    executable: str = "solc"

    def prepare(self, request: CompileRequest) -> None:
        self._ensure_executable()
        if request.compiler_version:
            self._check_version(request)

    def compile(self, request: CompileRequest) -> dict[str, Any]:
        binary = self._ensure_executable()
        cmd = [
            binary,
            "--standard-json",
            *allow_paths_args((request.root_dir, *request.allowed_paths)),
        ]
        return run_compiler(cmd, request=request, backend=self.name, cwd=request.root_dir)

    def cleanup(self, request: CompileRequest) -> None:
        pass

    def _ensure_executable(self) -> str:
        binary = shutil.which(self.executable)
        if binary is None:
            raise BackendInvocationError(
                f"Native backend requires `{self.executable}` in PATH.",
                hint="Install solc or switch `backendKind` to \"module\" or \"container\".",
                context={"backend": self.name, "operation": "prepare"},
            )
        return binary

    def _check_version(self, request: CompileRequest) -> None:
        """Verify the executable reports the pinned compiler version."""
        expected = request.compiler_version or ""
        result = run_tool(
            [self.executable, "--version"], request=request, backend=self.name, operation="prepare"
        )
        if result.returncode != 0:
            raise BackendInvocationError(
                "Could not determine native solc version.",
                context={
                    "backend": self.name,
                    "operation": "prepare",
                    "stderr": result.stderr[:2000] if result.stderr else "",
                },
            )
        match = _VERSION_PATTERN.search(result.stdout)
        actual = match.group(1) if match else result.stdout.strip()
        if actual != expected.lstrip("v"):
            raise BackendInvocationError(
                f"Native solc version {actual} does not match requested {expected}.",
                hint="Install the requested version or drop `compilerVersion` from the config.",
                context={
                    "backend": self.name,
                    "operation": "prepare",
                    "version": actual,
                    "expected": expected,
                },
            )
