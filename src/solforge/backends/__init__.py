"""Compiler backend interfaces and implementations."""

from __future__ import annotations

from collections.abc import Callable

from solforge.errors import ConfigResolutionError
from solforge.models import BackendKind, CompilerConfig

from .base import CompilerBackend, MountSpec, decode_output, run_compiler, run_tool
from .container import DockerSolcBackend
from .module import SolcxBackend
from .native import NativeSolcBackend

BACKENDS: dict[BackendKind, Callable[[CompilerConfig], CompilerBackend]] = {
    "native": lambda config: NativeSolcBackend(executable=config.solc_executable),
    "module": lambda config: SolcxBackend(),
    "container": lambda config: DockerSolcBackend(image=config.docker_image),
}


def get_backend(config: CompilerConfig) -> CompilerBackend:
    factory = BACKENDS.get(config.backend)
    if factory is None:
        raise ConfigResolutionError(
            "Unsupported compiler backend.",
            context={"backend": str(config.backend)},
        )
    return factory(config)


__all__ = [
    "BACKENDS",
    "CompilerBackend",
    "DockerSolcBackend",
    "MountSpec",
    "NativeSolcBackend",
    "SolcxBackend",
    "decode_output",
    "get_backend",
    "run_compiler",
    "run_tool",
]
