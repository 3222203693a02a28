"""Public package entrypoint for the solforge contract build SDK."""

from .compiler import compile_project
from .config import load_config, resolve_config
from .errors import (
    BackendInvocationError,
    BackendTimeout,
    CompilationDiagnosticsError,
    ConfigResolutionError,
    InvalidAddress,
    InvalidArtifact,
    LinkError,
    OutputLockError,
    PlaceholderNotFound,
    SolforgeError,
)
from .linker import link, link_file, linked
from .models import (
    CompileResult,
    CompilerConfig,
    Diagnostic,
    DiagnosticsReport,
    Outcome,
    SourceSet,
)
from .observability import StructuredLogger

__all__ = [
    "BackendInvocationError",
    "BackendTimeout",
    "CompilationDiagnosticsError",
    "CompileResult",
    "CompilerConfig",
    "ConfigResolutionError",
    "Diagnostic",
    "DiagnosticsReport",
    "InvalidAddress",
    "InvalidArtifact",
    "LinkError",
    "Outcome",
    "OutputLockError",
    "PlaceholderNotFound",
    "SolforgeError",
    "SourceSet",
    "StructuredLogger",
    "compile_project",
    "link",
    "link_file",
    "linked",
    "load_config",
    "resolve_config",
]
