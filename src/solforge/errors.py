"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from solforge.models import Diagnostic


class ErrorCode(StrEnum):
    """Stable error identifiers used across API surfaces."""

    CONFIG = "E_CONFIG"
    BACKEND_INVOCATION = "E_BACKEND_INVOCATION"
    BACKEND_TIMEOUT = "E_BACKEND_TIMEOUT"
    COMPILATION = "E_COMPILATION"
    OUTPUT_LOCK = "E_OUTPUT_LOCK"
    INVALID_ADDRESS = "E_INVALID_ADDRESS"
    PLACEHOLDER_NOT_FOUND = "E_PLACEHOLDER_NOT_FOUND"
    INVALID_ARTIFACT = "E_INVALID_ARTIFACT"


class SolforgeError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ConfigResolutionError(SolforgeError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class BackendInvocationError(SolforgeError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BACKEND_INVOCATION, hint=hint, context=context)


class BackendTimeout(SolforgeError):
    """The backend did not answer within the configured bound.

    Distinct from :class:`BackendInvocationError`; catching one never
    catches the other.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BACKEND_TIMEOUT, hint=hint, context=context)


class CompilationDiagnosticsError(SolforgeError):
    """Blocking compiler errors; ``diagnostics`` holds every entry verbatim."""

    diagnostics: tuple[Diagnostic, ...]

    def __init__(
        self,
        message: str,
        *,
        diagnostics: Sequence[Diagnostic] = (),
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.COMPILATION, hint=hint, context=context)
        self.diagnostics = tuple(diagnostics)

    def __str__(self) -> str:
        parts = [super().__str__()]
        for diagnostic in self.diagnostics:
            if diagnostic.severity == "error":
                parts.append(diagnostic.render())
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["diagnostics"] = [diagnostic.to_dict() for diagnostic in self.diagnostics]
        return payload


class OutputLockError(SolforgeError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.OUTPUT_LOCK, hint=hint, context=context)


class LinkError(SolforgeError):
    """Base class for failures of a single ``link`` call."""


class InvalidAddress(LinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_ADDRESS, hint=hint, context=context)


class PlaceholderNotFound(LinkError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.PLACEHOLDER_NOT_FOUND, hint=hint, context=context
        )



class InvalidArtifact(LinkError):
    """The artifact lacks the bytecode fields linking operates on."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INVALID_ARTIFACT, hint=hint, context=context)

__all__ = [
    "BackendInvocationError",
    "BackendTimeout",
    "CompilationDiagnosticsError",
    "ConfigResolutionError",
    "ErrorCode",
    "InvalidAddress",
    "InvalidArtifact",
    "LinkError",
    "OutputLockError",
    "PlaceholderNotFound",
    "SolforgeError",
]
