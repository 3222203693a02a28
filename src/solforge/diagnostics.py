"""Classification of compiler diagnostics."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from solforge.models import Diagnostic, DiagnosticsReport, Outcome


def classify(raw_output: Mapping[str, Any]) -> DiagnosticsReport:
    """Decide the outcome of a compilation from its ``errors`` list.

    Any error-severity entry fails the run; warnings and info entries never
    block but are kept on the report.
    """
    diagnostics = parse_diagnostics(raw_output.get("errors") or [])
    if any(item.is_error for item in diagnostics):
        outcome = Outcome.FAILED
    elif diagnostics:
        outcome = Outcome.SUCCEEDED_WITH_WARNINGS
    else:
        outcome = Outcome.SUCCEEDED
    return DiagnosticsReport(outcome=outcome, diagnostics=diagnostics)


def parse_diagnostics(entries: Any) -> tuple[Diagnostic, ...]:
    if not isinstance(entries, list):
        return (
            Diagnostic(severity="error", message=f"Unreadable diagnostics list: {entries!r}"),
        )
    return tuple(_parse_entry(entry) for entry in entries)


def _parse_entry(entry: Any) -> Diagnostic:
    # Very old compilers emit plain strings such as "Foo.sol:3:1: Warning: ...".
    if isinstance(entry, str):
        severity = "warning" if ": Warning:" in entry else "error"
        return Diagnostic(severity=severity, message=entry, formatted_message=entry)
    if not isinstance(entry, Mapping):
        return Diagnostic(severity="error", message=repr(entry))

    location = entry.get("sourceLocation")
    if not isinstance(location, Mapping):
        location = {}
    return Diagnostic(
        severity=str(entry.get("severity", "error")).lower(),
        message=str(entry.get("message", "")),
        formatted_message=_optional_str(entry.get("formattedMessage")),
        type=_optional_str(entry.get("type")),
        file=_optional_str(location.get("file")),
        start=_optional_int(location.get("start")),
        end=_optional_int(location.get("end")),
    )


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _optional_int(value: Any) -> int | None:
    return value if isinstance(value, int) and not isinstance(value, bool) else None
