"""Human-readable ABI signatures.

Renders ABI JSON entries as one-line declarations, e.g.
``function transfer(address to, uint256 amount) returns (bool)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any


def human_readable_abi(abi: Iterable[Mapping[str, Any]]) -> list[str]:
    """Format every entry, keeping ABI order."""
    return [format_abi_entry(entry) for entry in abi]


def format_abi_entry(entry: Mapping[str, Any]) -> str:
    kind = entry.get("type", "function")
    params = _format_params(entry.get("inputs") or (), indexed=kind == "event")

    if kind == "constructor":
        return _join(f"constructor({params})", _mutability(entry))
    if kind in ("fallback", "receive"):
        return _join(f"{kind}()", "external", _mutability(entry))
    if kind == "event":
        anonymous = "anonymous" if entry.get("anonymous") else ""
        return _join("event", f"{entry.get('name', '')}({params})", anonymous)
    if kind == "error":
        return f"error {entry.get('name', '')}({params})"

    outputs = _format_params(entry.get("outputs") or ())
    returns = f"returns ({outputs})" if outputs else ""
    return _join("function", f"{entry.get('name', '')}({params})", _mutability(entry), returns)


def format_type(param: Mapping[str, Any]) -> str:
    """Expand ``tuple`` types into their component list, keeping array suffixes."""
    raw_type = str(param.get("type", ""))
    if not raw_type.startswith("tuple"):
        return raw_type
    suffix = raw_type[len("tuple"):]
    components = ",".join(format_type(item) for item in param.get("components") or ())
    return f"tuple({components}){suffix}"


def _format_params(params: Iterable[Mapping[str, Any]], *, indexed: bool = False) -> str:
    parts: list[str] = []
    for param in params:
        text = format_type(param)
        if indexed and param.get("indexed"):
            text += " indexed"
        if param.get("name"):
            text += f" {param['name']}"
        parts.append(text)
    return ", ".join(parts)


def _mutability(entry: Mapping[str, Any]) -> str:
    state = entry.get("stateMutability")
    if state is None:
        # Pre-0.4.16 compilers only emit the constant/payable flags.
        if entry.get("constant"):
            state = "view"
        elif entry.get("payable"):
            state = "payable"
    return "" if state in (None, "nonpayable") else str(state)


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)
