"""Map raw compiler output fragments onto the stable artifact schema.

Compilers and their wrappers have emitted contracts in several shapes over the
years. Each shape gets one extraction rule; rules are tried in order and the
first hit wins, so every shape converges on the same artifact::

    {
      "contractName": ..., "sourceName": ...,
      "abi": [...], "interface": <same list>,
      "bytecode": "<hex>", "evm": {"bytecode": {"object": "<hex>", ...}, ...},
    }
"""

from __future__ import annotations

import copy
import json
from collections.abc import Callable, Iterator, Mapping
from typing import Any

CONTRACT_KEYS = frozenset({"abi", "evm", "bin", "bytecode", "interface", "metadata"})
PASSTHROUGH_KEYS = ("devdoc", "metadata", "storageLayout", "userdoc")

Fragment = Mapping[str, Any]


def normalize_contract(
    name: str,
    fragment: Fragment,
    source_name: str,
    *,
    minimal: bool = False,
) -> dict[str, Any]:
    """Build one artifact; ``artifact["interface"] is artifact["abi"]`` always holds."""
    abi = extract_abi(fragment)
    bytecode = extract_bytecode(fragment)

    if minimal:
        evm: dict[str, Any] = {"bytecode": {"object": bytecode}}
    else:
        evm = _copy_evm(fragment)
        evm.setdefault("bytecode", {})["object"] = bytecode
        deployed = extract_deployed_bytecode(fragment)
        if deployed is not None:
            evm.setdefault("deployedBytecode", {})["object"] = deployed

    artifact: dict[str, Any] = {
        "contractName": name,
        "abi": abi,
        "interface": abi,
        "bytecode": bytecode,
        "evm": evm,
    }
    if minimal:
        return artifact
    artifact["sourceName"] = source_name
    for key in PASSTHROUGH_KEYS:
        if key in fragment:
            artifact[key] = copy.deepcopy(fragment[key])
    return artifact


def iter_contracts(raw_output: Mapping[str, Any]) -> Iterator[tuple[str, str, Fragment]]:
    """Yield ``(source_name, contract_name, fragment)`` sorted by source then name.

    Accepts the nested standard-JSON map and the flat ``"<source>:<Name>"``
    map of older compilers.
    """
    contracts = raw_output.get("contracts") or {}
    if not isinstance(contracts, Mapping):
        return
    entries: list[tuple[str, str, Fragment]] = []
    for key, value in contracts.items():
        if not isinstance(value, Mapping):
            continue
        if _is_flat_entry(str(key), value):
            source_name, _, contract_name = str(key).rpartition(":")
            entries.append((source_name, contract_name, value))
            continue
        for contract_name, fragment in value.items():
            if isinstance(fragment, Mapping):
                entries.append((str(key), str(contract_name), fragment))
    yield from sorted(entries, key=lambda item: (item[0], item[1]))


# ABI rules


def _abi_from_list(fragment: Fragment) -> list[Any] | None:
    value = fragment.get("abi")
    return list(value) if isinstance(value, list) else None


def _abi_from_json_string(fragment: Fragment) -> list[Any] | None:
    return _json_list(fragment.get("abi"))


def _abi_nested(fragment: Fragment) -> list[Any] | None:
    value = fragment.get("abi")
    if isinstance(value, Mapping) and isinstance(value.get("abi"), list):
        return list(value["abi"])
    return None


def _abi_from_interface(fragment: Fragment) -> list[Any] | None:
    value = fragment.get("interface")
    if isinstance(value, list):
        return list(value)
    return _json_list(value)


def _abi_from_metadata(fragment: Fragment) -> list[Any] | None:
    metadata = fragment.get("metadata")
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except json.JSONDecodeError:
            return None
    if not isinstance(metadata, Mapping):
        return None
    output = metadata.get("output")
    if isinstance(output, Mapping) and isinstance(output.get("abi"), list):
        return list(output["abi"])
    return None


ABI_RULES: tuple[Callable[[Fragment], list[Any] | None], ...] = (
    _abi_from_list,
    _abi_from_json_string,
    _abi_nested,
    _abi_from_interface,
    _abi_from_metadata,
)


def extract_abi(fragment: Fragment) -> list[Any]:
    for rule in ABI_RULES:
        abi = rule(fragment)
        if abi is not None:
            return copy.deepcopy(abi)
    return []


# Bytecode rules


def _bytecode_from_evm_object(fragment: Fragment) -> str | None:
    evm = fragment.get("evm")
    if not isinstance(evm, Mapping):
        return None
    bytecode = evm.get("bytecode")
    if isinstance(bytecode, Mapping) and isinstance(bytecode.get("object"), str):
        return bytecode["object"]
    if isinstance(bytecode, str):
        return bytecode
    return None


def _bytecode_from_bin(fragment: Fragment) -> str | None:
    value = fragment.get("bin")
    return value if isinstance(value, str) else None


def _bytecode_from_legacy_field(fragment: Fragment) -> str | None:
    value = fragment.get("bytecode")
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and isinstance(value.get("object"), str):
        return value["object"]
    return None


BYTECODE_RULES: tuple[Callable[[Fragment], str | None], ...] = (
    _bytecode_from_evm_object,
    _bytecode_from_bin,
    _bytecode_from_legacy_field,
)


def extract_bytecode(fragment: Fragment) -> str:
    for rule in BYTECODE_RULES:
        bytecode = rule(fragment)
        if bytecode is not None:
            return strip_hex_prefix(bytecode)
    return ""


def extract_deployed_bytecode(fragment: Fragment) -> str | None:
    evm = fragment.get("evm")
    if isinstance(evm, Mapping):
        deployed = evm.get("deployedBytecode")
        if isinstance(deployed, Mapping) and isinstance(deployed.get("object"), str):
            return strip_hex_prefix(deployed["object"])
        if isinstance(deployed, str):
            return strip_hex_prefix(deployed)
    for key in ("bin-runtime", "runtimeBytecode"):
        value = fragment.get(key)
        if isinstance(value, str):
            return strip_hex_prefix(value)
    return None


def strip_hex_prefix(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def _copy_evm(fragment: Fragment) -> dict[str, Any]:
    evm = fragment.get("evm")
    if not isinstance(evm, Mapping):
        return {}
    copied = copy.deepcopy(dict(evm))
    for key in ("bytecode", "deployedBytecode"):
        if not isinstance(copied.get(key), dict):
            copied.pop(key, None)
    return copied


def _json_list(value: Any) -> list[Any] | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


def _looks_like_contract(value: Mapping[str, Any]) -> bool:
    return any(key in CONTRACT_KEYS for key in value)


def _is_flat_entry(key: str, value: Mapping[str, Any]) -> bool:
    """A ``"<source>:<Name>"`` entry holding one fragment, not a per-source map.

    Contracts may be named like fragment fields (``metadata``, ``evm``), so a
    map whose values all look like fragments is read as nested.
    """
    if ":" not in key or not _looks_like_contract(value):
        return False
    return not all(
        isinstance(item, Mapping) and _looks_like_contract(item) for item in value.values()
    )
