"""Library linking: substitute library placeholders in compiled bytecode.

A placeholder is 40 characters of bytecode hex text standing in for a
20-byte library address. Compilers have used two encodings:

* ``literal``: ``__`` followed by the library name, truncated to 36
  characters and padded with ``_`` to 40. Older compilers used the short
  name, later ones the fully qualified ``<source>:<Name>``; both are tried.
* ``hashed``: ``__$`` + the first 34 hex characters of
  ``keccak256(<source>:<Name>)`` + ``$__``.

Substitution never changes the bytecode length.

The linker holds no locks. Callers must serialize concurrent ``link_file``
calls against the same artifact file.
"""

from __future__ import annotations

import copy
import json
import re
from collections.abc import Callable, MutableMapping
from pathlib import Path
from typing import Any

from Crypto.Hash import keccak

from solforge.errors import InvalidAddress, InvalidArtifact, PlaceholderNotFound
from solforge.output import write_json_atomic

PLACEHOLDER_LENGTH = 40
_ADDRESS_PATTERN = re.compile(r"[0-9a-fA-F]{40}")


def literal_placeholders(library: str) -> tuple[str, ...]:
    short_name = library.rpartition(":")[2]
    candidates = dict.fromkeys(
        f"__{name[:36]}".ljust(PLACEHOLDER_LENGTH, "_") for name in (short_name, library)
    )
    return tuple(candidates)


def hashed_placeholders(library: str) -> tuple[str, ...]:
    digest = keccak.new(digest_bits=256)
    digest.update(library.encode("utf-8"))
    return (f"__${digest.hexdigest()[:34]}$__",)


# Tried in order; a new encoding is one more entry.
PLACEHOLDER_ENCODINGS: tuple[tuple[str, Callable[[str], tuple[str, ...]]], ...] = (
    ("literal", literal_placeholders),
    ("hashed", hashed_placeholders),
)


def placeholders_for(library: str) -> tuple[str, ...]:
    """Return every placeholder *library* may appear as, in encoding order."""
    found: dict[str, None] = {}
    for _encoding, build in PLACEHOLDER_ENCODINGS:
        for placeholder in build(library):
            found.setdefault(placeholder, None)
    return tuple(found)


def normalize_address(address: str) -> str:
    """Return the 40-character lowercase hex form of *address*."""
    value = address[2:] if address[:2] in ("0x", "0X") else address
    if not _ADDRESS_PATTERN.fullmatch(value):
        raise InvalidAddress(
            "Library address must be exactly 20 bytes of hex.",
            hint="Pass a 40-character hex address, with or without a 0x prefix.",
            context={"address": address, "length": str(len(value))},
        )
    return value.lower()


def link(artifact: MutableMapping[str, Any], library: str, address: str) -> int:
    """Link *library* at *address* into *artifact* in place.

    Returns the number of placeholders replaced in the creation bytecode.
    ``artifact["bytecode"]`` is refreshed from ``evm.bytecode.object``
    afterwards, never substituted on its own. If no placeholder for
    *library* is present the artifact is left untouched and
    :class:`PlaceholderNotFound` is raised, which is also what re-linking an
    already linked library reports.
    """
    replacement = normalize_address(address)
    bytecode = _creation_bytecode(artifact)
    placeholders = placeholders_for(library)

    linked_code, count = _substitute(bytecode, placeholders, replacement)
    if count == 0:
        raise PlaceholderNotFound(
            "No placeholder for library found in bytecode.",
            hint="Check the name (<source>:<Library>) or whether it is already linked.",
            context={
                "library": library,
                "contract": str(artifact.get("contractName", "")),
            },
        )

    artifact["evm"]["bytecode"]["object"] = linked_code
    deployed = artifact["evm"].get("deployedBytecode")
    if isinstance(deployed, MutableMapping) and isinstance(deployed.get("object"), str):
        deployed["object"], _ = _substitute(deployed["object"], placeholders, replacement)
    if "bytecode" in artifact:
        artifact["bytecode"] = linked_code
    return count


def linked(artifact: MutableMapping[str, Any], library: str, address: str) -> dict[str, Any]:
    """Return a linked copy of *artifact*, leaving the input untouched."""
    result = copy.deepcopy(dict(artifact))
    link(result, library, address)
    return result


def link_file(path: str | Path, library: str, address: str) -> dict[str, Any]:
    """Link an artifact file and rewrite it atomically."""
    artifact_path = Path(path)
    artifact = json.loads(artifact_path.read_text(encoding="utf-8"))
    link(artifact, library, address)
    write_json_atomic(artifact, artifact_path)
    return artifact


def _creation_bytecode(artifact: MutableMapping[str, Any]) -> str:
    evm = artifact.get("evm")
    bytecode = evm.get("bytecode") if isinstance(evm, MutableMapping) else None
    code = bytecode.get("object") if isinstance(bytecode, MutableMapping) else None
    if not isinstance(code, str):
        raise InvalidArtifact(
            "Artifact has no creation bytecode to link.",
            hint="Pass a normalized artifact with `evm.bytecode.object`.",
            context={"contract": str(artifact.get("contractName", ""))},
        )
    return code


def _substitute(code: str, placeholders: tuple[str, ...], replacement: str) -> tuple[str, int]:
    total = 0
    for placeholder in placeholders:
        occurrences = code.count(placeholder)
        if occurrences:
            code = code.replace(placeholder, replacement)
            total += occurrences
    return code, total
