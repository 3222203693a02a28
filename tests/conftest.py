"""Shared test fixtures."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from solforge.linker import hashed_placeholders
from solforge.models import CompileRequest

LIBRARY_NAME = "contracts/MyLibrary.sol:MyLibrary"

ONE_SOURCE = """\
pragma solidity ^0.8.0;

contract One {
    function value() public pure returns (uint256) { return 1; }
}

contract Two {
    function useLibrary(uint256 a) public pure returns (uint256) { return MyLibrary.add7(a); }
}
"""

LIBRARY_SOURCE = """\
pragma solidity ^0.8.0;

library MyLibrary {
    function add7(uint256 a) public pure returns (uint256) { return a + 7; }
}
"""


def library_placeholder() -> str:
    return hashed_placeholders(LIBRARY_NAME)[0]


def sample_output() -> dict[str, Any]:
    """Standard-JSON output for One.sol (One, Two) and MyLibrary.sol."""
    placeholder = library_placeholder()
    function_abi = {
        "inputs": [{"internalType": "uint256", "name": "a", "type": "uint256"}],
        "name": "useLibrary",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "pure",
        "type": "function",
    }
    return {
        "contracts": {
            "contracts/MyLibrary.sol": {
                "MyLibrary": {
                    "abi": [dict(function_abi, name="add7")],
                    "evm": {
                        "bytecode": {"object": "60806040526001600055", "linkReferences": {}},
                        "deployedBytecode": {"object": "6080604052"},
                        "methodIdentifiers": {"add7(uint256)": "3c3d1a29"},
                    },
                    "metadata": "{}",
                }
            },
            "contracts/One.sol": {
                "One": {
                    "abi": [
                        {
                            "inputs": [],
                            "name": "value",
                            "outputs": [{"name": "", "type": "uint256"}],
                            "stateMutability": "pure",
                            "type": "function",
                        },
                        {"inputs": [], "stateMutability": "nonpayable", "type": "constructor"},
                    ],
                    "evm": {
                        "bytecode": {"object": "6080604052348015600f57600080fd5b50"},
                        "deployedBytecode": {"object": "6080604052600080fd"},
                    },
                },
                "Two": {
                    "abi": [function_abi],
                    "evm": {
                        "bytecode": {
                            "object": f"608060405273{placeholder}6000",
                            "linkReferences": {
                                "contracts/MyLibrary.sol": {
                                    "MyLibrary": [{"length": 20, "start": 6}],
                                }
                            },
                        },
                        "deployedBytecode": {"object": f"6080604052{placeholder}"},
                    },
                },
            },
        },
        "sources": {
            "contracts/MyLibrary.sol": {"id": 0, "ast": {"nodeType": "SourceUnit", "id": 1}},
            "contracts/One.sol": {"id": 1, "ast": {"nodeType": "SourceUnit", "id": 2}},
        },
    }


@dataclass
class FakeBackend:
    """Backend returning a canned output document and recording its lifecycle."""

    output: dict[str, Any] = field(default_factory=sample_output)
    name: str = "fake"
    calls: list[str] = field(default_factory=list)
    requests: list[CompileRequest] = field(default_factory=list)
    error: Exception | None = None

    def prepare(self, request: CompileRequest) -> None:
        self.calls.append("prepare")

    def compile(self, request: CompileRequest) -> dict[str, Any]:
        self.calls.append("compile")
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.output)

    def cleanup(self, request: CompileRequest) -> None:
        self.calls.append("cleanup")


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with ``contracts/One.sol`` and ``contracts/MyLibrary.sol``."""
    root = tmp_path / "project"
    contracts = root / "contracts"
    contracts.mkdir(parents=True)
    (contracts / "One.sol").write_text(ONE_SOURCE, encoding="utf-8")
    (contracts / "MyLibrary.sol").write_text(LIBRARY_SOURCE, encoding="utf-8")
    return root
