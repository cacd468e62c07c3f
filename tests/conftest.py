"""Shared test fixtures for ozdocs."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ozdocs.infrastructure.build import build_index
from ozdocs.infrastructure.config import load_config
from ozdocs.infrastructure.db import open_readonly
from ozdocs.natspec.walker import load_solidity_parser

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Iterator
    from pathlib import Path

    from ozdocs.infrastructure.config import IndexConfig
    from ozdocs.natspec.walker import SolidityParser


IERC20_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

/// @notice Interface of the ERC-20 standard.
interface IERC20 {
    /// @notice Emitted when `value` tokens are moved.
    event Transfer(address indexed from, address indexed to, uint256 value);

    /// @notice Returns the value of tokens in existence.
    function totalSupply() external view returns (uint256);

    function transfer(address to, uint256 value) external returns (bool);
}
"""

ERC20_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import {IERC20} from "./IERC20.sol";

/**
 * @notice Implementation of the ERC-20 token standard.
 * @dev Balances are tracked per account.
 */
abstract contract ERC20 is IERC20 {
    mapping(address => uint256) private _balances;

    /// @dev Insufficient balance for a transfer.
    error ERC20InsufficientBalance(address sender, uint256 balance, uint256 needed);

    constructor(string memory name_, string memory symbol_) {
    }

    /// @inheritdoc IERC20
    function totalSupply() public view virtual returns (uint256) {
        return 0;
    }

    /**
     * @notice Returns the balance of `account`.
     * @param account The queried account
     * @return balance The account balance
     */
    function balanceOf(address account) public view virtual returns (uint256 balance) {
        return _balances[account];
    }

    /// @notice Moves `value` tokens to `to`.
    /// @param to Recipient
    /// @param value Amount
    /// @return Whether the transfer succeeded
    function transfer(address to, uint256 value) public virtual returns (bool) {
        return true;
    }

    /// @dev Internal helper with array input.
    function _batch(address[] memory accounts, uint256[2] calldata pair) internal pure {
    }

    modifier onlyHolder(address account) {
        _;
    }
}
"""

OWNABLE_5_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

/// @notice Contract module providing basic access control.
abstract contract Ownable {
    /// @notice The caller account is not authorized.
    error OwnableUnauthorizedAccount(address account);

    /// @notice Emitted when ownership moves.
    event OwnershipTransferred(address indexed previousOwner, address indexed newOwner);

    /// @notice Throws if called by any account other than the owner.
    modifier onlyOwner() {
        _;
    }

    /// @notice Returns the address of the current owner.
    function owner() public view virtual returns (address) {
        return address(0);
    }

    /// @notice Transfers ownership to `newOwner`.
    function transferOwnership(address newOwner) public virtual onlyOwner {
    }
}
"""

ECDSA_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

/// @notice Elliptic curve signature operations.
library ECDSA {
    /// @notice Recovers the signer of `hash`.
    function recover(bytes32 hash, bytes memory signature) internal pure returns (address) {
        return address(0);
    }

    /// @notice Recovers the signer from split signature parts.
    function recover(bytes32 hash, uint8 v, bytes32 r, bytes32 s) internal pure returns (address) {
        return address(0);
    }
}
"""

ERC20_MOCK_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract ERC20Mock {
    function mint(address to, uint256 value) public {
    }
}
"""

OWNABLE_4_SOL = """\
// SPDX-License-Identifier: MIT
pragma solidity ^0.8.0;

/// @notice Legacy ownership module.
abstract contract Ownable {
    /// @notice Returns the address of the current owner.
    function owner() public view virtual returns (address) {
        return address(0);
    }

    /// @notice Leaves the contract without owner.
    function renounceOwnership() public virtual {
    }
}
"""

ERC20_MDX = """\
---
title: "ERC-20"
---
import { Callout } from '../components';

# ERC-20

Introductory text before the first section.

## Constructing an ERC-20 Token Contract

Using Contracts, we can easily create our own token contract.

```solidity
contract GLDToken is ERC20 {}
```

### A Note on `decimals`

The decimals field controls how token amounts are displayed.

<Callout>
</Callout>
"""

ACCESS_CONTROL_MDX = """\
# Access Control

Access control decides who may call a function. Ownable is the simplest form.
"""

CRYPTOGRAPHY_MDX = """\
## Signatures

ECDSA signature recovery helpers for off-chain approvals.
"""

LEGACY_ERC20_MDX = """\
## Legacy ERC-20

The legacy token docs mention transfer hooks.
"""


def write_sources(project: Path) -> Path:
    """Lay out docs and contracts checkouts under ``<project>/.ozdocs/repos``."""
    repos = project / ".ozdocs" / "repos"
    files = {
        "docs/content/contracts/5.x/erc20.mdx": ERC20_MDX,
        "docs/content/contracts/5.x/access-control.mdx": ACCESS_CONTROL_MDX,
        "docs/content/contracts/5.x/utils/cryptography.mdx": CRYPTOGRAPHY_MDX,
        "docs/content/contracts/4.x/erc20.mdx": LEGACY_ERC20_MDX,
        "contracts-5.x/contracts/token/ERC20/IERC20.sol": IERC20_SOL,
        "contracts-5.x/contracts/token/ERC20/ERC20.sol": ERC20_SOL,
        "contracts-5.x/contracts/access/Ownable.sol": OWNABLE_5_SOL,
        "contracts-5.x/contracts/utils/cryptography/ECDSA.sol": ECDSA_SOL,
        "contracts-5.x/contracts/mocks/ERC20Mock.sol": ERC20_MOCK_SOL,
        "contracts-4.x/contracts/access/Ownable.sol": OWNABLE_4_SOL,
    }
    for rel, text in files.items():
        path = repos / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    # Not valid UTF-8: recorded as a per-file error by the build.
    bad = repos / "contracts-5.x" / "contracts" / "utils" / "Bad.sol"
    bad.write_bytes(b"contract Bad { \xff\xfe }\n")
    return repos


@pytest.fixture(scope="session")
def solidity() -> SolidityParser:
    return load_solidity_parser()


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """A project root with source checkouts already in place."""
    write_sources(tmp_path)
    return tmp_path


@pytest.fixture()
def config(project: Path) -> IndexConfig:
    return load_config(project)


@pytest.fixture()
def built_config(config: IndexConfig) -> IndexConfig:
    build_index(config, skip_fetch=True)
    return config


@pytest.fixture()
def conn(built_config: IndexConfig) -> Iterator[sqlite3.Connection]:
    connection = open_readonly(built_config.db_path)
    yield connection
    connection.close()


SOLIDITY_SOURCES = {
    "IERC20": IERC20_SOL,
    "ERC20": ERC20_SOL,
    "Ownable": OWNABLE_5_SOL,
    "ECDSA": ECDSA_SOL,
}


@pytest.fixture()
def sol() -> dict[str, str]:
    """Sample Solidity sources keyed by contract name."""
    return dict(SOLIDITY_SOURCES)
