"""Static registry of well-known contract ABIs, keyed by lowercased address.

The registry is the last resolution stage before giving up, so it only needs to
cover contracts that are commonly unverified on the explorer. Timelocks listed
in ``KNOWN_TIMELOCK_ADDRESSES`` are registered with the TimelockController ABI.
"""

from typing import Any

from utils.config import Config
from utils.logging import get_logger

logger = get_logger("timelock.known_abis")


def _function(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[tuple[str, str]] | None = None,
    mutability: str = "nonpayable",
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"type": t, "name": n, "internalType": t} for t, n in inputs],
        "outputs": [{"type": t, "name": n, "internalType": t} for t, n in outputs or []],
        "stateMutability": mutability,
    }


def _event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [{"type": t, "name": n, "indexed": idx, "internalType": t} for t, n, idx in inputs],
    }


_OPERATION_ARGS = [
    ("address", "target"),
    ("uint256", "value"),
    ("bytes", "data"),
    ("bytes32", "predecessor"),
    ("bytes32", "salt"),
]
_BATCH_ARGS = [
    ("address[]", "targets"),
    ("uint256[]", "values"),
    ("bytes[]", "payloads"),
    ("bytes32", "predecessor"),
    ("bytes32", "salt"),
]

# OpenZeppelin TimelockController (v4.x / v5.x share this surface)
TIMELOCK_CONTROLLER_ABI: list[dict[str, Any]] = [
    _function("schedule", _OPERATION_ARGS + [("uint256", "delay")]),
    _function("scheduleBatch", _BATCH_ARGS + [("uint256", "delay")]),
    _function("execute", _OPERATION_ARGS, mutability="payable"),
    _function("executeBatch", _BATCH_ARGS, mutability="payable"),
    _function("cancel", [("bytes32", "id")]),
    _function("updateDelay", [("uint256", "newDelay")]),
    _function("grantRole", [("bytes32", "role"), ("address", "account")]),
    _function("revokeRole", [("bytes32", "role"), ("address", "account")]),
    _function("renounceRole", [("bytes32", "role"), ("address", "callerConfirmation")]),
    _function("hasRole", [("bytes32", "role"), ("address", "account")], [("bool", "")], "view"),
    _function("getRoleAdmin", [("bytes32", "role")], [("bytes32", "")], "view"),
    _function("getMinDelay", [], [("uint256", "")], "view"),
    _function("getTimestamp", [("bytes32", "id")], [("uint256", "")], "view"),
    _function("isOperation", [("bytes32", "id")], [("bool", "")], "view"),
    _function("isOperationPending", [("bytes32", "id")], [("bool", "")], "view"),
    _function("isOperationReady", [("bytes32", "id")], [("bool", "")], "view"),
    _function("isOperationDone", [("bytes32", "id")], [("bool", "")], "view"),
    _function("hashOperation", _OPERATION_ARGS, [("bytes32", "")], "pure"),
    _function("hashOperationBatch", _BATCH_ARGS, [("bytes32", "")], "pure"),
    _event(
        "CallScheduled",
        [
            ("bytes32", "id", True),
            ("uint256", "index", True),
            ("address", "target", False),
            ("uint256", "value", False),
            ("bytes", "data", False),
            ("bytes32", "predecessor", False),
            ("uint256", "delay", False),
        ],
    ),
    _event(
        "CallExecuted",
        [
            ("bytes32", "id", True),
            ("uint256", "index", True),
            ("address", "target", False),
            ("uint256", "value", False),
            ("bytes", "data", False),
        ],
    ),
    _event("Cancelled", [("bytes32", "id", True)]),
    _event("MinDelayChange", [("uint256", "oldDuration", False), ("uint256", "newDuration", False)]),
]

ERC20_ABI: list[dict[str, Any]] = [
    _function("transfer", [("address", "to"), ("uint256", "amount")], [("bool", "")]),
    _function("approve", [("address", "spender"), ("uint256", "amount")], [("bool", "")]),
    _function("transferFrom", [("address", "from"), ("address", "to"), ("uint256", "amount")], [("bool", "")]),
    _function("balanceOf", [("address", "account")], [("uint256", "")], "view"),
    _function("allowance", [("address", "owner"), ("address", "spender")], [("uint256", "")], "view"),
    _function("totalSupply", [], [("uint256", "")], "view"),
    _function("decimals", [], [("uint8", "")], "view"),
    _function("symbol", [], [("string", "")], "view"),
    _function("name", [], [("string", "")], "view"),
    _event("Transfer", [("address", "from", True), ("address", "to", True), ("uint256", "value", False)]),
    _event("Approval", [("address", "owner", True), ("address", "spender", True), ("uint256", "value", False)]),
]

# name -> ABI, for callers that know what kind of contract they are looking at
KNOWN_ABIS: dict[str, list[dict[str, Any]]] = {
    "TimelockController": TIMELOCK_CONTROLLER_ABI,
    "ERC20": ERC20_ABI,
}

# lowercased address -> ABI
_registry: dict[str, list[dict[str, Any]]] = {}


def register_known_abi(address: str, abi: list[dict[str, Any]] | str) -> None:
    """Register an ABI (or the name of one in KNOWN_ABIS) for an address."""
    if isinstance(abi, str):
        if abi not in KNOWN_ABIS:
            raise ValueError(f"Unknown ABI name: {abi}")
        abi = KNOWN_ABIS[abi]
    _registry[address.lower()] = abi


def unregister_known_abi(address: str) -> None:
    _registry.pop(address.lower(), None)


def get_known_abi(address: str) -> list[dict[str, Any]] | None:
    """Return the registered ABI for an address, or None."""
    return _registry.get(address.lower())


def load_known_timelocks() -> int:
    """Register every address in KNOWN_TIMELOCK_ADDRESSES with the TimelockController ABI."""
    addresses = Config.get_env_list("KNOWN_TIMELOCK_ADDRESSES")
    for address in addresses:
        register_known_abi(address, "TimelockController")
    if addresses:
        logger.debug("Registered %s known timelocks", len(addresses))
    return len(addresses)


load_known_timelocks()
