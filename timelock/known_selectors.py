"""Local lookup tables of common selectors and role hashes seen in timelock operations.

Avoids directory API calls for frequently encountered selectors. The signature
directory client falls through to the remote API only for selectors not found here.
"""

# selector -> function signature
KNOWN_SELECTORS: dict[str, str] = {
    # Access control
    "0x2f2ff15d": "grantRole(bytes32,address)",
    "0xd547741f": "revokeRole(bytes32,address)",
    "0x36568abe": "renounceRole(bytes32,address)",
    # TimelockController
    "0x01d5062a": "schedule(address,uint256,bytes,bytes32,bytes32,uint256)",
    "0x8f2a0bb0": "scheduleBatch(address[],uint256[],bytes[],bytes32,bytes32,uint256)",
    "0xc4d252f5": "cancel(bytes32)",
    "0x134008d3": "execute(address,uint256,bytes,bytes32,bytes32)",
    "0xe38335e5": "executeBatch(address[],uint256[],bytes[],bytes32,bytes32)",
    "0x64d62353": "updateDelay(uint256)",
    # ERC20
    "0xa9059cbb": "transfer(address,uint256)",
    "0x095ea7b3": "approve(address,uint256)",
    "0x23b872dd": "transferFrom(address,address,uint256)",
    # Proxy / upgrades
    "0x3659cfe6": "upgradeTo(address)",
    "0x4f1ef286": "upgradeToAndCall(address,bytes)",
    # Ownable
    "0xf2fde38b": "transferOwnership(address)",
    # Pausable
    "0x8456cb59": "pause()",
    "0x3f4ba83a": "unpause()",
}

# TimelockController role hashes (keccak256 of the role name; admin is zero)
TIMELOCK_ROLES: dict[str, str] = {
    "DEFAULT_ADMIN_ROLE": "0x0000000000000000000000000000000000000000000000000000000000000000",
    "PROPOSER_ROLE": "0xb09aa5aeb3702cfd50b6b62bc4532604938f21248a27a1d5ca736082b6819cc1",
    "EXECUTOR_ROLE": "0xd8aa0f3194971a2a116679f7c2090f6939c8d4e01a2a8d7e41d55e5351469e63",
    "CANCELLER_ROLE": "0xfd643c72710c63c0180259aba6b2d05451e3591a24e58b6223913e945f67199f",
}

# role hash -> human-readable role name
ROLE_NAMES: dict[str, str] = {
    TIMELOCK_ROLES["DEFAULT_ADMIN_ROLE"]: "Admin",
    TIMELOCK_ROLES["PROPOSER_ROLE"]: "Proposer",
    TIMELOCK_ROLES["EXECUTOR_ROLE"]: "Executor",
    TIMELOCK_ROLES["CANCELLER_ROLE"]: "Canceller",
}
