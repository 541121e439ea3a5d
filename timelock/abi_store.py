"""User-supplied ABI overrides, keyed by lowercased address.

Entries never expire; they win over every other ABI source. ABIs can be set
programmatically or loaded from a directory of ``<address>.json`` files
(``MANUAL_ABI_DIR``).
"""

import os
import threading
from typing import Any

from eth_utils import is_address

from utils.abi import load_abi
from utils.config import Config
from utils.logging import get_logger

logger = get_logger("timelock.abi_store")


# lowercased address -> ABI
_manual_abis: dict[str, list[dict[str, Any]]] = {}
_lock = threading.Lock()


def set_manual_abi(address: str, abi: list[dict[str, Any]]) -> None:
    """Store a manual ABI override for an address."""
    if not is_address(address):
        raise ValueError(f"Invalid address: {address}")
    with _lock:
        _manual_abis[address.lower()] = list(abi)


def get_manual_abi(address: str) -> list[dict[str, Any]] | None:
    """Return the manual ABI for an address, or None when unset or empty."""
    return _manual_abis.get(address.lower()) or None


def clear_manual_abi(address: str | None = None) -> None:
    """Remove the override for one address, or every override when no address is given."""
    with _lock:
        if address is None:
            _manual_abis.clear()
        else:
            _manual_abis.pop(address.lower(), None)


def load_manual_abis(directory: str | None = None) -> int:
    """Load every ``<address>.json`` ABI file in a directory into the store.

    Files that are not named after an address or do not hold a valid ABI are
    skipped with a warning. Returns the number of ABIs loaded.
    """
    directory = directory or Config.get_env("MANUAL_ABI_DIR")
    if not directory or not os.path.isdir(directory):
        return 0

    loaded = 0
    for filename in sorted(os.listdir(directory)):
        address, ext = os.path.splitext(filename)
        if ext != ".json" or not is_address(address):
            continue
        path = os.path.join(directory, filename)
        try:
            set_manual_abi(address, load_abi(path))
        except (OSError, ValueError) as e:
            logger.warning("Skipping manual ABI %s: %s", path, e)
            continue
        loaded += 1
    logger.info("Loaded %s manual ABIs from %s", loaded, directory)
    return loaded
