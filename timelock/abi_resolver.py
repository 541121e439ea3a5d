"""Answer "which ABI should be used for address X" from the most trustworthy source available.

Resolution priority (each stage returns early on success):

1. Manual override (user-supplied, see ``timelock.abi_store``)
2. Resolution cache (5 minute TTL)
3. EIP-1967 proxy detection via raw storage reads, redirecting to the implementation
4. Blockscout verified source
5. Static registry of well-known ABIs
6. Give up with an empty ABI and an explanation

The signature directory is intentionally not a stage here: it only yields
single-function guesses, which the calldata decoder handles on its own.
``resolve_abi`` never raises; every failure ends in a LOW confidence result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from eth_utils import is_address, keccak, to_checksum_address

from timelock.abi_store import clear_manual_abi, get_manual_abi
from timelock.blockscout import get_explorer_client
from timelock.known_abis import get_known_abi
from utils.cache import TTLCache
from utils.config import Config
from utils.logging import get_logger

logger = get_logger("timelock.abi_resolver")


def _eip1967_slot(label: str) -> int:
    return int.from_bytes(keccak(text=label), "big") - 1


EIP1967_IMPLEMENTATION_SLOT = _eip1967_slot("eip1967.proxy.implementation")
EIP1967_BEACON_SLOT = _eip1967_slot("eip1967.proxy.beacon")


class AbiSource(Enum):
    """Where an ABI came from."""

    MANUAL = "MANUAL"
    EXPLORER_VERIFIED = "EXPLORER_VERIFIED"
    KNOWN_REGISTRY = "KNOWN_REGISTRY"
    DIRECTORY_GUESS = "DIRECTORY_GUESS"


class AbiConfidence(Enum):
    """How far an ABI can be trusted. MEDIUM is reserved for unverified-but-implementation-found."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


_SOURCE_CONFIDENCE = {
    AbiSource.MANUAL: AbiConfidence.HIGH,
    AbiSource.EXPLORER_VERIFIED: AbiConfidence.HIGH,
    AbiSource.KNOWN_REGISTRY: AbiConfidence.HIGH,
    AbiSource.DIRECTORY_GUESS: AbiConfidence.LOW,
}


def confidence_for(source: AbiSource) -> AbiConfidence:
    return _SOURCE_CONFIDENCE[source]


@dataclass(frozen=True)
class AbiResolution:
    """Result of resolving an ABI for one address."""

    abi: list[dict[str, Any]]
    source: AbiSource
    confidence: AbiConfidence
    is_proxy: bool = False
    implementation_address: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ProxyInfo:
    is_proxy: bool = False
    implementation: str | None = None
    proxy_type: str | None = None


class StorageReader(Protocol):
    def get_storage_at(self, address: str, slot: int) -> bytes: ...


# lowercased address -> AbiResolution
_resolution_cache: TTLCache[AbiResolution] = TTLCache(Config.get_abi_cache_ttl())

_NOT_FOUND = "Contract not verified and no known ABI"


def _word_to_address(word: Any) -> str | None:
    """Extract the address held in the low 20 bytes of a storage word, or None if zero."""
    if word is None:
        return None
    if isinstance(word, str):
        word = bytes.fromhex(word[2:] if word.startswith("0x") else word)
    raw = bytes(word)[-20:]
    if not any(raw):
        return None
    return to_checksum_address("0x" + raw.rjust(20, b"\x00").hex())


def detect_proxy(address: str, rpc_client: StorageReader | None) -> ProxyInfo:
    """Detect EIP-1967 proxies by reading the implementation and beacon slots.

    Any RPC failure is treated as "not a proxy".
    """
    if rpc_client is None:
        return ProxyInfo()

    try:
        implementation = _word_to_address(rpc_client.get_storage_at(address, EIP1967_IMPLEMENTATION_SLOT))
        if implementation:
            return ProxyInfo(is_proxy=True, implementation=implementation, proxy_type="Eip1967Direct")

        beacon = _word_to_address(rpc_client.get_storage_at(address, EIP1967_BEACON_SLOT))
        if beacon:
            return ProxyInfo(is_proxy=True, proxy_type="Eip1967Beacon")
    except Exception as e:
        logger.debug("Proxy detection failed for %s: %s", address, e)

    return ProxyInfo()


def _explorer_abi(address: str, network: str | None) -> list[dict[str, Any]]:
    if not network:
        return []
    try:
        result = get_explorer_client(network).get_contract_abi(address)
    except Exception as e:
        logger.warning("Explorer lookup failed for %s on %s: %s", address, network, e)
        return []
    if result.get("verified") and result.get("abi"):
        return result["abi"]
    return []


def resolve_abi(address: str, network: str | None, rpc_client: StorageReader | None = None) -> AbiResolution:
    """Resolve the best available ABI for an address.

    Args:
        address: Contract address, any case.
        network: Explorer network name ("mainnet" or "testnet"); None skips the explorer.
        rpc_client: Optional storage reader used for proxy detection.

    Returns:
        AbiResolution. On failure the ABI is empty, confidence LOW and ``error`` is set.
    """
    if not isinstance(address, str) or not is_address(address):
        return AbiResolution(
            abi=[],
            source=AbiSource.EXPLORER_VERIFIED,
            confidence=AbiConfidence.LOW,
            error=f"Invalid address: {address}",
        )
    normalized = address.lower()

    # 1. Manual override
    manual = get_manual_abi(normalized)
    if manual:
        return AbiResolution(abi=manual, source=AbiSource.MANUAL, confidence=AbiConfidence.HIGH)

    # 2. Resolution cache
    cached = _resolution_cache.get(normalized)
    if cached is not None:
        return cached

    # 3. Proxy detection
    proxy = detect_proxy(normalized, rpc_client)
    lookup_address = proxy.implementation.lower() if proxy.implementation else normalized

    # 4. Explorer verified source
    abi = _explorer_abi(lookup_address, network)
    if abi:
        result = AbiResolution(
            abi=abi,
            source=AbiSource.EXPLORER_VERIFIED,
            confidence=confidence_for(AbiSource.EXPLORER_VERIFIED),
            is_proxy=proxy.is_proxy,
            implementation_address=proxy.implementation,
        )
        _resolution_cache.set(normalized, result)
        return result

    # 5. Known registry
    known = get_known_abi(normalized)
    if known:
        result = AbiResolution(
            abi=known,
            source=AbiSource.KNOWN_REGISTRY,
            confidence=confidence_for(AbiSource.KNOWN_REGISTRY),
            is_proxy=proxy.is_proxy,
            implementation_address=proxy.implementation,
        )
        _resolution_cache.set(normalized, result)
        return result

    # 6. Nothing found
    logger.info("No ABI found for %s (proxy=%s)", normalized, proxy.is_proxy)
    return AbiResolution(
        abi=[],
        source=AbiSource.EXPLORER_VERIFIED,
        confidence=AbiConfidence.LOW,
        is_proxy=proxy.is_proxy,
        implementation_address=proxy.implementation,
        error=_NOT_FOUND,
    )


def clear_abi_cache(address: str | None = None) -> None:
    """Drop cached resolutions; for a single address the manual override is dropped too."""
    if address is None:
        _resolution_cache.clear()
        return
    _resolution_cache.delete(address)
    clear_manual_abi(address)
