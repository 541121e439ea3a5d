"""Rate-limited Blockscout v2 API client for Rootstock mainnet and testnet.

Only the verified-source lookups needed for ABI resolution are implemented.
Requests are spaced at least 150ms apart (Blockscout allows 10 RPS per IP),
retried with exponential backoff, and contract metadata is cached for 24 hours.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from utils.abi import parse_abi
from utils.cache import TTLCache
from utils.chains import EXPLORER_API_URLS
from utils.config import Config
from utils.http import HttpError, request_json
from utils.logging import get_logger

logger = get_logger("timelock.blockscout")

REQUEST_INTERVAL = 0.15  # seconds
RATE_LIMIT_BACKOFF = 2.0  # seconds, doubled per attempt


class BlockscoutError(Exception):
    """Raised when a Blockscout request fails after retries."""

    def __init__(self, message: str, status_code: int | None = None, is_rate_limited: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.is_rate_limited = is_rate_limited


@dataclass(frozen=True)
class ContractInfo:
    """Verified-source metadata for a contract."""

    is_verified: bool
    name: str | None = None
    compiler_version: str | None = None
    optimization: bool | None = None
    abi: list[dict[str, Any]] = field(default_factory=list)


class BlockscoutClient:
    def __init__(self, network: str, base_url: str | None = None):
        if network not in EXPLORER_API_URLS:
            raise ValueError(f"Unsupported network: {network}")
        self.network = network
        self.base_url = (base_url or Config.get_explorer_api_url(network) or EXPLORER_API_URLS[network]).rstrip("/")
        self.max_retries = Config.get_retry_count()
        self.backoff_factor = Config.get_backoff_factor()
        self.cache: TTLCache[ContractInfo] = TTLCache(Config.get_explorer_cache_ttl())
        self._lock = threading.Lock()
        self._last_request_time = 0.0

    def _rate_limited_request(self, endpoint: str) -> Any:
        # One request at a time, spaced by REQUEST_INTERVAL
        with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < REQUEST_INTERVAL:
                time.sleep(REQUEST_INTERVAL - elapsed)
            try:
                return request_json(f"{self.base_url}{endpoint}")
            except HttpError as e:
                if e.status_code == 429:
                    raise BlockscoutError("Rate limit exceeded", 429, is_rate_limited=True) from e
                raise BlockscoutError(str(e), e.status_code) from e
            finally:
                self._last_request_time = time.monotonic()

    def _request_with_retry(self, endpoint: str) -> Any:
        last_error: BlockscoutError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._rate_limited_request(endpoint)
            except BlockscoutError as e:
                last_error = e
                if attempt == self.max_retries:
                    break
                # Not found is not going to change on retry
                if e.status_code == 404:
                    break
                base = RATE_LIMIT_BACKOFF if e.is_rate_limited else self.backoff_factor
                delay = base * (2**attempt)
                logger.warning(
                    "Blockscout request failed (%s), retrying in %.1fs (attempt %s/%s)",
                    e,
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                time.sleep(delay)
        raise last_error or BlockscoutError("Request failed after retries")

    def _cache_key(self, address: str) -> str:
        return f"contract_{self.network}_{address.lower()}"

    def get_contract(self, address: str) -> ContractInfo:
        """Fetch verified-source metadata, caching failures as unverified."""
        key = self._cache_key(address)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            data = self._request_with_retry(f"/smart-contracts/{address.lower()}")
            abi = data.get("abi") or []
            info = ContractInfo(
                is_verified=bool(data.get("is_verified")),
                name=data.get("name"),
                compiler_version=data.get("compiler_version"),
                optimization=data.get("optimization_enabled"),
                abi=parse_abi(abi) if abi else [],
            )
        except (BlockscoutError, AttributeError, ValueError) as e:
            logger.info("No verified contract for %s on %s: %s", address, self.network, e)
            info = ContractInfo(is_verified=False)

        self.cache.set(key, info)
        return info

    def get_contract_abi(self, address: str) -> dict[str, Any]:
        """Return ``{"abi": [...], "verified": bool}`` for an address."""
        contract = self.get_contract(address)
        if not contract.is_verified or not contract.abi:
            return {"abi": [], "verified": False}
        return {"abi": contract.abi, "verified": True}

    def is_verified(self, address: str) -> bool:
        return self.get_contract(address).is_verified

    def clear_cache(self, address: str | None = None) -> None:
        if address:
            self.cache.delete(self._cache_key(address))
        else:
            self.cache.clear()


_clients: dict[str, BlockscoutClient] = {}
_clients_lock = threading.Lock()


def get_explorer_client(network: str) -> BlockscoutClient:
    """Get or create the shared client for a network."""
    with _clients_lock:
        if network not in _clients:
            _clients[network] = BlockscoutClient(network)
        return _clients[network]
