"""Resolve 4-byte selectors to text signatures using the 4byte.directory API.

Directory results are best-effort guesses: several signatures can share a
selector, and parameter names are never known. Callers must surface
``has_collision`` as a trust warning instead of treating the first match as certain.
"""

import re
from dataclasses import dataclass
from typing import Any

from timelock.known_selectors import KNOWN_SELECTORS
from utils.cache import TTLCache
from utils.config import Config
from utils.http import HttpError, request_json
from utils.logging import get_logger

logger = get_logger("timelock.signature_directory")

_SELECTOR_RE = re.compile(r"^0x[0-9a-fA-F]{8}$")
_TEXT_SIGNATURE_RE = re.compile(r"^(\w+)\((.*)\)$")

# selector -> list of DirectorySignature
_signature_cache: TTLCache[list["DirectorySignature"]] = TTLCache(Config.get_directory_cache_ttl())


class SignatureDirectoryError(Exception):
    """Raised when a directory lookup fails or returns something unusable."""


@dataclass(frozen=True)
class DirectorySignature:
    text_signature: str
    hex_signature: str


@dataclass(frozen=True)
class BestGuess:
    """The first directory candidate for a selector, as a single-function ABI fragment."""

    signature: str
    abi: dict[str, Any]
    has_collision: bool


def _split_types(params: str) -> list[str]:
    """Split a parameter list on top-level commas, leaving tuple components intact."""
    types: list[str] = []
    depth = 0
    current = ""
    for char in params:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise SignatureDirectoryError(f"Unbalanced parentheses in: {params}")
        if char == "," and depth == 0:
            types.append(current.strip())
            current = ""
            continue
        current += char
    if depth != 0:
        raise SignatureDirectoryError(f"Unbalanced parentheses in: {params}")
    if current.strip():
        types.append(current.strip())
    return types


def parse_text_signature(text_signature: str) -> dict[str, Any]:
    """Convert ``transfer(address,uint256)`` into a minimal function ABI fragment.

    Parameters are named positionally (``param0``, ``param1``, ...) since the
    directory does not know the declared names.
    """
    match = _TEXT_SIGNATURE_RE.match(text_signature.strip())
    if not match:
        raise SignatureDirectoryError(f"Invalid text signature format: {text_signature}")

    name, params_str = match.groups()
    types = _split_types(params_str)
    if any(not t for t in types):
        raise SignatureDirectoryError(f"Empty parameter type in: {text_signature}")

    return {
        "name": name,
        "type": "function",
        "inputs": [{"name": f"param{i}", "type": t, "internalType": t} for i, t in enumerate(types)],
        "outputs": [],
        "stateMutability": "nonpayable",
    }


def lookup_signature(selector: str) -> list[DirectorySignature]:
    """Return every text signature registered for a selector (may be several).

    Raises:
        SignatureDirectoryError: On malformed selectors, HTTP failures or unexpected payloads.
    """
    if not isinstance(selector, str) or not _SELECTOR_RE.match(selector):
        raise SignatureDirectoryError(
            f"Invalid selector format: {selector}. Expected 0x followed by 8 hex characters."
        )
    selector = selector.lower()

    # 1. Local lookup table (no API call needed)
    if selector in KNOWN_SELECTORS:
        return [DirectorySignature(KNOWN_SELECTORS[selector], selector)]

    # 2. Cache from previous API calls
    cached = _signature_cache.get(selector)
    if cached is not None:
        return cached

    # 3. Remote API
    url = f"{Config.get_directory_url()}signatures/"
    try:
        data = request_json(url, params={"hex_signature": selector})
    except HttpError as e:
        raise SignatureDirectoryError(f"Failed to lookup signature {selector}: {e}") from e

    try:
        results = [
            DirectorySignature(item["text_signature"], item.get("hex_signature", selector))
            for item in data["results"]
        ]
    except (KeyError, TypeError) as e:
        raise SignatureDirectoryError(f"Unexpected directory response for {selector}: {e}") from e

    if results:
        _signature_cache.set(selector, results)
    logger.debug("Directory returned %s candidates for %s", len(results), selector)
    return results


def extract_selector(calldata: str) -> str:
    if not isinstance(calldata, str) or len(calldata) < 10:
        raise SignatureDirectoryError(
            f"Calldata too short: {calldata}. Expected at least 10 characters (0x + 8 hex chars)."
        )
    return calldata[:10]


def decode_candidates(calldata: str) -> list[tuple[str, dict[str, Any]]]:
    """Return ``(text_signature, abi_fragment)`` for every candidate of the calldata's selector."""
    signatures = lookup_signature(extract_selector(calldata))
    return [(sig.text_signature, parse_text_signature(sig.text_signature)) for sig in signatures]


def get_best_guess(calldata: str) -> BestGuess | None:
    """Pick the first directory candidate for the calldata's selector, or None when there is none.

    Selectors in the local KNOWN_SELECTORS table resolve to that single entry
    without asking the directory, so ``has_collision`` is always False for them.
    """
    candidates = decode_candidates(calldata)
    if not candidates:
        return None
    signature, fragment = candidates[0]
    return BestGuess(signature=signature, abi=fragment, has_collision=len(candidates) > 1)


def clear_directory_cache() -> None:
    _signature_cache.clear()
