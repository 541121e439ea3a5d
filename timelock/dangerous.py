"""Flag high-risk calls (upgrades, ownership transfers, delay changes) by selector alone."""

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_utils import function_signature_to_4byte_selector

if TYPE_CHECKING:
    from timelock.calldata_decoder import DecodedCallNode

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")

DANGEROUS_SIGNATURES: dict[str, str] = {
    "upgradeTo(address)": "upgradeTo",
    "upgradeToAndCall(address,bytes)": "upgradeToAndCall",
    "transferOwnership(address)": "transferOwnership",
    "updateDelay(uint256)": "updateDelay",
}

# selector -> function name
DANGEROUS_SELECTORS: dict[str, str] = {
    "0x" + function_signature_to_4byte_selector(sig).hex(): name for sig, name in DANGEROUS_SIGNATURES.items()
}


@dataclass(frozen=True)
class DangerousCall:
    function_name: str
    selector: str


def classify_dangerous_call(calldata: object) -> DangerousCall | None:
    """Return the dangerous call encoded in calldata, or None. Never raises."""
    if not isinstance(calldata, str) or len(calldata) < 10 or not _HEX_RE.match(calldata):
        return None
    selector = calldata[:10].lower()
    name = DANGEROUS_SELECTORS.get(selector)
    if name is None:
        return None
    return DangerousCall(function_name=name, selector=selector)


def find_dangerous_calls(node: "DecodedCallNode") -> list[DangerousCall]:
    """Collect dangerous selectors from a decoded call tree, root first, depth-first."""
    found: list[DangerousCall] = []
    name = DANGEROUS_SELECTORS.get(node.selector.lower())
    if name is not None:
        found.append(DangerousCall(function_name=name, selector=node.selector.lower()))
    for child in node.children:
        found.extend(find_dangerous_calls(child))
    return found
