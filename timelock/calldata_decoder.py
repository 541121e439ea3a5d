"""Decode raw calldata into a tree of human-readable function calls.

The ABI is taken from the caller, a per-address override map, or the ABI
resolver, in that order. When none is usable the 4byte signature directory
provides a best guess. TimelockController ``execute``/``executeBatch`` calls
are unwrapped recursively: every inner call gets its own ABI resolution and
its own node. Depth and node budgets bound the work done on adversarial input.

Upstream failures never escape: they are attached to nodes as warnings so
that every result can be rendered.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from timelock.abi_resolver import AbiConfidence, AbiSource, StorageReader, resolve_abi
from timelock.known_selectors import ROLE_NAMES
from timelock.signature_directory import SignatureDirectoryError, get_best_guess
from utils.config import Config
from utils.logging import get_logger

logger = get_logger("timelock.calldata_decoder")

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")

# Hard ceiling on inner calls unwrapped from a single executeBatch, whatever the node budget
MAX_BATCH_CALLS = 50

# Argument layouts of TimelockController execute/executeBatch
TIMELOCK_FUNCTIONS: dict[str, list[str]] = {
    "execute": ["address", "uint256", "bytes", "bytes32", "bytes32"],
    "executeBatch": ["address[]", "uint256[]", "bytes[]", "bytes32", "bytes32"],
}


class CalldataDecodeError(ValueError):
    """Raised for calldata that is not a 0x-prefixed hex string holding at least a selector."""


class WarningKind(Enum):
    TRUNCATED_RECURSION = "TRUNCATED_RECURSION"
    ABI_MISSING = "ABI_MISSING"
    ABI_GUESS = "ABI_GUESS"
    DECODE_FAILED = "DECODE_FAILED"


@dataclass(frozen=True)
class DecoderWarning:
    kind: WarningKind
    message: str


@dataclass(frozen=True)
class DecodedParam:
    name: str
    type: str
    value: Any


@dataclass
class DecodedCallNode:
    """One decoded call. ``children`` is only filled for timelock execute/executeBatch."""

    selector: str
    function_name: str
    signature: str
    source: AbiSource
    confidence: AbiConfidence
    target: str | None = None
    params: list[DecodedParam] = field(default_factory=list)
    warnings: list[DecoderWarning] = field(default_factory=list)
    children: list["DecodedCallNode"] = field(default_factory=list)

    def has_warning(self, kind: WarningKind) -> bool:
        return any(w.kind == kind for w in self.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "selector": self.selector,
            "functionName": self.function_name,
            "signature": self.signature,
            "params": [{"name": p.name, "type": p.type, "value": _jsonable(p.value)} for p in self.params],
            "source": self.source.value,
            "confidence": self.confidence.value,
            "warnings": [{"kind": w.kind.value, "message": w.message} for w in self.warnings],
            "children": [child.to_dict() for child in self.children],
        }


class _AbiDecodeFailure(Exception):
    pass


def _jsonable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _validate_calldata(calldata: Any) -> str:
    if not isinstance(calldata, str) or not _HEX_RE.match(calldata):
        raise CalldataDecodeError("Calldata must be a 0x-prefixed hex string")
    if len(calldata) < 10:
        raise CalldataDecodeError(
            f"Calldata too short: expected at least 4 bytes selector (got {len(calldata)} chars)"
        )
    return calldata


def _canonical_type(abi_input: dict[str, Any]) -> str:
    """Return the canonical type string, expanding ``tuple`` components recursively."""
    type_str = abi_input.get("type", "")
    if type_str.startswith("tuple"):
        inner = ",".join(_canonical_type(c) for c in abi_input.get("components", []))
        return f"({inner}){type_str[len('tuple'):]}"
    return type_str


def function_selector(abi_entry: dict[str, Any]) -> str:
    """Compute the 0x-prefixed 4-byte selector of a function ABI entry."""
    types = ",".join(_canonical_type(i) for i in abi_entry.get("inputs", []))
    return "0x" + function_signature_to_4byte_selector(f"{abi_entry['name']}({types})").hex()


def find_function(abi: list[dict[str, Any]], selector: str) -> dict[str, Any] | None:
    """Find the function entry of an ABI whose computed selector matches."""
    selector = selector.lower()
    for entry in abi:
        if not isinstance(entry, dict) or entry.get("type", "function") != "function" or "name" not in entry:
            continue
        try:
            if function_selector(entry) == selector:
                return entry
        except (KeyError, TypeError, AttributeError):
            continue
    return None


def format_signature(abi_entry: dict[str, Any]) -> str:
    """Build ``name(type name,...)``, naming unnamed inputs ``paramN``."""
    inputs = abi_entry.get("inputs", [])
    parts = [f"{_canonical_type(i) or 'unknown'} {i.get('name') or f'param{idx}'}" for idx, i in enumerate(inputs)]
    return f"{abi_entry['name']}({','.join(parts)})"


def _normalize_value(type_str: str, value: Any) -> Any:
    if type_str == "address" and isinstance(value, str):
        return to_checksum_address(value)
    if type_str == "address[]" and isinstance(value, (list, tuple)):
        return [to_checksum_address(v) for v in value]
    if isinstance(value, tuple) and type_str.endswith("]"):
        return list(value)
    return value


def _decode_with_abi(abi: list[dict[str, Any]], calldata: str) -> tuple[dict[str, Any], list[DecodedParam]]:
    selector = calldata[:10].lower()
    entry = find_function(abi, selector)
    if entry is None:
        raise _AbiDecodeFailure(f"Selector {selector} not found in ABI")

    inputs = entry.get("inputs", [])
    types = [_canonical_type(i) for i in inputs]
    try:
        values = decode(types, bytes.fromhex(calldata[10:])) if types else ()
    except Exception as e:
        raise _AbiDecodeFailure(f"Failed to decode arguments of {entry['name']}: {e}") from e

    params = [
        DecodedParam(
            name=i.get("name") or f"param{idx}",
            type=types[idx],
            value=_normalize_value(types[idx], value),
        )
        for idx, (i, value) in enumerate(zip(inputs, values))
    ]
    return entry, params


def _stub_node(
    selector: str,
    target: str | None,
    warnings: list[DecoderWarning],
) -> DecodedCallNode:
    return DecodedCallNode(
        target=target,
        selector=selector,
        function_name="unknown",
        signature="",
        source=AbiSource.DIRECTORY_GUESS,
        confidence=AbiConfidence.LOW,
        warnings=warnings,
    )


@dataclass(frozen=True)
class _Context:
    network: str | None
    rpc_client: StorageReader | None
    abi_by_address: dict[str, list[dict[str, Any]]] | None
    max_workers: int


def decode_calldata(
    calldata: str,
    target: str | None = None,
    abi: list[dict[str, Any]] | None = None,
    abi_source: AbiSource | None = None,
    abi_confidence: AbiConfidence | None = None,
    network: str | None = None,
    rpc_client: StorageReader | None = None,
    abi_by_address: dict[str, list[dict[str, Any]]] | None = None,
    max_depth: int | None = None,
    max_nodes: int | None = None,
) -> DecodedCallNode:
    """Decode calldata into a DecodedCallNode, unwrapping timelock execute/executeBatch payloads.

    Args:
        calldata: 0x-prefixed hex calldata.
        target: Address the calldata is sent to; used for ABI resolution.
        abi: ABI to decode with. Takes priority over any lookup.
        abi_source: Source reported for an explicit ``abi`` (default MANUAL).
        abi_confidence: Confidence reported for an explicit ``abi`` (default HIGH).
        network: Explorer network used when resolving ABIs by address.
        rpc_client: Storage reader used for proxy detection.
        abi_by_address: Preloaded ABIs keyed by address, checked before the resolver.
        max_depth: Nesting levels still allowed below this call (default 5).
        max_nodes: Nodes still allowed for this subtree (default 50).

    Raises:
        CalldataDecodeError: If calldata is not 0x-prefixed hex or shorter than a selector.
    """
    limits = Config.get_decoder_config()
    context = _Context(
        network=network,
        rpc_client=rpc_client,
        abi_by_address={k.lower(): v for k, v in abi_by_address.items()} if abi_by_address else None,
        max_workers=limits.max_workers,
    )
    return _decode(
        calldata,
        target,
        abi,
        abi_source,
        abi_confidence,
        context,
        limits.max_depth if max_depth is None else max_depth,
        limits.max_nodes if max_nodes is None else max_nodes,
    )


def _decode(
    calldata: str,
    target: str | None,
    abi: list[dict[str, Any]] | None,
    abi_source: AbiSource | None,
    abi_confidence: AbiConfidence | None,
    context: _Context,
    max_depth: int,
    max_nodes: int,
) -> DecodedCallNode:
    if max_nodes <= 0:
        selector = calldata[:10].lower() if isinstance(calldata, str) else ""
        return _stub_node(
            selector,
            target,
            [DecoderWarning(WarningKind.TRUNCATED_RECURSION, "Decoder stopped due to node limit.")],
        )

    calldata = _validate_calldata(calldata)
    selector = calldata[:10].lower()
    warnings: list[DecoderWarning] = []

    resolved_abi, source, confidence = _choose_abi(target, abi, abi_source, abi_confidence, context, warnings)

    if resolved_abi:
        try:
            entry, params = _decode_with_abi(resolved_abi, calldata)
        except _AbiDecodeFailure as e:
            logger.debug("ABI decode failed for %s: %s", selector, e)
            warnings.append(DecoderWarning(WarningKind.DECODE_FAILED, str(e)))
        else:
            node = DecodedCallNode(
                target=target,
                selector=selector,
                function_name=entry["name"],
                signature=format_signature(entry),
                params=params,
                source=source,
                confidence=confidence,
                warnings=warnings,
            )
            if _is_timelock_call(node):
                if max_depth > 0:
                    _decode_children(node, context, max_depth, max_nodes)
                else:
                    node.warnings.append(
                        DecoderWarning(WarningKind.TRUNCATED_RECURSION, "Decoder stopped due to depth limit.")
                    )
            return node

    return _directory_fallback(calldata, selector, target, warnings)


def _choose_abi(
    target: str | None,
    abi: list[dict[str, Any]] | None,
    abi_source: AbiSource | None,
    abi_confidence: AbiConfidence | None,
    context: _Context,
    warnings: list[DecoderWarning],
) -> tuple[list[dict[str, Any]] | None, AbiSource, AbiConfidence]:
    if abi:
        return abi, abi_source or AbiSource.MANUAL, abi_confidence or AbiConfidence.HIGH

    if target and context.abi_by_address:
        override = context.abi_by_address.get(target.lower())
        if override:
            return override, AbiSource.KNOWN_REGISTRY, AbiConfidence.HIGH

    error = None
    if target:
        resolution = resolve_abi(target, context.network, context.rpc_client)
        if resolution.abi:
            return resolution.abi, resolution.source, resolution.confidence
        error = resolution.error

    warnings.append(
        DecoderWarning(
            WarningKind.ABI_MISSING,
            error or "No ABI available for this call; falling back to the signature directory.",
        )
    )
    return None, AbiSource.DIRECTORY_GUESS, AbiConfidence.LOW


def _is_timelock_call(node: DecodedCallNode) -> bool:
    layout = TIMELOCK_FUNCTIONS.get(node.function_name)
    return layout is not None and [p.type for p in node.params] == layout


def _param_value(node: DecodedCallNode, index: int) -> Any:
    return node.params[index].value if index < len(node.params) else None


def _as_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _decode_child(
    calldata: Any,
    target: str | None,
    context: _Context,
    max_depth: int,
    max_nodes: int,
) -> DecodedCallNode:
    """Decode one inner call; failures stay on the child node."""
    payload = _as_hex(calldata)
    try:
        return _decode(payload, target, None, None, None, context, max_depth, max_nodes)
    except Exception as e:
        logger.debug("Inner call to %s could not be decoded: %s", target, e)
        selector = payload[:10].lower() if isinstance(payload, str) else ""
        return _stub_node(selector, target, [DecoderWarning(WarningKind.DECODE_FAILED, str(e))])


def _decode_children(node: DecodedCallNode, context: _Context, max_depth: int, max_nodes: int) -> None:
    if node.function_name == "execute":
        inner_target = _param_value(node, 0)
        payload = _param_value(node, 2)
        node.children = [_decode_child(payload, inner_target, context, max_depth - 1, max_nodes - 1)]
        return

    targets = list(_param_value(node, 0) or [])
    payloads = list(_param_value(node, 2) or [])
    if len(targets) != len(payloads):
        node.warnings.append(
            DecoderWarning(
                WarningKind.DECODE_FAILED,
                f"executeBatch has {len(targets)} targets but {len(payloads)} payloads; "
                "some inner calls may be missing.",
            )
        )

    limit = min(len(targets), len(payloads), MAX_BATCH_CALLS)
    if limit == 0:
        return
    per_child = max(1, (max_nodes - 1) // limit)

    def decode_at(index: int) -> DecodedCallNode:
        return _decode_child(payloads[index], targets[index], context, max_depth - 1, per_child)

    if limit == 1:
        node.children = [decode_at(0)]
    else:
        # map() yields in submission order, so children keep their batch index
        with ThreadPoolExecutor(max_workers=min(limit, context.max_workers)) as executor:
            node.children = list(executor.map(decode_at, range(limit)))

    if min(len(targets), len(payloads)) > limit:
        node.warnings.append(
            DecoderWarning(
                WarningKind.TRUNCATED_RECURSION,
                f"executeBatch truncated to first {limit} calls for safety.",
            )
        )


def _directory_fallback(
    calldata: str,
    selector: str,
    target: str | None,
    warnings: list[DecoderWarning],
) -> DecodedCallNode:
    try:
        best = get_best_guess(calldata)
    except SignatureDirectoryError as e:
        logger.warning("Signature directory lookup failed for %s: %s", selector, e)
        return _stub_node(selector, target, warnings + [DecoderWarning(WarningKind.DECODE_FAILED, str(e))])

    if best is None:
        return _stub_node(
            selector,
            target,
            warnings + [DecoderWarning(WarningKind.DECODE_FAILED, "No ABI and no directory match available.")],
        )

    try:
        entry, params = _decode_with_abi([best.abi], calldata)
    except _AbiDecodeFailure as e:
        return _stub_node(
            selector,
            target,
            warnings + [DecoderWarning(WarningKind.DECODE_FAILED, f"Directory guess {best.signature} did not fit: {e}")],
        )

    if best.has_collision:
        message = "Decoded using a signature directory best guess; multiple signatures share this selector."
    else:
        message = "Decoded using a signature directory best guess."

    # Guessed types are never trusted for structural recursion
    return DecodedCallNode(
        target=target,
        selector=selector,
        function_name=entry["name"],
        signature=format_signature(entry),
        params=params,
        source=AbiSource.DIRECTORY_GUESS,
        confidence=AbiConfidence.LOW,
        warnings=warnings + [DecoderWarning(WarningKind.ABI_GUESS, message)],
    )


def format_param_value(type_str: str, value: Any) -> str:
    """Format a decoded parameter value for display.

    Args:
        type_str: The ABI type, e.g. "address", "uint256", "bytes32".
        value: The decoded value from eth_abi.

    Returns:
        Human-readable string representation.
    """
    if type_str.endswith("]") and isinstance(value, (list, tuple)):
        element_type = type_str[: type_str.rindex("[")]
        return "[" + ", ".join(format_param_value(element_type, v) for v in value) + "]"
    if type_str == "address":
        return to_checksum_address(value)
    if type_str == "bytes32":
        if isinstance(value, bytes):
            hex_str = "0x" + value.hex()
            role = ROLE_NAMES.get(hex_str)
            return f"{hex_str} ({role})" if role else hex_str
        return str(value)
    if type_str.startswith("bytes"):
        if isinstance(value, bytes):
            hex_str = "0x" + value.hex()
            if len(hex_str) > 66:
                return hex_str[:66] + "..."
            return hex_str
        return str(value)
    if type_str.startswith("uint") or type_str.startswith("int"):
        return str(value)
    if type_str == "bool":
        return str(value)
    if type_str == "string":
        return f'"{value}"'
    # Fallback
    return str(value)


def format_call_lines(node: DecodedCallNode, indent: int = 0) -> list[str]:
    """Render a decoded call tree as indented text lines.

    Falls back to the raw selector when the function could not be identified.
    """
    pad = "    " * indent
    label = node.signature or f"`{node.selector}`"
    lines = [f"{pad}📝 Function: {label} [{node.source.value}/{node.confidence.value}]"]
    if node.target:
        lines.append(f"{pad}🎯 Target: {node.target}")
    for param in node.params:
        lines.append(f"{pad}    ├ {param.name} ({param.type}): `{format_param_value(param.type, param.value)}`")
    for warning in node.warnings:
        lines.append(f"{pad}⚠️ {warning.kind.value}: {warning.message}")
    for index, child in enumerate(node.children):
        lines.append(f"{pad}--- Call {index} ---")
        lines.extend(format_call_lines(child, indent + 1))
    return lines
