"""Tests for timelock/calldata_decoder.py."""

import unittest
from unittest.mock import patch

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from timelock.abi_resolver import AbiConfidence, AbiResolution, AbiSource
from timelock.calldata_decoder import (
    MAX_BATCH_CALLS,
    CalldataDecodeError,
    DecodedCallNode,
    WarningKind,
    decode_calldata,
    find_function,
    format_call_lines,
    format_param_value,
    format_signature,
    function_selector,
)
from timelock.known_abis import ERC20_ABI, TIMELOCK_CONTROLLER_ABI
from timelock.signature_directory import BestGuess, SignatureDirectoryError, parse_text_signature

TIMELOCK = "0x" + "aa" * 20
TOKEN = "0x" + "11" * 20
OTHER_TOKEN = "0x" + "22" * 20
RECIPIENT = "0x" + "33" * 20
ZERO32 = b"\x00" * 32
SALT = b"\x01" * 32

EXECUTE_TYPES = ["address", "uint256", "bytes", "bytes32", "bytes32"]
EXECUTE_BATCH_TYPES = ["address[]", "uint256[]", "bytes[]", "bytes32", "bytes32"]


def _calldata(signature: str, types: list[str], values: list) -> str:
    selector = function_signature_to_4byte_selector(signature).hex()
    return "0x" + selector + encode(types, values).hex()


def _transfer(to: str = RECIPIENT, amount: int = 1) -> str:
    return _calldata("transfer(address,uint256)", ["address", "uint256"], [to, amount])


def _execute(target: str, payload: str) -> str:
    return _calldata(
        "execute(address,uint256,bytes,bytes32,bytes32)",
        EXECUTE_TYPES,
        [target, 0, bytes.fromhex(payload[2:]), ZERO32, SALT],
    )


def _execute_batch(targets: list[str], payloads: list[str]) -> str:
    return _calldata(
        "executeBatch(address[],uint256[],bytes[],bytes32,bytes32)",
        EXECUTE_BATCH_TYPES,
        [targets, [0] * len(targets), [bytes.fromhex(p[2:]) for p in payloads], ZERO32, SALT],
    )


# transfer(address,uint256) calldata:
# to=0x0000...0001, amount=1000
TRANSFER_CALLDATA = (
    "0xa9059cbb"
    "0000000000000000000000000000000000000000000000000000000000000001"
    "00000000000000000000000000000000000000000000000000000000000003e8"
)


class TestAbiHelpers(unittest.TestCase):
    """Tests for selector matching and signature formatting."""

    def test_function_selector_matches_known_values(self):
        transfer = find_function(ERC20_ABI, "0xa9059cbb")
        self.assertIsNotNone(transfer)
        self.assertEqual(function_selector(transfer), "0xa9059cbb")

    def test_timelock_selectors(self):
        self.assertEqual(find_function(TIMELOCK_CONTROLLER_ABI, "0x134008d3")["name"], "execute")
        self.assertEqual(find_function(TIMELOCK_CONTROLLER_ABI, "0xe38335e5")["name"], "executeBatch")

    def test_selector_match_is_case_insensitive(self):
        self.assertIsNotNone(find_function(ERC20_ABI, "0xA9059CBB"))

    def test_tuple_inputs_use_canonical_types(self):
        entry = {
            "type": "function",
            "name": "submit",
            "inputs": [
                {"name": "order", "type": "tuple", "components": [{"type": "address"}, {"type": "uint256"}]},
            ],
        }
        expected = "0x" + function_signature_to_4byte_selector("submit((address,uint256))").hex()
        self.assertEqual(function_selector(entry), expected)

    def test_events_are_ignored(self):
        self.assertIsNone(find_function([{"type": "event", "name": "transfer", "inputs": []}], "0xa9059cbb"))

    def test_format_signature_names_unnamed_params(self):
        entry = {"name": "foo", "inputs": [{"type": "uint256", "name": "amount"}, {"type": "address", "name": ""}]}
        self.assertEqual(format_signature(entry), "foo(uint256 amount,address param1)")


class TestDecodeWithAbi(unittest.TestCase):
    """Decoding against a supplied or resolved ABI."""

    def test_erc20_transfer_with_explicit_abi(self):
        node = decode_calldata(_transfer(amount=1), abi=ERC20_ABI)

        self.assertIsInstance(node, DecodedCallNode)
        self.assertEqual(node.function_name, "transfer")
        self.assertEqual(node.selector, "0xa9059cbb")
        self.assertEqual(node.signature, "transfer(address to,uint256 amount)")
        self.assertEqual([(p.name, p.type) for p in node.params], [("to", "address"), ("amount", "uint256")])
        self.assertEqual(node.params[0].value.lower(), RECIPIENT)
        self.assertEqual(node.params[1].value, 1)
        self.assertEqual(node.source, AbiSource.MANUAL)
        self.assertEqual(node.confidence, AbiConfidence.HIGH)
        self.assertEqual(node.warnings, [])
        self.assertEqual(node.children, [])

    def test_explicit_abi_metadata_is_reported(self):
        node = decode_calldata(
            _transfer(),
            abi=ERC20_ABI,
            abi_source=AbiSource.EXPLORER_VERIFIED,
            abi_confidence=AbiConfidence.HIGH,
        )
        self.assertEqual(node.source, AbiSource.EXPLORER_VERIFIED)

    def test_uint256_values_keep_full_precision(self):
        amount = 2**256 - 1
        node = decode_calldata(_transfer(amount=amount), abi=ERC20_ABI)
        self.assertEqual(node.params[1].value, amount)

    def test_hand_encoded_fixture(self):
        node = decode_calldata(TRANSFER_CALLDATA, abi=ERC20_ABI)
        self.assertEqual(node.params[0].value, to_checksum_address("0x" + "00" * 19 + "01"))
        self.assertEqual(node.params[1].value, 1000)

    @patch("timelock.calldata_decoder.resolve_abi")
    def test_abi_by_address_wins_over_resolver(self, mock_resolve):
        node = decode_calldata(_transfer(), target=TOKEN, abi_by_address={TOKEN.upper().replace("0X", "0x"): ERC20_ABI})
        self.assertEqual(node.function_name, "transfer")
        self.assertEqual(node.source, AbiSource.KNOWN_REGISTRY)
        mock_resolve.assert_not_called()

    @patch("timelock.calldata_decoder.resolve_abi")
    def test_resolver_result_metadata_is_used(self, mock_resolve):
        mock_resolve.return_value = AbiResolution(
            abi=ERC20_ABI, source=AbiSource.EXPLORER_VERIFIED, confidence=AbiConfidence.HIGH
        )
        node = decode_calldata(_transfer(), target=TOKEN, network="mainnet")

        mock_resolve.assert_called_once_with(TOKEN, "mainnet", None)
        self.assertEqual(node.source, AbiSource.EXPLORER_VERIFIED)
        self.assertEqual(node.confidence, AbiConfidence.HIGH)

    @patch("timelock.calldata_decoder.get_best_guess")
    @patch("timelock.calldata_decoder.resolve_abi")
    def test_selector_missing_from_abi_falls_back(self, mock_resolve, mock_guess):
        mock_guess.return_value = None
        node = decode_calldata("0xdeadbeef" + "00" * 32, abi=ERC20_ABI)

        self.assertEqual(node.function_name, "unknown")
        self.assertTrue(node.has_warning(WarningKind.DECODE_FAILED))
        self.assertEqual(len([w for w in node.warnings if w.kind == WarningKind.DECODE_FAILED]), 2)
        mock_guess.assert_called_once()
        mock_resolve.assert_not_called()

    @patch("timelock.calldata_decoder.get_best_guess")
    def test_truncated_arguments_fall_back(self, mock_guess):
        mock_guess.return_value = None
        node = decode_calldata("0xa9059cbb0000", abi=ERC20_ABI)
        self.assertEqual(node.warnings[0].kind, WarningKind.DECODE_FAILED)
        self.assertEqual(node.function_name, "unknown")


class TestDirectoryFallback(unittest.TestCase):
    """No usable ABI: the signature directory provides a best guess."""

    @patch("timelock.calldata_decoder.get_best_guess")
    @patch("timelock.calldata_decoder.resolve_abi")
    def test_guess_with_collision(self, mock_resolve, mock_guess):
        mock_resolve.return_value = AbiResolution(
            abi=[], source=AbiSource.EXPLORER_VERIFIED, confidence=AbiConfidence.LOW, error="not verified"
        )
        mock_guess.return_value = BestGuess(
            signature="transfer(address,uint256)",
            abi=parse_text_signature("transfer(address,uint256)"),
            has_collision=True,
        )
        node = decode_calldata(_transfer(amount=5), target=TOKEN, network="mainnet")

        self.assertEqual(node.function_name, "transfer")
        self.assertEqual(node.signature, "transfer(address param0,uint256 param1)")
        self.assertEqual(node.params[1].name, "param1")
        self.assertEqual(node.params[1].value, 5)
        self.assertEqual(node.source, AbiSource.DIRECTORY_GUESS)
        self.assertEqual(node.confidence, AbiConfidence.LOW)
        self.assertEqual(node.warnings[0].kind, WarningKind.ABI_MISSING)
        self.assertEqual(node.warnings[0].message, "not verified")
        self.assertEqual(node.warnings[1].kind, WarningKind.ABI_GUESS)
        self.assertIn("multiple signatures", node.warnings[1].message)

    @patch("timelock.calldata_decoder.get_best_guess")
    def test_no_directory_match(self, mock_guess):
        mock_guess.return_value = None
        node = decode_calldata("0xdeadbeef")

        self.assertEqual(node.function_name, "unknown")
        self.assertEqual(node.signature, "")
        self.assertEqual(node.source, AbiSource.DIRECTORY_GUESS)
        self.assertEqual(
            [w.kind for w in node.warnings],
            [WarningKind.ABI_MISSING, WarningKind.DECODE_FAILED],
        )
        self.assertIn("no directory match", node.warnings[1].message)

    @patch("timelock.calldata_decoder.get_best_guess")
    def test_directory_error_becomes_warning(self, mock_guess):
        mock_guess.side_effect = SignatureDirectoryError("HTTP 503")
        node = decode_calldata("0xdeadbeef")

        self.assertEqual(node.function_name, "unknown")
        self.assertEqual(node.warnings[-1].kind, WarningKind.DECODE_FAILED)
        self.assertIn("HTTP 503", node.warnings[-1].message)

    @patch("timelock.calldata_decoder.get_best_guess")
    def test_directory_guess_never_recurses(self, mock_guess):
        signature = "execute(address,uint256,bytes,bytes32,bytes32)"
        mock_guess.return_value = BestGuess(signature, parse_text_signature(signature), False)
        node = decode_calldata(_execute(TOKEN, _transfer()))

        self.assertEqual(node.function_name, "execute")
        self.assertEqual(node.source, AbiSource.DIRECTORY_GUESS)
        self.assertEqual(node.children, [])


class TestTimelockRecursion(unittest.TestCase):
    """Recursive unwrapping of execute/executeBatch."""

    def test_execute_round_trip(self):
        node = decode_calldata(
            _execute(TOKEN, _transfer(amount=42)),
            target=TIMELOCK,
            abi=TIMELOCK_CONTROLLER_ABI,
            abi_by_address={TOKEN: ERC20_ABI},
        )

        self.assertEqual(node.function_name, "execute")
        self.assertEqual(len(node.children), 1)
        child = node.children[0]
        self.assertEqual(child.target.lower(), TOKEN)
        self.assertEqual(child.function_name, "transfer")
        self.assertEqual(child.params[0].value.lower(), RECIPIENT)
        self.assertEqual(child.params[1].value, 42)
        self.assertEqual(child.source, AbiSource.KNOWN_REGISTRY)

    def test_max_depth_zero_stops_with_warning(self):
        node = decode_calldata(_execute(TOKEN, _transfer()), abi=TIMELOCK_CONTROLLER_ABI, max_depth=0)
        self.assertEqual(node.function_name, "execute")
        self.assertEqual(node.children, [])
        self.assertEqual([w.kind for w in node.warnings], [WarningKind.TRUNCATED_RECURSION])
        self.assertIn("depth limit", node.warnings[0].message)

    def test_nested_execute_depth_is_bounded(self):
        calldata = _transfer()
        for _ in range(4):
            calldata = _execute(TIMELOCK, calldata)
        node = decode_calldata(
            calldata, abi=TIMELOCK_CONTROLLER_ABI, abi_by_address={TIMELOCK: TIMELOCK_CONTROLLER_ABI}, max_depth=2
        )

        self.assertEqual(node.children[0].function_name, "execute")
        grandchild = node.children[0].children[0]
        self.assertEqual(grandchild.function_name, "execute")
        self.assertEqual(grandchild.children, [])
        self.assertTrue(grandchild.has_warning(WarningKind.TRUNCATED_RECURSION))
        self.assertFalse(node.has_warning(WarningKind.TRUNCATED_RECURSION))

    def test_node_budget_exhausted_in_child(self):
        node = decode_calldata(
            _execute(TOKEN, _transfer()), abi=TIMELOCK_CONTROLLER_ABI, abi_by_address={TOKEN: ERC20_ABI}, max_nodes=1
        )
        child = node.children[0]
        self.assertEqual(child.function_name, "unknown")
        self.assertTrue(child.has_warning(WarningKind.TRUNCATED_RECURSION))

    def test_max_nodes_zero_returns_stub(self):
        for calldata in (_execute(TOKEN, _transfer()), "0xdeadbeef", "not-hex"):
            node = decode_calldata(calldata, abi=TIMELOCK_CONTROLLER_ABI, max_nodes=0)
            self.assertEqual(node.function_name, "unknown")
            self.assertEqual(node.children, [])
            self.assertEqual([w.kind for w in node.warnings], [WarningKind.TRUNCATED_RECURSION])

    def test_execute_batch_keeps_index_order(self):
        payloads = [_transfer(amount=i) for i in range(6)]
        targets = [TOKEN if i % 2 == 0 else OTHER_TOKEN for i in range(6)]
        node = decode_calldata(
            _execute_batch(targets, payloads),
            abi=TIMELOCK_CONTROLLER_ABI,
            abi_by_address={TOKEN: ERC20_ABI, OTHER_TOKEN: ERC20_ABI},
        )

        self.assertEqual(node.function_name, "executeBatch")
        self.assertEqual(len(node.children), 6)
        for i, child in enumerate(node.children):
            self.assertEqual(child.target.lower(), targets[i])
            self.assertEqual(child.params[1].value, i)
        self.assertEqual(node.warnings, [])

    def test_execute_batch_length_mismatch(self):
        targets = [TOKEN, TOKEN, TOKEN]
        payloads = [_transfer(amount=1), _transfer(amount=2)]
        node = decode_calldata(
            _execute_batch(targets, payloads), abi=TIMELOCK_CONTROLLER_ABI, abi_by_address={TOKEN: ERC20_ABI}
        )

        self.assertTrue(node.has_warning(WarningKind.DECODE_FAILED))
        self.assertEqual(len(node.children), 2)
        self.assertEqual([c.params[1].value for c in node.children], [1, 2])

    def test_execute_batch_is_capped(self):
        count = MAX_BATCH_CALLS + 10
        node = decode_calldata(
            _execute_batch([TOKEN] * count, [_transfer()] * count),
            abi=TIMELOCK_CONTROLLER_ABI,
            abi_by_address={TOKEN: ERC20_ABI},
            max_nodes=1000,
        )

        self.assertEqual(len(node.children), MAX_BATCH_CALLS)
        self.assertTrue(node.has_warning(WarningKind.TRUNCATED_RECURSION))
        self.assertFalse(node.has_warning(WarningKind.DECODE_FAILED))

    @patch("timelock.calldata_decoder.get_best_guess")
    def test_failing_child_does_not_affect_siblings(self, mock_guess):
        mock_guess.return_value = None
        payloads = [_transfer(amount=1), "0x", _transfer(amount=3)]
        node = decode_calldata(
            _execute_batch([TOKEN] * 3, payloads), abi=TIMELOCK_CONTROLLER_ABI, abi_by_address={TOKEN: ERC20_ABI}
        )

        self.assertEqual(len(node.children), 3)
        self.assertEqual(node.children[0].function_name, "transfer")
        self.assertEqual(node.children[1].function_name, "unknown")
        self.assertTrue(node.children[1].has_warning(WarningKind.DECODE_FAILED))
        self.assertEqual(node.children[2].params[1].value, 3)
        self.assertEqual(node.warnings, [])

    @patch("timelock.calldata_decoder.resolve_abi")
    def test_children_are_resolved_per_target(self, mock_resolve):
        def resolve(address, network, rpc_client=None):
            if address.lower() == TOKEN:
                return AbiResolution(ERC20_ABI, AbiSource.EXPLORER_VERIFIED, AbiConfidence.HIGH)
            return AbiResolution([], AbiSource.EXPLORER_VERIFIED, AbiConfidence.LOW, error="nope")

        mock_resolve.side_effect = resolve
        with patch("timelock.calldata_decoder.get_best_guess", return_value=None):
            node = decode_calldata(
                _execute_batch([TOKEN, OTHER_TOKEN], [_transfer(), _transfer()]),
                abi=TIMELOCK_CONTROLLER_ABI,
                network="testnet",
            )

        self.assertEqual(node.children[0].source, AbiSource.EXPLORER_VERIFIED)
        self.assertEqual(node.children[1].function_name, "unknown")
        self.assertTrue(node.children[1].has_warning(WarningKind.ABI_MISSING))

    def test_non_timelock_execute_is_not_unwrapped(self):
        abi = [{"type": "function", "name": "execute", "inputs": [{"name": "proposalId", "type": "uint256"}]}]
        calldata = _calldata("execute(uint256)", ["uint256"], [7])
        node = decode_calldata(calldata, abi=abi)
        self.assertEqual(node.function_name, "execute")
        self.assertEqual(node.children, [])
        self.assertEqual(node.warnings, [])


class TestInputValidation(unittest.TestCase):
    def test_malformed_calldata_raises(self):
        for calldata in ("a9059cbb", "0x1234", "", "0xzzzzzzzz", None):
            with self.assertRaises(CalldataDecodeError):
                decode_calldata(calldata, abi=ERC20_ABI)


class TestFormatParamValue(unittest.TestCase):
    """Tests for format_param_value."""

    def test_address(self):
        result = format_param_value("address", "0x5d8a7dc9405f08f14541ba918c1bf7eb2dace556")
        self.assertEqual(result, "0x5d8A7DC9405F08F14541BA918c1Bf7eb2dACE556")

    def test_uint256(self):
        self.assertEqual(format_param_value("uint256", 1000), "1000")

    def test_bytes32_role_name(self):
        role = bytes.fromhex("b09aa5aeb3702cfd50b6b62bc4532604938f21248a27a1d5ca736082b6819cc1")
        self.assertEqual(format_param_value("bytes32", role), "0x" + role.hex() + " (Proposer)")

    def test_bytes_long_truncated(self):
        result = format_param_value("bytes", b"\xff" * 64)
        self.assertTrue(result.endswith("..."))
        self.assertEqual(len(result), 66 + 3)

    def test_arrays(self):
        self.assertEqual(format_param_value("uint256[]", [1, 2]), "[1, 2]")

    def test_string(self):
        self.assertEqual(format_param_value("string", "hello"), '"hello"')


class TestRendering(unittest.TestCase):
    def test_format_call_lines_tree(self):
        node = decode_calldata(
            _execute(TOKEN, _transfer(amount=1000)),
            target=TIMELOCK,
            abi=TIMELOCK_CONTROLLER_ABI,
            abi_by_address={TOKEN: ERC20_ABI},
        )
        lines = format_call_lines(node)

        self.assertTrue(lines[0].startswith("📝 Function: execute("))
        self.assertIn("--- Call 0 ---", lines)
        self.assertTrue(any(line.startswith("    📝 Function: transfer(") for line in lines))
        self.assertTrue(any("`1000`" in line for line in lines))

    @patch("timelock.calldata_decoder.get_best_guess", return_value=None)
    def test_unknown_function_shows_selector(self, _mock_guess):
        lines = format_call_lines(decode_calldata("0xdeadbeef"))
        self.assertIn("`0xdeadbeef`", lines[0])
        self.assertTrue(any("DECODE_FAILED" in line for line in lines))

    def test_to_dict_is_json_friendly(self):
        node = decode_calldata(_execute(TOKEN, _transfer()), abi=TIMELOCK_CONTROLLER_ABI, max_depth=0)
        data = node.to_dict()

        self.assertEqual(data["functionName"], "execute")
        self.assertEqual(data["source"], "MANUAL")
        payload = data["params"][2]
        self.assertEqual(payload["type"], "bytes")
        self.assertTrue(payload["value"].startswith("0xa9059cbb"))


if __name__ == "__main__":
    unittest.main()
