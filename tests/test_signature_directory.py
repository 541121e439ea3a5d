"""Tests for timelock/signature_directory.py."""

import unittest
from unittest.mock import patch

from timelock import signature_directory
from timelock.signature_directory import (
    SignatureDirectoryError,
    clear_directory_cache,
    decode_candidates,
    get_best_guess,
    lookup_signature,
    parse_text_signature,
)
from utils.http import HttpError

UNKNOWN_SELECTOR = "0x12345678"


def _response(*signatures: str) -> dict:
    return {
        "count": len(signatures),
        "results": [{"text_signature": s, "hex_signature": UNKNOWN_SELECTOR} for s in signatures],
    }


class TestParseTextSignature(unittest.TestCase):
    """Tests for parse_text_signature."""

    def test_simple(self):
        fragment = parse_text_signature("transfer(address,uint256)")
        self.assertEqual(fragment["name"], "transfer")
        self.assertEqual(fragment["type"], "function")
        self.assertEqual(
            [(i["name"], i["type"]) for i in fragment["inputs"]],
            [("param0", "address"), ("param1", "uint256")],
        )

    def test_no_params(self):
        self.assertEqual(parse_text_signature("pause()")["inputs"], [])

    def test_tuple_params_stay_intact(self):
        fragment = parse_text_signature("submit((address,uint256)[],bytes)")
        self.assertEqual([i["type"] for i in fragment["inputs"]], ["(address,uint256)[]", "bytes"])

    def test_invalid(self):
        for text in ("transfer", "transfer(address", "transfer(address,,uint256)", "f((address)"):
            with self.assertRaises(SignatureDirectoryError):
                parse_text_signature(text)


class TestLookupSignature(unittest.TestCase):
    def setUp(self):
        clear_directory_cache()
        patcher = patch("timelock.signature_directory.request_json")
        self.mock_request = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        clear_directory_cache()

    def test_known_selector_skips_api(self):
        result = lookup_signature("0xA9059CBB")
        self.assertEqual(result[0].text_signature, "transfer(address,uint256)")
        self.mock_request.assert_not_called()

    def test_known_selector_guess_has_no_collision(self):
        guess = get_best_guess("0x3659cfe6" + "00" * 32)
        self.assertEqual(guess.signature, "upgradeTo(address)")
        self.assertFalse(guess.has_collision)
        self.mock_request.assert_not_called()

    def test_api_lookup_is_cached(self):
        self.mock_request.return_value = _response("foo(uint256)")

        first = lookup_signature(UNKNOWN_SELECTOR)
        second = lookup_signature(UNKNOWN_SELECTOR)

        self.assertEqual(first, second)
        self.assertEqual(first[0].text_signature, "foo(uint256)")
        self.mock_request.assert_called_once()
        url = self.mock_request.call_args[0][0]
        self.assertTrue(url.endswith("/signatures/"))
        self.assertEqual(self.mock_request.call_args[1]["params"], {"hex_signature": UNKNOWN_SELECTOR})

    def test_cache_expires(self):
        self.mock_request.return_value = _response("foo(uint256)")
        now = [0.0]
        with patch.object(signature_directory._signature_cache, "clock", lambda: now[0]):
            lookup_signature(UNKNOWN_SELECTOR)
            now[0] += signature_directory._signature_cache.ttl + 1
            lookup_signature(UNKNOWN_SELECTOR)
        self.assertEqual(self.mock_request.call_count, 2)

    def test_empty_results_not_cached(self):
        self.mock_request.return_value = _response()
        self.assertEqual(lookup_signature(UNKNOWN_SELECTOR), [])
        self.assertEqual(lookup_signature(UNKNOWN_SELECTOR), [])
        self.assertEqual(self.mock_request.call_count, 2)

    def test_http_error(self):
        self.mock_request.side_effect = HttpError("HTTP 500", 500)
        with self.assertRaises(SignatureDirectoryError):
            lookup_signature(UNKNOWN_SELECTOR)

    def test_unexpected_payload(self):
        self.mock_request.return_value = {"detail": "throttled"}
        with self.assertRaises(SignatureDirectoryError):
            lookup_signature(UNKNOWN_SELECTOR)

    def test_invalid_selector(self):
        for selector in ("0x1234", "12345678", "0xzzzzzzzz", None):
            with self.assertRaises(SignatureDirectoryError):
                lookup_signature(selector)
        self.mock_request.assert_not_called()


class TestBestGuess(unittest.TestCase):
    def setUp(self):
        clear_directory_cache()

    def tearDown(self):
        clear_directory_cache()

    @patch("timelock.signature_directory.request_json")
    def test_collision_flag(self, mock_request):
        mock_request.return_value = _response("foo(uint256)", "bar(bytes32)")

        guess = get_best_guess(UNKNOWN_SELECTOR + "00" * 32)

        self.assertEqual(guess.signature, "foo(uint256)")
        self.assertEqual(guess.abi["name"], "foo")
        self.assertTrue(guess.has_collision)

    @patch("timelock.signature_directory.request_json")
    def test_single_candidate(self, mock_request):
        mock_request.return_value = _response("foo(uint256)")
        self.assertFalse(get_best_guess(UNKNOWN_SELECTOR).has_collision)

    @patch("timelock.signature_directory.request_json")
    def test_no_candidates(self, mock_request):
        mock_request.return_value = _response()
        self.assertIsNone(get_best_guess(UNKNOWN_SELECTOR))
        self.assertEqual(decode_candidates(UNKNOWN_SELECTOR), [])

    def test_short_calldata(self):
        with self.assertRaises(SignatureDirectoryError):
            get_best_guess("0x12")


if __name__ == "__main__":
    unittest.main()
