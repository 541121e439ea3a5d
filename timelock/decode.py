#!/usr/bin/env python3
"""Decode timelock calldata from the command line.

Example:
    python -m timelock.decode 0x134008d3... --target 0xTimelock --network mainnet
"""

import argparse
import json
import sys

from dotenv import load_dotenv

from timelock.abi_store import load_manual_abis
from timelock.calldata_decoder import CalldataDecodeError, decode_calldata, format_call_lines
from timelock.dangerous import find_dangerous_calls
from utils.abi import load_abi
from utils.chains import Chain
from utils.logging import get_logger, set_log_level
from utils.web3_wrapper import ChainManager, Web3Client

load_dotenv()

logger = get_logger("timelock.decode")

_LOGGERS = (
    "timelock.decode",
    "timelock.calldata_decoder",
    "timelock.abi_resolver",
    "timelock.blockscout",
    "timelock.signature_directory",
    "timelock.abi_store",
    "timelock.known_abis",
    "utils.config",
    "utils.http",
    "utils.web3_wrapper",
)


def _rpc_client(network: str) -> Web3Client | None:
    try:
        return ChainManager.get_client(Chain.from_name(network))
    except ValueError as e:
        logger.info("Proxy detection disabled: %s", e)
        return None


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Decode TimelockController calldata into a call tree.")
    parser.add_argument("calldata", help="0x-prefixed calldata")
    parser.add_argument("--target", help="Address the calldata is sent to")
    parser.add_argument("--network", default="mainnet", choices=[c.network_name for c in Chain])
    parser.add_argument("--abi-file", help="ABI JSON file to decode the outer call with")
    parser.add_argument("--max-depth", type=int, default=None)
    parser.add_argument("--max-nodes", type=int, default=None)
    parser.add_argument("--no-rpc", action="store_true", help="Skip proxy detection")
    parser.add_argument("--json", action="store_true", help="Print the call tree as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR).")
    args = parser.parse_args(argv)

    set_log_level(args.log_level, *_LOGGERS, stream=sys.stderr)
    load_manual_abis()

    abi = load_abi(args.abi_file) if args.abi_file else None
    rpc_client = None if args.no_rpc else _rpc_client(args.network)

    try:
        node = decode_calldata(
            args.calldata,
            target=args.target,
            abi=abi,
            network=args.network,
            rpc_client=rpc_client,
            max_depth=args.max_depth,
            max_nodes=args.max_nodes,
        )
    except CalldataDecodeError as e:
        print(f"Invalid calldata: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(node.to_dict(), indent=2))
    else:
        print("\n".join(format_call_lines(node)))
        for call in find_dangerous_calls(node):
            print(f"🚨 Dangerous call: {call.function_name} ({call.selector})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
