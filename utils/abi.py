import json
from typing import Any, Dict, List


def parse_abi(abi_data: Any) -> List[Dict[str, Any]]:
    """
    Normalize the ABI shapes found in the wild into a list of descriptors.

    Accepts a bare list, an explorer response ({"result": ...}, where the result
    may itself be a JSON string) or a compiler artifact ({"abi": [...]}).

    Raises:
        ValueError: If the ABI format is invalid
    """
    if isinstance(abi_data, str):
        abi_data = json.loads(abi_data)
    if isinstance(abi_data, dict):
        for key in ("abi", "result"):
            if key in abi_data:
                return parse_abi(abi_data[key])
        raise ValueError("Invalid ABI format")
    if isinstance(abi_data, list) and all(isinstance(item, dict) for item in abi_data):
        return abi_data
    raise ValueError("Invalid ABI format")


def load_abi(file_path: str) -> List[Dict[str, Any]]:
    """
    Load and parse an ABI file.

    Args:
        file_path: Path to the ABI file

    Returns:
        list: The ABI data as a list

    Raises:
        ValueError: If the ABI format is invalid
    """
    with open(file_path) as f:
        return parse_abi(json.load(f))
