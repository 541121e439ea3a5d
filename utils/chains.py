from enum import Enum


class Chain(Enum):
    MAINNET = (30, "mainnet", "rbtc")
    TESTNET = (31, "testnet", "trbtc")

    def __init__(self, chain_id: int, network_name: str, symbol: str):
        self.chain_id = chain_id
        self.network_name = network_name
        self.symbol = symbol

    @classmethod
    def from_chain_id(cls, chain_id: int) -> "Chain":
        for chain in cls:
            if chain.chain_id == chain_id:
                return chain
        raise ValueError(f"Unknown chain_id: {chain_id}")

    @classmethod
    def from_name(cls, name: str) -> "Chain":
        name = name.lower()
        for chain in cls:
            if chain.network_name == name:
                return chain
        raise ValueError(f"Unknown chain name: {name}")


# Blockscout explorer (UI links, not API)
EXPLORER_URLS: dict[int, str] = {
    Chain.MAINNET.chain_id: "https://rootstock.blockscout.com",
    Chain.TESTNET.chain_id: "https://rootstock-testnet.blockscout.com",
}

# Blockscout v2 REST API
EXPLORER_API_URLS: dict[str, str] = {
    Chain.MAINNET.network_name: "https://rootstock.blockscout.com/api/v2",
    Chain.TESTNET.network_name: "https://rootstock-testnet.blockscout.com/api/v2",
}
