"""Fixed instrument universe for the market-cap fan-out (CoinGecko ids)."""

from __future__ import annotations

DEFAULT_UNIVERSE: tuple[str, ...] = (
    "bitcoin",
    "ethereum",
    "tether",
    "bnb",
    "solana",
    "usdc",
    "xrp",
    "steth",
    "cardano",
    "dogecoin",
    "avalanche-2",
    "tron",
    "shiba-inu",
    "chainlink",
    "wrapped-bitcoin",
    "polkadot",
    "bitcoin-cash",
    "uniswap",
    "near",
    "litecoin",
    "polygon",
    "internet-computer",
    "dai",
    "kaspa",
    "ethereum-classic",
    "monero",
    "stellar",
    "okb",
    "filecoin",
    "cosmos",
    "cronos",
    "hedera-hashgraph",
    "mantle",
    "arbitrum",
    "vechain",
    "render-token",
    "immutable-x",
    "optimism",
    "first-digital-usd",
    "maker",
    "injective-protocol",
    "celestia",
    "sei-network",
    "bittensor",
    "thorchain",
    "the-graph",
    "fantom",
    "rocket-pool-eth",
    "lido-dao",
    "aave",
)
