"""
Providers Package

Upstream market data sources, each implementing MarketInfoProvider:

- coingecko: CoinGecko v3 REST aggregator API (all non-DEX coins, detail, charts)
- uniswap: Uniswap v2 subgraph (Ethereum and ERC20 tokens)

Alongside them, defiyield looks up security audits of token contracts.

New sources go in their own subpackage and are wired through MarketInfoRouter.
"""
