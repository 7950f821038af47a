"""
Core Package

Contains the source-agnostic core of the market info engine:
- CoinType: Closed tagged variant identifying a coin across chains
- MarketInfoProvider: Abstract base class every upstream source implements
- MarketInfoRouter: Sends each coin to the provider that serves its kind
- Schemas: Pydantic models for normalized records (market info, charts, detail)
- Transport, parsing and error types shared by the providers

Providers depend on this package; this package never depends on a provider.
"""
