"""
Price fetchers for multiple API sources.

This module provides a unified interface for fetching an asset's USD price
from independent market data APIs.

Usage:
    from feeder.src.fetchers import get_fetcher, get_available_fetchers

    # Get list of available fetchers
    available = get_available_fetchers()
    # ['coingecko', 'coinmarketcap', 'coinstats']

    # Create a fetcher instance
    fetcher = get_fetcher("coingecko")
    price = await fetcher.fetch("aleo")

    # For fetchers requiring API keys
    fetcher = get_fetcher("coinstats", api_key="your-api-key")
"""

# Import base classes and utilities
from .base import (
    FETCHER_REGISTRY,
    BaseFetcher,
    FetcherConfigError,
    FetcherError,
    FetcherHTTPError,
    get_available_fetchers,
    get_fetcher,
    register_fetcher,
)

# Import all fetcher implementations to trigger registration
from .coingecko import CoinGeckoFetcher
from .coinmarketcap import CoinMarketCapFetcher
from .coinstats import CoinStatsFetcher

__all__ = [
    # Base classes
    "BaseFetcher",
    "FetcherError",
    "FetcherConfigError",
    "FetcherHTTPError",
    # Registry functions
    "register_fetcher",
    "get_fetcher",
    "get_available_fetchers",
    "FETCHER_REGISTRY",
    # Fetcher implementations
    "CoinGeckoFetcher",
    "CoinMarketCapFetcher",
    "CoinStatsFetcher",
]
