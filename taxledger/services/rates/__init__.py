"""Exchange rate services package."""

from taxledger.services.rates.nbg_service import (
    CurrencyNotFoundError,
    InvalidResponseError,
    NBGRateProvider,
    NetworkError,
    RateProviderInterface,
    RateUnavailableError,
    StaticRateProvider,
)

__all__ = [
    "CurrencyNotFoundError",
    "InvalidResponseError",
    "NBGRateProvider",
    "NetworkError",
    "RateProviderInterface",
    "RateUnavailableError",
    "StaticRateProvider",
]
