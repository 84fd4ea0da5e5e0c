"""Services package."""

from taxledger.services.rates import (
    CurrencyNotFoundError,
    InvalidResponseError,
    NBGRateProvider,
    NetworkError,
    RateProviderInterface,
    RateUnavailableError,
    StaticRateProvider,
)
from taxledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryStorage,
    NotFoundError,
    RecordStoreInterface,
    SQLStorage,
    StorageError,
    StorageInterface,
)

__all__ = [
    # Rate services
    "CurrencyNotFoundError",
    "InvalidResponseError",
    "NBGRateProvider",
    "NetworkError",
    "RateProviderInterface",
    "RateUnavailableError",
    "StaticRateProvider",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryStorage",
    "NotFoundError",
    "RecordStoreInterface",
    "SQLStorage",
    "StorageError",
    "StorageInterface",
]
