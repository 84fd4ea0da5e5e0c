"""
Exchange Rate Service using the National Bank of Georgia API

DESIGN DECISION: We use the NBG official rates because:
1. They are the rates the Georgian tax authority recognises
2. Historical rates are available for any date
3. The endpoint is public and needs no credentials

This service handles:
1. Fetching the rate of one currency on one date
2. Fetching the latest rates of all supported currencies
3. Turning transport and format failures into typed errors

CRITICAL: The home currency never touches the network - its rate is 1.
Rates are quoted per `quantity` units; we always return the rate per unit.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from taxledger.config import ExchangeRateSettings, get_settings
from taxledger.models.payment import Currency


logger = structlog.get_logger(__name__)


class RateUnavailableError(Exception):
    """Base exception: no rate could be obtained."""
    pass


class NetworkError(RateUnavailableError):
    """The rate API could not be reached or answered with an error status."""
    pass


class InvalidResponseError(RateUnavailableError):
    """The rate API answered with something we cannot decode."""
    pass


class CurrencyNotFoundError(RateUnavailableError):
    """The requested currency is absent from the response."""

    def __init__(self, currency: str, message: Optional[str] = None):
        self.currency = currency
        super().__init__(message or f"Currency not found in response: {currency}")


class RateProviderInterface(ABC):
    """
    Supplies exchange rates to the home currency.

    Implementations must return 1 for the home currency without
    doing any I/O.
    """

    home_currency: Currency = Currency.GEL

    @abstractmethod
    def fetch_rate(self, currency: Currency, on_date: date) -> Decimal:
        """
        Rate of `currency` to the home currency valid on `on_date`.

        Raises:
            RateUnavailableError: Or one of its subclasses
        """
        pass

    @abstractmethod
    def fetch_latest_rates(self) -> dict[Currency, Decimal]:
        """Latest rates of all supported currencies, home included as 1."""
        pass


class StaticRateProvider(RateProviderInterface):
    """
    Rates from a fixed mapping.

    Used for manually entered rates, offline sessions and tests.
    """

    def __init__(
        self,
        rates: dict[Currency, Decimal],
        home_currency: Currency = Currency.GEL,
    ):
        self.home_currency = home_currency
        self._rates = {Currency(k): Decimal(str(v)) for k, v in rates.items()}

    def fetch_rate(self, currency: Currency, on_date: date) -> Decimal:
        if currency == self.home_currency:
            return Decimal("1")
        try:
            return self._rates[currency]
        except KeyError:
            raise CurrencyNotFoundError(currency.value)

    def fetch_latest_rates(self) -> dict[Currency, Decimal]:
        return {self.home_currency: Decimal("1"), **self._rates}


class NBGRateProvider(RateProviderInterface):
    """
    Rate provider backed by the NBG currencies endpoint.

    Response shape (a list with one entry per requested day):
        [{"date": "...", "currencies": [{"code": "EUR", "rate": 3.1, "quantity": 1, ...}]}]

    Network failures are retried with exponential backoff; decoding
    failures and unknown currencies are not.
    """

    home_currency = Currency.GEL

    def __init__(
        self,
        settings: Optional[ExchangeRateSettings] = None,
        session: Optional[requests.Session] = None,
    ):
        self._settings = settings or get_settings().exchange_rates
        self._session = session or requests.Session()

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self._settings.user_agent,
        }

    def _request(self, url: str, params: Optional[dict]) -> list:
        """One HTTP round trip, returning the decoded JSON body."""
        try:
            response = self._session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self._settings.timeout_seconds,
            )
        except requests.RequestException as e:
            raise NetworkError(f"Failed to reach NBG API: {e}") from e

        if response.status_code != 200:
            raise NetworkError(f"NBG API returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(f"NBG API returned invalid JSON: {e}") from e

    def _get_json(self, url: str, params: Optional[dict] = None) -> list:
        retrying = Retrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.retry_wait_seconds,
                min=0,
                max=10,
            ),
            retry=retry_if_exception_type(NetworkError),
            reraise=True,
        )
        return retrying(self._request, url, params)

    def _currencies(self, payload) -> list[dict]:
        """Currency entries of the first day in the response."""
        try:
            day = payload[0]
            currencies = day["currencies"]
        except (IndexError, KeyError, TypeError) as e:
            raise InvalidResponseError(f"Unexpected NBG response shape: {e}") from e
        if not isinstance(currencies, list):
            raise InvalidResponseError("Unexpected NBG response shape: currencies is not a list")
        return currencies

    def _unit_rate(self, entry: dict) -> Decimal:
        try:
            rate = Decimal(str(entry["rate"]))
            quantity = Decimal(str(entry.get("quantity") or 1))
        except (KeyError, InvalidOperation, TypeError) as e:
            raise InvalidResponseError(f"Invalid rate entry: {entry!r}") from e
        if rate <= 0 or quantity <= 0:
            raise InvalidResponseError(f"Non-positive rate entry: {entry!r}")
        return rate / quantity

    def fetch_rate(self, currency: Currency, on_date: date) -> Decimal:
        if currency == self.home_currency:
            return Decimal("1")

        url = f"{self._settings.base_url}/ka/json/"
        payload = self._get_json(url, params={"date": on_date.isoformat()})

        for entry in self._currencies(payload):
            if isinstance(entry, dict) and entry.get("code") == currency.value:
                rate = self._unit_rate(entry)
                logger.info(
                    "rate_fetched",
                    currency=currency.value,
                    date=on_date.isoformat(),
                    rate=str(rate),
                )
                return rate

        raise CurrencyNotFoundError(currency.value)

    def fetch_latest_rates(self) -> dict[Currency, Decimal]:
        url = f"{self._settings.base_url}/ka/json"
        payload = self._get_json(url)

        rates = {self.home_currency: Decimal("1")}
        known = {c.value: c for c in Currency}
        for entry in self._currencies(payload):
            if not isinstance(entry, dict):
                continue
            currency = known.get(entry.get("code"))
            if currency is None or currency == self.home_currency:
                continue
            rates[currency] = self._unit_rate(entry)

        logger.info("latest_rates_fetched", count=len(rates) - 1)
        return rates
