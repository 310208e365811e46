"""Aggregation provider protocol and normalized data shapes.

This module defines the interface the account-linking workflow relies on,
so API routes and services can be exercised against a mock provider.
"""

from dataclasses import dataclass
from typing import Protocol

CASH_SYMBOL = "CASH"


@dataclass
class ProviderAccount:
    """Normalized linked account from the aggregation service."""

    id: str  # Provider's external ID for the account
    name: str  # Account name/nickname
    broker_name: str  # Brokerage/exchange name


@dataclass
class ProviderHolding:
    """One position (or the synthetic cash balance) reported by a linked account.

    Not persisted as its own entity; each one becomes an Asset row on import.
    """

    symbol: str  # Ticker symbol, or CASH_SYMBOL for aggregate free cash
    name: str  # Display name (falls back to the symbol)
    quantity: float  # Number of shares/units
    price_per_share: float  # Current price per unit
    total_value: float  # quantity * price_per_share
    gain_loss: float  # Unrealized gain/loss
    purchase_price: float  # Implied per-unit purchase price (book value / quantity)
    account_id: str  # Source account ID
    account_name: str  # Source account name
    broker_name: str  # Brokerage name

    @property
    def is_cash(self) -> bool:
        return self.symbol == CASH_SYMBOL

    @property
    def acquisition_value(self) -> float:
        """Total amount paid for the position."""
        return self.purchase_price * self.quantity


@dataclass
class CallbackResult:
    """Outcome of finalizing a linking attempt."""

    success: bool
    account_id: str
    message: str = ""


class AggregationClient(Protocol):
    """Operations the linking workflow needs from an aggregation provider."""

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'SnapTrade')."""
        ...

    def is_configured(self) -> bool:
        """Check whether client credentials are present."""
        ...

    def register_and_link_user(
        self, user_id: str, redirect_uri: str, broker_id: str | None = None
    ) -> str:
        """Register the user (idempotent) and return a connection-portal URL.

        Raises:
            AggregationConfigError: If credentials are not configured.
            AggregationMalformedResponseError: If the service answers with HTML.
            AggregationAPIError: If the service rejects a request.
            AggregationDataError: If the portal response has no redirect URL.
        """
        ...

    def fetch_holdings(self, user_id: str) -> list[ProviderHolding]:
        """Fetch holdings across every linked account of the user.

        Per-account failures are logged and skipped.
        """
        ...

    def handle_callback(self, user_id: str, code: str) -> CallbackResult:
        """Finalize a linking attempt identified by an authorization code."""
        ...
