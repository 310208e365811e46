"""External API integrations.

This package contains:
- Provider protocol: The interface the account-linking workflow relies on
- Retrying HTTP client: Transport-failure retry with exponential backoff
- SnapTrade client: Integration with the SnapTrade REST API
"""

from integrations.provider_protocol import (
    AggregationClient,
    CallbackResult,
    ProviderAccount,
    ProviderHolding,
)
from integrations.snaptrade_client import SnapTradeClient, SnapTradeConfig

__all__ = [
    "AggregationClient",
    "CallbackResult",
    "ProviderAccount",
    "ProviderHolding",
    "SnapTradeClient",
    "SnapTradeConfig",
]
