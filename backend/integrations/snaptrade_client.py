"""SnapTrade REST API client.

This module implements the AggregationClient protocol against the
SnapTrade REST surface, either directly or through a same-origin relay
that wraps each upstream response in a JSON envelope.
"""

import json
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from integrations.exceptions import (
    AggregationAPIError,
    AggregationConfigError,
    AggregationConnectionError,
    AggregationDataError,
    AggregationError,
    AggregationMalformedResponseError,
)
from integrations.parsing_utils import looks_like_html, preview, to_float
from integrations.provider_protocol import (
    CASH_SYMBOL,
    CallbackResult,
    ProviderAccount,
    ProviderHolding,
)
from integrations.retrying_http import RetryingHttpClient

logger = logging.getLogger(__name__)

PROVIDER_NAME = "SnapTrade"

# Envelope headers that describe the relay's encoding, not the upstream body
_HOP_HEADERS = frozenset({"content-length", "content-encoding", "transfer-encoding"})


@dataclass(frozen=True)
class SnapTradeConfig:
    """Connection settings for :class:`SnapTradeClient`.

    Built once per request from application settings, or directly in tests.
    """

    client_id: str
    consumer_key: str
    base_url: str = "https://api.snaptrade.com/api/v1"
    relay_url: str = ""
    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    fetch_concurrency: int = 4

    @classmethod
    def from_settings(cls, settings) -> "SnapTradeConfig":
        return cls(
            client_id=settings.SNAPTRADE_CLIENT_ID,
            consumer_key=settings.SNAPTRADE_CONSUMER_KEY,
            base_url=settings.SNAPTRADE_API_URL,
            relay_url=settings.SNAPTRADE_RELAY_URL,
            timeout=settings.SNAPTRADE_TIMEOUT_SECONDS,
            max_retries=settings.SNAPTRADE_MAX_RETRIES,
            retry_delay=settings.SNAPTRADE_RETRY_DELAY_SECONDS,
            fetch_concurrency=settings.HOLDINGS_FETCH_CONCURRENCY,
        )


class SnapTradeClient:
    """Wrapper around the SnapTrade REST API.

    Implements the AggregationClient protocol. All outbound calls go
    through a :class:`RetryingHttpClient`, so transport failures are
    retried while HTTP error statuses are surfaced on the first attempt.
    """

    def __init__(self, config: SnapTradeConfig, http: RetryingHttpClient | None = None):
        """Initialize the client.

        Args:
            config: Credentials, endpoints and retry policy.
            http: Optional pre-built transport (tests inject one backed by
                ``httpx.MockTransport``).
        """
        self.config = config
        self._http = http or RetryingHttpClient(
            max_retries=config.max_retries,
            base_delay=config.retry_delay,
            timeout=config.timeout,
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name for database storage."""
        return PROVIDER_NAME

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def is_configured(self) -> bool:
        """Check if SnapTrade credentials are configured."""
        return bool(self.config.client_id and self.config.consumer_key)

    def _check_credentials(self) -> None:
        """Raise an error if credentials are not configured."""
        if not self.is_configured():
            raise AggregationConfigError(
                "SnapTrade API credentials not configured. "
                "Set SNAPTRADE_CLIENT_ID and SNAPTRADE_CONSUMER_KEY in .env",
                provider_name=PROVIDER_NAME,
            )

    def _headers(self, with_body: bool = False) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Client-ID": self.config.client_id,
            "Consumer-Key": self.config.consumer_key,
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json_body: dict | None = None,
    ) -> httpx.Response:
        """Send a request to the API, directly or through the relay."""
        url = f"{self.config.base_url}{path}"
        headers = self._headers(with_body=json_body is not None)
        try:
            if self.config.relay_url:
                return self._send_via_relay(method, url, headers, params, json_body)
            return self._http.request(
                method, url, headers=headers, params=params, json=json_body
            )
        except httpx.TransportError as e:
            raise AggregationConnectionError(
                f"Network error connecting to SnapTrade API: {e}",
                provider_name=PROVIDER_NAME,
            ) from e

    def _send_via_relay(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict | None,
        json_body: dict | None,
    ) -> httpx.Response:
        """POST the request description to the relay and unwrap its envelope.

        The returned response carries the upstream status, headers and body
        so callers handle relayed and direct calls identically.
        """
        if params:
            url = f"{url}?{urlencode(params)}"
        payload = {
            "url": url,
            "method": method,
            "headers": headers,
            "body": json.dumps(json_body) if json_body is not None else None,
        }
        relay_response = self._http.post(self.config.relay_url, json=payload)
        envelope = self._decode_json(relay_response, "relay")

        if not isinstance(envelope, dict):
            raise AggregationDataError(
                "Relay returned an unexpected envelope", provider_name=PROVIDER_NAME
            )

        data = envelope.get("data")
        inner_error = data.get("error") if isinstance(data, dict) else None
        if not relay_response.is_success or envelope.get("error") or inner_error:
            reason = envelope.get("error") or inner_error or relay_response.reason_phrase
            raise AggregationAPIError(
                f"Proxy error: {reason}",
                provider_name=PROVIDER_NAME,
                status_code=relay_response.status_code,
            )

        upstream_headers = {
            k: v for k, v in (envelope.get("headers") or {}).items()
            if k.lower() not in _HOP_HEADERS
        }
        try:
            status = int(envelope.get("status") or 200)
        except (TypeError, ValueError) as e:
            raise AggregationDataError(
                "Relay returned an unexpected envelope", provider_name=PROVIDER_NAME
            ) from e

        # Non-JSON upstream bodies are passed as raw text so HTML is still detected
        if envelope.get("isJson") is False:
            raw = data.get("text") if isinstance(data, dict) else None
            if raw is None:
                raw = envelope.get("rawText")
            return httpx.Response(status, headers=upstream_headers, text=raw or "")
        return httpx.Response(status, headers=upstream_headers, json=data)

    def _decode_json(self, response: httpx.Response, context: str):
        """Parse a JSON body, distinguishing HTML error pages from garbage."""
        try:
            return response.json()
        except ValueError as e:
            text = response.text
            if looks_like_html(text):
                logger.error(
                    "Received HTML instead of JSON (%s): %s", context, preview(text, 200)
                )
                raise AggregationMalformedResponseError(
                    "Received HTML response from SnapTrade API. The service might "
                    f"be down or experiencing issues. HTML preview: {preview(text)}...",
                    provider_name=PROVIDER_NAME,
                    preview=preview(text, 200),
                ) from e
            raise AggregationDataError(
                f"Failed to parse response from SnapTrade API ({context}): {e}. "
                f"Raw response: {preview(text)}...",
                provider_name=PROVIDER_NAME,
            ) from e

    def _expect_success(self, response: httpx.Response, action: str) -> None:
        """Raise for non-2xx responses, logging whatever body came back."""
        if response.is_success:
            return
        if looks_like_html(response.text):
            # Same treatment as a 200 with an HTML body
            self._decode_json(response, action)
        logger.error(
            "SnapTrade %s error (%d): %s",
            action, response.status_code, preview(response.text, 200),
        )
        raise AggregationAPIError(
            f"Failed to {action}: {response.status_code}",
            provider_name=PROVIDER_NAME,
            status_code=response.status_code,
        )

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def register_and_link_user(
        self, user_id: str, redirect_uri: str, broker_id: str | None = None
    ) -> str:
        """Register the user with SnapTrade and create a connection-portal URL.

        Registration is idempotent on SnapTrade's side, so calling this for
        an already-registered user is expected to succeed.

        Args:
            user_id: Our user ID, reused as the SnapTrade user ID.
            redirect_uri: Where the portal sends the browser when done.
            broker_id: Optional brokerage slug to pre-select in the portal.

        Returns:
            The portal URL to redirect the browser to.
        """
        self._check_credentials()

        logger.info(
            "Creating SnapTrade user link: user=%s broker=%s relay=%s",
            user_id, broker_id or "none", bool(self.config.relay_url),
        )

        register = self._send(
            "POST", "/snapTrade/registerUser", json_body={"userId": user_id}
        )
        self._expect_success(register, "register user with SnapTrade")
        self._decode_json(register, "registerUser")

        portal_body = {"userId": user_id, "redirectURI": redirect_uri}
        if broker_id:
            portal_body["brokerage"] = broker_id
        portal = self._send("POST", "/snapTrade/connectionPortal", json_body=portal_body)
        self._expect_success(portal, "generate SnapTrade portal")
        portal_data = self._decode_json(portal, "connectionPortal")

        redirect = portal_data.get("redirectURI") if isinstance(portal_data, dict) else None
        if not redirect:
            raise AggregationDataError(
                "No redirect URI returned from SnapTrade", provider_name=PROVIDER_NAME
            )
        return redirect

    def handle_callback(self, user_id: str, code: str) -> CallbackResult:
        """Finalize a linking attempt.

        SnapTrade stores the brokerage authorization on its side, so there is
        nothing to exchange; a fresh local account identifier is issued.
        """
        self._check_credentials()
        logger.info("Handling SnapTrade callback for user %s", user_id)
        return CallbackResult(
            success=True,
            account_id=f"snaptrade-account-{uuid.uuid4().hex}",
            message="Account connected successfully",
        )

    # ------------------------------------------------------------------
    # Holdings
    # ------------------------------------------------------------------

    def get_accounts(self, user_id: str) -> list[ProviderAccount]:
        """Fetch list of linked accounts for a user."""
        self._check_credentials()

        response = self._send("GET", "/accounts", params={"userId": user_id})
        self._expect_success(response, "fetch accounts")
        accounts = self._decode_json(response, "accounts")
        if not isinstance(accounts, list):
            raise AggregationDataError(
                "Unexpected accounts response from SnapTrade", provider_name=PROVIDER_NAME
            )

        return [
            ProviderAccount(
                id=str(account.get("id", "")),
                name=account.get("name") or "Investment Account",
                broker_name=account.get("brokerName") or PROVIDER_NAME,
            )
            for account in accounts
            if isinstance(account, dict)
        ]

    def fetch_holdings(self, user_id: str) -> list[ProviderHolding]:
        """Fetch holdings across all of a user's linked accounts.

        Each account's balances and holdings are fetched independently
        (up to ``fetch_concurrency`` accounts at a time). A failed holdings
        fetch skips that account; a failed balances fetch only drops its
        cash from the total. When the accounts hold any USD cash, one
        synthetic ``CASH`` holding carrying the sum is appended.
        """
        accounts = self.get_accounts(user_id)
        logger.info("Found %d SnapTrade accounts for user %s", len(accounts), user_id)

        workers = min(self.config.fetch_concurrency, len(accounts))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(self._fetch_account, accounts))
        else:
            results = [self._fetch_account(account) for account in accounts]

        holdings: list[ProviderHolding] = []
        total_cash = 0.0
        for cash, account_holdings in results:
            total_cash += cash
            holdings.extend(account_holdings)

        if total_cash > 0:
            holdings.append(
                ProviderHolding(
                    symbol=CASH_SYMBOL,
                    name="Cash Balance",
                    quantity=1.0,
                    price_per_share=total_cash,
                    total_value=total_cash,
                    gain_loss=0.0,
                    purchase_price=total_cash,
                    account_id="cash",
                    account_name="Cash",
                    broker_name=PROVIDER_NAME,
                )
            )

        return holdings

    def _fetch_account(self, account: ProviderAccount) -> tuple[float, list[ProviderHolding]]:
        """Fetch one account's USD cash and positions."""
        cash = self._fetch_cash(account.id)

        try:
            response = self._send("GET", f"/accounts/{account.id}/holdings")
            if not response.is_success:
                logger.warning(
                    "Failed to fetch holdings for account %s: %d",
                    account.id, response.status_code,
                )
                return cash, []
            positions = self._decode_json(response, "holdings")
        except AggregationError:
            logger.warning(
                "Failed to fetch holdings for account %s", account.id, exc_info=True
            )
            return cash, []

        if not isinstance(positions, list):
            logger.warning("Unexpected holdings payload for account %s", account.id)
            return cash, []

        holdings = [
            self._map_holding(position, account)
            for position in positions
            if isinstance(position, dict)
        ]
        logger.info("Found %d holdings for account %s", len(holdings), account.id)
        return cash, holdings

    def _fetch_cash(self, account_id: str) -> float:
        """Return the account's USD cash balance, or 0 if unavailable."""
        try:
            response = self._send("GET", f"/accounts/{account_id}/balances")
            if not response.is_success:
                return 0.0
            balances = self._decode_json(response, "balances")
        except AggregationError:
            logger.warning(
                "Failed to fetch balances for account %s", account_id, exc_info=True
            )
            return 0.0

        if not isinstance(balances, list):
            return 0.0
        for balance in balances:
            if isinstance(balance, dict) and balance.get("currency") == "USD" and balance.get("cash"):
                return to_float(balance.get("amount"))
        return 0.0

    def _extract_symbol(self, symbol_data) -> str:
        """Extract symbol string from flat or nested symbol payloads."""
        if isinstance(symbol_data, str) and symbol_data:
            return symbol_data
        if isinstance(symbol_data, dict):
            return self._extract_symbol(symbol_data.get("symbol"))
        return "UNKNOWN"

    def _map_holding(self, position: dict, account: ProviderAccount) -> ProviderHolding:
        """Map a SnapTrade position to a ProviderHolding."""
        symbol = self._extract_symbol(position.get("symbol"))
        quantity = to_float(position.get("quantity"))
        price = to_float(position.get("price"))
        book_value = to_float(position.get("bookValue"))

        return ProviderHolding(
            symbol=symbol,
            name=position.get("description") or symbol,
            quantity=quantity,
            price_per_share=price,
            total_value=price * quantity,
            gain_loss=to_float(position.get("openPnl")),
            purchase_price=book_value / quantity if quantity else 0.0,
            account_id=account.id,
            account_name=account.name,
            broker_name=account.broker_name,
        )
