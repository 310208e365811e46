"""Unit tests for SnapTradeClient (httpx.MockTransport)."""

import json

import httpx
import pytest

from integrations.exceptions import (
    AggregationAPIError,
    AggregationConfigError,
    AggregationConnectionError,
    AggregationDataError,
    AggregationMalformedResponseError,
)
from integrations.retrying_http import RetryingHttpClient
from integrations.snaptrade_client import SnapTradeClient, SnapTradeConfig

BASE = "https://api.snaptrade.com/api/v1"
RELAY = "http://localhost:8000/api/snaptrade/connect/cors-proxy"
HTML_PAGE = "<!DOCTYPE html><html><body>Service Unavailable</body></html>"


def _make_client(handler, **config_overrides) -> SnapTradeClient:
    config = SnapTradeConfig(
        client_id=config_overrides.pop("client_id", "test-client-id"),
        consumer_key=config_overrides.pop("consumer_key", "test-consumer-key"),
        base_url=BASE,
        **config_overrides,
    )
    http = RetryingHttpClient(
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        max_retries=config.max_retries,
        base_delay=0,
        sleep=lambda _: None,
    )
    return SnapTradeClient(config, http=http)


def _route(routes: dict):
    """Build a handler answering ``(method, path)`` from a table."""
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        key = (request.method, request.url.path.removeprefix("/api/v1"))
        answer = routes.get(key)
        if answer is None:
            return httpx.Response(404, json={"detail": "not found"})
        if callable(answer):
            return answer(request)
        return answer

    handler.seen = seen
    return handler


def _link_routes(portal=None, register=None):
    return {
        ("POST", "/snapTrade/registerUser"): register
        or httpx.Response(200, json={"userId": "u1", "userSecret": "s"}),
        ("POST", "/snapTrade/connectionPortal"): portal
        or httpx.Response(200, json={"redirectURI": "https://app.snaptrade.com/portal/abc"}),
    }


class TestConfiguration:
    def test_provider_name(self):
        assert _make_client(_route({})).provider_name == "SnapTrade"

    def test_is_configured(self):
        assert _make_client(_route({})).is_configured() is True
        assert _make_client(_route({}), client_id="").is_configured() is False
        assert _make_client(_route({}), consumer_key="").is_configured() is False

    def test_missing_credentials_raise_before_any_request(self):
        handler = _route(_link_routes())
        client = _make_client(handler, consumer_key="")

        with pytest.raises(AggregationConfigError):
            client.register_and_link_user("u1", "http://localhost/callback")
        assert handler.seen == []

    def test_from_settings(self):
        class FakeSettings:
            SNAPTRADE_CLIENT_ID = "cid"
            SNAPTRADE_CONSUMER_KEY = "ckey"
            SNAPTRADE_API_URL = BASE
            SNAPTRADE_RELAY_URL = ""
            SNAPTRADE_TIMEOUT_SECONDS = 10.0
            SNAPTRADE_MAX_RETRIES = 2
            SNAPTRADE_RETRY_DELAY_SECONDS = 0.5
            HOLDINGS_FETCH_CONCURRENCY = 8

        config = SnapTradeConfig.from_settings(FakeSettings)
        assert config.client_id == "cid"
        assert config.max_retries == 2
        assert config.fetch_concurrency == 8


class TestRegisterAndLinkUser:
    def test_returns_portal_url(self):
        handler = _route(_link_routes())
        client = _make_client(handler)

        url = client.register_and_link_user("u1", "http://localhost/callback?userId=u1", "robinhood")

        assert url == "https://app.snaptrade.com/portal/abc"
        register, portal = handler.seen
        assert json.loads(register.content) == {"userId": "u1"}
        assert json.loads(portal.content) == {
            "userId": "u1",
            "redirectURI": "http://localhost/callback?userId=u1",
            "brokerage": "robinhood",
        }
        assert portal.headers["Client-ID"] == "test-client-id"
        assert portal.headers["Consumer-Key"] == "test-consumer-key"

    def test_broker_omitted_when_not_given(self):
        handler = _route(_link_routes())
        _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

        assert "brokerage" not in json.loads(handler.seen[1].content)

    def test_html_body_raises_malformed_response(self):
        handler = _route(_link_routes(register=httpx.Response(200, text=HTML_PAGE)))

        with pytest.raises(AggregationMalformedResponseError) as exc_info:
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")
        assert "HTML" in str(exc_info.value)
        assert exc_info.value.preview.startswith("<!DOCTYPE html>")

    def test_html_detection_is_case_insensitive(self):
        handler = _route(_link_routes(portal=httpx.Response(200, text="  <HTML><body>x</body></HTML>")))

        with pytest.raises(AggregationMalformedResponseError):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

    def test_html_error_page_raises_malformed_response(self):
        handler = _route(_link_routes(register=httpx.Response(503, text=HTML_PAGE)))

        with pytest.raises(AggregationMalformedResponseError):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

    def test_register_rejected(self):
        handler = _route(_link_routes(register=httpx.Response(401, json={"detail": "bad key"})))

        with pytest.raises(AggregationAPIError) as exc_info:
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")
        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Failed to register user with SnapTrade: 401"
        assert len(handler.seen) == 1

    def test_portal_rejected(self):
        handler = _route(_link_routes(portal=httpx.Response(400, json={"detail": "bad"})))

        with pytest.raises(AggregationAPIError, match="Failed to generate SnapTrade portal: 400"):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

    def test_missing_redirect_uri(self):
        handler = _route(_link_routes(portal=httpx.Response(200, json={"sessionId": "x"})))

        with pytest.raises(AggregationDataError, match="No redirect URI returned from SnapTrade"):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

    def test_unparseable_body_raises_data_error(self):
        handler = _route(_link_routes(portal=httpx.Response(200, text="not json at all")))

        with pytest.raises(AggregationDataError, match="Failed to parse response"):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")

    def test_network_failure_after_retries(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AggregationConnectionError):
            _make_client(handler).register_and_link_user("u1", "http://localhost/callback")
        assert len(attempts) == 4


class TestHandleCallback:
    def test_issues_fresh_account_id(self):
        client = _make_client(_route({}))

        first = client.handle_callback("u1", "code-1")
        second = client.handle_callback("u1", "code-2")

        assert first.success is True
        assert first.account_id.startswith("snaptrade-account-")
        assert first.account_id != second.account_id


def _holdings_routes(overrides: dict | None = None) -> dict:
    routes = {
        ("GET", "/accounts"): httpx.Response(
            200,
            json=[
                {"id": "a1", "name": "Individual", "brokerName": "Robinhood"},
                {"id": "a2", "name": "Roth IRA"},
            ],
        ),
        ("GET", "/accounts/a1/balances"): httpx.Response(
            200,
            json=[
                {"currency": "CAD", "cash": True, "amount": 999},
                {"currency": "USD", "cash": True, "amount": "100.5"},
            ],
        ),
        ("GET", "/accounts/a1/holdings"): httpx.Response(
            200,
            json=[
                {
                    "symbol": {"symbol": {"symbol": "AAPL"}},
                    "description": "Apple Inc.",
                    "quantity": 10,
                    "price": 150.0,
                    "bookValue": 1200.0,
                    "openPnl": 300.0,
                },
                {"symbol": "VTI", "quantity": "2", "price": "200"},
            ],
        ),
        ("GET", "/accounts/a2/balances"): httpx.Response(
            200, json=[{"currency": "USD", "cash": True, "amount": 50}]
        ),
        ("GET", "/accounts/a2/holdings"): httpx.Response(
            200,
            json=[{"symbol": "MSFT", "quantity": 0, "price": 300.0, "bookValue": 0}],
        ),
    }
    routes.update(overrides or {})
    return routes


class TestFetchHoldings:
    def test_maps_positions_and_appends_cash(self):
        holdings = _make_client(_route(_holdings_routes())).fetch_holdings("u1")

        assert [h.symbol for h in holdings] == ["AAPL", "VTI", "MSFT", "CASH"]

        aapl = holdings[0]
        assert aapl.name == "Apple Inc."
        assert aapl.quantity == 10
        assert aapl.total_value == 1500.0
        assert aapl.purchase_price == 120.0
        assert aapl.gain_loss == 300.0
        assert aapl.account_id == "a1"
        assert aapl.broker_name == "Robinhood"

        vti = holdings[1]
        assert vti.name == "VTI"
        assert vti.total_value == 400.0
        assert vti.purchase_price == 0.0

        msft = holdings[2]
        assert msft.purchase_price == 0.0
        assert msft.broker_name == "SnapTrade"

        cash = holdings[3]
        assert cash.is_cash
        assert cash.quantity == 1.0
        assert cash.price_per_share == pytest.approx(150.5)
        assert cash.total_value == pytest.approx(150.5)
        assert cash.account_id == "cash"
        assert cash.name == "Cash Balance"

    def test_failing_account_is_skipped(self):
        routes = _holdings_routes(
            {("GET", "/accounts/a2/holdings"): httpx.Response(500, json={"detail": "boom"})}
        )
        holdings = _make_client(_route(routes)).fetch_holdings("u1")

        assert [h.symbol for h in holdings] == ["AAPL", "VTI", "CASH"]
        # a2's cash still counts
        assert holdings[-1].total_value == pytest.approx(150.5)

    def test_account_transport_failure_is_skipped(self):
        def broken(request):
            raise httpx.ConnectError("reset", request=request)

        routes = _holdings_routes({("GET", "/accounts/a1/holdings"): broken})
        holdings = _make_client(_route(routes), max_retries=1).fetch_holdings("u1")

        assert [h.symbol for h in holdings] == ["MSFT", "CASH"]

    def test_balance_failure_only_drops_cash(self):
        routes = _holdings_routes(
            {
                ("GET", "/accounts/a1/balances"): httpx.Response(500),
                ("GET", "/accounts/a2/balances"): httpx.Response(200, text="<html>down</html>"),
            }
        )
        holdings = _make_client(_route(routes)).fetch_holdings("u1")

        assert [h.symbol for h in holdings] == ["AAPL", "VTI", "MSFT"]

    def test_no_cash_holding_without_usd_cash(self):
        routes = _holdings_routes(
            {
                ("GET", "/accounts/a1/balances"): httpx.Response(
                    200, json=[{"currency": "USD", "cash": False, "amount": 100}]
                ),
                ("GET", "/accounts/a2/balances"): httpx.Response(200, json=[]),
            }
        )
        holdings = _make_client(_route(routes)).fetch_holdings("u1")

        assert all(not h.is_cash for h in holdings)

    def test_sequential_fetch_keeps_same_result(self):
        concurrent = _make_client(_route(_holdings_routes())).fetch_holdings("u1")
        sequential = _make_client(_route(_holdings_routes()), fetch_concurrency=1).fetch_holdings("u1")

        assert [h.symbol for h in sequential] == [h.symbol for h in concurrent]

    def test_accounts_failure_propagates(self):
        routes = _holdings_routes({("GET", "/accounts"): httpx.Response(500)})

        with pytest.raises(AggregationAPIError, match="Failed to fetch accounts: 500"):
            _make_client(_route(routes)).fetch_holdings("u1")

    def test_accounts_request_carries_user_id(self):
        handler = _route(_holdings_routes())
        _make_client(handler).fetch_holdings("u1")

        accounts_request = next(r for r in handler.seen if r.url.path.endswith("/accounts"))
        assert accounts_request.url.params["userId"] == "u1"

    def test_no_accounts(self):
        routes = _holdings_routes({("GET", "/accounts"): httpx.Response(200, json=[])})

        assert _make_client(_route(routes)).fetch_holdings("u1") == []


def _relay_handler(respond):
    """Relay stub: decode the envelope request and let ``respond`` answer it."""
    seen = []

    def handler(request: httpx.Request):
        assert str(request.url) == RELAY
        payload = json.loads(request.content)
        seen.append(payload)
        return respond(payload)

    handler.seen = seen
    return handler


def _envelope(status=200, data=None, is_json=True, raw_text=None, headers=None):
    text = raw_text if raw_text is not None else json.dumps(data)
    return httpx.Response(
        200,
        json={
            "status": status,
            "statusText": "OK",
            "headers": headers or {"content-type": "application/json", "content-length": "999"},
            "isJson": is_json,
            "data": data if is_json else {"text": text},
            "rawText": text[:1000],
            "contentType": "application/json",
            "contentLength": len(text),
        },
    )


class TestRelay:
    def test_link_through_relay(self):
        def respond(payload):
            if payload["url"].endswith("/snapTrade/registerUser"):
                return _envelope(data={"userId": "u1"})
            return _envelope(data={"redirectURI": "https://app.snaptrade.com/portal/relayed"})

        handler = _relay_handler(respond)
        client = _make_client(handler, relay_url=RELAY)

        url = client.register_and_link_user("u1", "http://localhost/callback")

        assert url == "https://app.snaptrade.com/portal/relayed"
        register, portal = handler.seen
        assert register["url"] == f"{BASE}/snapTrade/registerUser"
        assert register["method"] == "POST"
        assert register["headers"]["Client-ID"] == "test-client-id"
        assert json.loads(register["body"]) == {"userId": "u1"}
        assert json.loads(portal["body"])["redirectURI"] == "http://localhost/callback"

    def test_query_params_folded_into_relayed_url(self):
        def respond(payload):
            return _envelope(data=[])

        handler = _relay_handler(respond)
        _make_client(handler, relay_url=RELAY).fetch_holdings("u1")

        assert handler.seen[0]["url"] == f"{BASE}/accounts?userId=u1"
        assert handler.seen[0]["body"] is None

    def test_relayed_html_detected(self):
        def respond(payload):
            return _envelope(is_json=False, raw_text=HTML_PAGE)

        with pytest.raises(AggregationMalformedResponseError):
            _make_client(_relay_handler(respond), relay_url=RELAY).register_and_link_user(
                "u1", "http://localhost/callback"
            )

    def test_relayed_upstream_error_status(self):
        def respond(payload):
            return _envelope(status=401, data={"detail": "Invalid signature"})

        with pytest.raises(AggregationAPIError) as exc_info:
            _make_client(_relay_handler(respond), relay_url=RELAY).register_and_link_user(
                "u1", "http://localhost/callback"
            )
        assert exc_info.value.status_code == 401

    def test_relay_failure_is_proxy_error(self):
        def respond(payload):
            return httpx.Response(502, json={"error": "Fetch error: connection refused"})

        with pytest.raises(AggregationAPIError, match="Proxy error: Fetch error"):
            _make_client(_relay_handler(respond), relay_url=RELAY).register_and_link_user(
                "u1", "http://localhost/callback"
            )

    def test_relay_returning_html(self):
        def respond(payload):
            return httpx.Response(200, text=HTML_PAGE)

        with pytest.raises(AggregationMalformedResponseError):
            _make_client(_relay_handler(respond), relay_url=RELAY).register_and_link_user(
                "u1", "http://localhost/callback"
            )

    def test_non_numeric_envelope_status(self):
        def respond(payload):
            return _envelope(status="teapot", data={"userId": "u1"})

        with pytest.raises(AggregationDataError, match="unexpected envelope"):
            _make_client(_relay_handler(respond), relay_url=RELAY).register_and_link_user(
                "u1", "http://localhost/callback"
            )
