"""SnapTrade account-linking endpoints.

Provides the server side of the brokerage linking flow: creating a
connection-portal link, receiving the portal's redirect back, and a
same-origin relay for callers that cannot reach the SnapTrade API
directly.
"""

import json
import logging

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from integrations.exceptions import (
    AggregationAPIError,
    AggregationConfigError,
    AggregationConnectionError,
    AggregationMalformedResponseError,
)
from integrations.snaptrade_client import SnapTradeClient, SnapTradeConfig
from schemas import ConnectRequest, ConnectResponse, RelayRequest
from services.broker_link_service import BrokerLinkService, CallbackParams
from services.session_auth import get_session_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snaptrade", tags=["snaptrade"])

ASSETS_PAGE = "/dashboard/assets"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, max-age=0, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

HTML_RESPONSE_MESSAGE = (
    "Received HTML response from SnapTrade API. "
    "The service might be down or experiencing issues."
)


def get_snaptrade_client():
    """Dependency for injecting the SnapTrade client (overridable in tests)."""
    client = SnapTradeClient(SnapTradeConfig.from_settings(settings))
    try:
        yield client
    finally:
        client.close()


def get_relay_http():
    """Dependency for the relay's outbound HTTP client (overridable in tests)."""
    with httpx.Client(timeout=settings.SNAPTRADE_TIMEOUT_SECONDS) as client:
        yield client


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=NO_CACHE_HEADERS)


@router.post("/connect", response_model=ConnectResponse)
def create_connection_link(
    body: ConnectRequest,
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(get_snaptrade_client),
):
    """Create a SnapTrade connection-portal link for the user.

    Records a pending broker connection (best-effort) and returns the
    portal URL the browser should be sent to.
    """
    if not body.userId:
        return _error("User ID is required", 400)
    if not body.callbackUrl:
        return _error("Callback URL is required", 400)

    logger.info(
        "Creating SnapTrade link for user %s (broker: %s)",
        body.userId, body.brokerId or "none",
    )

    service = BrokerLinkService(client)
    try:
        redirect_uri = service.start_link(db, body.userId, body.callbackUrl, body.brokerId)
    except AggregationMalformedResponseError as e:
        logger.error("SnapTrade returned HTML: %s", e.preview)
        return _error(HTML_RESPONSE_MESSAGE, 502)
    except AggregationConfigError as e:
        logger.error("SnapTrade is not configured: %s", e)
        return _error(str(e), 500)
    except (AggregationAPIError, AggregationConnectionError) as e:
        logger.error("SnapTrade rejected the link request: %s", e)
        return _error(str(e), 502)
    except Exception as e:
        logger.error("Error creating SnapTrade link for user %s", body.userId, exc_info=True)
        return _error(str(e) or "Unknown error", 500)

    return JSONResponse({"redirectUri": redirect_uri}, headers=NO_CACHE_HEADERS)


@router.get("/callback")
def snaptrade_callback(
    request: Request,
    userId: str | None = Query(None),
    accountId: str | None = Query(None),
    success: str | None = Query(None),
    code: str | None = Query(None),
    connectionId: str | None = Query(None),
    db: Session = Depends(get_db),
    client: SnapTradeClient = Depends(get_snaptrade_client),
    session_user_id: str | None = Depends(get_session_user_id),
):
    """Handle the portal's redirect after the user links an account.

    Always redirects to the assets page, with ``success=true`` or an
    ``error`` code.
    """
    params = CallbackParams(
        user_id=userId,
        account_id=accountId,
        success=success == "true",
        code=code,
        connection_id=connectionId,
    )
    outcome = BrokerLinkService(client).complete_link(db, params, session_user_id)
    db.commit()

    origin = str(request.base_url).rstrip("/")
    return RedirectResponse(f"{origin}{ASSETS_PAGE}?{outcome.query_string}")


@router.post("/connect/cors-proxy")
def relay_request(
    body: RelayRequest,
    http: httpx.Client = Depends(get_relay_http),
):
    """Forward a request to the SnapTrade API and wrap the response.

    Only URLs under the configured SnapTrade API base are forwarded.
    """
    base = settings.SNAPTRADE_API_URL
    if body.url != base and not body.url.startswith(f"{base}/"):
        return _error("URL not allowed", 403)

    method = body.method.upper()
    content = body.body if body.body is not None and method != "GET" else None
    try:
        upstream = http.request(method, body.url, headers=body.headers, content=content)
    except httpx.HTTPError as e:
        logger.error("Relay fetch error for %s %s: %s", method, body.url, e)
        return _error(f"Fetch error: {e}", 502)

    text = upstream.text
    try:
        data = json.loads(text)
        is_json = True
    except ValueError:
        data = {"text": text}
        is_json = False

    return JSONResponse(
        {
            "status": upstream.status_code,
            "statusText": upstream.reason_phrase,
            "headers": dict(upstream.headers),
            "isJson": is_json,
            "data": data,
            "rawText": text[:1000],
            "contentType": upstream.headers.get("content-type"),
            "contentLength": len(text),
        },
        headers=NO_CACHE_HEADERS,
    )
