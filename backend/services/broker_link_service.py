"""Broker link workflow - portal link creation and callback processing."""

import logging
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.orm import Session

from integrations.exceptions import (
    AggregationAPIError,
    AggregationConfigError,
    AggregationConnectionError,
    AggregationMalformedResponseError,
)
from integrations.provider_protocol import AggregationClient
from services.connection_service import ConnectionService
from services.holdings_import_service import HoldingsImportService, MissingCategoryError
from services.session_auth import SessionMismatchError, verify_session_user

logger = logging.getLogger(__name__)

CONNECTION_ID_PARAM = "connectionId"


class CallbackErrorCode(str, Enum):
    """User-facing failure codes for the callback redirect."""

    MISSING_USER_ID = "missing_user_id"
    CONNECTION_FAILED = "connection_failed"
    UNAUTHORIZED = "unauthorized"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NOT_CONFIGURED = "not_configured"
    MISSING_CATEGORY = "missing_category"
    SYNC_FAILED = "sync_failed"


ERROR_MESSAGES: dict[CallbackErrorCode, str] = {
    CallbackErrorCode.UNAUTHORIZED: "Please sign in with the account that started the connection.",
    CallbackErrorCode.SERVICE_UNAVAILABLE: "The brokerage service is unavailable. Please try again later.",
    CallbackErrorCode.NOT_CONFIGURED: "Brokerage linking is not configured.",
    CallbackErrorCode.MISSING_CATEGORY: "Investments category is missing.",
    CallbackErrorCode.SYNC_FAILED: "Your account was linked but holdings could not be imported.",
}


@dataclass
class CallbackParams:
    """Query parameters the aggregation service redirects back with."""

    user_id: str | None = None
    account_id: str | None = None
    success: bool = False
    code: str | None = None
    connection_id: str | None = None


@dataclass
class CallbackOutcome:
    """Result of processing a callback, rendered as redirect query parameters."""

    success: bool
    error_code: CallbackErrorCode | None = None
    imported: int = 0

    @property
    def query_string(self) -> str:
        if self.success:
            return "success=true"
        params = {"error": self.error_code.value}
        message = ERROR_MESSAGES.get(self.error_code)
        if message:
            params["message"] = message
        return urlencode(params)


def with_connection_id(callback_url: str, connection_id: str) -> str:
    """Append the correlation id to a callback URL, keeping its other parameters."""
    parts = urlsplit(callback_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != CONNECTION_ID_PARAM]
    query.append((CONNECTION_ID_PARAM, connection_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


def _error_code_for(exc: Exception) -> CallbackErrorCode:
    if isinstance(exc, AggregationConfigError):
        return CallbackErrorCode.NOT_CONFIGURED
    if isinstance(
        exc,
        (AggregationMalformedResponseError, AggregationConnectionError, AggregationAPIError),
    ):
        return CallbackErrorCode.SERVICE_UNAVAILABLE
    if isinstance(exc, MissingCategoryError):
        return CallbackErrorCode.MISSING_CATEGORY
    return CallbackErrorCode.SYNC_FAILED


class BrokerLinkService:
    """Drives linking a brokerage account through the aggregation service."""

    def __init__(
        self,
        client: AggregationClient,
        connection_service: ConnectionService | None = None,
        import_service: HoldingsImportService | None = None,
    ):
        self.client = client
        self.connections = connection_service or ConnectionService()
        self.importer = import_service or HoldingsImportService()

    def start_link(
        self,
        db: Session,
        user_id: str,
        callback_url: str,
        broker_id: str | None = None,
    ) -> str:
        """Record a pending connection and return the portal URL.

        Recording is best-effort: if it fails the link is still created,
        just without a correlation id on the callback URL. If the portal
        request fails, the pending connection is marked failed and the
        error propagates.
        """
        connection = None
        try:
            connection = self.connections.record_pending(db, user_id, broker_id)
        except Exception:
            logger.error("Failed to record connection attempt for user %s", user_id, exc_info=True)
            db.rollback()

        redirect_target = callback_url
        if connection is not None:
            redirect_target = with_connection_id(callback_url, connection.id)

        try:
            return self.client.register_and_link_user(user_id, redirect_target, broker_id)
        except Exception as e:
            if connection is not None:
                self._fail_quietly(db, connection.id, user_id, _error_code_for(e))
            raise

    def complete_link(
        self,
        db: Session,
        params: CallbackParams,
        session_user_id: str | None,
    ) -> CallbackOutcome:
        """Process a callback redirect.

        Verifies the session, finalizes the connection, then imports the
        user's current holdings as assets. Never raises: failures come back
        as a CallbackOutcome carrying an error code, with details logged.

        The finalized connection is committed before holdings are fetched,
        so a failed import leaves the link recorded. Only a failure while
        finalizing marks the pending connection failed. The caller commits
        the imported assets.
        """
        if not params.user_id:
            logger.info("Callback without userId")
            return CallbackOutcome(success=False, error_code=CallbackErrorCode.MISSING_USER_ID)

        if not params.success and not params.code:
            logger.info("Callback for user %s reported no success and no code", params.user_id)
            return CallbackOutcome(success=False, error_code=CallbackErrorCode.CONNECTION_FAILED)

        user_id = params.user_id
        try:
            verify_session_user(session_user_id, user_id)
        except SessionMismatchError as e:
            logger.warning("Rejected callback for user %s: %s", user_id, e)
            return CallbackOutcome(success=False, error_code=CallbackErrorCode.UNAUTHORIZED)

        try:
            self._finalize_connection(db, params)
            db.commit()
        except Exception as e:
            code = _error_code_for(e)
            logger.error("Error finalizing connection for user %s (%s)", user_id, code.value, exc_info=True)
            db.rollback()
            if params.connection_id:
                self._fail_quietly(db, params.connection_id, user_id, code)
            return CallbackOutcome(success=False, error_code=code)

        try:
            holdings = self.client.fetch_holdings(user_id)
            logger.info("Retrieved %d holdings for user %s", len(holdings), user_id)

            result = self.importer.import_holdings(
                db, user_id, holdings, fallback_account_id=params.account_id
            )
        except Exception as e:
            code = _error_code_for(e)
            logger.error("Error importing holdings for user %s (%s)", user_id, code.value, exc_info=True)
            db.rollback()
            return CallbackOutcome(success=False, error_code=code)

        return CallbackOutcome(success=True, imported=result.imported)

    def _finalize_connection(self, db: Session, params: CallbackParams) -> None:
        linked = params.success
        if params.code:
            result = self.client.handle_callback(params.user_id, params.code)
            logger.info("Callback code processed: account %s", result.account_id)
            linked = result.success

        if not linked:
            return

        pending = self.connections.find_pending(db, params.connection_id, params.user_id)
        if pending is not None:
            self.connections.mark_active(db, pending)
        elif params.code:
            self.connections.record_connected(db, params.user_id)

    def _fail_quietly(
        self,
        db: Session,
        connection_id: str,
        user_id: str,
        code: CallbackErrorCode,
    ) -> None:
        """Mark a pending connection failed, logging instead of raising."""
        try:
            pending = self.connections.find_pending(db, connection_id, user_id)
            if pending is None:
                return
            self.connections.mark_failed(db, pending, code.value)
            db.commit()
        except Exception:
            logger.error("Failed to mark connection %s as failed", connection_id, exc_info=True)
            db.rollback()
