"""Broker connection lifecycle: pending -> active | failed."""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from models import BrokerConnection
from models.broker_connection import (
    CONNECTED_CREDENTIAL,
    PENDING_CREDENTIAL,
    STATUS_ACTIVE,
    STATUS_FAILED,
    STATUS_PENDING,
)

logger = logging.getLogger(__name__)

DEFAULT_BROKER_ID = "snaptrade"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionService:
    """Creates and transitions BrokerConnection rows.

    A connection starts ``pending`` when the portal link is generated and is
    moved in place to ``active`` or ``failed`` by the callback. Its id is the
    correlation id the callback URL carries back.
    """

    def record_pending(
        self, db: Session, user_id: str, broker_id: str | None = None
    ) -> BrokerConnection:
        """Insert and commit a pending connection for a link attempt.

        Committed immediately so the row survives a failure later in the
        same request.
        """
        connection = BrokerConnection(
            user_id=user_id,
            broker_id=broker_id or DEFAULT_BROKER_ID,
            api_key=PENDING_CREDENTIAL,
            api_secret_encrypted=PENDING_CREDENTIAL,
            is_active=False,
            status=STATUS_PENDING,
            broker_data={"connection_started": _now_iso()},
        )
        db.add(connection)
        db.commit()
        logger.info(
            "Recorded pending connection %s for user %s (%s)",
            connection.id, user_id, connection.broker_id,
        )
        return connection

    def find_pending(
        self, db: Session, connection_id: str | None, user_id: str
    ) -> Optional[BrokerConnection]:
        """Find the user's pending connection with the given correlation id."""
        if not connection_id:
            return None
        return (
            db.query(BrokerConnection)
            .filter_by(id=connection_id, user_id=user_id, status=STATUS_PENDING)
            .first()
        )

    def mark_active(self, db: Session, connection: BrokerConnection) -> BrokerConnection:
        """Transition a pending connection to active."""
        self._check_pending(connection, STATUS_ACTIVE)
        connection.status = STATUS_ACTIVE
        connection.is_active = True
        connection.api_key = CONNECTED_CREDENTIAL
        connection.api_secret_encrypted = CONNECTED_CREDENTIAL
        connection.broker_data = {**(connection.broker_data or {}), "connected_at": _now_iso()}
        db.flush()
        logger.info("Connection %s is now active", connection.id)
        return connection

    def mark_failed(
        self, db: Session, connection: BrokerConnection, failure_code: str
    ) -> BrokerConnection:
        """Transition a pending connection to failed, recording why."""
        self._check_pending(connection, STATUS_FAILED)
        connection.status = STATUS_FAILED
        connection.is_active = False
        connection.broker_data = {
            **(connection.broker_data or {}),
            "failed_at": _now_iso(),
            "failure_code": failure_code,
        }
        db.flush()
        logger.info("Connection %s failed: %s", connection.id, failure_code)
        return connection

    def record_connected(
        self, db: Session, user_id: str, broker_id: str | None = None
    ) -> BrokerConnection:
        """Insert an already-active connection.

        Used when a callback arrives without a matching pending row.
        """
        connection = BrokerConnection(
            user_id=user_id,
            broker_id=broker_id or DEFAULT_BROKER_ID,
            api_key=CONNECTED_CREDENTIAL,
            api_secret_encrypted=CONNECTED_CREDENTIAL,
            is_active=True,
            status=STATUS_ACTIVE,
            broker_data={"connected_at": _now_iso()},
        )
        db.add(connection)
        db.flush()
        logger.info("Recorded active connection %s for user %s", connection.id, user_id)
        return connection

    @staticmethod
    def _check_pending(connection: BrokerConnection, target: str) -> None:
        if connection.status != STATUS_PENDING:
            raise ValueError(
                f"Cannot move connection {connection.id} from "
                f"{connection.status} to {target}"
            )
