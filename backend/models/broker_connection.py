"""BrokerConnection model - one attempt to link an external brokerage account."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, String

from database import Base
from models.utils import generate_uuid

PENDING_CREDENTIAL = "pending_connection"
CONNECTED_CREDENTIAL = "snaptrade_connection"

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_FAILED = "failed"


class BrokerConnection(Base):
    """A brokerage link attempt for a user.

    The row is created ``pending`` when the portal link is generated. Its id
    doubles as the correlation id threaded through the callback URL, so the
    callback can move the same row to ``active`` or ``failed``.
    """

    __tablename__ = "broker_connections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String, index=True, nullable=False)
    broker_id = Column(String, nullable=False)  # e.g., "robinhood", or "snaptrade" when unspecified
    api_key = Column(String, nullable=False, default=PENDING_CREDENTIAL)
    api_secret_encrypted = Column(String, nullable=False, default=PENDING_CREDENTIAL)
    is_active = Column(Boolean, default=False, nullable=False)
    status = Column(String, nullable=False, default=STATUS_PENDING)  # "pending" | "active" | "failed"
    broker_data = Column(JSON, nullable=False, default=dict)  # Lifecycle timestamps
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
