"""Asset model - the portfolio's durable record of a thing of value."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class Asset(Base):
    """One thing of value (or liability) owned by a user.

    Assets imported from a linked brokerage carry origin detail (symbol,
    quantity, account, broker) in ``asset_metadata``.
    """

    __tablename__ = "assets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String, index=True, nullable=False)  # Owned by the external auth system
    name = Column(String, nullable=False)
    value = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    acquisition_date = Column(DateTime, nullable=True)
    acquisition_value = Column(Float, nullable=True)
    category_id = Column(
        String(36), ForeignKey("asset_categories.id"), nullable=True
    )
    is_liability = Column(Boolean, default=False, nullable=False)
    # "metadata" is reserved on declarative classes
    asset_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    category = relationship("AssetCategory", back_populates="assets")
