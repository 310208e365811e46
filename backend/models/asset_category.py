"""AssetCategory model - lookup table of portfolio categories."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class AssetCategory(Base):
    """A portfolio category, resolved by its human slug (e.g. "investments")."""

    __tablename__ = "asset_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    slug = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    assets = relationship("Asset", back_populates="category")
