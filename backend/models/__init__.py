"""SQLAlchemy ORM models."""

from .asset import Asset
from .asset_category import AssetCategory
from .broker_connection import BrokerConnection
from .utils import generate_uuid

__all__ = ["Asset", "AssetCategory", "BrokerConnection", "generate_uuid"]
