"""Test fixtures and sample data."""
import pytest
from sqlalchemy.orm import Session

from models import Asset, AssetCategory, BrokerConnection
from services.asset_category_service import AssetCategoryService


def create_asset(db: Session, user_id: str, name: str = "Test Asset", **kwargs) -> Asset:
    """Create and flush an asset owned by ``user_id``."""
    asset = Asset(user_id=user_id, name=name, **kwargs)
    db.add(asset)
    db.flush()
    return asset


def connections_for(db: Session, user_id: str) -> list[BrokerConnection]:
    """All broker connections recorded for a user."""
    return db.query(BrokerConnection).filter_by(user_id=user_id).all()


@pytest.fixture
def categories(db) -> list[AssetCategory]:
    """Seed the default asset categories."""
    AssetCategoryService().seed_default_categories(db)
    return db.query(AssetCategory).all()


@pytest.fixture
def investments_category(db, categories) -> AssetCategory:
    """The category imported holdings are filed under."""
    return db.query(AssetCategory).filter_by(slug="investments").one()
