"""Service for the asset category lookup table."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from models import AssetCategory

logger = logging.getLogger(__name__)

INVESTMENTS_SLUG = "investments"

DEFAULT_CATEGORIES = [
    ("investments", "Investments"),
    ("cash", "Cash"),
    ("real-estate", "Real Estate"),
    ("vehicles", "Vehicles"),
    ("precious-metals", "Precious Metals"),
    ("crypto", "Crypto"),
    ("domains", "Domains"),
    ("other-assets", "Other Assets"),
    ("debts", "Debts"),
]


class AssetCategoryService:
    """Service for resolving and seeding asset categories."""

    def list_all(self, db: Session) -> List[AssetCategory]:
        """Get all categories ordered by name."""
        return db.query(AssetCategory).order_by(AssetCategory.name).all()

    def get_by_slug(self, db: Session, slug: str) -> Optional[AssetCategory]:
        """Get a single category by its slug."""
        return db.query(AssetCategory).filter_by(slug=slug).first()

    def seed_default_categories(self, db: Session) -> None:
        """Seed default categories on a fresh database.

        If any categories already exist, this is a no-op.
        """
        existing_count = db.query(AssetCategory).count()
        if existing_count > 0:
            logger.info("Asset categories already exist, skipping seed")
            return

        for slug, name in DEFAULT_CATEGORIES:
            db.add(AssetCategory(slug=slug, name=name))

        db.commit()
        logger.info("Seeded %d default asset categories", len(DEFAULT_CATEGORIES))
