"""Holdings import - turns fetched provider holdings into Asset rows."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from integrations.provider_protocol import ProviderHolding
from models import Asset
from services.asset_category_service import INVESTMENTS_SLUG, AssetCategoryService

logger = logging.getLogger(__name__)

SOURCE_TAG = "snaptrade"


class MissingCategoryError(Exception):
    """The category holdings are filed under does not exist."""

    pass


@dataclass
class ImportResult:
    """Counts from one import run."""

    imported: int = 0
    failed: int = 0


class HoldingsImportService:
    """Inserts one Asset per holding.

    No merge against previously imported assets is attempted: importing
    the same holdings twice produces duplicate rows.
    """

    def __init__(self, category_service: AssetCategoryService | None = None):
        self._categories = category_service or AssetCategoryService()

    def import_holdings(
        self,
        db: Session,
        user_id: str,
        holdings: list[ProviderHolding],
        fallback_account_id: str | None = None,
    ) -> ImportResult:
        """Insert holdings as investment assets owned by ``user_id``.

        Each insert runs in its own savepoint; a failing holding is logged
        and skipped without undoing the others.

        Raises:
            MissingCategoryError: If the investments category is missing.
        """
        category = self._categories.get_by_slug(db, INVESTMENTS_SLUG)
        if category is None:
            raise MissingCategoryError(f"Asset category '{INVESTMENTS_SLUG}' not found")

        result = ImportResult()
        acquired_at = datetime.now(timezone.utc)
        for holding in holdings:
            logger.debug(
                "Importing holding %s (%s units)", holding.symbol, holding.quantity
            )
            try:
                with db.begin_nested():
                    db.add(
                        self._build_asset(
                            holding, user_id, category.id, acquired_at, fallback_account_id
                        )
                    )
                result.imported += 1
            except Exception:
                logger.warning(
                    "Failed to import holding %s for user %s",
                    holding.symbol, user_id, exc_info=True,
                )
                result.failed += 1

        logger.info(
            "Imported %d holdings for user %s (%d failed)",
            result.imported, user_id, result.failed,
        )
        return result

    def _build_asset(
        self,
        holding: ProviderHolding,
        user_id: str,
        category_id: str,
        acquired_at: datetime,
        fallback_account_id: str | None,
    ) -> Asset:
        """Build the Asset row for one holding."""
        broker_name = holding.broker_name or "SnapTrade"
        return Asset(
            user_id=user_id,
            name=holding.name,
            value=holding.total_value,
            description=f"{holding.quantity:g} shares of {holding.symbol}",
            location=broker_name,
            acquisition_date=acquired_at,
            acquisition_value=holding.acquisition_value,
            category_id=category_id,
            is_liability=False,
            asset_metadata={
                "symbol": holding.symbol,
                "price_per_share": holding.price_per_share,
                "purchase_price": holding.purchase_price,
                "quantity": holding.quantity,
                "currency": "USD",
                "asset_type": "cash" if holding.is_cash else "stock",
                "source": SOURCE_TAG,
                "account_id": holding.account_id or fallback_account_id or "default",
                "account_name": holding.account_name or "Investment Account",
                "broker_name": broker_name,
            },
        )
