"""Asset API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models import Asset
from schemas import AssetCategoryResponse, AssetResponse
from services.asset_category_service import AssetCategoryService
from services.session_auth import get_session_user_id

router = APIRouter(prefix="/api/assets", tags=["assets"])


def _asset_response(asset: Asset) -> AssetResponse:
    return AssetResponse(
        id=asset.id,
        name=asset.name,
        value=asset.value,
        description=asset.description,
        location=asset.location,
        acquisition_date=asset.acquisition_date,
        acquisition_value=asset.acquisition_value,
        category_id=asset.category_id,
        category_slug=asset.category.slug if asset.category else None,
        is_liability=asset.is_liability,
        metadata=asset.asset_metadata or {},
        created_at=asset.created_at,
    )


@router.get("", response_model=list[AssetResponse])
def list_assets(
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_session_user_id),
):
    """List the signed-in user's assets, newest first."""
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    assets = (
        db.query(Asset)
        .options(joinedload(Asset.category))
        .filter(Asset.user_id == user_id)
        .order_by(Asset.created_at.desc())
        .all()
    )
    return [_asset_response(asset) for asset in assets]


@router.get("/categories", response_model=list[AssetCategoryResponse])
def list_categories(db: Session = Depends(get_db)):
    """List asset categories."""
    return AssetCategoryService().list_all(db)
