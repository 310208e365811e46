"""Broker catalog API endpoints."""

from fastapi import APIRouter, HTTPException, Query

from schemas import BrokerCategoryResponse, BrokerResponse
from services import broker_catalog

router = APIRouter(prefix="/api/brokers", tags=["brokers"])


@router.get("/categories", response_model=list[BrokerCategoryResponse])
def list_categories():
    """List broker categories in display order."""
    return broker_catalog.BROKER_CATEGORIES


@router.get("", response_model=list[BrokerResponse])
def list_brokers(category: str = Query(...)):
    """List the brokers of one category."""
    if broker_catalog.get_category(category) is None:
        raise HTTPException(status_code=404, detail=f"Unknown broker category: {category}")
    return broker_catalog.get_brokers(category)
