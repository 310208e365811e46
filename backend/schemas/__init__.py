"""Pydantic request/response schemas."""

from schemas.asset import AssetCategoryResponse, AssetResponse
from schemas.broker import BrokerCategoryResponse, BrokerResponse
from schemas.connection import ConnectRequest, ConnectResponse, RelayRequest

__all__ = [
    "AssetCategoryResponse",
    "AssetResponse",
    "BrokerCategoryResponse",
    "BrokerResponse",
    "ConnectRequest",
    "ConnectResponse",
    "RelayRequest",
]
