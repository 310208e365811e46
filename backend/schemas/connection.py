"""Pydantic schemas for the broker-link endpoints."""

from typing import Optional

from pydantic import BaseModel


class ConnectRequest(BaseModel):
    """Request body for creating a connection-portal link.

    Fields are optional here so missing values produce the endpoint's own
    400 ``{"error": ...}`` response instead of a validation 422.
    """

    userId: Optional[str] = None
    brokerId: Optional[str] = None
    callbackUrl: Optional[str] = None


class ConnectResponse(BaseModel):
    redirectUri: str


class RelayRequest(BaseModel):
    """An upstream request for the same-origin relay to forward."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = {}
    body: Optional[str] = None
