"""Pydantic schemas for the broker catalog."""

from pydantic import BaseModel


class BrokerCategoryResponse(BaseModel):
    id: str
    name: str
    noun: str

    model_config = {"from_attributes": True}


class BrokerResponse(BaseModel):
    id: str
    name: str
    country: str

    model_config = {"from_attributes": True}
