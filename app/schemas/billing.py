from typing import Literal

from pydantic import BaseModel, Field

class PlanOut(BaseModel):
    code: str
    name: str
    description: str | None
    price_id: str
    interval: str
    price: float
    currency: str

    class Config:
        from_attributes = True

class CheckoutIn(BaseModel):
    price_id: str
    success_url: str | None = None
    cancel_url: str | None = None
    mode: Literal["subscription", "payment"] = "subscription"

class CheckoutOut(BaseModel):
    id: str
    url: str

class PortalIn(BaseModel):
    return_url: str = Field(alias="returnUrl")

    class Config:
        populate_by_name = True

class PortalOut(BaseModel):
    url: str
