from datetime import datetime
from typing import Literal

from pydantic import AliasGenerator, BaseModel
from pydantic.alias_generators import to_camel

SubscriptionStatus = Literal["none", "active", "trialing", "past_due", "canceled"]

# /entitlements/me is read by the web client: camelCase out, field names in
CAMEL_OUT = AliasGenerator(serialization_alias=to_camel)

class EntitlementDetails(BaseModel):
    """Read-only snapshot of one user's entitlement record."""
    user_id: str
    subscription_status: SubscriptionStatus
    subscription_id: str | None
    price_id: str | None
    customer_id: str | None
    current_period_end: datetime | None
    cancel_at_period_end: bool
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True
        alias_generator = CAMEL_OUT

class EntitlementStateOut(BaseModel):
    has_active_access: bool
    details: EntitlementDetails | None
    stale: bool
    error: str | None = None

    class Config:
        alias_generator = CAMEL_OUT

class OverrideIn(BaseModel):
    subscription_status: SubscriptionStatus

class OverrideOut(BaseModel):
    user_id: str
    subscription_status: SubscriptionStatus
    updated_at: datetime

class WebhookAck(BaseModel):
    received: bool = True
