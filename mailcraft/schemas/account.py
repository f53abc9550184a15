from typing import Optional

from pydantic import BaseModel, Field

from mailcraft.db.enums import ApiKeyProviderEnum, SubscriptionStatusEnum


class UsageOut(BaseModel):
    period: str
    used: int
    cap: int
    remaining: int
    has_own_api_key: bool
    limited: bool


class AccountOut(BaseModel):
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    is_anonymous: bool
    subscription_status: SubscriptionStatusEnum
    is_premium: bool
    own_api_provider: Optional[ApiKeyProviderEnum] = None
    own_api_key_masked: Optional[str] = None
    active_workspace_id: Optional[str] = None
    usage: UsageOut


class ApiKeyUpdate(BaseModel):
    provider: ApiKeyProviderEnum
    api_key: str = Field(..., min_length=8)


class CheckoutRequest(BaseModel):
    return_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    url: str
