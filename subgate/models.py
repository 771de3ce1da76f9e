from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

class UsernameReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    # Older clients send stakeUsername.
    username: str = Field(validation_alias=AliasChoices("username", "stakeUsername"))

class VerifyUserReq(UsernameReq):
    pass

class RequestTrialReq(UsernameReq):
    pass

class ApplyPromoReq(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    promo_code: str = Field(validation_alias=AliasChoices("promoCode", "promo_code"))
    subscription_type: str = Field(validation_alias=AliasChoices("subscriptionType", "subscription_type"))

class AdjustedPricesReq(UsernameReq):
    subscription_type: str = Field(validation_alias=AliasChoices("subscriptionType", "subscription_type"))
    promo_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("promoCode", "promo_code"))

class CreateInvoiceReq(UsernameReq):
    subscription_type: str = Field(validation_alias=AliasChoices("subscriptionType", "subscription_type"))
    currency: str = Field(..., min_length=2, max_length=16)
    promo_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("promoCode", "promo_code"))
    referral_username: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("referralUsername", "referral_username"),
    )
    provider: Optional[str] = None
