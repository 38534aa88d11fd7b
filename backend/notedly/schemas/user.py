"""
Notedly Backend — User Schemas
================================

What:  Public view of a user and the identity assertion accepted from the
       OAuth callback layer.
Never exposed: provider_id and token_hash.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: int = Field(description="Stable internal user identifier")
    provider: str = Field(description="Identity provider the user signed in with")
    email: str = Field(description="Verified email address")
    created_at: datetime

    model_config = {"from_attributes": True}


class IdentityAssertion(BaseModel):
    """
    What:  A verified (provider, provider_id, email) triple.
    Who:   Built by the login flow after the provider confirmed the user, or
           by `notedly register`; consumed by IdentityService.register().
    """
    provider: str
    provider_id: str
    email: str
    access_token: Optional[str] = Field(default=None, repr=False)
