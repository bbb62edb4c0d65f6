from datetime import datetime

from pydantic import BaseModel, Field


class AuthenticatedSession(BaseModel):
    """
    Verified caller identity, produced from a valid access token.
    Passed explicitly into every operation that acts on behalf of a user.
    """
    user_id: str = Field(..., description="Identity id (wallet address)")
    jti: str = Field(..., description="Access token identifier")
    expires_at: datetime

    class Config:
        frozen = True
