from pydantic import BaseModel
from typing import Optional

class UserSummary(BaseModel):
    """Public profile snippet attached to transactions, conversations and messages."""
    id: str
    username: str
    display_name: str
    profile_picture: Optional[str] = None
    rating_average: float = 0.0

    class Config:
        from_attributes = True

class TokenData(BaseModel):
    user_id: Optional[str] = None
