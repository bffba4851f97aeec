# hunt_lifecycle/schemas/token.py
from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    email_verified: bool = False
    stripe_account_id: Optional[str] = None  # Connected account of hunt owners
    exp: int  # Standard claim for expiration time

    model_config = {"from_attributes": True}

    @property
    def user_id(self) -> str:
        return self.sub
