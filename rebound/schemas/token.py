from pydantic import BaseModel,EmailStr
from typing import Optional


class TokenData(BaseModel):
    email: Optional[EmailStr] = None
