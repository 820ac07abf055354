from typing import Optional
from pydantic import BaseModel


class UserSummary(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    user_type: Optional[str] = None

    class Config:
        from_attributes = True
