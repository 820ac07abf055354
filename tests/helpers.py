from rebound.core.security import create_access_token
from rebound.db.models.user import User


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}
