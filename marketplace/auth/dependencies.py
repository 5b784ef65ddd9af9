from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.auth import jwt_handler
from marketplace.models.user import Role

security = HTTPBearer()


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as asserted by the access token."""

    user_id: str
    email: str
    role: Role


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        role = Role(payload.get("role"))
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token role") from exc

    return Actor(user_id=user_id, email=payload.get("email", ""), role=role)


def require_role(*roles: Role):
    allowed = set(roles)

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return actor

    return dependency
