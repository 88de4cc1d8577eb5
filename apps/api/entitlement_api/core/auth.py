from dataclasses import dataclass, field
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends, HTTPException, status
from jose import JWTError, jwt
from starlette.requests import Request

from entitlement_api.core.config import get_settings

ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str] = field(default_factory=list)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def _roles_from_claims(claims: dict[str, Any]) -> list[str]:
    roles = claims.get("roles")
    if isinstance(roles, list):
        return [str(role) for role in roles]
    # OAuth-style tokens carry permissions as a space separated scope
    scope = claims.get("scope")
    if isinstance(scope, str) and scope.strip():
        return scope.split()
    return ["user"]


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.removeprefix("Bearer ").strip() if auth_header.startswith("Bearer ") else ""
    if not token:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    user = AuthUser(sub=str(claims.get("sub", ANONYMOUS)), roles=_roles_from_claims(claims))
    request.state.user_id = user.sub
    return user


def require_role(role: str) -> Callable[..., Coroutine[Any, Any, AuthUser]]:
    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if not user.has_role(role):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Missing permission: {role}")
        return user

    return dependency
