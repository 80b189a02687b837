from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

from core.errors import AuthorizationError
from core.policies import Action, check_permissions

ROLE_HEADER = "X-User-Role"


class SecurityContext(BaseModel):
    """Caller identity as forwarded by the authentication proxy."""

    role: Optional[str] = None


async def get_current_context(
    x_user_role: Optional[str] = Header(default=None),
) -> SecurityContext:
    role = x_user_role.strip().lower() if x_user_role else None
    return SecurityContext(role=role or None)


def require_permission(resource: str, action: Action):
    """Dependency factory: 401 without a role, 403 when the role is not allowed."""

    async def dependency(
        ctx: SecurityContext = Depends(get_current_context),
    ) -> SecurityContext:
        if not ctx.role:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Autenticação necessária",
            )
        if not check_permissions(ctx.role, resource, action):
            raise AuthorizationError(f"Acesso negado: {ctx.role} não pode {action} {resource}")
        return ctx

    return dependency
