"""FastAPI dependencies for RecipeHub API.

Provides:
- Bearer token extraction
- Current user resolution (required / optional) backed by the sessions table
- Role guards (admin, chef-or-admin)
- Client IP / user agent for audit and session records
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from .db import get_db
from .errors import AuthenticationError, PermissionDenied
from .infra.rate_limit import client_identifier
from .models import User, Role
from .services import auth_service


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


def get_current_user(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(bearer_token),
) -> User:
    if not token:
        raise AuthenticationError("Authentication required")
    return auth_service.validate_session(db, token)


def get_optional_user(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(bearer_token),
) -> Optional[User]:
    """Like get_current_user but anonymous callers get None.

    A token that is present but invalid is still rejected.
    """
    if not token:
        return None
    return auth_service.validate_session(db, token)


def require_roles(*roles: str):
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied("Insufficient permissions")
        return user
    return _guard


require_admin = require_roles(Role.ADMIN)
require_chef_or_admin = require_roles(Role.CHEF, Role.ADMIN)


def client_ip(request: Request) -> str:
    return client_identifier(request)


def user_agent(user_agent: Optional[str] = Header(None)) -> Optional[str]:
    return user_agent
