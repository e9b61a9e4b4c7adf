# app/endpoints/deps.py
from typing import Tuple

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AuthenticationFailed, PermissionDenied
from app.models.enums import Role
from app.models.user import ApiToken, User
from app.services import auth_service
from app.services.permissions import Permission, has_permission

bearer = HTTPBearer(auto_error=False)


def get_token_pair(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> Tuple[User, ApiToken]:
    if credentials is None or not credentials.credentials:
        raise AuthenticationFailed()
    user, token = auth_service.authenticate_token(db, credentials.credentials)
    if not user.is_active:
        raise PermissionDenied(f"Account is {user.status.replace('_', ' ')}")
    return user, token


def get_current_user(pair: Tuple[User, ApiToken] = Depends(get_token_pair)) -> User:
    return pair[0]


def require_roles(*roles: Role):
    allowed = {Role(r).value for r in roles}

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise PermissionDenied("Your role cannot access this resource")
        return user

    return checker


def require_permission(permission: Permission):
    def checker(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user, permission):
            raise PermissionDenied(f"Missing permission: {permission.value}")
        return user

    return checker


PATIENTS = (Role.STUDENT, Role.ACADEMIC_STAFF)
ADMINS = (Role.ADMIN, Role.SUPERADMIN)
