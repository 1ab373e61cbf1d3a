"""
Shared dependency functions for FastAPI routers.
Eliminates code duplication across multiple router files.
"""
from typing import Optional

from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config.config import ADMIN_EMAIL
from database.DB import get_db
from helpers.TokenAuthenticator import Identity
from services import UserService
from services.Exceptions import Forbidden, NotFound, Unauthenticated

bearer_scheme = HTTPBearer(auto_error=False)


def get_authenticator(request: Request):
    """Dependency to get the configured Authenticator from app state"""
    return request.app.state.authenticator


async def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    authenticator=Depends(get_authenticator),
) -> Optional[Identity]:
    """Identity when a valid bearer token is supplied, None for anonymous callers."""
    if credentials is None:
        return None
    return await authenticator.authenticate(credentials.credentials)


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    """
    Dependency to get the verified identity of the caller.
    Raises Unauthenticated if no bearer token was supplied.
    """
    if identity is None:
        raise Unauthenticated("No authentication token provided")
    return identity


async def get_current_user(identity: Identity = Depends(get_current_identity), db=Depends(get_db)):
    """
    Dependency to get the stored user for the caller.
    Raises NotFound if the identity has never logged in.
    """
    user = await UserService.find_by_identity(db, identity)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_optional_user(identity: Optional[Identity] = Depends(get_optional_identity), db=Depends(get_db)):
    if identity is None:
        return None
    return await UserService.find_by_identity(db, identity)


async def require_admin(user: dict = Depends(get_current_user)):
    """
    Dependency to require the configured admin account.
    Raises Forbidden otherwise.
    """
    if not ADMIN_EMAIL or user.get("email", "").lower() != ADMIN_EMAIL.lower():
        raise Forbidden("Admin access required")
    return user
