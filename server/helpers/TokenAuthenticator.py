from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from jose import jwt, JWTError
from pydantic import BaseModel

from config.config import SECRET_KEY, AUTH_MODE, AUTH_USERINFO_URL, TOKEN_EXPIRE_MINUTES
from config.log import get_logger
from services.Exceptions import Unauthenticated

logger = get_logger(__name__)

ALGORITHM = "HS256"


class Identity(BaseModel):
    """Verified external identity handed to the API by an authenticator"""
    id: str
    email: str
    name: str
    picture: Optional[str] = None


class Authenticator:
    """
    Strategy interface: turn a bearer credential into a verified Identity.
    Implementations raise Unauthenticated when the credential is not valid.
    """
    async def authenticate(self, token: str) -> Identity:
        raise NotImplementedError


class JWTAuthenticator(Authenticator):
    def __init__(self, secret_key: str, algorithm: str = ALGORITHM):
        self._secret_key = secret_key
        self._algorithm = algorithm

    async def authenticate(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as e:
            raise Unauthenticated(f"Invalid authentication token: {e}")

        subject = payload.get("sub")
        email = payload.get("email")
        if not subject or not email:
            raise Unauthenticated("Authentication token is missing required claims")

        return Identity(
            id=subject,
            email=email.lower(),
            name=payload.get("name") or email.split("@")[0],
            picture=payload.get("picture"),
        )


class UserInfoAuthenticator(Authenticator):
    """Verify the bearer by asking the identity provider's userinfo endpoint."""
    def __init__(self, userinfo_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._userinfo_url = userinfo_url
        self._timeout = timeout
        self._transport = transport

    async def authenticate(self, token: str) -> Identity:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    self._userinfo_url,
                    headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as e:
            logger.warning("Userinfo request failed", error=str(e))
            raise Unauthenticated("Unable to verify authentication token")

        if response.status_code != 200:
            raise Unauthenticated("Invalid authentication token")

        data = response.json()
        subject = data.get("sub") or data.get("id")
        email = data.get("email") or data.get("mail") or data.get("userPrincipalName")
        if not subject or not email:
            raise Unauthenticated("Identity provider returned an incomplete profile")

        return Identity(
            id=str(subject),
            email=email.lower(),
            name=data.get("name") or data.get("displayName") or email.split("@")[0],
            picture=data.get("picture"),
        )


def build_authenticator(mode: str = AUTH_MODE) -> Authenticator:
    if mode == "userinfo":
        if not AUTH_USERINFO_URL:
            raise ValueError("AUTH_USERINFO_URL environment variable not set!")
        return UserInfoAuthenticator(AUTH_USERINFO_URL)
    if mode == "jwt":
        return JWTAuthenticator(SECRET_KEY)
    raise ValueError(f"Unknown AUTH_MODE '{mode}'")


def create_access_token(subject: str, email: str, name: str, picture: Optional[str] = None,
                        expires_minutes: int = TOKEN_EXPIRE_MINUTES, secret_key: str = SECRET_KEY) -> str:
    payload = {
        "sub": subject,
        "email": email,
        "name": name,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    if picture:
        payload["picture"] = picture
    return jwt.encode(payload, secret_key, algorithm=ALGORITHM)
