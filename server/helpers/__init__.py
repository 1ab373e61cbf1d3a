from .DateTimeSerializer import DateTimeSerializerVisitor
from .SlugGenerator import slugify, generate_event_slug
from .TimeUtils import utcnow, as_naive_utc
from .TokenAuthenticator import (
    Identity,
    Authenticator,
    JWTAuthenticator,
    UserInfoAuthenticator,
    build_authenticator,
    create_access_token,
)

__all__ = [
    'DateTimeSerializerVisitor',
    'slugify',
    'generate_event_slug',
    'utcnow',
    'as_naive_utc',
    'Identity',
    'Authenticator',
    'JWTAuthenticator',
    'UserInfoAuthenticator',
    'build_authenticator',
    'create_access_token',
]
