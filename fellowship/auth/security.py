from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from fellowship.auth.schemas import IdentityClaims
from fellowship.core.config import settings
from fellowship.core.exceptions import ErrorCode, ServiceError


def decode_identity_token(token: str) -> IdentityClaims:
    """
    Verify a bearer token issued by the identity provider (signature, expiry, and audience/issuer when configured).
    Raises ServiceError(UNAUTHORIZED); the caller sends the client back to LOGIN_URL.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.identity_audience,
            issuer=settings.identity_issuer,
            options={"verify_aud": settings.identity_audience is not None},
        )
    except JWTError:
        raise ServiceError("Could not validate credentials", ErrorCode.UNAUTHORIZED)

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise ServiceError("Could not validate credentials", ErrorCode.UNAUTHORIZED)
    return IdentityClaims(
        sub=sub,
        email=payload.get("email"),
        name=payload.get("name") or payload.get("given_name"),
    )


def create_identity_token(
    subject: str,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
    expires_minutes: int = 60,
) -> str:
    """Mint a token the way the identity provider does. Local development and tests only."""
    to_encode = {"sub": subject, "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)}
    if email:
        to_encode["email"] = email
    if name:
        to_encode["name"] = name
    if settings.identity_audience:
        to_encode["aud"] = settings.identity_audience
    if settings.identity_issuer:
        to_encode["iss"] = settings.identity_issuer
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
