from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.schemas import ActingUser, IdentityClaims
from fellowship.auth.security import decode_identity_token
from fellowship.auth.services import resolve_profile
from fellowship.core.config import settings
from fellowship.core.exceptions import ErrorCode, ServiceError
from fellowship.db.session import get_db

bearer_scheme = HTTPBearer(auto_error=False)


def _reauthenticate(message: str) -> HTTPException:
    """401 that tells the client where to log in again."""
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message, "code": ErrorCode.UNAUTHORIZED.value, "login_url": settings.login_url},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_identity_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> IdentityClaims:
    if credentials is None or not credentials.credentials:
        raise _reauthenticate("Not authenticated")
    try:
        return decode_identity_token(credentials.credentials)
    except ServiceError as e:
        raise _reauthenticate(e.message)


async def get_current_user(
    claims: IdentityClaims = Depends(get_identity_claims),
    db: AsyncSession = Depends(get_db),
) -> ActingUser:
    """Resolve the acting user for this request. First-seen identities get a provisional member context."""
    result = await resolve_profile(db, claims)
    if not result.success:
        assert result.error is not None
        if result.error.code == ErrorCode.UNAUTHORIZED:
            raise _reauthenticate(result.error.message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=result.error.message)
    return result.data
