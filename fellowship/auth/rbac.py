from fastapi import Depends, HTTPException, status

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import UserRole
from fellowship.core.exceptions import ErrorCode


def require_role(*roles: UserRole):
    """
    Dependency factory to restrict an endpoint to the given roles.

    Example:
        Depends(require_role(UserRole.NATIONAL_COORDINATOR))
    """

    async def _checker(current_user: ActingUser = Depends(get_current_user)) -> ActingUser:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"message": "Insufficient permissions", "code": ErrorCode.FORBIDDEN.value},
            )
        return current_user

    return _checker


require_national = require_role(UserRole.NATIONAL_COORDINATOR)
