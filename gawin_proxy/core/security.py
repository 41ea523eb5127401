import secrets
from fastapi import HTTPException, status, Depends
from fastapi.security import APIKeyHeader

from .config import ADMIN_TOKEN

ADMIN_HEADER_NAME = "X-Admin-Token"

admin_header_scheme = APIKeyHeader(name=ADMIN_HEADER_NAME, auto_error=False)


def verify_admin(token: str = Depends(admin_header_scheme)):
    """
    Guards the admin API. With ADMIN_TOKEN unset the admin API stays closed.
    """
    if not ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API disabled"
        )
    if not token or not secrets.compare_digest(token, ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": ADMIN_HEADER_NAME},
        )
    return True
