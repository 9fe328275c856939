# workscore/core/auth.py
import hmac

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from workscore.config import settings

reusable_bearer = HTTPBearer(auto_error=False)


async def verify_cron_token(
    token: HTTPAuthorizationCredentials = Depends(reusable_bearer)
):
    """Only the scheduler holding the shared secret may fire triggers."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid cron credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if token is None:
        raise credentials_exception
    if not hmac.compare_digest(token.credentials, settings.CRON_SECRET_TOKEN):
        raise credentials_exception


async def get_actor_id(x_user_id: str = Header(...)) -> str:
    # Identity is established upstream; this service only records who acted
    if not x_user_id.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "X-User-Id header is empty")
    return x_user_id.strip()
