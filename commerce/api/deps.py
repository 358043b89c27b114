from typing import Annotated, Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from commerce.database import get_db
from commerce.core.security import verify_access_token
from commerce.services.errors import Unauthenticated
from commerce.services.payment_service import PaymentService, get_payment_service


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing headers are reported as our own 401
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> int:
    """
    Dependency to get the authenticated caller's user ID.

    Only the token is checked here; whether the user still exists is decided
    by the service that needs the account.
    """
    if credentials is None:
        raise Unauthenticated()

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise Unauthenticated("Could not validate credentials")

    return user_id


# Type aliases for cleaner dependency injection
CurrentUserId = Annotated[int, Depends(get_current_user_id)]
DB = Annotated[AsyncSession, Depends(get_db)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]
