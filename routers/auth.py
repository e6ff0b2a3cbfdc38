from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from services.auth import get_user_from_token
from models.user import User
from core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Dependency to get current user
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Identity of the caller, trusted as-is by the marketplace services."""
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Authentication credentials required")

    user = get_user_from_token(db, credentials.credentials)
    if user is None:
        logger.warning("Rejected request with invalid token")
        raise AuthenticationError("Could not validate credentials")

    return user
