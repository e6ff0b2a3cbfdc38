from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from models.user import User
from schemas.user import TokenData
from core.config import settings
import logging

logger = logging.getLogger(__name__)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token. `sub` carries the internal user id."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access"
    })

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def verify_token(token: str) -> Optional[TokenData]:
    """Decode a JWT access token; None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str = payload.get("sub")

        if user_id is None:
            logger.warning("Token missing required claims")
            return None

        return TokenData(user_id=user_id)

    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}")
        return None

def get_user_from_token(db: Session, token: str) -> Optional[User]:
    token_data = verify_token(token)
    if token_data is None:
        return None
    return db.query(User).filter(User.id == token_data.user_id).first()
