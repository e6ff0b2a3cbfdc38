from sqlalchemy.orm import Session
from typing import Optional
import logging

from models.user import User
from core.exceptions import ResourceNotFoundError
from core.validators import is_valid_id

logger = logging.getLogger(__name__)

def resolve_user(db: Session, reference: Optional[str]) -> Optional[User]:
    """Resolve a user by internal id, falling back to the external auth identity."""
    if not reference:
        return None
    if is_valid_id(reference):
        user = db.query(User).filter(User.id == reference).first()
        if user:
            return user
    return db.query(User).filter(User.external_id == reference).first()

def get_user_or_404(db: Session, reference: Optional[str]) -> User:
    user = resolve_user(db, reference)
    if not user:
        raise ResourceNotFoundError("User", str(reference))
    return user
