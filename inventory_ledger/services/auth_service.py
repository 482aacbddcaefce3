"""Login, tokens, and the operator identity recorded on audit entries."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from inventory_ledger.config import settings
from inventory_ledger.exceptions import AlreadyExists, FieldError, ValidationError
from inventory_ledger.models.user import ROLES, User

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"


@dataclass(frozen=True)
class Operator:
    """Who performed an inventory mutation."""

    operator_id: str
    operator_name: str


# Used by callers outside HTTP requests (scripts, batch jobs)
SYSTEM_OPERATOR = Operator(operator_id="system", operator_name="system")


def operator_for(user: User) -> Operator:
    return Operator(operator_id=user.id, operator_name=user.operator_name)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def create_access_token(user_id: str, username: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    return jwt.encode(
        {"sub": user_id, "username": username, "exp": expires},
        settings.SECRET_KEY,
        algorithm=TOKEN_ALGORITHM,
    )


def decode_token(token: str) -> dict | None:
    """Claims of a valid token, or None if it is expired, tampered or malformed."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username, User.active == True).first()  # noqa: E712
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", username)
        return None
    return user


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, username: str, password: str, display_name: str = "", role: str = "staff") -> User:
    if role not in ROLES:
        raise ValidationError([FieldError("role", f"must be one of: {', '.join(ROLES)}")])
    if db.query(User).filter(User.username == username).first():
        raise AlreadyExists(f"Username '{username}' already exists")
    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def ensure_default_admin(db: Session) -> None:
    """Create an admin/admin account on an empty users table."""
    if db.query(User).count() == 0:
        create_user(db, username="admin", password="admin", display_name="Admin", role="admin")
        logger.warning("Created default admin user; change its password")
