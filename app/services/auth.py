"""Password hashing and login checks."""
import logging
from typing import List, Optional
import bcrypt
from app.db.models import User
from app.services.errors import AuthenticationError
from app.services.storage import DatabaseStorage
from app.constants import BCRYPT_ROUNDS, STUDENT_ROLE

logger = logging.getLogger(__name__)


def _encode_password(password: str) -> bytes:
    """Encode a password, keeping the first 72 bytes bcrypt actually uses."""
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode_password(password), salt).decode("utf-8")


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    try:
        return bcrypt.checkpw(_encode_password(password), stored.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash in database")
        return False


def authenticate(
    storage: DatabaseStorage,
    username: str,
    role: str,
    password: Optional[str] = None,
    picture_password: Optional[List[str]] = None
) -> User:
    """
    Check login credentials.

    Students may sign in with their picture password, which must match the
    stored pictures in order. Everyone else uses a text password.

    Raises:
        AuthenticationError: Unknown user, wrong role or wrong password
    """
    user = storage.get_user_by_username(username)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    if user.role != role:
        raise AuthenticationError("Invalid role for this user")

    if user.role == STUDENT_ROLE and picture_password:
        if list(user.picture_password or []) != list(picture_password):
            raise AuthenticationError("Wrong picture password")
    elif not verify_password(password or "", user.password_hash):
        raise AuthenticationError("Invalid password")

    return user
