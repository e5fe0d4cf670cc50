"""
Password hashing and JWT helpers.
"""

from datetime import datetime, timedelta, timezone
from typing import Tuple

import bcrypt
from jose import JWTError, jwt

from ..core.config import Config
from ..exceptions import InvalidTokenException


def hash_password(password: str) -> str:
    """Generate a bcrypt hash for the password."""
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=12))
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # malformed hash in the database
        return False


def create_access_token(user_id: int, email: str, role: str) -> Tuple[str, int]:
    """
    Create a signed access token for the given principal.

    Returns:
        Tuple[str, int]: the encoded token and its lifetime in seconds.
    """
    expires_in = Config.ACCESS_TOKEN_EXPIRY
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    token = jwt.encode(payload, Config.JWT_SECRET, algorithm=Config.JWT_ALGORITHM)
    return token, expires_in


def decode_token(token: str) -> dict:
    """Decode and verify an access token, raising InvalidTokenException on failure."""
    try:
        payload = jwt.decode(token, Config.JWT_SECRET, algorithms=[Config.JWT_ALGORITHM])
    except JWTError:
        raise InvalidTokenException()

    if "sub" not in payload:
        raise InvalidTokenException()

    return payload
