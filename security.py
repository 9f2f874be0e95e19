"""
Credential & token service: bcrypt password hashing and signed JWT identity tokens.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import SECRET_KEY, JWT_ALGORITHM, TOKEN_EXPIRE_DAYS, BCRYPT_ROUNDS

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)

# verified against when the email is unknown so both login failures cost the same
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


class InvalidToken(Exception):
    pass


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        pwd_context.verify(plain_password, _DUMMY_HASH)
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a recognizable hash
        return False


def create_access_token(user_id: str, is_admin: bool, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=TOKEN_EXPIRE_DAYS))
    to_encode = {"sub": str(user_id), "is_admin": bool(is_admin), "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the token claims or raise InvalidToken.

    Expiry and signature are checked by jose; a token without a subject is
    rejected as well.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc
    if not payload.get("sub"):
        raise InvalidToken("token has no subject")
    return payload
