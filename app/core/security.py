import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    is_admin: bool
    expires_at: datetime


def _prehash(password: str) -> str:
    # bcrypt only reads 72 bytes; a sha256 hex digest is 64
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    return pwd_context.hash(_prehash(password))


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(_prehash(password), password_hash)


def create_access_token(user_id: str, *, is_admin: bool = False) -> str:
    """Bearer token for one user: opaque id in ``sub``, admin flag in ``adm``."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "adm": bool(is_admin),
        "typ": TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_access_ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> TokenClaims:
    """Raises ``JWTError`` for bad signatures, expired tokens and foreign token types."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    if payload.get("typ") != TOKEN_TYPE:
        raise JWTError("Not an access token")
    sub, exp = payload.get("sub"), payload.get("exp")
    if not sub or exp is None:
        raise JWTError("Token has no subject or expiry")
    return TokenClaims(
        user_id=str(sub),
        is_admin=bool(payload.get("adm", False)),
        expires_at=datetime.fromtimestamp(exp, timezone.utc),
    )
