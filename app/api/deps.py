from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.security import decode_token
from app.db.session import get_db
from app.models.user import User
from app.services.entitlement_query import EntitlementQueryService, Identity

bearer_scheme = HTTPBearer(auto_error=False)

def _user_from_credentials(creds: HTTPAuthorizationCredentials | None, db: Session) -> User | None:
    if creds is None:
        return None
    try:
        claims = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = db.get(User, claims.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    # the stored flag wins; an admin token for a demoted user is revoked
    if claims.is_admin and not user.is_admin:
        raise HTTPException(status_code=401, detail="Token no longer valid, please sign in again")
    return user

def get_current_user(
        creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        db: Session = Depends(get_db)
) -> User:
    user = _user_from_credentials(creds, db)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user

def get_optional_user(
        creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        db: Session = Depends(get_db)
) -> User | None:
    return _user_from_credentials(creds, db)

def identity_of(user: User | None) -> Identity | None:
    if user is None:
        return None
    return Identity(user_id=user.id, is_admin=bool(user.is_admin))

def get_entitlement_service(request: Request) -> EntitlementQueryService:
    return request.app.state.entitlement_service

def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin only")
    return user
