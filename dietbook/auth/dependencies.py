import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from dietbook.auth import jwt_handler
from dietbook.auth.permissions import normalize_email
from dietbook.database import SessionLocal
from dietbook.models.user import User

security = HTTPBearer()


def resolve_user(db: Session, token: str) -> User:
    """Map a bearer token to its ``users`` row; identity is issued elsewhere."""
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = normalize_email(payload.get("sub"))
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    role = payload.get("role")
    if role and role != user.role:
        raise HTTPException(status_code=401, detail="Token role does not match user")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    db = SessionLocal()
    try:
        return resolve_user(db, credentials.credentials)
    finally:
        db.close()
