"""JWT login for the single local user configured in settings."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from tickr.config import settings
from tickr.schemas.auth import User, UserInDB

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

def create_access_token(username: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode({"sub": username, "exp": expire}, settings.secret_key, algorithm=settings.algorithm)

# Hashed lazily so the password is hashed once per process
_ADMIN_USER: Optional[UserInDB] = None

def get_admin_user() -> UserInDB:
    global _ADMIN_USER
    if _ADMIN_USER is None:
        _ADMIN_USER = UserInDB(
            username=settings.admin_username,
            hashed_password=pwd_context.hash(settings.admin_password),
        )
    return _ADMIN_USER

def authenticate_user(username: str, password: str) -> Optional[User]:
    admin = get_admin_user()
    if username != admin.username or not pwd_context.verify(password, admin.hashed_password):
        return None
    return User(username=admin.username)

def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise credentials_exception
    # Tokens issued before an admin rename stop working
    if payload.get("sub") != get_admin_user().username:
        raise credentials_exception
    return User(username=payload["sub"])
