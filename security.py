import secrets
import string
from datetime import timedelta
from typing import Optional

import bcrypt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from config import Settings, get_settings
from database import get_db
from models import Account, IdentityToken, utcnow
from rules import AccessControlEvaluator, AuthContext
from store import DocumentStore


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_verification_code(length: int) -> str:
    """One-time numeric code for email two-factor sign-in; leading zeros are kept."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


def issue_token(db: Session, account: Account, settings: Settings) -> IdentityToken:
    token = IdentityToken(
        token=secrets.token_urlsafe(32),
        uid=account.uid,
        expires_at=utcnow() + timedelta(minutes=settings.token_ttl_minutes),
    )
    db.add(token)
    return token


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def get_identity(authorization: Optional[str] = Header(None), db: Session = Depends(get_db)) -> Optional[AuthContext]:
    """Resolves the bearer token to a verified identity; no header means anonymous."""
    token = _bearer_token(authorization)
    if token is None:
        return None
    record = db.query(IdentityToken).filter(IdentityToken.token == token).first()
    if not record or record.expires_at <= utcnow():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthContext(uid=record.uid, email=record.account.email)


def require_identity(identity: Optional[AuthContext] = Depends(get_identity)) -> AuthContext:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_evaluator(store: DocumentStore = Depends(get_store)) -> AccessControlEvaluator:
    return AccessControlEvaluator(store.get_data)


def get_app_settings() -> Settings:
    return get_settings()
