import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, JSON
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    # Naive UTC; SQLite does not keep tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class Document(Base):
    __tablename__ = "documents"
    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Account(Base):
    """Identity-provider record. The profile lives in the users collection under the same uid."""
    __tablename__ = "accounts"
    uid = Column(String, primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    tokens = relationship("IdentityToken", back_populates="account", cascade="all, delete-orphan")
    verification_codes = relationship("VerificationCode", back_populates="account", cascade="all, delete-orphan")


class IdentityToken(Base):
    __tablename__ = "identity_tokens"
    token = Column(String, primary_key=True)
    uid = Column(String, ForeignKey("accounts.uid"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    account = relationship("Account", back_populates="tokens")


class VerificationCode(Base):
    __tablename__ = "verification_codes"
    id = Column(String, primary_key=True, default=new_id)
    uid = Column(String, ForeignKey("accounts.uid"), nullable=False, index=True)
    code = Column(String, nullable=False)
    type = Column(String, nullable=False, default="two_factor")
    is_used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    account = relationship("Account", back_populates="verification_codes")
