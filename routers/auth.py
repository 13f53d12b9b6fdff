import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, Header, HTTPException, status

from config import Settings
from database import get_db
from mailer import CallableError, OtpEmailService
from models import Account, IdentityToken, VerificationCode, utcnow
from routers.functions import get_otp_service
from rules import AuthContext
from schemas.auth_schema import AuthLogin, MessageResponse, PasswordChange, RegisterRequest, TokenResponse, TwoFactorVerify
from security import (
    create_verification_code, get_app_settings, hash_password, issue_token, require_identity, verify_password,
)

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}: {e}")


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(auth: RegisterRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)):
    """
    Creates a sign-in account and returns an identity token for it.
    The profile document is created separately by the account itself (POST /users/{uid}).
    """
    email = auth.email.lower()
    if db.query(Account).filter(Account.email == email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    account = Account(email=email, password=hash_password(auth.password))
    db.add(account)
    db.flush()
    token = issue_token(db, account, settings)
    _commit(db, "create account")
    logger.info("Registered account %s", account.uid)
    return TokenResponse(uid=account.uid, token=token.token, expires_at=token.expires_at)


@auth_router.post("/login", response_model=TokenResponse)
def login(auth_data: AuthLogin, db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)):
    account = db.query(Account).filter(Account.email == auth_data.email.lower()).first()

    if not account or not verify_password(auth_data.password, account.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = issue_token(db, account, settings)
    _commit(db, "issue token")
    return TokenResponse(uid=account.uid, token=token.token, expires_at=token.expires_at)


@auth_router.post("/logout", response_model=MessageResponse)
def logout(
    authorization: Optional[str] = Header(None),
    identity: AuthContext = Depends(require_identity),
    db: Session = Depends(get_db),
):
    token = authorization.partition(" ")[2].strip()
    db.query(IdentityToken).filter(IdentityToken.token == token).delete(synchronize_session=False)
    _commit(db, "revoke token")
    return MessageResponse(message="Logged out.")


@auth_router.post("/change-password", response_model=MessageResponse)
def change_password(
    data: PasswordChange,
    identity: AuthContext = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """
    Allows a logged-in user to change their password, requiring their old password for verification.
    """
    account = db.query(Account).filter(Account.uid == identity.uid).first()
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found.")

    if not verify_password(data.old_password, account.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect old password.")

    if verify_password(data.new_password, account.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="New password cannot be the same as the old password."
        )

    account.password = hash_password(data.new_password)
    _commit(db, "change password")
    return MessageResponse(message="Password changed successfully.")


# --- Two-factor authentication by email ---

@auth_router.post("/2fa/send", response_model=MessageResponse)
def send_two_factor_code(
    identity: AuthContext = Depends(require_identity),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    otp_service: OtpEmailService = Depends(get_otp_service),
):
    """
    Generates a fresh one-time code, invalidates earlier unused ones and emails it to the account.
    """
    now = utcnow()
    db.query(VerificationCode).filter(
        VerificationCode.uid == identity.uid,
        VerificationCode.type == "two_factor",
        VerificationCode.is_used == False,  # noqa: E712
    ).update({"is_used": True}, synchronize_session=False)

    code = create_verification_code(settings.otp_length)
    db.add(VerificationCode(
        uid=identity.uid,
        code=code,
        type="two_factor",
        created_at=now,
        expires_at=now + timedelta(minutes=settings.otp_ttl_minutes),
    ))
    _commit(db, "generate verification code")

    try:
        otp_service.send_otp_email(identity.email, code)
    except CallableError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
    return MessageResponse(message="Verification code sent.")


@auth_router.post("/2fa/verify", response_model=MessageResponse)
def verify_two_factor_code(
    data: TwoFactorVerify,
    identity: AuthContext = Depends(require_identity),
    db: Session = Depends(get_db),
):
    verification_code = db.query(VerificationCode).filter(
        VerificationCode.uid == identity.uid,
        VerificationCode.code == data.code,
        VerificationCode.type == "two_factor",
        VerificationCode.is_used == False,  # noqa: E712
        VerificationCode.expires_at > utcnow(),
    ).first()

    if not verification_code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid, expired, or used verification code.")

    verification_code.is_used = True
    _commit(db, "verify code")
    return MessageResponse(message="Verification successful.")
