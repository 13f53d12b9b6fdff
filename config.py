import os
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class ConfigurationError(Exception):
    pass


class MailSettings(BaseModel):
    user: str
    password: str
    host: str = "smtp.gmail.com"
    port: int = 465
    sender_name: str = "RaknaGo"

    @field_validator("password")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        # App passwords are usually copied with spaces between the groups
        return "".join(value.split())


class Settings(BaseModel):
    database_url: str = "sqlite:///./raknago.db"
    project_id: str = "raknago-pro"
    mail: Optional[MailSettings] = None
    token_ttl_minutes: int = Field(1440, gt=0)
    otp_ttl_minutes: int = Field(5, gt=0)
    otp_length: int = Field(6, ge=4, le=10)

    def require_mail(self) -> MailSettings:
        if self.mail is None:
            raise ConfigurationError("Email relay is not configured")
        return self.mail


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Builds the process configuration from the environment.
    Values from a local .env file are loaded first; real environment variables win.
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    try:
        mail = None
        user = environ.get("EMAIL_USER")
        password = environ.get("EMAIL_PASSWORD")
        if user and password:
            mail = MailSettings(
                user=user,
                password=password,
                host=environ.get("EMAIL_SMTP_HOST", "smtp.gmail.com"),
                port=int(environ.get("EMAIL_SMTP_PORT", "465")),
            )

        return Settings(
            database_url=environ.get("RAKNAGO_DATABASE_URL", "sqlite:///./raknago.db"),
            project_id=environ.get("RAKNAGO_PROJECT_ID", "raknago-pro"),
            mail=mail,
            token_ttl_minutes=int(environ.get("RAKNAGO_TOKEN_TTL_MINUTES", "1440")),
            otp_ttl_minutes=int(environ.get("RAKNAGO_OTP_TTL_MINUTES", "5")),
            otp_length=int(environ.get("RAKNAGO_OTP_LENGTH", "6")),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
