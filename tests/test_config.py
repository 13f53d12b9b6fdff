import pytest

from config import ConfigurationError, load_settings


def test_defaults_without_mail():
    settings = load_settings({})
    assert settings.database_url == "sqlite:///./raknago.db"
    assert settings.project_id == "raknago-pro"
    assert settings.otp_ttl_minutes == 5
    assert settings.mail is None
    with pytest.raises(ConfigurationError):
        settings.require_mail()


def test_mail_password_whitespace_is_removed():
    settings = load_settings({
        "EMAIL_USER": "noreply@example.com",
        "EMAIL_PASSWORD": "abcd efgh\tijkl mnop",
        "EMAIL_SMTP_PORT": "587",
    })
    mail = settings.require_mail()
    assert mail.password == "abcdefghijklmnop"
    assert mail.port == 587
    assert mail.host == "smtp.gmail.com"


def test_mail_needs_both_user_and_password():
    assert load_settings({"EMAIL_USER": "noreply@example.com"}).mail is None


def test_invalid_numbers_are_rejected():
    with pytest.raises(ConfigurationError):
        load_settings({"RAKNAGO_TOKEN_TTL_MINUTES": "soon"})
    with pytest.raises(ConfigurationError):
        load_settings({"RAKNAGO_OTP_TTL_MINUTES": "0"})


def test_otp_length_bounds():
    assert load_settings({}).otp_length == 6
    assert load_settings({"RAKNAGO_OTP_LENGTH": "8"}).otp_length == 8
    with pytest.raises(ConfigurationError):
        load_settings({"RAKNAGO_OTP_LENGTH": "3"})
