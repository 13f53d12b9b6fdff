from datetime import timedelta

from conftest import register
from config import load_settings
from main import app
from models import VerificationCode, utcnow
from security import create_verification_code, get_app_settings


def test_register_login_and_logout(client):
    uid, headers = register(client, "Driver@Example.com", password="s3cret-pass")

    response = client.post("/auth/login", json={"email": "driver@example.com", "password": "s3cret-pass"})
    assert response.status_code == 200
    assert response.json()["uid"] == uid

    response = client.post("/auth/logout", headers=headers)
    assert response.status_code == 200
    # the revoked token no longer identifies anyone
    assert client.get(f"/users/{uid}", headers=headers).status_code == 401


def test_duplicate_registration_is_rejected(client):
    register(client, "driver@example.com")
    response = client.post("/auth/register", json={"email": "driver@example.com", "password": "another-pass"})
    assert response.status_code == 400


def test_bad_credentials(client):
    register(client, "driver@example.com", password="s3cret-pass")
    response = client.post("/auth/login", json={"email": "driver@example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    response = client.post("/auth/login", json={"email": "nobody@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_malformed_or_unknown_token(client):
    assert client.get("/notifications/", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/notifications/", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/notifications/").status_code == 401


def test_change_password(client):
    _, headers = register(client, "driver@example.com", password="s3cret-pass")

    response = client.post("/auth/change-password", headers=headers,
                           json={"old_password": "wrong-pass", "new_password": "brand-new-pass"})
    assert response.status_code == 401
    response = client.post("/auth/change-password", headers=headers,
                           json={"old_password": "s3cret-pass", "new_password": "s3cret-pass"})
    assert response.status_code == 400
    response = client.post("/auth/change-password", headers=headers,
                           json={"old_password": "s3cret-pass", "new_password": "brand-new-pass"})
    assert response.status_code == 200

    response = client.post("/auth/login", json={"email": "driver@example.com", "password": "brand-new-pass"})
    assert response.status_code == 200


def _last_code(relay):
    text = relay.sent[-1].get_body(preferencelist=("plain",)).get_content()
    return text.split("Code is: ")[1][:6]


def test_two_factor_round_trip(client, relay):
    _, headers = register(client, "driver@example.com")

    response = client.post("/auth/2fa/send", headers=headers)
    assert response.status_code == 200
    assert relay.sent[-1]["To"] == "driver@example.com"
    code = _last_code(relay)

    assert client.post("/auth/2fa/verify", headers=headers, json={"code": code}).status_code == 200
    # single use
    assert client.post("/auth/2fa/verify", headers=headers, json={"code": code}).status_code == 400


def test_new_code_invalidates_previous_one(client, relay):
    _, headers = register(client, "driver@example.com")
    client.post("/auth/2fa/send", headers=headers)
    first = _last_code(relay)
    client.post("/auth/2fa/send", headers=headers)
    second = _last_code(relay)

    if first != second:
        assert client.post("/auth/2fa/verify", headers=headers, json={"code": first}).status_code == 400
    assert client.post("/auth/2fa/verify", headers=headers, json={"code": second}).status_code == 200


def test_expired_code_is_rejected(client, relay, session_factory):
    uid, headers = register(client, "driver@example.com")
    client.post("/auth/2fa/send", headers=headers)
    code = _last_code(relay)

    db = session_factory()
    db.query(VerificationCode).filter(VerificationCode.uid == uid).update(
        {"expires_at": utcnow() - timedelta(minutes=1)}, synchronize_session=False,
    )
    db.commit()
    db.close()

    assert client.post("/auth/2fa/verify", headers=headers, json={"code": code}).status_code == 400


def test_two_factor_send_reports_relay_failure(client, relay):
    _, headers = register(client, "driver@example.com")
    relay.error = OSError("relay down")
    response = client.post("/auth/2fa/send", headers=headers)
    assert response.status_code == 500
    assert "relay down" in response.json()["detail"]


def test_code_length_follows_settings(client, relay):
    app.dependency_overrides[get_app_settings] = lambda: load_settings({"RAKNAGO_OTP_LENGTH": "8"})
    _, headers = register(client, "driver@example.com")
    client.post("/auth/2fa/send", headers=headers)

    text = relay.sent[-1].get_body(preferencelist=("plain",)).get_content()
    code = text.split("Code is: ")[1].split()[0]
    assert len(code) == 8 and code.isdigit()
    assert client.post("/auth/2fa/verify", headers=headers, json={"code": code}).status_code == 200


def test_verification_codes_are_numeric():
    codes = {create_verification_code(6) for _ in range(50)}
    assert all(len(code) == 6 and code.isdigit() for code in codes)
