import pytest


def call(client, data):
    return client.post("/functions/sendOTPEmail", json={"data": data})


def test_sends_otp_without_sign_in(client, relay):
    response = call(client, {"email": "driver@example.com", "otp": "482913"})
    assert response.status_code == 200
    assert response.json() == {"result": {"success": True, "message": "OTP email sent successfully"}}
    assert relay.sent[0]["To"] == "driver@example.com"


@pytest.mark.parametrize("data", [
    {},
    {"email": "driver@example.com"},
    {"otp": "482913"},
    {"email": "", "otp": "482913"},
    {"email": "driver@example.com", "otp": ""},
    {"email": ["not", "a", "string"], "otp": "482913"},
])
def test_missing_fields_are_invalid_argument(client, relay, data):
    response = call(client, data)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["status"] == "INVALID_ARGUMENT"
    assert error["message"] == "Email and OTP are required"
    assert relay.sent == []


@pytest.mark.parametrize("body", [
    {"data": None},
    {"data": "x"},
    {"data": ["a"]},
    [{"email": "driver@example.com", "otp": "482913"}],
    "just a string",
])
def test_malformed_call_uses_error_envelope(client, relay, body):
    response = client.post("/functions/sendOTPEmail", json=body)
    assert response.status_code == 400
    assert response.json() == {"error": {"status": "INVALID_ARGUMENT", "message": "Email and OTP are required"}}
    assert relay.sent == []


def test_relay_failure_is_internal(client, relay):
    relay.error = OSError("authentication failed")
    response = call(client, {"email": "driver@example.com", "otp": "482913"})
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["status"] == "INTERNAL"
    assert error["message"] == "Failed to send OTP email: authentication failed"


def test_numeric_otp_is_accepted(client, relay):
    response = call(client, {"email": "driver@example.com", "otp": 482913})
    assert response.status_code == 200
    text = relay.sent[0].get_body(preferencelist=("plain",)).get_content()
    assert "482913" in text
