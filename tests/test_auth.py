import pytest

from llm_debugger.auth import ApiKeyGate, AuthError


def test_disabled_gate_accepts_anything():
    assert ApiKeyGate().verify({}) == "auth-disabled"


@pytest.mark.parametrize("header", ["authorization", "x-api-key", "x-goog-api-key"])
def test_enabled_gate_accepts_any_credential_header(header):
    assert ApiKeyGate(enabled=True).verify({header: "secret"}) == header


def test_enabled_gate_rejects_missing_or_blank_credentials():
    gate = ApiKeyGate(enabled=True)
    with pytest.raises(AuthError, match="Missing API key"):
        gate.verify({})
    with pytest.raises(AuthError):
        gate.verify({"authorization": "   "})
