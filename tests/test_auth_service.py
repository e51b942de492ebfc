"""
test_auth_service.py

Pruebas del handshake login/logout contra un transporte simulado.
"""

import pytest

from ewus.commons.errors import BadCredentialsResponse, IncompleteSessionData
from ewus.commons.types import Credentials
from ewus.helpers.soap_transport import TransportFault
from ewus.parsers.models import AuthSessionDescriptor, CredentialEntry, TransportReply
from ewus.services.auth_service import AuthSession, build_credentials


class FakeTransport:
    def __init__(self, reply=None, fault=None):
        self.reply = reply
        self.fault = fault
        self.calls = []

    def call(self, operation, args, headers=None):
        self.calls.append((operation, args, headers))
        if self.fault is not None:
            raise self.fault
        return self.reply


def creds(**kw):
    base = {"domain": "15", "username": "TEST1", "password": "qwerty!@#"}
    base.update(kw)
    return Credentials(**base)


TOKENS = {"session": {"id": "abc"}, "authToken": {"id": "xyz"}}


# ----------------- Credenciales -----------------
def test_credentials_without_provider():
    entries = build_credentials(creds())
    assert entries == [CredentialEntry("domain", "15"), CredentialEntry("login", "TEST1")]


def test_credentials_care_facility():
    entries = build_credentials(creds(provider_type="SWD", provider_code="123456789"))
    assert [e.name for e in entries] == ["domain", "login", "type", "idntSwd"]
    assert entries[2].value == "SWD"
    assert entries[3].value == "123456789"


def test_credentials_physician():
    entries = build_credentials(creds(provider_type="LEK", provider_code="5425740"))
    assert [e.name for e in entries] == ["domain", "login", "type", "idntLek"]
    assert entries[3].value == "5425740"


def test_credentials_unknown_type_falls_back_to_lek():
    entries = build_credentials(creds(provider_type="XYZ", provider_code="1"))
    assert entries[3].name == "idntLek"


@pytest.mark.parametrize(
    "extra", [{"provider_type": "SWD"}, {"provider_code": "123"}, {}]
)
def test_credentials_need_both_type_and_code(extra):
    entries = build_credentials(creds(**extra))
    assert [e.name for e in entries] == ["domain", "login"]


def test_credentials_reject_blank_password():
    with pytest.raises(Exception):
        creds(password="  ")


def test_password_not_in_repr():
    assert "qwerty" not in repr(creds())


# ----------------- Login -----------------
def test_login_ok():
    transport = FakeTransport(TransportReply("[200] Zalogowano", TOKENS))
    session = AuthSession(transport).login(creds())
    assert session == AuthSessionDescriptor("200", "Zalogowano", "abc", "xyz")

    operation, args, headers = transport.calls[0]
    assert operation == "login"
    assert args[0] == [CredentialEntry("domain", "15"), CredentialEntry("login", "TEST1")]
    assert args[1] == "qwerty!@#"
    assert headers is None


def test_login_multiline_message():
    reply = TransportReply("[000] Użytkownik został\nprawidłowo zalogowany.", TOKENS)
    session = AuthSession(FakeTransport(reply)).login(creds())
    assert session.response_code == "000"
    assert session.response_message == "Użytkownik został\nprawidłowo zalogowany."


@pytest.mark.parametrize(
    "line", ["Zalogowano", "[20] Zalogowano", "[2000] x", "[abc] x", "[200]Zalogowano", ""]
)
def test_login_unexpected_line(line):
    with pytest.raises(BadCredentialsResponse):
        AuthSession(FakeTransport(TransportReply(line, TOKENS))).login(creds())


def test_login_without_auth_token():
    reply = TransportReply("[200] Zalogowano", {"session": {"id": "abc"}})
    with pytest.raises(IncompleteSessionData):
        AuthSession(FakeTransport(reply)).login(creds())


def test_login_without_session_id_subfield():
    reply = TransportReply("[200] Zalogowano", {"session": {}, "authToken": {"id": "xyz"}})
    with pytest.raises(IncompleteSessionData):
        AuthSession(FakeTransport(reply)).login(creds())


def test_login_transport_fault_propagates():
    with pytest.raises(TransportFault):
        AuthSession(FakeTransport(fault=TransportFault("boom"))).login(creds())


# ----------------- Logout -----------------
SESSION = AuthSessionDescriptor("000", "ok", "abc", "xyz")


@pytest.mark.parametrize("value", ["Wylogowany", "wylogowany", "WYLOGOWANY"])
def test_logout_confirmed(value):
    transport = FakeTransport(TransportReply(value))
    assert AuthSession(transport).logout(SESSION) is True
    operation, args, headers = transport.calls[0]
    assert operation == "logout"
    assert args == []
    assert headers == {"session": {"id": "abc"}, "authToken": {"id": "xyz"}}


@pytest.mark.parametrize("value", ["Zalogowany", "", "Wylogowany."])
def test_logout_not_confirmed(value):
    assert AuthSession(FakeTransport(TransportReply(value))).logout(SESSION) is False


def test_logout_fault_is_false():
    assert AuthSession(FakeTransport(fault=TransportFault("x"))).logout(SESSION) is False
