import pytest
import requests

from cfpdesk.domain.errors import TransportError
from cfpdesk.infrastructure.services import resend_transport
from cfpdesk.infrastructure.services.resend_transport import (
    NullMailTransport,
    ResendMailTransport,
)


class _FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _data():
    return {
        "speaker_name": "Ada Lovelace",
        "first_name": "Ada",
        "talk_title": "Streams",
        "conference_name": "ZurichJS Conference 2026",
    }


def test_send_posts_rendered_email(monkeypatch):
    captured = {}

    def fake_post(url, headers=None, json=None, timeout=None):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return _FakeResponse({"id": "re_123"})

    monkeypatch.setattr(resend_transport.requests, "post", fake_post)
    transport = ResendMailTransport("key-1", "CFP <cfp@example.com>", reply_to="team@example.com", timeout=5)

    message_id = transport.send("ada@example.com", "acceptance", _data())

    assert message_id == "re_123"
    assert captured["url"] == ResendMailTransport.API_URL
    assert captured["headers"]["Authorization"] == "Bearer key-1"
    assert captured["timeout"] == 5
    body = captured["json"]
    assert body["to"] == ["ada@example.com"]
    assert body["reply_to"] == "team@example.com"
    assert "Streams" in body["subject"]
    assert "Hi Ada" in body["text"]


def test_timeout_becomes_transport_error(monkeypatch):
    def fake_post(*_, **__):
        raise requests.Timeout("slow")

    monkeypatch.setattr(resend_transport.requests, "post", fake_post)
    with pytest.raises(TransportError, match="timed out"):
        ResendMailTransport("k", "f").send("a@example.com", "rejection", _data())


def test_http_error_becomes_transport_error(monkeypatch):
    monkeypatch.setattr(
        resend_transport.requests, "post", lambda *_, **__: _FakeResponse({}, status_code=422)
    )
    with pytest.raises(TransportError):
        ResendMailTransport("k", "f").send("a@example.com", "rejection", _data())


def test_missing_message_id_is_an_error(monkeypatch):
    monkeypatch.setattr(resend_transport.requests, "post", lambda *_, **__: _FakeResponse({}))
    with pytest.raises(TransportError, match="no message id"):
        ResendMailTransport("k", "f").send("a@example.com", "acceptance", _data())


def test_unreadable_body_is_an_error(monkeypatch):
    monkeypatch.setattr(resend_transport.requests, "post", lambda *_, **__: _FakeResponse(None))
    with pytest.raises(TransportError):
        ResendMailTransport("k", "f").send("a@example.com", "acceptance", _data())


def test_from_env(monkeypatch):
    monkeypatch.delenv("CFPDESK_RESEND_API_KEY", raising=False)
    assert ResendMailTransport.from_env() is None

    monkeypatch.setenv("CFPDESK_RESEND_API_KEY", "secret")
    monkeypatch.setenv("CFPDESK_RESEND_FROM", "CFP <cfp@example.com>")
    transport = ResendMailTransport.from_env(timeout=3)
    assert transport.api_key == "secret"
    assert transport.from_email == "CFP <cfp@example.com>"
    assert transport.timeout == 3


def test_null_transport_always_fails():
    with pytest.raises(TransportError):
        NullMailTransport().send("a@example.com", "acceptance", {})
