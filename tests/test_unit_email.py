"""
EmailService against a fake SMTP client: STARTTLS/login flow, SSL on 465,
disabled mode and failure wrapping.
"""

import smtplib

import pytest

from rentcycle.exceptions import EmailDispatchError
from rentcycle.services.email_service import EmailService


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, msg):
        self.messages.append(msg)


class BrokenSMTP(FakeSMTP):
    def send_message(self, msg):
        raise smtplib.SMTPRecipientsRefused({})


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTP)


def _service(**overrides):
    options = {"host": "smtp.example.com", "port": 587, "user": "bot@example.com",
               "password": "secret", "from_email": "Fleet <fleet@example.com>"}
    options.update(overrides)
    return EmailService(**options)


def test_sends_multipart_message_over_starttls():
    msg_id = _service().send_email(["owner@example.com"], "Subject", "<p>Hi</p>", "Hi")

    (client,) = FakeSMTP.instances
    assert client.calls == ["starttls", ("login", "bot@example.com", "secret")]
    (msg,) = client.messages
    assert msg["To"] == "owner@example.com"
    assert msg["From"] == "Fleet <fleet@example.com>"
    assert msg["Message-ID"] == msg_id
    assert msg.is_multipart()


def test_port_465_skips_starttls():
    _service(port=465).send_email(["owner@example.com"], "S", "<p>x</p>")
    (client,) = FakeSMTP.instances
    assert client.port == 465
    assert "starttls" not in client.calls


def test_disabled_service_sends_nothing():
    assert _service(enabled=False).send_email(["owner@example.com"], "S", "<p>x</p>") is None
    assert EmailService(host=None).send_email(["owner@example.com"], "S", "<p>x</p>") is None
    assert FakeSMTP.instances == []


def test_no_recipients_is_an_error():
    with pytest.raises(EmailDispatchError):
        _service().send_email(["", None], "S", "<p>x</p>")


def test_smtp_failure_is_wrapped(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", BrokenSMTP)
    with pytest.raises(EmailDispatchError):
        _service().send_email(["owner@example.com"], "S", "<p>x</p>")


def test_from_config_reads_smtp_settings():
    service = EmailService.from_config({"SMTP_HOST": "mail", "SMTP_PORT": "2525",
                                        "SMTP_USER": "u", "SMTP_PASS": "p",
                                        "EMAIL_ENABLED": True})
    assert service.enabled
    assert service.port == 2525
    assert service.from_email == "u"
