from __future__ import annotations

import pytest

from ct_stock_monitor.config import Config, EmailConfig


class FakeResponse:
    def __init__(self, payload=None, status_code: int = 200, bad_json: bool = False) -> None:
        self.payload = payload
        self.status_code = status_code
        self.bad_json = bad_json

    def json(self):
        if self.bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeSession:
    """Stands in for requests.Session; returns a canned response or raises."""

    def __init__(self, response=None, exc: Exception | None = None) -> None:
        self.response = response
        self.exc = exc
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.response

    def close(self) -> None:
        self.closed = True


class FakeTransport:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc
        self.sent = []

    def deliver(self, msg) -> None:
        self.sent.append(msg)
        if self.exc is not None:
            raise self.exc


def make_config(provider: str = "console", **email_kwargs) -> Config:
    return Config(
        email="me@example.com",
        check_interval_minutes=60,
        stores=("0459", "0150"),
        sku="1502321",
        email_config=EmailConfig(provider=provider, **email_kwargs),
    )


@pytest.fixture
def console_config() -> Config:
    return make_config()


@pytest.fixture
def smtp_config() -> Config:
    return make_config(
        "smtp",
        host="smtp.example.com",
        port=587,
        secure=True,
        username="bot@example.com",
        password="hunter2",
        from_email="bot@example.com",
    )


@pytest.fixture(autouse=True)
def _no_smtp_password(monkeypatch):
    monkeypatch.delenv("SMTP_PASSWORD", raising=False)
