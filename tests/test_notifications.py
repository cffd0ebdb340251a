import json
import logging

import httpx
import pytest

from loandesk.core.settings import settings
from loandesk.models.notification import Notification
from loandesk.services.email import (
    EmailMessage,
    HttpEmailSender,
    LoggingEmailSender,
    get_email_sender,
)
from loandesk.services.notifications import (
    DatabaseNotificationDispatcher,
    NotificationEvent,
    checklist_item_link,
    dispatch_safely,
    unique_recipients,
)

from conftest import FakeAsyncSession, RecordingDispatcher


def _event(*user_ids: str, **overrides) -> NotificationEvent:
    values = dict(
        user_ids=tuple(user_ids),
        message="Appraisal status changed to Approved",
        type="status_changed",
        entity_id="item-1",
        link_url=checklist_item_link("loan-1", "item-1"),
    )
    values.update(overrides)
    return NotificationEvent(**values)


def test_unique_recipients_dedupes_and_excludes() -> None:
    assert unique_recipients(["a", "b", "a", "", None, "c"], exclude=["c"]) == ("a", "b")


def test_checklist_item_link() -> None:
    assert checklist_item_link("loan-1", "item-9") == "/LoanDetail?id=loan-1&openTask=item-9"


@pytest.mark.asyncio
async def test_database_dispatcher_writes_one_row_per_recipient() -> None:
    session = FakeAsyncSession()
    dispatcher = DatabaseNotificationDispatcher(session)

    await dispatcher.notify(_event("u1", "u2", priority="high"))

    rows = [obj for obj in session.added if isinstance(obj, Notification)]
    assert [row.user_id for row in rows] == ["u1", "u2"]
    assert all(row.priority == "high" and row.read is False for row in rows)
    assert rows[0].entity_type == "ChecklistItem"
    assert session.commits == 1


@pytest.mark.asyncio
async def test_database_dispatcher_rolls_back_on_commit_failure() -> None:
    session = FakeAsyncSession().fail_commit_when(
        lambda pending: any(isinstance(obj, Notification) for obj in pending)
    )

    delivered = await dispatch_safely(DatabaseNotificationDispatcher(session), _event("u1"))

    assert delivered is False
    assert session.rollbacks == 1


@pytest.mark.asyncio
async def test_dispatch_safely_skips_empty_recipients() -> None:
    dispatcher = RecordingDispatcher()

    assert await dispatch_safely(dispatcher, _event()) is False
    assert await dispatch_safely(None, _event("u1")) is False
    assert dispatcher.events == []


@pytest.mark.asyncio
async def test_dispatch_safely_logs_failures(caplog) -> None:
    caplog.set_level(logging.ERROR, logger="loandesk.services.notifications")

    delivered = await dispatch_safely(RecordingDispatcher(fail=True), _event("u1"))

    assert delivered is False
    assert "Notification dispatch failed" in caplog.text


@pytest.mark.asyncio
async def test_http_email_sender_posts_json() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(202, json={"queued": True})

    sender = HttpEmailSender(
        "https://mail.example.com/send",
        api_key="relay-key",
        sender="ops@example.com",
        transport=httpx.MockTransport(handler),
    )

    await sender.send_email(EmailMessage(to="ann@example.com", subject="LOE", body="Please"))

    request = captured[0]
    assert request.headers["Authorization"] == "Bearer relay-key"
    payload = json.loads(request.content)
    assert payload["from"] == "ops@example.com"
    assert payload["to"] == "ann@example.com"
    assert payload["subject"] == "LOE"


@pytest.mark.asyncio
async def test_http_email_sender_raises_on_error_status() -> None:
    sender = HttpEmailSender(
        "https://mail.example.com/send",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(httpx.HTTPStatusError):
        await sender.send_email(EmailMessage(to="ann@example.com", subject="LOE", body="Please"))


@pytest.mark.asyncio
async def test_logging_sender_when_relay_not_configured(monkeypatch, caplog) -> None:
    monkeypatch.setattr(settings, "email_api_url", None)
    caplog.set_level(logging.INFO, logger="loandesk.services.email")

    sender = get_email_sender()
    await sender.send_email(EmailMessage(to="ann@example.com", subject="LOE", body="Please"))

    assert isinstance(sender, LoggingEmailSender)
    assert "not sent" in caplog.text


def test_http_sender_selected_when_relay_configured(monkeypatch) -> None:
    monkeypatch.setattr(settings, "email_api_url", "https://mail.example.com/send")
    monkeypatch.setattr(settings, "email_api_key", "k")

    sender = get_email_sender()

    assert isinstance(sender, HttpEmailSender)
    assert sender.api_key == "k"
