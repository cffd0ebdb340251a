from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.models.notification import Notification


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    user_ids: tuple[str, ...]
    message: str
    type: str
    entity_type: str = "ChecklistItem"
    entity_id: str | None = None
    link_url: str | None = None
    priority: str = "normal"


def unique_recipients(user_ids: Iterable, *, exclude: Iterable = ()) -> tuple[str, ...]:
    skipped = {str(value) for value in exclude if value}
    seen: list[str] = []
    for value in user_ids:
        if not value:
            continue
        user_id = str(value)
        if user_id in skipped or user_id in seen:
            continue
        seen.append(user_id)
    return tuple(seen)


def checklist_item_link(loan_id, item_id) -> str:
    return f"/LoanDetail?id={loan_id}&openTask={item_id}"


class NotificationDispatcher(ABC):
    @abstractmethod
    async def notify(self, event: NotificationEvent) -> None:
        pass


class DatabaseNotificationDispatcher(NotificationDispatcher):
    """Writes one ``Notification`` row per recipient and commits them together."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def notify(self, event: NotificationEvent) -> None:
        if not event.user_ids:
            return
        for user_id in event.user_ids:
            self.db.add(
                Notification(
                    user_id=user_id,
                    message=event.message,
                    type=event.type,
                    entity_type=event.entity_type,
                    entity_id=event.entity_id,
                    link_url=event.link_url,
                    priority=event.priority,
                    read=False,
                )
            )
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise


async def dispatch_safely(dispatcher: NotificationDispatcher | None, event: NotificationEvent) -> bool:
    """Send ``event``; failures are logged and never propagate."""
    if dispatcher is None or not event.user_ids:
        return False
    try:
        await dispatcher.notify(event)
    except Exception:
        logger.exception(
            "Notification dispatch failed type=%s entity_id=%s recipients=%s",
            event.type,
            event.entity_id,
            len(event.user_ids),
        )
        return False
    return True
