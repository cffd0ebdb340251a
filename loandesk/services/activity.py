from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from fastapi.encoders import jsonable_encoder

from loandesk.core.logging import get_activity_logger
from loandesk.schemas.checklist import ActivityAction, ActivityEntry


activity_logger = get_activity_logger()


def serialize_for_history(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_entry(actor, action: ActivityAction | str, details: str = "") -> ActivityEntry:
    return ActivityEntry(
        timestamp=utcnow(),
        user_id=str(actor.id),
        user_name=actor.display_name,
        action=action.value if isinstance(action, ActivityAction) else str(action),
        details=details,
    )


def append_activity(item, actor, action: ActivityAction | str, details: str = "") -> ActivityEntry:
    """Append one entry to ``item.activity_history``.

    The list is replaced rather than mutated in place so the JSON column is
    flagged dirty; earlier entries are never touched.
    """
    entry = build_entry(actor, action, details)
    history = list(item.activity_history or [])
    history.append(serialize_for_history(entry.model_dump()))
    item.activity_history = history
    activity_logger.info(
        "checklist_item.%s item_id=%s loan_id=%s user_id=%s details=%s",
        entry.action,
        item.id,
        item.loan_id,
        entry.user_id,
        entry.details,
    )
    return entry


def diff_fields(old: dict[str, Any], new: dict[str, Any]) -> dict[str, dict[str, Any]]:
    old_serialized = serialize_for_history(old)
    new_serialized = serialize_for_history(new)
    changes: dict[str, dict[str, Any]] = {}
    for key in new_serialized:
        if old_serialized.get(key) != new_serialized.get(key):
            changes[key] = {"from": old_serialized.get(key), "to": new_serialized.get(key)}
    return changes


def summarize_changes(changes: dict[str, dict[str, Any]]) -> str:
    keys = list(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"Updated {snippet}{suffix}"
