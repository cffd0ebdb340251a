from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Literal

from loandesk.core.permissions import AppRole, is_checklist_manager


_NAME_TOKEN = r"(?:[^\W\d_]|['\-])+"
MENTION_PATTERN = re.compile(rf"@({_NAME_TOKEN}) ({_NAME_TOKEN})")


@dataclass(frozen=True)
class MentionSegment:
    kind: Literal["text", "mention"]
    value: str
    user_id: str | None = None


def _full_name_key(first: str | None, last: str | None) -> str:
    return f"{(first or '').strip()} {(last or '').strip()}".lower()


def _name_index(known_users: Iterable) -> dict[str, str]:
    # Users sharing a full name are not disambiguated; the first one wins.
    index: dict[str, str] = {}
    for user in known_users:
        if not getattr(user, "first_name", None) or not getattr(user, "last_name", None):
            continue
        index.setdefault(_full_name_key(user.first_name, user.last_name), str(user.id))
    return index


def extract_mentions(text: str | None, known_users: Iterable) -> set[str]:
    if not text:
        return set()
    index = _name_index(known_users)
    found: set[str] = set()
    for match in MENTION_PATTERN.finditer(text):
        user_id = index.get(_full_name_key(match.group(1), match.group(2)))
        if user_id:
            found.add(user_id)
    return found


def render_with_mentions(text: str | None, known_users: Iterable) -> list[MentionSegment]:
    if not text:
        return []
    index = _name_index(known_users)
    segments: list[MentionSegment] = []

    def push_text(value: str) -> None:
        if not value:
            return
        if segments and segments[-1].kind == "text":
            segments[-1] = MentionSegment("text", segments[-1].value + value)
        else:
            segments.append(MentionSegment("text", value))

    cursor = 0
    for match in MENTION_PATTERN.finditer(text):
        user_id = index.get(_full_name_key(match.group(1), match.group(2)))
        push_text(text[cursor:match.start()])
        if user_id:
            segments.append(MentionSegment("mention", match.group(0), user_id))
        else:
            push_text(match.group(0))
        cursor = match.end()
    push_text(text[cursor:])
    return segments


def mention_text(user) -> str:
    return f"@{user.first_name} {user.last_name}"


def mention_candidates(actor, team_member_ids: Iterable, users: Iterable, search: str = "") -> list:
    """Users the actor may be offered as ``@First Last`` suggestions.

    Managers see loan teammates plus every Loan Officer; everyone else only
    sees teammates. Suggestions only; stored comments are parsed against the
    full directory.
    """
    team = {str(member_id) for member_id in team_member_ids if member_id}
    elevated = is_checklist_manager(actor)
    needle = (search or "").strip().lower()
    actor_id = str(actor.id)

    candidates = []
    for user in users:
        user_id = str(user.id)
        if user_id == actor_id or not user.first_name or not user.last_name:
            continue
        if getattr(user, "is_active", True) is False:
            continue
        allowed = user_id in team or (elevated and user.app_role == AppRole.LOAN_OFFICER.value)
        if not allowed:
            continue
        if needle:
            haystack = f"{user.first_name} {user.last_name} {user.email or ''}".lower()
            if needle not in haystack:
                continue
        candidates.append(user)
    candidates.sort(key=lambda user: _full_name_key(user.first_name, user.last_name))
    return candidates
