from __future__ import annotations

import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.core.permissions import AppRole
from loandesk.models.loan import Loan
from loandesk.models.user import User


def display_name(user) -> str:
    if user is None:
        return "Unknown User"
    return user.display_name


def _as_uuids(user_ids: Iterable) -> list[uuid.UUID]:
    ids: list[uuid.UUID] = []
    for value in user_ids:
        if not value:
            continue
        try:
            ids.append(value if isinstance(value, uuid.UUID) else uuid.UUID(str(value)))
        except ValueError:
            continue
    return ids


async def get_users_by_ids(db: AsyncSession, user_ids: Iterable) -> list[User]:
    ids = _as_uuids(user_ids)
    if not ids:
        return []
    stmt = select(User).where(User.id.in_(ids))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_active_users(db: AsyncSession) -> list[User]:
    stmt = select(User).where(User.is_active.is_(True)).order_by(User.first_name, User.last_name)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_mentionable_users(db: AsyncSession, loan: Loan) -> list[User]:
    """Loan teammates plus every active Loan Officer."""
    team_ids = _as_uuids(loan.team_member_ids)
    stmt = select(User).where(
        User.is_active.is_(True),
        (User.id.in_(team_ids)) | (User.app_role == AppRole.LOAN_OFFICER.value),
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_borrowers(db: AsyncSession, loan: Loan) -> list[User]:
    return await get_users_by_ids(db, loan.borrower_ids or [])
