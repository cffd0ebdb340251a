from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.core.context import set_actor_id
from loandesk.core.permissions import PermissionCode, has_permissions, is_checklist_manager
from loandesk.core.security import JWTKeyError, decode_token
from loandesk.db.session import get_db
from loandesk.models import Loan, User
from loandesk.services.document_mirror import DocumentChangeListener
from loandesk.services.email import EmailSender, get_email_sender
from loandesk.services.errors import ChecklistError
from loandesk.services.notifications import DatabaseNotificationDispatcher, NotificationDispatcher
from loandesk.services.storage import FileStorage, get_file_storage


bearer_scheme = HTTPBearer(auto_error=False)


def to_http_exception(exc: ChecklistError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"code": exc.code, "message": exc.message, "details": exc.details},
    )


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = decode_token(credentials.credentials, expected_type="access")
    except (ValueError, JWTKeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    user_sub = payload.get("sub")
    if not user_sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        user_id = UUID(str(user_sub))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    stmt = select(User).where(User.id == user_id)
    result = await db.execute(stmt)
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Inactive user")
    set_actor_id(str(user.id))
    return user


async def require_authenticated_user(current_user: User = Depends(get_current_user)) -> User:
    """Simple guard to require an authenticated user (no permission checks)."""
    return current_user


def require_permission(permission_code: PermissionCode | str):
    async def dependency(current_user: User = Depends(require_authenticated_user)) -> User:
        if not has_permissions(current_user, [permission_code]):
            target = permission_code.value if isinstance(permission_code, PermissionCode) else str(permission_code)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {target}",
            )
        return current_user

    return dependency


async def require_checklist_manager(current_user: User = Depends(require_authenticated_user)) -> User:
    if not is_checklist_manager(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing permission: {PermissionCode.CHECKLIST_MANAGE.value}",
        )
    return current_user


def ensure_loan_access(user: User, loan: Loan) -> None:
    if is_checklist_manager(user):
        return
    if str(user.id) not in loan.team_member_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this loan")


def ensure_item_visible(user: User, item) -> None:
    if item.is_document:
        return
    if not has_permissions(user, [PermissionCode.CHECKLIST_ACTION_VIEW]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist item not found")


async def get_loan(loan_id: UUID, db: AsyncSession = Depends(get_db_session)) -> Loan:
    loan = await db.get(Loan, loan_id)
    if not loan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    return loan


def get_storage() -> FileStorage:
    return get_file_storage()


async def get_notification_dispatcher(
    db: AsyncSession = Depends(get_db_session),
) -> NotificationDispatcher:
    return DatabaseNotificationDispatcher(db)


def get_mailer() -> EmailSender:
    return get_email_sender()


def get_document_listeners(request: Request) -> list[DocumentChangeListener]:
    return list(getattr(request.app.state, "document_listeners", []))
