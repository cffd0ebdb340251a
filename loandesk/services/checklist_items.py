from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence
from uuid import uuid4

from sqlalchemy import cast, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.core.settings import settings
from loandesk.models.checklist_item import ChecklistItem
from loandesk.models.loan import Loan
from loandesk.models.loan_document import LoanDocument
from loandesk.schemas.checklist import (
    TERMINAL_STATUSES,
    ActivityAction,
    ChecklistType,
    DocumentStatus,
    display_status,
    statuses_for,
)
from loandesk.services import checklist_templates, document_mirror
from loandesk.services.activity import (
    append_activity,
    diff_fields,
    serialize_for_history,
    summarize_changes,
    utcnow,
)
from loandesk.services.document_mirror import DocumentChange, DocumentChangeListener
from loandesk.services.email import EmailMessage, EmailSender
from loandesk.services.errors import (
    ChecklistItemNotFoundError,
    ChecklistLockedError,
    ChecklistTypeError,
    CommentNotFoundError,
    FileNotFoundOnItemError,
    InvalidStatusError,
    NoBorrowersError,
    ReviewGateError,
)
from loandesk.services.mentions import extract_mentions
from loandesk.services.notifications import (
    NotificationDispatcher,
    NotificationEvent,
    checklist_item_link,
    dispatch_safely,
    unique_recipients,
)
from loandesk.services.storage.adapter import FileStorage, UploadedFile
from loandesk.services.storage.uploads import (
    checklist_item_subdir,
    generate_object_key,
    safe_filename,
    validate_upload,
)


logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass
class FileBatchResult:
    uploaded: list[dict] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class LoeResult:
    notified_user_ids: list[str] = field(default_factory=list)
    emailed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


async def get_item(db: AsyncSession, item_id) -> ChecklistItem:
    item = await db.get(ChecklistItem, item_id)
    if item is None:
        raise ChecklistItemNotFoundError(
            code="checklist_item_not_found",
            message="Checklist item not found",
            details={"item_id": str(item_id)},
        )
    return item


async def get_item_for_update(db: AsyncSession, item_id) -> tuple[ChecklistItem, Loan]:
    """Load an item and its loan, refusing items whose loan has no product."""
    item = await get_item(db, item_id)
    loan = await db.get(Loan, item.loan_id)
    if loan is None or not loan.loan_product:
        raise ChecklistLockedError(
            code="checklist_locked",
            message="Select a loan product before updating the checklist",
            details={"loan_id": str(item.loan_id)},
        )
    return item, loan


def _require_document(item: ChecklistItem, operation: str) -> None:
    if not item.is_document:
        raise ChecklistTypeError(
            code="document_item_required",
            message=f"{operation} is only available on document checklist items",
            details={"item_id": str(item.id), "checklist_type": item.checklist_type},
        )


async def _commit(db: AsyncSession, item: ChecklistItem) -> None:
    """Commit and reload ``item`` so server-side columns such as ``updated_at`` are loaded."""
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    await db.refresh(item)


async def _mirror_status(
    db: AsyncSession,
    item: ChecklistItem,
    listeners: Iterable[DocumentChangeListener],
) -> int:
    """Push the committed item status to its documents; failures are logged only."""
    item_id, loan_id, status = item.id, item.loan_id, item.status
    try:
        count = await document_mirror.sync_status(db, item_id, loan_id, status, listeners=listeners)
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.error(
            "Document mirror out of sync item_id=%s loan_id=%s status=%s",
            item_id,
            loan_id,
            status,
            exc_info=True,
        )
        await db.refresh(item)
        return 0
    return count


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def _assignee_recipients(item: ChecklistItem, actor) -> tuple[str, ...]:
    return unique_recipients(item.assigned_to or [], exclude=[actor.id])


async def change_status(
    db: AsyncSession,
    item: ChecklistItem,
    new_status: str,
    *,
    actor,
    loan: Loan | None = None,
    dispatcher: NotificationDispatcher | None = None,
    listeners: Sequence[DocumentChangeListener] = (),
) -> ChecklistItem:
    allowed = statuses_for(item.checklist_type)
    if new_status not in allowed:
        raise InvalidStatusError(
            code="invalid_status",
            message=f"'{new_status}' is not a valid {item.checklist_type} status",
            details={"status": new_status, "allowed": list(allowed)},
        )

    old_status = item.status
    append_activity(
        item,
        actor,
        ActivityAction.STATUS_CHANGED,
        f"Status changed from '{display_status(old_status)}' to '{display_status(new_status)}'",
    )
    item.status = new_status
    db.add(item)
    await _commit(db, item)
    await _mirror_status(db, item, listeners)

    await dispatch_safely(
        dispatcher,
        NotificationEvent(
            user_ids=_assignee_recipients(item, actor),
            message=f"{item.item_name} status changed to {display_status(new_status)}",
            type="status_changed",
            entity_id=str(item.id),
            link_url=checklist_item_link(loan.id if loan is not None else item.loan_id, item.id),
        ),
    )
    return item


# ---------------------------------------------------------------------------
# Review gating
# ---------------------------------------------------------------------------


async def set_first_review(
    db: AsyncSession,
    item: ChecklistItem,
    checked: bool,
    *,
    actor,
    listeners: Sequence[DocumentChangeListener] = (),
) -> ChecklistItem:
    _require_document(item, "First review")

    if checked:
        item.first_review_completed_by = str(actor.id)
        item.first_review_completed_date = utcnow()
        item.status = DocumentStatus.FIRST_REVIEW_DONE.value
        append_activity(
            item, actor, ActivityAction.FIRST_REVIEW_COMPLETED, "Completed first underwriting review"
        )
    else:
        if item.second_review_completed_by:
            raise ReviewGateError(
                code="second_review_completed",
                message="Uncheck the second review before unchecking the first review",
                details={"item_id": str(item.id)},
            )
        item.first_review_completed_by = None
        item.first_review_completed_date = None
        append_activity(item, actor, ActivityAction.FIRST_REVIEW_UNCHECKED, "Unchecked first review")

    db.add(item)
    await _commit(db, item)
    await _mirror_status(db, item, listeners)
    return item


async def set_second_review(
    db: AsyncSession,
    item: ChecklistItem,
    checked: bool,
    *,
    actor,
    listeners: Sequence[DocumentChangeListener] = (),
) -> ChecklistItem:
    _require_document(item, "Second review")

    if checked:
        if not item.first_review_completed_by:
            raise ReviewGateError(
                code="first_review_required",
                message="First review must be completed before the second review",
                details={"item_id": str(item.id)},
            )
        item.second_review_completed_by = str(actor.id)
        item.second_review_completed_date = utcnow()
        item.status = DocumentStatus.SECOND_REVIEW_DONE.value
        append_activity(
            item,
            actor,
            ActivityAction.SECOND_REVIEW_COMPLETED,
            "Completed second underwriting review",
        )
    else:
        item.second_review_completed_by = None
        item.second_review_completed_date = None
        append_activity(
            item, actor, ActivityAction.SECOND_REVIEW_UNCHECKED, "Unchecked second review"
        )

    db.add(item)
    await _commit(db, item)
    await _mirror_status(db, item, listeners)
    return item


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    db: AsyncSession,
    item: ChecklistItem,
    text: str | None,
    *,
    author,
    known_users: Iterable,
    dispatcher: NotificationDispatcher | None = None,
) -> dict | None:
    body = (text or "").strip()
    if not body:
        return None

    mentions = sorted(extract_mentions(body, known_users))
    comment = serialize_for_history(
        {
            "id": uuid4().hex,
            "text": body,
            "author": str(author.id),
            "author_name": author.display_name,
            "mentions": mentions,
            "timestamp": utcnow(),
        }
    )
    item.notes = [*(item.notes or []), comment]
    append_activity(item, author, ActivityAction.COMMENT_ADDED, "Added a comment")
    db.add(item)
    await _commit(db, item)

    await dispatch_safely(
        dispatcher,
        NotificationEvent(
            user_ids=unique_recipients(mentions, exclude=[author.id]),
            message=f"{author.display_name} mentioned you on {item.item_name}",
            type="mention",
            entity_id=str(item.id),
            link_url=checklist_item_link(item.loan_id, item.id),
        ),
    )
    return comment


async def delete_comment(
    db: AsyncSession,
    item: ChecklistItem,
    comment_id: str,
    *,
    actor,
) -> ChecklistItem:
    notes = list(item.notes or [])
    remaining = [note for note in notes if note.get("id") != comment_id]
    if len(remaining) == len(notes):
        raise CommentNotFoundError(
            code="comment_not_found",
            message="Comment not found",
            details={"comment_id": comment_id},
        )
    item.notes = remaining
    append_activity(item, actor, ActivityAction.COMMENT_DELETED, "Deleted a comment")
    db.add(item)
    await _commit(db, item)
    return item


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


async def add_files(
    db: AsyncSession,
    item: ChecklistItem,
    files: Sequence[UploadedFile],
    *,
    uploader,
    storage: FileStorage,
    listeners: Sequence[DocumentChangeListener] = (),
) -> FileBatchResult:
    """Upload each file in turn; one failure never stops the batch."""
    result = FileBatchResult()
    max_size_bytes = settings.max_upload_size_mb * 1024 * 1024
    subdir = checklist_item_subdir(item.loan_id, item.id)

    for upload in files:
        file_name = safe_filename(upload.filename)
        try:
            validate_upload(upload, max_size_bytes=max_size_bytes)
            stored = await storage.upload(upload, object_key=generate_object_key(subdir, file_name))
        except Exception:
            logger.warning(
                "Checklist file upload failed item_id=%s file=%s",
                item.id,
                file_name,
                exc_info=True,
            )
            result.failed.append(file_name)
            continue

        file_ref = serialize_for_history(
            {
                "file_url": stored.file_url,
                "file_name": file_name,
                "uploaded_by": str(uploader.id),
                "uploaded_date": utcnow(),
            }
        )
        item.uploaded_files = [*(item.uploaded_files or []), file_ref]
        document_mirror.create_mirror(db, item, file_ref)
        result.uploaded.append(file_ref)

    if result.uploaded:
        append_activity(
            item,
            uploader,
            ActivityAction.FILE_UPLOADED,
            f"Uploaded {len(result.uploaded)} file(s)",
        )
        db.add(item)
        await _commit(db, item)
        await document_mirror.notify_listeners(
            listeners,
            DocumentChange(
                loan_id=str(item.loan_id),
                checklist_item_id=str(item.id),
                kind="created",
                count=len(result.uploaded),
            ),
        )
    return result


async def remove_file(
    db: AsyncSession,
    item: ChecklistItem,
    index: int,
    *,
    actor,
    listeners: Sequence[DocumentChangeListener] = (),
) -> ChecklistItem:
    files = list(item.uploaded_files or [])
    if index < 0 or index >= len(files):
        raise FileNotFoundOnItemError(
            code="file_not_found",
            message="File not found on checklist item",
            details={"index": index, "file_count": len(files)},
        )
    removed = files.pop(index)
    deleted = await document_mirror.delete_for_file(db, item, removed.get("file_url"))
    item.uploaded_files = files
    append_activity(
        item,
        actor,
        ActivityAction.FILE_REMOVED,
        f"Removed file: {removed.get('file_name')}",
    )
    db.add(item)
    await _commit(db, item)
    await document_mirror.notify_listeners(
        listeners,
        DocumentChange(
            loan_id=str(item.loan_id),
            checklist_item_id=str(item.id),
            kind="deleted",
            count=deleted,
        ),
    )
    return item


# ---------------------------------------------------------------------------
# Letter of explanation
# ---------------------------------------------------------------------------


def build_loe_email(borrower, item: ChecklistItem, loan: Loan) -> EmailMessage:
    loan_label = loan.loan_number or str(loan.id)
    body = (
        f"Dear {borrower.first_name or 'Borrower'},\n\n"
        "A letter of explanation has been requested for the following item:\n\n"
        f"Document: {item.item_name}\n"
        f"Loan Number: {loan_label}\n\n"
        "Please log in to your account to provide the requested explanation.\n\n"
        "Best regards,\n"
        f"{settings.email_signature}"
    )
    return EmailMessage(
        to=borrower.email,
        subject=f"Letter of Explanation Requested - Loan #{loan_label}",
        body=body,
    )


async def request_loe(
    db: AsyncSession,
    item: ChecklistItem,
    loan: Loan,
    borrowers: Sequence,
    *,
    actor,
    dispatcher: NotificationDispatcher | None = None,
    mailer: EmailSender | None = None,
    listeners: Sequence[DocumentChangeListener] = (),
) -> LoeResult:
    _require_document(item, "Letter of explanation")
    borrower_ids = unique_recipients(loan.borrower_ids or [])
    if not borrower_ids:
        raise NoBorrowersError(
            code="no_borrowers",
            message="No borrowers found for this loan",
            details={"loan_id": str(loan.id)},
        )

    item.status = DocumentStatus.LETTER_OF_EXPLANATION_REQUESTED.value
    append_activity(
        item,
        actor,
        ActivityAction.LOE_REQUESTED,
        "Requested letter of explanation from borrower(s)",
    )
    db.add(item)
    await _commit(db, item)
    await _mirror_status(db, item, listeners)

    result = LoeResult()
    delivered = await dispatch_safely(
        dispatcher,
        NotificationEvent(
            user_ids=borrower_ids,
            message=f"A letter of explanation has been requested for: {item.item_name}",
            type="document_update",
            entity_id=str(item.id),
            link_url=checklist_item_link(loan.id, item.id),
            priority="high",
        ),
    )
    if delivered:
        result.notified_user_ids = list(borrower_ids)

    if mailer is None:
        return result
    for borrower in borrowers:
        if str(borrower.id) not in borrower_ids or not borrower.email:
            continue
        try:
            await mailer.send_email(build_loe_email(borrower, item, loan))
        except Exception:
            logger.warning(
                "LOE email failed item_id=%s borrower_id=%s",
                item.id,
                borrower.id,
                exc_info=True,
            )
            result.failed.append(borrower.email)
            continue
        result.emailed.append(borrower.email)
    return result


# ---------------------------------------------------------------------------
# Details and assignment
# ---------------------------------------------------------------------------


async def update_details(
    db: AsyncSession,
    item: ChecklistItem,
    *,
    actor,
    due_date: date | None | object = _UNSET,
    assigned_to: list[str] | None = None,
    provider: str | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> ChecklistItem:
    before = {
        "due_date": item.due_date,
        "assigned_to": list(item.assigned_to or []),
        "provider": item.provider,
    }
    after = dict(before)
    if due_date is not _UNSET:
        after["due_date"] = due_date
    if assigned_to is not None:
        after["assigned_to"] = list(unique_recipients(assigned_to))
    if provider is not None:
        after["provider"] = provider.strip() or None

    changes = diff_fields(before, after)
    if not changes:
        return item

    item.due_date = after["due_date"]
    item.assigned_to = after["assigned_to"]
    item.provider = after["provider"]
    append_activity(item, actor, ActivityAction.DETAILS_UPDATED, summarize_changes(changes))
    db.add(item)
    await _commit(db, item)

    newly_assigned = unique_recipients(
        after["assigned_to"], exclude=[*before["assigned_to"], actor.id]
    )
    await dispatch_safely(
        dispatcher,
        NotificationEvent(
            user_ids=newly_assigned,
            message=f"You have been assigned to task: {item.item_name}",
            type="task_assigned",
            entity_id=str(item.id),
            link_url=checklist_item_link(item.loan_id, item.id),
        ),
    )
    return item


# ---------------------------------------------------------------------------
# Loan documents view
# ---------------------------------------------------------------------------


async def update_document_status(
    db: AsyncSession,
    document: LoanDocument,
    new_status: str,
    *,
    actor,
    dispatcher: NotificationDispatcher | None = None,
    listeners: Sequence[DocumentChangeListener] = (),
) -> LoanDocument:
    """Status edit from the loan documents view.

    Documents mirrored from a checklist item are routed through the item so
    the item and every sibling document end up with the same status.
    """
    if document.checklist_item_id:
        item, loan = await get_item_for_update(db, document.checklist_item_id)
        await change_status(
            db,
            item,
            new_status,
            actor=actor,
            loan=loan,
            dispatcher=dispatcher,
            listeners=listeners,
        )
        document.status = item.status
    else:
        if new_status not in {status.value for status in DocumentStatus}:
            raise InvalidStatusError(
                code="invalid_status",
                message=f"'{new_status}' is not a valid document status",
                details={"status": new_status},
            )
        document.status = new_status

    document.reviewed_by = str(actor.id)
    document.reviewed_date = utcnow()
    db.add(document)
    await db.commit()
    return document


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


def order_items(items: Iterable[ChecklistItem]) -> list[ChecklistItem]:
    """Action items before documents, catalog category order, finished items last."""
    type_rank = {ChecklistType.ACTION_ITEM.value: 0, ChecklistType.DOCUMENT.value: 1}
    category_ranks = {
        kind.value: {
            name: index for index, name in enumerate(checklist_templates.category_order(kind))
        }
        for kind in ChecklistType
    }

    def _key(item: ChecklistItem):
        ranks = category_ranks.get(item.checklist_type, {})
        return (
            type_rank.get(item.checklist_type, 2),
            ranks.get(item.category, len(ranks)),
            item.category or "",
            item.status in TERMINAL_STATUSES,
        )

    return sorted(items, key=_key)


def group_items(items: Iterable[ChecklistItem]) -> list[tuple[str, list[ChecklistItem]]]:
    groups: list[tuple[str, list[ChecklistItem]]] = []
    for item in order_items(items):
        if groups and groups[-1][0] == item.category:
            groups[-1][1].append(item)
        else:
            groups.append((item.category, [item]))
    return groups


async def list_items(
    db: AsyncSession,
    loan_id,
    checklist_type: ChecklistType | str | None = None,
) -> list[ChecklistItem]:
    stmt = select(ChecklistItem).where(ChecklistItem.loan_id == loan_id)
    if checklist_type is not None:
        stmt = stmt.where(ChecklistItem.checklist_type == ChecklistType(checklist_type).value)
    stmt = stmt.order_by(ChecklistItem.created_at)
    result = await db.execute(stmt)
    return order_items(result.scalars().all())


async def list_tasks_for_user(db: AsyncSession, user_id) -> list[ChecklistItem]:
    stmt = (
        select(ChecklistItem)
        .where(cast(ChecklistItem.assigned_to, JSONB).contains([str(user_id)]))
        .order_by(ChecklistItem.due_date.nulls_last(), ChecklistItem.created_at)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
