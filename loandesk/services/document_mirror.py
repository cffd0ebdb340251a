from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.models.loan_document import LoanDocument
from loandesk.schemas.documents import LoanDocumentCategory
from loandesk.services.activity import utcnow


logger = logging.getLogger(__name__)


CATEGORY_MAP: dict[str, str] = {
    "Borrower Document": LoanDocumentCategory.BORROWER_DOCUMENT.value,
    "Property Document": LoanDocumentCategory.PROPERTY_DOCUMENT.value,
    "Closing Document": LoanDocumentCategory.CLOSING_DOCUMENT.value,
    "Post-Closing Document": LoanDocumentCategory.POST_CLOSING_DOCUMENT.value,
    "Post-Close Document": LoanDocumentCategory.POST_CLOSING_DOCUMENT.value,
}


@dataclass(frozen=True)
class DocumentChange:
    loan_id: str
    checklist_item_id: str | None
    kind: Literal["status", "created", "deleted"]
    count: int
    status: str | None = None


DocumentChangeListener = Callable[[DocumentChange], Awaitable[None]]


async def notify_listeners(
    listeners: Iterable[DocumentChangeListener], change: DocumentChange
) -> None:
    for listener in listeners:
        try:
            await listener(change)
        except Exception:
            logger.exception(
                "Document change listener failed kind=%s loan_id=%s",
                change.kind,
                change.loan_id,
            )


def map_category(item_category: str | None) -> str:
    return CATEGORY_MAP.get(item_category or "", LoanDocumentCategory.APPLICATION.value)


async def find_linked_documents(db: AsyncSession, checklist_item_id, loan_id) -> list[LoanDocument]:
    stmt = (
        select(LoanDocument)
        .where(
            LoanDocument.loan_id == loan_id,
            LoanDocument.checklist_item_id == checklist_item_id,
        )
        .order_by(LoanDocument.uploaded_date)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def sync_status(
    db: AsyncSession,
    checklist_item_id,
    loan_id,
    new_status: str,
    *,
    listeners: Iterable[DocumentChangeListener] = (),
) -> int:
    """Set ``new_status`` on every document mirrored from the item.

    Returns the number of documents touched; the caller owns the commit.
    """
    documents = await find_linked_documents(db, checklist_item_id, loan_id)
    for document in documents:
        document.status = new_status
        db.add(document)
    await db.flush()
    logger.info(
        "Mirrored status=%s to %s document(s) item_id=%s",
        new_status,
        len(documents),
        checklist_item_id,
    )
    await notify_listeners(
        listeners,
        DocumentChange(
            loan_id=str(loan_id),
            checklist_item_id=str(checklist_item_id),
            kind="status",
            count=len(documents),
            status=new_status,
        ),
    )
    return len(documents)


def create_mirror(db: AsyncSession, item, file_ref: dict) -> LoanDocument:
    document = LoanDocument(
        loan_id=item.loan_id,
        checklist_item_id=item.id,
        document_name=file_ref["file_name"],
        file_url=file_ref["file_url"],
        category=map_category(item.category),
        status=item.status,
        uploaded_by=file_ref.get("uploaded_by"),
        uploaded_date=utcnow(),
        notes=f"Uploaded from checklist item: {item.item_name}",
    )
    db.add(document)
    return document


async def delete_for_file(db: AsyncSession, item, file_url: str) -> int:
    stmt = select(LoanDocument).where(
        LoanDocument.loan_id == item.loan_id,
        LoanDocument.checklist_item_id == item.id,
        LoanDocument.file_url == file_url,
    )
    result = await db.execute(stmt)
    documents = list(result.scalars().all())
    for document in documents:
        await db.delete(document)
    return len(documents)


async def list_loan_documents(db: AsyncSession, loan_id) -> list[LoanDocument]:
    stmt = (
        select(LoanDocument)
        .where(LoanDocument.loan_id == loan_id)
        .order_by(LoanDocument.uploaded_date.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_document(db: AsyncSession, document_id) -> LoanDocument | None:
    return await db.get(LoanDocument, document_id)

