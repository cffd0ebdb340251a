from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.api import deps
from loandesk.core.permissions import PermissionCode
from loandesk.core.settings import settings
from loandesk.models import Loan, User
from loandesk.schemas.documents import (
    LoanDocumentDTO,
    LoanDocumentListResponse,
    LoanDocumentStatusUpdate,
)
from loandesk.services import checklist_items, document_mirror
from loandesk.services.errors import ChecklistError
from loandesk.services.notifications import NotificationDispatcher
from loandesk.services.storage.adapter import LocalFileSystemStorage, verify_object_key_signature

router = APIRouter(tags=["loan-documents"])


@router.get(
    "/loans/{loan_id}/documents",
    response_model=LoanDocumentListResponse,
    summary="List a loan's documents",
)
async def list_documents(
    loan: Loan = Depends(deps.get_loan),
    current_user: User = Depends(deps.require_permission(PermissionCode.LOAN_DOCUMENT_VIEW)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> LoanDocumentListResponse:
    deps.ensure_loan_access(current_user, loan)
    documents = await document_mirror.list_loan_documents(db, loan.id)
    return LoanDocumentListResponse(
        loan_id=loan.id,
        total=len(documents),
        documents=[LoanDocumentDTO.model_validate(document) for document in documents],
    )


@router.patch(
    "/loan-documents/{document_id}/status",
    response_model=LoanDocumentDTO,
    summary="Change a document's status",
)
async def update_document_status(
    document_id: UUID,
    payload: LoanDocumentStatusUpdate,
    current_user: User = Depends(deps.require_permission(PermissionCode.LOAN_DOCUMENT_MANAGE)),
    db: AsyncSession = Depends(deps.get_db_session),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    listeners: list = Depends(deps.get_document_listeners),
) -> LoanDocumentDTO:
    document = await document_mirror.get_document(db, document_id)
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    try:
        document = await checklist_items.update_document_status(
            db,
            document,
            payload.status,
            actor=current_user,
            dispatcher=dispatcher,
            listeners=listeners,
        )
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return LoanDocumentDTO.model_validate(document)


@router.get("/files/local-content", summary="Download a locally stored file")
async def get_local_content(
    key: str = Query(...),
    signature: str = Query(...),
    _: User = Depends(deps.require_authenticated_user),
):
    if settings.storage_provider != "local":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not supported")
    if not verify_object_key_signature(settings.secret_key, key, signature):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid URL signature",
        )
    storage = LocalFileSystemStorage(base_path=settings.local_upload_dir, base_url="")
    try:
        path = storage.resolve_path(key)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path)
