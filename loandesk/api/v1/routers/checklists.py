from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.api import deps
from loandesk.core.permissions import PermissionCode, is_checklist_manager
from loandesk.models import Loan, User
from loandesk.schemas.checklist import (
    ChecklistCategoryGroup,
    ChecklistItemDTO,
    ChecklistItemUpdateRequest,
    ChecklistListResponse,
    ChecklistType,
    CommentCreateRequest,
    CommentResultResponse,
    FileBatchResponse,
    LoeResponse,
    MaterializeResponse,
    MentionCandidateDTO,
    ReviewToggleRequest,
    StatusChangeRequest,
)
from loandesk.services import checklist_items, checklist_materializer, directory, mentions
from loandesk.services.email import EmailSender
from loandesk.services.errors import ChecklistError
from loandesk.services.notifications import NotificationDispatcher
from loandesk.services.storage import FileStorage, UploadedFile

router = APIRouter(tags=["checklists"])


async def _load_for_update(db: AsyncSession, item_id: UUID, user: User):
    try:
        item, loan = await checklist_items.get_item_for_update(db, item_id)
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    deps.ensure_loan_access(user, loan)
    deps.ensure_item_visible(user, item)
    return item, loan


@router.get(
    "/loans/{loan_id}/checklist",
    response_model=ChecklistListResponse,
    summary="List a loan's checklist grouped by category",
)
async def list_checklist(
    checklist_type: ChecklistType | None = Query(default=None),
    loan: Loan = Depends(deps.get_loan),
    current_user: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_DOCUMENT_VIEW)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ChecklistListResponse:
    deps.ensure_loan_access(current_user, loan)
    if not is_checklist_manager(current_user):
        if checklist_type is ChecklistType.ACTION_ITEM:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {PermissionCode.CHECKLIST_ACTION_VIEW.value}",
            )
        checklist_type = ChecklistType.DOCUMENT

    items = await checklist_items.list_items(db, loan.id, checklist_type)
    groups = [
        ChecklistCategoryGroup(
            category=category,
            items=[ChecklistItemDTO.from_item(item) for item in grouped],
        )
        for category, grouped in checklist_items.group_items(items)
    ]
    return ChecklistListResponse(
        loan_id=loan.id,
        checklist_type=checklist_type,
        locked=not loan.loan_product,
        total=len(items),
        groups=groups,
    )


@router.post(
    "/loans/{loan_id}/checklist/materialize",
    response_model=MaterializeResponse,
    summary="Create any catalog items the loan is missing",
)
async def materialize_checklist(
    loan: Loan = Depends(deps.get_loan),
    _: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
) -> MaterializeResponse:
    result = await checklist_materializer.ensure_checklist_items(db, loan)
    return MaterializeResponse(
        loan_id=loan.id,
        skipped=result.skipped,
        created=result.created,
        failed=result.failed,
    )


@router.post(
    "/loans/{loan_id}/checklist/reinitialize",
    response_model=MaterializeResponse,
    summary="Delete and rebuild a loan's checklist",
)
async def reinitialize_checklist(
    loan: Loan = Depends(deps.get_loan),
    _: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_REINITIALIZE)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> MaterializeResponse:
    try:
        result = await checklist_materializer.reinitialize_checklist(db, loan)
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return MaterializeResponse(
        loan_id=loan.id,
        skipped=result.skipped,
        created=result.created,
        failed=result.failed,
    )


@router.get(
    "/checklist-items/{item_id}",
    response_model=ChecklistItemDTO,
    summary="Get a checklist item",
)
async def get_checklist_item(
    item_id: UUID,
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ChecklistItemDTO:
    try:
        item = await checklist_items.get_item(db, item_id)
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    loan = await db.get(Loan, item.loan_id)
    if loan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found")
    deps.ensure_loan_access(current_user, loan)
    deps.ensure_item_visible(current_user, item)
    return ChecklistItemDTO.from_item(item)


@router.patch(
    "/checklist-items/{item_id}",
    response_model=ChecklistItemDTO,
    summary="Update due date, assignees or provider",
)
async def update_checklist_item(
    item_id: UUID,
    payload: ChecklistItemUpdateRequest,
    current_user: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
) -> ChecklistItemDTO:
    item, _ = await _load_for_update(db, item_id, current_user)
    changes = {}
    if "due_date" in payload.model_fields_set:
        changes["due_date"] = payload.due_date
    item = await checklist_items.update_details(
        db,
        item,
        actor=current_user,
        assigned_to=payload.assigned_to,
        provider=payload.provider,
        dispatcher=dispatcher,
        **changes,
    )
    return ChecklistItemDTO.from_item(item)


@router.post(
    "/checklist-items/{item_id}/status",
    response_model=ChecklistItemDTO,
    summary="Change a checklist item's status",
)
async def change_item_status(
    item_id: UUID,
    payload: StatusChangeRequest,
    current_user: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    listeners: list = Depends(deps.get_document_listeners),
) -> ChecklistItemDTO:
    item, loan = await _load_for_update(db, item_id, current_user)
    try:
        item = await checklist_items.change_status(
            db,
            item,
            payload.status,
            actor=current_user,
            loan=loan,
            dispatcher=dispatcher,
            listeners=listeners,
        )
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return ChecklistItemDTO.from_item(item)


@router.post(
    "/checklist-items/{item_id}/reviews/{stage}",
    response_model=ChecklistItemDTO,
    summary="Check or uncheck an underwriting review",
)
async def toggle_review(
    item_id: UUID,
    stage: Literal["first", "second"],
    payload: ReviewToggleRequest,
    current_user: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
    listeners: list = Depends(deps.get_document_listeners),
) -> ChecklistItemDTO:
    item, _ = await _load_for_update(db, item_id, current_user)
    toggle = checklist_items.set_first_review if stage == "first" else checklist_items.set_second_review
    try:
        item = await toggle(db, item, payload.checked, actor=current_user, listeners=listeners)
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return ChecklistItemDTO.from_item(item)


@router.post(
    "/checklist-items/{item_id}/comments",
    response_model=CommentResultResponse,
    summary="Add a comment, resolving @First Last mentions",
)
async def add_comment(
    item_id: UUID,
    payload: CommentCreateRequest,
    response: Response,
    current_user: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_CONTRIBUTE)),
    db: AsyncSession = Depends(deps.get_db_session),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
) -> CommentResultResponse:
    item, _ = await _load_for_update(db, item_id, current_user)
    known_users = await directory.list_active_users(db)
    comment = await checklist_items.add_comment(
        db,
        item,
        payload.text,
        author=current_user,
        known_users=known_users,
        dispatcher=dispatcher,
    )
    if comment is not None:
        response.status_code = status.HTTP_201_CREATED
    return CommentResultResponse(comment=comment, item=ChecklistItemDTO.from_item(item))


@router.delete(
    "/checklist-items/{item_id}/comments/{comment_id}",
    response_model=ChecklistItemDTO,
    summary="Delete a comment",
)
async def delete_comment(
    item_id: UUID,
    comment_id: str,
    current_user: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_CONTRIBUTE)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> ChecklistItemDTO:
    item, _ = await _load_for_update(db, item_id, current_user)
    if not is_checklist_manager(current_user):
        authors = {note.get("id"): note.get("author") for note in item.notes or []}
        if comment_id in authors and authors[comment_id] != str(current_user.id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the author can delete this comment",
            )
    try:
        item = await checklist_items.delete_comment(db, item, comment_id, actor=current_user)
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return ChecklistItemDTO.from_item(item)


@router.post(
    "/checklist-items/{item_id}/files",
    response_model=FileBatchResponse,
    summary="Upload files to a checklist item",
)
async def upload_files(
    item_id: UUID,
    response: Response,
    files: list[UploadFile] = File(...),
    current_user: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_CONTRIBUTE)),
    db: AsyncSession = Depends(deps.get_db_session),
    storage: FileStorage = Depends(deps.get_storage),
    listeners: list = Depends(deps.get_document_listeners),
) -> FileBatchResponse:
    item, _ = await _load_for_update(db, item_id, current_user)
    uploads = []
    for upload in files:
        content = await upload.read()
        await upload.close()
        uploads.append(
            UploadedFile(
                filename=upload.filename or "upload.bin",
                content=content,
                content_type=upload.content_type or "application/octet-stream",
            )
        )
    result = await checklist_items.add_files(
        db,
        item,
        uploads,
        uploader=current_user,
        storage=storage,
        listeners=listeners,
    )
    if not result.ok:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return FileBatchResponse(
        ok=result.ok,
        uploaded=result.uploaded,
        failed=result.failed,
        item=ChecklistItemDTO.from_item(item),
    )


@router.delete(
    "/checklist-items/{item_id}/files/{index}",
    response_model=ChecklistItemDTO,
    summary="Remove an uploaded file and its mirrored documents",
)
async def remove_file(
    item_id: UUID,
    index: int,
    current_user: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
    listeners: list = Depends(deps.get_document_listeners),
) -> ChecklistItemDTO:
    item, _ = await _load_for_update(db, item_id, current_user)
    try:
        item = await checklist_items.remove_file(
            db, item, index, actor=current_user, listeners=listeners
        )
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return ChecklistItemDTO.from_item(item)


@router.post(
    "/checklist-items/{item_id}/loe",
    response_model=LoeResponse,
    summary="Request a letter of explanation from the borrowers",
)
async def request_letter_of_explanation(
    item_id: UUID,
    current_user: User = Depends(deps.require_checklist_manager),
    db: AsyncSession = Depends(deps.get_db_session),
    dispatcher: NotificationDispatcher = Depends(deps.get_notification_dispatcher),
    mailer: EmailSender = Depends(deps.get_mailer),
    listeners: list = Depends(deps.get_document_listeners),
) -> LoeResponse:
    item, loan = await _load_for_update(db, item_id, current_user)
    borrowers = await directory.get_borrowers(db, loan)
    try:
        result = await checklist_items.request_loe(
            db,
            item,
            loan,
            borrowers,
            actor=current_user,
            dispatcher=dispatcher,
            mailer=mailer,
            listeners=listeners,
        )
    except ChecklistError as exc:
        raise deps.to_http_exception(exc) from exc
    return LoeResponse(
        item=ChecklistItemDTO.from_item(item),
        notified_user_ids=result.notified_user_ids,
        emailed=result.emailed,
        failed=result.failed,
    )


@router.get(
    "/loans/{loan_id}/mention-candidates",
    response_model=list[MentionCandidateDTO],
    summary="Users the caller may @mention on this loan",
)
async def list_mention_candidates(
    search: str = Query(default="", max_length=100),
    loan: Loan = Depends(deps.get_loan),
    current_user: User = Depends(deps.require_permission(PermissionCode.CHECKLIST_CONTRIBUTE)),
    db: AsyncSession = Depends(deps.get_db_session),
) -> list[MentionCandidateDTO]:
    deps.ensure_loan_access(current_user, loan)
    users = await directory.list_mentionable_users(db, loan)
    candidates = mentions.mention_candidates(current_user, loan.team_member_ids, users, search)
    return [
        MentionCandidateDTO(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            app_role=user.app_role,
            mention_text=mentions.mention_text(user),
        )
        for user in candidates
    ]
