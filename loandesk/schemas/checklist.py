from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ChecklistType(str, Enum):
    ACTION_ITEM = "action_item"
    DOCUMENT = "document"


class ActionItemStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    FLAGGED = "flagged"
    COMPLETED = "completed"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    FIRST_REVIEW_DONE = "first_review_done"
    SECOND_REVIEW_DONE = "second_review_done"
    APPROVED = "approved"
    APPROVED_WITH_CONDITION = "approved_with_condition"
    REJECTED = "rejected"
    LETTER_OF_EXPLANATION_REQUESTED = "letter_of_explanation_requested"


class ActivityAction(str, Enum):
    STATUS_CHANGED = "status_changed"
    FIRST_REVIEW_COMPLETED = "first_review_completed"
    FIRST_REVIEW_UNCHECKED = "first_review_unchecked"
    SECOND_REVIEW_COMPLETED = "second_review_completed"
    SECOND_REVIEW_UNCHECKED = "second_review_unchecked"
    COMMENT_ADDED = "comment_added"
    COMMENT_DELETED = "comment_deleted"
    FILE_UPLOADED = "file_uploaded"
    FILE_REMOVED = "file_removed"
    LOE_REQUESTED = "loe_requested"
    DETAILS_UPDATED = "details_updated"


STATUS_DISPLAY_NAMES: dict[str, str] = {
    "not_started": "Not Started",
    "in_progress": "In Progress",
    "on_hold": "On Hold",
    "flagged": "Flagged",
    "completed": "Completed",
    "pending": "Pending",
    "submitted": "Submitted",
    "under_review": "Under Review",
    "first_review_done": "1st Review Done",
    "second_review_done": "2nd Review Done",
    "approved": "Approved",
    "rejected": "Rejected",
    "approved_with_condition": "Approved with Condition",
    "letter_of_explanation_requested": "Letter of Explanation Requested",
}

# Sorted to the bottom of a category when listing.
TERMINAL_STATUSES = {ActionItemStatus.COMPLETED.value, DocumentStatus.APPROVED.value}


def display_status(status: str | None) -> str:
    if not status:
        return "Not Started"
    return STATUS_DISPLAY_NAMES.get(status, status.replace("_", " ").title())


def statuses_for(checklist_type: ChecklistType | str) -> tuple[str, ...]:
    kind = ChecklistType(checklist_type)
    members = ActionItemStatus if kind is ChecklistType.ACTION_ITEM else DocumentStatus
    return tuple(member.value for member in members)


def initial_status(checklist_type: ChecklistType | str) -> str:
    if ChecklistType(checklist_type) is ChecklistType.ACTION_ITEM:
        return ActionItemStatus.NOT_STARTED.value
    return DocumentStatus.PENDING.value


class ActivityEntry(BaseModel):
    timestamp: datetime
    user_id: str
    user_name: str
    action: str
    details: str = ""


class ChecklistComment(BaseModel):
    id: str
    text: str
    author: str
    author_name: str
    mentions: list[str] = Field(default_factory=list)
    timestamp: datetime


class FileRef(BaseModel):
    file_url: str
    file_name: str
    uploaded_by: str
    uploaded_date: datetime


class ChecklistItemDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    checklist_type: ChecklistType
    category: str
    item_name: str
    description: str | None = None
    provider: str | None = None
    document_category: str | None = None
    status: str
    status_display: str | None = None
    due_date: date | None = None
    assigned_to: list[str] = Field(default_factory=list)
    notes: list[ChecklistComment] = Field(default_factory=list)
    uploaded_files: list[FileRef] = Field(default_factory=list)
    activity_history: list[ActivityEntry] = Field(default_factory=list)
    first_review_completed_by: str | None = None
    first_review_completed_date: datetime | None = None
    second_review_completed_by: str | None = None
    second_review_completed_date: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_item(cls, item) -> "ChecklistItemDTO":
        dto = cls.model_validate(item)
        return dto.model_copy(update={"status_display": display_status(item.status)})


class ChecklistCategoryGroup(BaseModel):
    category: str
    items: list[ChecklistItemDTO]


class ChecklistListResponse(BaseModel):
    loan_id: UUID
    checklist_type: ChecklistType | None = None
    locked: bool = False
    total: int
    groups: list[ChecklistCategoryGroup]


class StatusChangeRequest(BaseModel):
    status: str = Field(min_length=1)


class ReviewToggleRequest(BaseModel):
    checked: bool


class CommentCreateRequest(BaseModel):
    text: str


class ChecklistItemUpdateRequest(BaseModel):
    due_date: date | None = None
    assigned_to: list[str] | None = None
    provider: str | None = None


class MaterializeResponse(BaseModel):
    loan_id: UUID
    skipped: bool
    created: list[str]
    failed: list[str]


class FileBatchResponse(BaseModel):
    ok: bool
    uploaded: list[FileRef]
    failed: list[str]
    item: ChecklistItemDTO


class LoeResponse(BaseModel):
    item: ChecklistItemDTO
    notified_user_ids: list[str]
    emailed: list[str]
    failed: list[str]


class MentionCandidateDTO(BaseModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    app_role: str | None = None
    mention_text: str


class MyTaskDTO(BaseModel):
    item: ChecklistItemDTO
    loan_number: str | None = None


class CommentResultResponse(BaseModel):
    comment: ChecklistComment | None = None
    item: ChecklistItemDTO
