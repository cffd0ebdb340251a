from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoanDocumentCategory(str, Enum):
    APPLICATION = "application"
    BORROWER_DOCUMENT = "borrower_document"
    PROPERTY_DOCUMENT = "property_document"
    CLOSING_DOCUMENT = "closing_document"
    POST_CLOSING_DOCUMENT = "post_closing_document"


class LoanDocumentDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    loan_id: UUID
    checklist_item_id: UUID | None = None
    document_name: str
    file_url: str
    category: str
    status: str
    notes: str | None = None
    uploaded_by: str | None = None
    uploaded_date: datetime | None = None
    reviewed_by: str | None = None
    reviewed_date: datetime | None = None


class LoanDocumentListResponse(BaseModel):
    loan_id: UUID
    total: int
    documents: list[LoanDocumentDTO]


class LoanDocumentStatusUpdate(BaseModel):
    status: str = Field(min_length=1)
