import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID

from loandesk.db.base import Base


DOCUMENT_CATEGORIES = (
    "application",
    "borrower_document",
    "property_document",
    "closing_document",
    "post_closing_document",
)


class LoanDocument(Base):
    """One uploaded file; mirrors the status of its source checklist item."""

    __tablename__ = "loan_documents"
    __table_args__ = (
        CheckConstraint(
            "category IN ('application', 'borrower_document', 'property_document', "
            "'closing_document', 'post_closing_document')",
            name="ck_loan_document_category",
        ),
        Index("ix_loan_documents_loan_item", "loan_id", "checklist_item_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    checklist_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("checklist_items.id", ondelete="SET NULL"),
        nullable=True,
    )
    document_name = Column(String(255), nullable=False)
    file_url = Column(String(1024), nullable=False)
    category = Column(String(50), nullable=False, default="application")
    status = Column(String(50), nullable=False, default="pending")
    notes = Column(Text, nullable=True)
    uploaded_by = Column(String(64), nullable=True)
    uploaded_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reviewed_by = Column(String(64), nullable=True)
    reviewed_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
