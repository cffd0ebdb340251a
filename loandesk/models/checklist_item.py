import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID

from loandesk.db.base import Base
from loandesk.models.loan import JSONList


CHECKLIST_TYPES = ("action_item", "document")


class ChecklistItem(Base):
    """One required task or document for a loan.

    Rows are tagged by ``checklist_type``; load them through the
    :class:`ActionItemChecklist` / :class:`DocumentChecklist` variants. The
    embedded ``notes``, ``uploaded_files`` and ``activity_history`` lists are
    replaced wholesale on every change so the JSON columns are flagged dirty.
    """

    __tablename__ = "checklist_items"
    __allow_unmapped__ = True
    __table_args__ = (
        CheckConstraint(
            "checklist_type IN ('action_item', 'document')",
            name="ck_checklist_item_type",
        ),
        CheckConstraint(
            "second_review_completed_by IS NULL OR first_review_completed_by IS NOT NULL",
            name="ck_checklist_item_review_order",
        ),
        Index("ix_checklist_items_loan_type", "loan_id", "checklist_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(
        UUID(as_uuid=True),
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    checklist_type = Column(String(20), nullable=False)
    category = Column(String(100), nullable=False)
    item_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    provider = Column(String(100), nullable=True)
    document_category = Column(String(100), nullable=True)
    applicable_loan_types = Column(JSONList, nullable=False, default=list)
    status = Column(String(50), nullable=False)
    due_date = Column(Date, nullable=True)
    assigned_to = Column(JSONList, nullable=False, default=list)
    notes = Column(JSONList, nullable=False, default=list)
    uploaded_files = Column(JSONList, nullable=False, default=list)
    activity_history = Column(JSONList, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"polymorphic_on": checklist_type, "with_polymorphic": "*"}

    @property
    def is_document(self) -> bool:
        return self.checklist_type == "document"


class ActionItemChecklist(ChecklistItem):
    __mapper_args__ = {"polymorphic_identity": "action_item"}


class DocumentChecklist(ChecklistItem):
    __mapper_args__ = {"polymorphic_identity": "document"}

    first_review_completed_by = Column(String(64), nullable=True)
    first_review_completed_date = Column(DateTime(timezone=True), nullable=True)
    second_review_completed_by = Column(String(64), nullable=True)
    second_review_completed_date = Column(DateTime(timezone=True), nullable=True)


CHECKLIST_VARIANTS: dict[str, type[ChecklistItem]] = {
    "action_item": ActionItemChecklist,
    "document": DocumentChecklist,
}
