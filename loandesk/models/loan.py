import uuid

from sqlalchemy import JSON, Column, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from loandesk.db.base import Base


JSONList = JSON().with_variant(JSONB(), "postgresql")


class Loan(Base):
    """Projection of the loan record the checklist engine reads."""

    __tablename__ = "loans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_number = Column(String(50), nullable=True, unique=True)
    loan_product = Column(String(50), nullable=True)
    borrower_ids = Column(JSONList, nullable=False, default=list)
    loan_officer_ids = Column(JSONList, nullable=False, default=list)
    referrer_ids = Column(JSONList, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    @property
    def team_member_ids(self) -> set[str]:
        return {
            str(member_id)
            for member_id in [
                *(self.borrower_ids or []),
                *(self.loan_officer_ids or []),
                *(self.referrer_ids or []),
            ]
            if member_id
        }
