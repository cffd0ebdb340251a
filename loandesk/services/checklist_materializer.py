from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.models.checklist_item import CHECKLIST_VARIANTS, ChecklistItem
from loandesk.models.loan import Loan
from loandesk.schemas.checklist import initial_status
from loandesk.services import checklist_templates
from loandesk.services.checklist_templates import ChecklistTemplateEntry
from loandesk.services.errors import ChecklistLockedError


logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    created: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: bool = False


async def existing_keys(db: AsyncSession, loan_id) -> set[str]:
    stmt = select(ChecklistItem.checklist_type, ChecklistItem.item_name).where(
        ChecklistItem.loan_id == loan_id
    )
    result = await db.execute(stmt)
    return {
        checklist_templates.template_key(checklist_type, item_name)
        for checklist_type, item_name in result.all()
    }


def build_item(loan: Loan, entry: ChecklistTemplateEntry) -> ChecklistItem:
    model = CHECKLIST_VARIANTS[entry.checklist_type.value]
    return model(
        loan_id=loan.id,
        checklist_type=entry.checklist_type.value,
        category=entry.category,
        item_name=entry.item_name,
        description=entry.description,
        provider=entry.provider,
        document_category=entry.document_category,
        applicable_loan_types=sorted(entry.applicable_loan_types),
        status=initial_status(entry.checklist_type),
        assigned_to=[],
        notes=[],
        uploaded_files=[],
        activity_history=[],
    )


async def ensure_checklist_items(db: AsyncSession, loan: Loan) -> MaterializeResult:
    """Create every catalog item the loan is missing.

    Existing items are never updated or removed. Each creation commits on its
    own, so a failed entry is skipped and retried on the next run.
    """
    if not loan.loan_product:
        logger.info("Skipping checklist materialization for loan_id=%s without product", loan.id)
        return MaterializeResult(skipped=True)

    result = MaterializeResult()
    present = await existing_keys(db, loan.id)

    for entry in checklist_templates.all_entries():
        if entry.key in present:
            continue
        db.add(build_item(loan, entry))
        try:
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception(
                "Failed to create checklist item loan_id=%s item=%s",
                loan.id,
                entry.item_name,
            )
            result.failed.append(entry.item_name)
            continue
        present.add(entry.key)
        result.created.append(entry.item_name)

    if result.created or result.failed:
        logger.info(
            "Materialized checklist loan_id=%s created=%s failed=%s",
            loan.id,
            len(result.created),
            len(result.failed),
        )
    return result


async def reinitialize_checklist(db: AsyncSession, loan: Loan) -> MaterializeResult:
    """Delete every checklist item of the loan and rebuild it from the catalog."""
    if not loan.loan_product:
        raise ChecklistLockedError(
            code="checklist_locked",
            message="Select a loan product before reinitializing the checklist",
            details={"loan_id": str(loan.id)},
        )

    stmt = select(ChecklistItem).where(ChecklistItem.loan_id == loan.id)
    existing = (await db.execute(stmt)).scalars().all()
    for item in existing:
        await db.delete(item)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise
    logger.warning("Reinitialized checklist loan_id=%s removed=%s", loan.id, len(existing))
    return await ensure_checklist_items(db, loan)
