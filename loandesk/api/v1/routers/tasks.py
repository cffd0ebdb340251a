from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from loandesk.api import deps
from loandesk.models import Loan, User
from loandesk.schemas.checklist import ChecklistItemDTO, MyTaskDTO
from loandesk.services import checklist_items

router = APIRouter(prefix="/me", tags=["tasks"])


@router.get("/tasks", response_model=list[MyTaskDTO], summary="Checklist items assigned to me")
async def list_my_tasks(
    current_user: User = Depends(deps.require_authenticated_user),
    db: AsyncSession = Depends(deps.get_db_session),
) -> list[MyTaskDTO]:
    items = await checklist_items.list_tasks_for_user(db, current_user.id)
    loan_ids = {item.loan_id for item in items}
    loan_numbers: dict = {}
    if loan_ids:
        result = await db.execute(select(Loan).where(Loan.id.in_(loan_ids)))
        loan_numbers = {loan.id: loan.loan_number for loan in result.scalars().all()}
    return [
        MyTaskDTO(item=ChecklistItemDTO.from_item(item), loan_number=loan_numbers.get(item.loan_id))
        for item in items
    ]
