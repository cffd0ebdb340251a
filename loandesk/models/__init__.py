from loandesk.models.checklist_item import ActionItemChecklist, ChecklistItem, DocumentChecklist
from loandesk.models.loan import Loan
from loandesk.models.loan_document import LoanDocument
from loandesk.models.notification import Notification
from loandesk.models.user import User

__all__ = [
    "ActionItemChecklist",
    "ChecklistItem",
    "DocumentChecklist",
    "Loan",
    "LoanDocument",
    "Notification",
    "User",
]
