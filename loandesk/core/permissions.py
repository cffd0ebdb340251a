from enum import Enum
from typing import Iterable


class AppRole(str, Enum):
    ADMINISTRATOR = "Administrator"
    LOAN_OFFICER = "Loan Officer"
    BORROWER = "Borrower"
    BROKER = "Broker"
    REFERRER = "Referrer"
    GUARANTOR = "Guarantor"
    TITLE_COMPANY = "Title Company"


PLATFORM_ADMIN_ROLE = "admin"


class PermissionCode(str, Enum):
    CHECKLIST_MANAGE = "checklist.manage"
    CHECKLIST_ACTION_VIEW = "checklist.action_item.view"
    CHECKLIST_DOCUMENT_VIEW = "checklist.document.view"
    CHECKLIST_CONTRIBUTE = "checklist.contribute"
    CHECKLIST_REINITIALIZE = "checklist.reinitialize"
    LOAN_DOCUMENT_VIEW = "loan_document.view"
    LOAN_DOCUMENT_MANAGE = "loan_document.manage"


MANAGER_PERMISSIONS: frozenset[PermissionCode] = frozenset(PermissionCode)

MEMBER_PERMISSIONS: frozenset[PermissionCode] = frozenset(
    {
        PermissionCode.CHECKLIST_DOCUMENT_VIEW,
        PermissionCode.CHECKLIST_CONTRIBUTE,
        PermissionCode.LOAN_DOCUMENT_VIEW,
    }
)

# Roles allowed to mention any Loan Officer, not only loan teammates.
ELEVATED_MENTION_ROLES = {AppRole.ADMINISTRATOR.value, AppRole.LOAN_OFFICER.value}


def is_checklist_manager(user) -> bool:
    role = getattr(user, "role", None)
    app_role = getattr(user, "app_role", None)
    return role == PLATFORM_ADMIN_ROLE or app_role in ELEVATED_MENTION_ROLES


def permissions_for(user) -> frozenset[PermissionCode]:
    if user is None:
        return frozenset()
    if is_checklist_manager(user):
        return MANAGER_PERMISSIONS
    return MEMBER_PERMISSIONS


def has_permissions(user, required: Iterable[PermissionCode | str]) -> bool:
    granted = {code.value for code in permissions_for(user)}
    return all((code.value if isinstance(code, PermissionCode) else str(code)) in granted for code in required)
