from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from loandesk.schemas.checklist import ChecklistType


ALL_LOAN_TYPES = frozenset(
    {
        "Fix & Flip",
        "Bridge",
        "Refinance",
        "New Construction",
        "DSCR Purchase",
        "DSCR Refinance",
    }
)
NON_DSCR_LOAN_TYPES = frozenset({"Fix & Flip", "Bridge", "Refinance", "New Construction"})
CONSTRUCTION_LOAN_TYPES = frozenset({"Fix & Flip", "Bridge", "New Construction"})

LENDER = "Amplend"
BORROWER = "Borrower"
TITLE_COMPANY = "Title Company"


@dataclass(frozen=True)
class ChecklistTemplateEntry:
    checklist_type: ChecklistType
    category: str
    item_name: str
    provider: str | None = None
    description: str | None = None
    applicable_loan_types: frozenset[str] = field(default=ALL_LOAN_TYPES)
    document_category: str | None = None

    @property
    def key(self) -> str:
        return template_key(self.checklist_type, self.item_name)


def _action(category: str, item_name: str, provider: str, loan_types=ALL_LOAN_TYPES):
    return ChecklistTemplateEntry(
        checklist_type=ChecklistType.ACTION_ITEM,
        category=category,
        item_name=item_name,
        provider=provider,
        applicable_loan_types=loan_types,
    )


def _document(
    category: str,
    item_name: str,
    provider: str,
    document_category: str,
    loan_types=ALL_LOAN_TYPES,
):
    return ChecklistTemplateEntry(
        checklist_type=ChecklistType.DOCUMENT,
        category=category,
        item_name=item_name,
        provider=provider,
        applicable_loan_types=loan_types,
        document_category=document_category,
    )


ACTION_ITEM_TEMPLATES: tuple[ChecklistTemplateEntry, ...] = (
    _action("Underwriting Document", "Background", LENDER),
    _action("Underwriting Document", "Credit", LENDER),
    _action("Underwriting Document", "Appraisal/Valuation", LENDER),
    _action("Underwriting Document", "Contractor/Scope", LENDER, NON_DSCR_LOAN_TYPES),
    _action("Underwriting Document", "Title", LENDER),
    _action("Underwriting Document", "Send Indicative Terms", LENDER),
    _action("Legal Document", "Legal Docs", LENDER),
    _action("Processing", "Appraisal Fee Request", LENDER),
    _action("Processing", "Schedule Appraisal", LENDER),
    _action("Processing", "Schedule Title", LENDER),
    _action("Processing", "Schedule Background", LENDER),
    _action("Processing", "Schedule Insurance", LENDER),
    _action("Processing", "Appraisal Received", BORROWER),
    _action("Processing", "Term Sheet Final", LENDER),
    _action("Processing", "Background Received", LENDER),
    _action("Processing", "Final Terms Agreed", BORROWER),
    _action("Processing", "Final CD", LENDER),
    _action("Processing", "Schedule Closing", TITLE_COMPANY),
    _action("Post-Close", "Invoice Title/Attorney", LENDER),
    _action("Post-Close", "Invoice Appraisal", LENDER),
    _action("Post-Close", "Warehouse Advance", LENDER),
    _action("Post-Close", "Send to Servicer", LENDER),
    _action("Post-Close", "Send to Buyer", LENDER),
)

DOCUMENT_TEMPLATES: tuple[ChecklistTemplateEntry, ...] = (
    _document("Property Document", "Valuation Review", LENDER, "valuations"),
    _document("Property Document", "Appraisal", BORROWER, "valuations"),
    _document("Property Document", "Property Insurance", BORROWER, "insurance"),
    _document("Property Document", "Feasibility Review", LENDER, "property", NON_DSCR_LOAN_TYPES),
    _document("Property Document", "Survey", BORROWER, "property"),
    _document("Closing Document", "Closing Protection Letter", TITLE_COMPANY, "title"),
    _document("Closing Document", "HUD", TITLE_COMPANY, "closing"),
    _document("Closing Document", "Loan Docs", LENDER, "legal"),
    _document("Closing Document", "Title Commitment", TITLE_COMPANY, "title"),
    _document("Closing Document", "Initial Payment Notice", LENDER, "closing"),
    _document("Closing Document", "ACH Form", BORROWER, "closing"),
    _document("Closing Document", "Title Wiring Info", TITLE_COMPANY, "title"),
    _document("Closing Document", "Deed", TITLE_COMPANY, "closing"),
    _document(
        "Closing Document",
        "Contractor Review",
        BORROWER,
        "construction_facility_pre_close",
        CONSTRUCTION_LOAN_TYPES,
    ),
    _document("Closing Document", "Title E&O", TITLE_COMPANY, "title"),
    _document("Post-Close Document", "Recorded Deed", TITLE_COMPANY, "post_close_funding"),
    _document("Post-Close Document", "Final Title Policy", TITLE_COMPANY, "title"),
    _document("Post-Close Document", "Recorded AOM", TITLE_COMPANY, "post_close_funding"),
    _document("Post-Close Document", "Recorded ALR", TITLE_COMPANY, "post_close_funding"),
    _document("Post-Close Document", "Recorded Mortgage", TITLE_COMPANY, "post_close_funding"),
)

_CATALOG: dict[ChecklistType, tuple[ChecklistTemplateEntry, ...]] = {
    ChecklistType.ACTION_ITEM: ACTION_ITEM_TEMPLATES,
    ChecklistType.DOCUMENT: DOCUMENT_TEMPLATES,
}


def entries_for(checklist_type: ChecklistType | str) -> list[ChecklistTemplateEntry]:
    return list(_CATALOG[ChecklistType(checklist_type)])


def all_entries() -> list[ChecklistTemplateEntry]:
    """Action items first, then documents, each in catalog order."""
    return entries_for(ChecklistType.ACTION_ITEM) + entries_for(ChecklistType.DOCUMENT)


def category_order(checklist_type: ChecklistType | str) -> list[str]:
    seen: list[str] = []
    for entry in _CATALOG[ChecklistType(checklist_type)]:
        if entry.category not in seen:
            seen.append(entry.category)
    return seen


def template_key(checklist_type: ChecklistType | str, item_name: str) -> str:
    kind = ChecklistType(checklist_type).value
    return f"{kind}:{(item_name or '').strip().lower()}"


def sort_categories(checklist_type: ChecklistType | str, categories: Iterable[str]) -> list[str]:
    order = {name: index for index, name in enumerate(category_order(checklist_type))}
    unknown_rank = len(order)
    return sorted(categories, key=lambda name: order.get(name, unknown_rank))
