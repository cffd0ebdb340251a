from loandesk.schemas.checklist import ChecklistType
from loandesk.services import checklist_templates


def test_catalog_sizes() -> None:
    assert len(checklist_templates.entries_for("action_item")) == 23
    assert len(checklist_templates.entries_for(ChecklistType.DOCUMENT)) == 20


def test_category_order_follows_first_appearance() -> None:
    assert checklist_templates.category_order("action_item") == [
        "Underwriting Document",
        "Legal Document",
        "Processing",
        "Post-Close",
    ]
    assert checklist_templates.category_order("document") == [
        "Property Document",
        "Closing Document",
        "Post-Close Document",
    ]


def test_template_key_normalizes_case_and_whitespace() -> None:
    assert checklist_templates.template_key("document", "  Title E&O ") == "document:title e&o"
    assert checklist_templates.template_key(
        "action_item", "Title"
    ) != checklist_templates.template_key("document", "Title")


def test_catalog_names_are_unique_per_type() -> None:
    for kind in ChecklistType:
        keys = [entry.key for entry in checklist_templates.entries_for(kind)]
        assert len(keys) == len(set(keys))


def test_sort_categories_puts_unknown_last_and_is_stable() -> None:
    result = checklist_templates.sort_categories(
        "document",
        ["Custom B", "Post-Close Document", "Custom A", "Property Document"],
    )
    assert result == ["Property Document", "Post-Close Document", "Custom B", "Custom A"]


def test_document_entries_carry_document_category() -> None:
    entries = {entry.item_name: entry for entry in checklist_templates.entries_for("document")}
    assert entries["Contractor Review"].document_category == "construction_facility_pre_close"
    assert "DSCR Purchase" not in entries["Contractor Review"].applicable_loan_types
    assert entries["HUD"].provider == "Title Company"
    assert all(entry.document_category for entry in entries.values())


def test_all_entries_lists_action_items_first() -> None:
    entries = checklist_templates.all_entries()
    assert entries[0].checklist_type is ChecklistType.ACTION_ITEM
    assert entries[-1].checklist_type is ChecklistType.DOCUMENT
    assert entries[23].item_name == "Valuation Review"
