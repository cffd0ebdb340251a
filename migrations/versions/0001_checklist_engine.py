"""Create users, loans, checklist_items, loan_documents and notifications"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_checklist_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("app_role", sa.String(length=50), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_app_role", "users", ["app_role"])

    op.create_table(
        "loans",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("loan_number", sa.String(length=50), nullable=True, unique=True),
        sa.Column("loan_product", sa.String(length=50), nullable=True),
        sa.Column("borrower_ids", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("loan_officer_ids", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("referrer_ids", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "checklist_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loan_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("checklist_type", sa.String(length=20), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("provider", sa.String(length=100), nullable=True),
        sa.Column("document_category", sa.String(length=100), nullable=True),
        sa.Column("applicable_loan_types", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("assigned_to", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("notes", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("uploaded_files", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("activity_history", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("first_review_completed_by", sa.String(length=64), nullable=True),
        sa.Column("first_review_completed_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("second_review_completed_by", sa.String(length=64), nullable=True),
        sa.Column("second_review_completed_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "checklist_type IN ('action_item', 'document')",
            name="ck_checklist_item_type",
        ),
        sa.CheckConstraint(
            "second_review_completed_by IS NULL OR first_review_completed_by IS NOT NULL",
            name="ck_checklist_item_review_order",
        ),
    )
    op.create_index("ix_checklist_items_loan_id", "checklist_items", ["loan_id"])
    op.create_index("ix_checklist_items_loan_type", "checklist_items", ["loan_id", "checklist_type"])
    op.create_index(
        "ix_checklist_items_assigned_to",
        "checklist_items",
        ["assigned_to"],
        postgresql_using="gin",
    )

    op.create_table(
        "loan_documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "loan_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("loans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "checklist_item_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("checklist_items.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("document_name", sa.String(length=255), nullable=False),
        sa.Column("file_url", sa.String(length=1024), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False, server_default=sa.text("'application'")),
        sa.Column("status", sa.String(length=50), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.String(length=64), nullable=True),
        sa.Column("uploaded_date", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("reviewed_by", sa.String(length=64), nullable=True),
        sa.Column("reviewed_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "category IN ('application', 'borrower_document', 'property_document', "
            "'closing_document', 'post_closing_document')",
            name="ck_loan_document_category",
        ),
    )
    op.create_index("ix_loan_documents_loan_id", "loan_documents", ["loan_id"])
    op.create_index("ix_loan_documents_loan_item", "loan_documents", ["loan_id", "checklist_item_id"])

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("link_url", sa.String(length=1024), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default=sa.text("'normal'")),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_loan_documents_loan_item", table_name="loan_documents")
    op.drop_index("ix_loan_documents_loan_id", table_name="loan_documents")
    op.drop_table("loan_documents")
    op.drop_index("ix_checklist_items_assigned_to", table_name="checklist_items")
    op.drop_index("ix_checklist_items_loan_type", table_name="checklist_items")
    op.drop_index("ix_checklist_items_loan_id", table_name="checklist_items")
    op.drop_table("checklist_items")
    op.drop_table("loans")
    op.drop_index("ix_users_app_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
