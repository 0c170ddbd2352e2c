"""letters registry schema

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "3f1a9c2e7b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # --- Enums ---
    profilerole = sa.Enum("ADMIN", "SECRETARY", "STAFF", name="profilerole")
    letterdirection = sa.Enum("INCOMING", "OUTGOING", name="letterdirection")
    letterstatus = sa.Enum(
        "RECEIVED", "SCANNED", "ASSIGNED", "ARCHIVED", name="letterstatus"
    )
    confidentiality = sa.Enum(
        "PUBLIC", "INTERNAL", "CONFIDENTIAL", name="confidentiality"
    )
    auditaction = sa.Enum(
        "CREATED",
        "UPDATED",
        "VIEWED",
        "DOWNLOADED",
        "SCAN_REPLACED",
        "USER_CREATED",
        "USER_DELETED",
        "USER_EMAIL_UPDATED",
        "ROLE_UPDATED",
        name="auditaction",
    )

    # --- Profiles ---
    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("role", profilerole, nullable=False),
        sa.Column("department", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_profiles_full_name", "profiles", ["full_name"])
    op.create_index("ix_profiles_department", "profiles", ["department"])

    # --- Letters ---
    op.create_table(
        "letters",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("ref_no", sa.String(length=120), nullable=False),
        sa.Column("direction", letterdirection, nullable=False),
        sa.Column("status", letterstatus, nullable=False),
        sa.Column("confidentiality", confidentiality, nullable=False),
        sa.Column("date_received", sa.Date(), nullable=False),
        sa.Column("date_on_letter", sa.Date(), nullable=True),
        sa.Column("sender_name", sa.String(length=255), nullable=False),
        sa.Column("sender_org", sa.String(length=255), nullable=True),
        sa.Column("recipient_department", sa.String(length=120), nullable=True),
        sa.Column("subject", sa.String(length=500), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("file_bucket", sa.String(length=120), nullable=True),
        sa.Column("file_path", sa.String(length=1024), nullable=True),
        sa.Column("file_name", sa.String(length=500), nullable=True),
        sa.Column("mime_type", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["created_by"], ["profiles.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ref_no", name="uq_letters_ref_no"),
    )
    op.create_index("ix_letters_created_at", "letters", ["created_at"])
    op.create_index("ix_letters_direction", "letters", ["direction"])
    op.create_index("ix_letters_status", "letters", ["status"])
    op.create_index("ix_letters_confidentiality", "letters", ["confidentiality"])

    # --- Recipient grants ---
    op.create_table(
        "letter_recipients",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("letter_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["letter_id"], ["letters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "letter_id", "user_id", name="uq_letter_recipients_pair"
        ),
    )
    op.create_index(
        "ix_letter_recipients_user_id", "letter_recipients", ["user_id"]
    )

    # --- Audit trail ---
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("action", auditaction, nullable=False),
        sa.Column("letter_id", sa.UUID(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["letter_id"], ["letters.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_letter_id", "audit_logs", ["letter_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_letter_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_letter_recipients_user_id", table_name="letter_recipients")
    op.drop_table("letter_recipients")
    op.drop_index("ix_letters_confidentiality", table_name="letters")
    op.drop_index("ix_letters_status", table_name="letters")
    op.drop_index("ix_letters_direction", table_name="letters")
    op.drop_index("ix_letters_created_at", table_name="letters")
    op.drop_table("letters")
    op.drop_index("ix_profiles_department", table_name="profiles")
    op.drop_index("ix_profiles_full_name", table_name="profiles")
    op.drop_table("profiles")

    bind = op.get_bind()
    for name in (
        "auditaction",
        "confidentiality",
        "letterstatus",
        "letterdirection",
        "profilerole",
    ):
        sa.Enum(name=name).drop(bind, checkfirst=True)
