"""create reminders

Revision ID: 20261018000200
Revises: 20261018000100
Create Date: 2026-10-18 00:02:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018000200"
down_revision = "20261018000100"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "reminders",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_ref", sa.String(), nullable=False),
        sa.Column("contest_id", sa.Integer(), sa.ForeignKey("contests.id"), nullable=False),
        sa.Column("reminder_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_reminders_id", "reminders", ["id"], unique=False)
    op.create_index("ix_reminders_user_ref", "reminders", ["user_ref"], unique=False)
    op.create_index("ix_reminders_sent_time", "reminders", ["sent", "reminder_time"])


def downgrade() -> None:
    op.drop_index("ix_reminders_sent_time", table_name="reminders")
    op.drop_index("ix_reminders_user_ref", table_name="reminders")
    op.drop_index("ix_reminders_id", table_name="reminders")
    op.drop_table("reminders")
