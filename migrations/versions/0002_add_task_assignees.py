"""add task assignees table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_task_assignees"
down_revision = "0001_create_tasks"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "task_assignees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "task_id",
            sa.Integer(),
            sa.ForeignKey("tasks.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("avatar", sa.String(length=2048), nullable=True),
    )
    op.create_index("ix_task_assignees_task_id", "task_assignees", ["task_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_task_assignees_task_id", table_name="task_assignees")
    op.drop_table("task_assignees")
