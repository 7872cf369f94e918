"""Initial LMS schema: users, employees, courses, assigned courses

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None

user_role_enum = sa.Enum("admin", "org_admin", "learner", name="user_role")
user_status_enum = sa.Enum("active", "inactive", "suspended", name="user_status")
assignment_status_enum = sa.Enum(
    "ASSIGNED", "IN_PROGRESS", "COMPLETED", name="assignment_status"
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        sa.Column("role", user_role_enum, nullable=False, server_default="learner"),
        sa.Column("status", user_status_enum, nullable=False, server_default="active"),
        sa.Column(
            "must_reset_password", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("org_id", sa.String(length=64), nullable=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("full_name", sa.String(length=128), nullable=True),
        _created_at(),
    )
    op.create_index("ix_employees_org_id", "employees", ["org_id"])

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "assigned_courses",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.String(length=64),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("org_id", sa.String(length=64), nullable=True),
        sa.Column(
            "assigned_by_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "status", assignment_status_enum, nullable=False, server_default="ASSIGNED"
        ),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column(
            "assigned_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    # Not unique: duplicate prevention is the advisory guard's job
    op.create_index(
        "ix_assigned_courses_user_course", "assigned_courses", ["user_id", "course_id"]
    )
    op.create_index("ix_assigned_courses_course_id", "assigned_courses", ["course_id"])
    op.create_index("ix_assigned_courses_org_id", "assigned_courses", ["org_id"])


def downgrade() -> None:
    op.drop_index("ix_assigned_courses_org_id", "assigned_courses")
    op.drop_index("ix_assigned_courses_course_id", "assigned_courses")
    op.drop_index("ix_assigned_courses_user_course", "assigned_courses")
    op.drop_table("assigned_courses")
    op.drop_table("courses")
    op.drop_index("ix_employees_org_id", "employees")
    op.drop_table("employees")
    op.drop_index("ix_users_email", "users")
    op.drop_table("users")
    assignment_status_enum.drop(op.get_bind(), checkfirst=True)
    user_status_enum.drop(op.get_bind(), checkfirst=True)
    user_role_enum.drop(op.get_bind(), checkfirst=True)
