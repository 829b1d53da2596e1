"""Create roll-call, check-in record and buzzer round tables.

Revision ID: 20261019b1c2
Revises: 20261019a1b2
Create Date: 2026-10-19 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019b1c2"
down_revision = "20261019a1b2"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rollcalls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("target_lat", sa.Float(), nullable=True),
        sa.Column("target_lng", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_rollcalls_course_id", "rollcalls", ["course_id"])
    op.create_index("ix_rollcalls_course_end", "rollcalls", ["course_id", "end_time"])
    op.create_index("ix_rollcalls_course_start", "rollcalls", ["course_id", "start_time"])

    op.create_table(
        "rollcall_records",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("rollcall_id", sa.Integer(), sa.ForeignKey("rollcalls.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("gps_lat", sa.Float(), nullable=True),
        sa.Column("gps_lng", sa.Float(), nullable=True),
        sa.UniqueConstraint("rollcall_id", "student_id", name="uq_rollcall_student"),
    )
    op.create_index("ix_rollcall_records_rollcall_id", "rollcall_records", ["rollcall_id"])
    op.create_index("ix_rollcall_records_student_id", "rollcall_records", ["student_id"])
    op.create_index("ix_rollcall_records_student_status", "rollcall_records", ["student_id", "status"])

    op.create_table(
        "buzzer_rounds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("winner_student_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_buzzer_rounds_course_id", "buzzer_rounds", ["course_id"])
    op.create_index("ix_buzzer_rounds_course_end", "buzzer_rounds", ["course_id", "end_time"])
    op.create_index("ix_buzzer_rounds_course_start", "buzzer_rounds", ["course_id", "start_time"])


def downgrade() -> None:
    op.drop_index("ix_buzzer_rounds_course_start", table_name="buzzer_rounds")
    op.drop_index("ix_buzzer_rounds_course_end", table_name="buzzer_rounds")
    op.drop_index("ix_buzzer_rounds_course_id", table_name="buzzer_rounds")
    op.drop_table("buzzer_rounds")
    op.drop_index("ix_rollcall_records_student_status", table_name="rollcall_records")
    op.drop_index("ix_rollcall_records_student_id", table_name="rollcall_records")
    op.drop_index("ix_rollcall_records_rollcall_id", table_name="rollcall_records")
    op.drop_table("rollcall_records")
    op.drop_index("ix_rollcalls_course_start", table_name="rollcalls")
    op.drop_index("ix_rollcalls_course_end", table_name="rollcalls")
    op.drop_index("ix_rollcalls_course_id", table_name="rollcalls")
    op.drop_table("rollcalls")
