"""initial_results_schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration creates the results store:
- students: one row per student number, optional display name
- test_results: one canonical result per (student, test)
- test_aggregates: precomputed statistics per test, replaced on recomputation
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create students, test_results and test_aggregates."""
    # 1. Create students table
    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_number', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_students_student_number', 'students', ['student_number'], unique=True)

    # 2. Create test_results table
    op.create_table(
        'test_results',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('student_id', sa.BigInteger(), nullable=False),
        sa.Column('test_id', sa.String(length=255), nullable=False),
        sa.Column('marks_available', sa.Integer(), nullable=False),
        sa.Column('marks_obtained', sa.Integer(), nullable=False),
        sa.Column('scanned_on', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['student_id'], ['students.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'test_id', name='uq_test_results_student_test'),
    )
    op.create_index('ix_test_results_student_id', 'test_results', ['student_id'])
    op.create_index('ix_test_results_test_id', 'test_results', ['test_id'])
    # Leaderboard reads: results of one test ordered by marks
    op.create_index('idx_test_results_test_marks', 'test_results', ['test_id', 'marks_obtained'])

    # 3. Create test_aggregates table
    op.create_table(
        'test_aggregates',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('test_id', sa.String(length=255), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_test_aggregates_test_id', 'test_aggregates', ['test_id'], unique=True)
    op.create_index('idx_test_aggregates_updated_at', 'test_aggregates', ['updated_at'])


def downgrade() -> None:
    """Drop the results store."""
    op.drop_index('idx_test_aggregates_updated_at', table_name='test_aggregates')
    op.drop_index('ix_test_aggregates_test_id', table_name='test_aggregates')
    op.drop_table('test_aggregates')

    op.drop_index('idx_test_results_test_marks', table_name='test_results')
    op.drop_index('ix_test_results_test_id', table_name='test_results')
    op.drop_index('ix_test_results_student_id', table_name='test_results')
    op.drop_table('test_results')

    op.drop_index('ix_students_student_number', table_name='students')
    op.drop_table('students')
