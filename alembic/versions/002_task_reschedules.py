"""Add task reschedule requests

Revision ID: 002
Revises: 001
Create Date: 2024-06-10 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the task_reschedules table."""
    op.create_table(
        'task_reschedules',
        sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False, comment='Record creation timestamp'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False, comment='Record last update timestamp'),
        sa.Column('task_id', sa.String(length=36), nullable=False, comment='Task to reschedule'),
        sa.Column('staff_id', sa.String(length=36), nullable=True, comment='Requesting staff member'),
        sa.Column('admin_id', sa.String(length=36), nullable=True, comment='Admin who decides the request'),
        sa.Column('reason', sa.Text(), nullable=True, comment='Why the new date is needed'),
        sa.Column('original_due_date', sa.Date(), nullable=True, comment='Due date when the request was made'),
        sa.Column('requested_new_date', sa.Date(), nullable=False, comment='Proposed due date'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending, approved or rejected'),
        sa.Column('admin_response', sa.Text(), nullable=True, comment='Admin note on the decision'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='valid_reschedule_status'),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_task_reschedules_task_id'), 'task_reschedules', ['task_id'])
    op.create_index(op.f('ix_task_reschedules_status'), 'task_reschedules', ['status'])


def downgrade() -> None:
    """Drop the task_reschedules table."""
    op.drop_index(op.f('ix_task_reschedules_status'), table_name='task_reschedules')
    op.drop_index(op.f('ix_task_reschedules_task_id'), table_name='task_reschedules')
    op.drop_table('task_reschedules')
