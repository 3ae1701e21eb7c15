"""Initial schema: accounts, cashbook, notifications, email outbox and operations tables

Revision ID: 001
Revises:
Create Date: 2024-04-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    """Primary key and timestamps shared by every table."""
    return [
        sa.Column('id', sa.String(length=36), nullable=False, comment='Primary key'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False, comment='Record creation timestamp'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False, comment='Record last update timestamp'),
    ]


def _request_table(name: str) -> None:
    op.create_table(
        name,
        *_base_columns(),
        sa.Column('requested_by', sa.String(length=36), nullable=True, comment='Requesting staff member'),
        sa.Column('branch', sa.String(length=100), nullable=True, comment='Branch the request is raised for'),
        sa.Column('title', sa.String(length=255), nullable=False, comment='Short description'),
        sa.Column('details', sa.Text(), nullable=True, comment='Full request text'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending, approved, rejected or completed'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f(f'ix_{name}_status'), name, ['status'])


def upgrade() -> None:
    """Create the portal schema."""

    # Teams come first: staff.team_id points at them
    op.create_table(
        'teams',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False, comment='Team name'),
        sa.Column('leader_id', sa.String(length=36), nullable=True, comment='Team leader (staff id)'),
        sa.Column('branch', sa.String(length=100), nullable=True, comment='Branch the team works for'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'staff',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False, comment='Display name'),
        sa.Column('employee_id', sa.String(length=50), nullable=True, comment='Employee number'),
        sa.Column('email', sa.String(length=255), nullable=True, comment='Login and notification address'),
        sa.Column('hashed_password', sa.String(length=255), nullable=True, comment='Password hash'),
        sa.Column('role', sa.String(length=50), nullable=False, comment='staff, team_leader, accountant or manager'),
        sa.Column('branch', sa.String(length=100), nullable=True, comment='Home branch'),
        sa.Column('team_id', sa.String(length=36), nullable=True, comment='Team the staff member belongs to'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False, comment='Inactive staff cannot log in or receive fan-out'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_staff_employee_id'), 'staff', ['employee_id'], unique=True)
    op.create_index(op.f('ix_staff_email'), 'staff', ['email'], unique=True)
    op.create_index(op.f('ix_staff_role'), 'staff', ['role'])
    op.create_index(op.f('ix_staff_branch'), 'staff', ['branch'])
    op.create_index('idx_staff_role_active', 'staff', ['role', 'is_active'])

    op.create_table(
        'admins',
        *_base_columns(),
        sa.Column('name', sa.String(length=150), nullable=False, comment='Display name'),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Login and notification address'),
        sa.Column('hashed_password', sa.String(length=255), nullable=True, comment='Password hash'),
        sa.Column('expense_categories', sa.JSON(), nullable=False, comment='Expense heads offered in the cashbook forms'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_admins_email'), 'admins', ['email'], unique=True)

    # Cashbook
    op.create_table(
        'cash_transactions',
        *_base_columns(),
        sa.Column('branch', sa.String(length=100), nullable=False, comment='Branch the movement belongs to'),
        sa.Column('staff_id', sa.String(length=36), nullable=True, comment='Submitting staff member or admin'),
        sa.Column('transaction_date', sa.Date(), nullable=False, comment='Date of the movement'),
        sa.Column('voucher_no', sa.String(length=30), nullable=True, comment='CI/CO voucher number'),
        sa.Column('primary_list', sa.String(length=150), nullable=True, comment='Category'),
        sa.Column('nature_of_expense', sa.String(length=255), nullable=True, comment='Sub-category / description'),
        sa.Column('bill_status', sa.String(length=20), nullable=True, comment='Bill status'),
        sa.Column('cash_in', sa.Numeric(precision=15, scale=2), nullable=False, comment='Money in'),
        sa.Column('cash_out', sa.Numeric(precision=15, scale=2), nullable=False, comment='Money out'),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False, comment='Running balance after this movement'),
        sa.Column('verification_status', sa.String(length=20), nullable=False, comment='pending, approved or rejected'),
        sa.Column('verified_by', sa.String(length=36), nullable=True, comment='Verifier (or creator when auto-approved)'),
        sa.Column('verified_at', sa.DateTime(), nullable=True, comment='When the movement was verified'),
        sa.Column('verification_notes', sa.Text(), nullable=True, comment='Verifier note'),
        sa.Column('attachment_urls', sa.JSON(), nullable=False, comment='Proof attachments'),
        sa.Column('notes', sa.Text(), nullable=True, comment='Free-form notes'),
        sa.CheckConstraint("verification_status IN ('pending', 'approved', 'rejected')", name='valid_verification_status'),
        sa.CheckConstraint(
            "bill_status IS NULL OR bill_status IN ('Paid', 'Pending', 'Cancelled', 'Yet to pay', 'Refund')",
            name='valid_bill_status'
        ),
        sa.CheckConstraint('cash_in >= 0', name='non_negative_cash_in'),
        sa.CheckConstraint('cash_out >= 0', name='non_negative_cash_out'),
        sa.CheckConstraint('NOT (cash_in > 0 AND cash_out > 0)', name='single_direction_amount'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cash_transactions_branch'), 'cash_transactions', ['branch'])
    op.create_index(op.f('ix_cash_transactions_staff_id'), 'cash_transactions', ['staff_id'])
    op.create_index(op.f('ix_cash_transactions_transaction_date'), 'cash_transactions', ['transaction_date'])
    op.create_index(op.f('ix_cash_transactions_voucher_no'), 'cash_transactions', ['voucher_no'])
    op.create_index(op.f('ix_cash_transactions_verification_status'), 'cash_transactions', ['verification_status'])
    op.create_index(op.f('ix_cash_transactions_verified_at'), 'cash_transactions', ['verified_at'])
    op.create_index('idx_cash_transaction_branch_status', 'cash_transactions', ['branch', 'verification_status'])
    op.create_index(
        'idx_cash_transaction_branch_verified', 'cash_transactions', ['branch', 'verified_at', 'transaction_date']
    )

    op.create_table(
        'branch_opening_balances',
        *_base_columns(),
        sa.Column('branch', sa.String(length=100), nullable=False, comment='Branch name'),
        sa.Column('opening_balance', sa.Numeric(precision=15, scale=2), nullable=False, comment='Opening balance'),
        sa.Column('auto_approve', sa.Boolean(), nullable=True, comment='Skip the pending state for new entries; NULL means the portal default'),
        sa.Column('period_start', sa.DateTime(), nullable=False, comment='Start of the balance period'),
        sa.Column('period_end', sa.DateTime(), nullable=True, comment='End of the balance period'),
        sa.Column('balance_history', sa.JSON(), nullable=False, comment='Appended adjustments'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_branch_opening_balances_branch'), 'branch_opening_balances', ['branch'], unique=True)

    # Notifications and outbox
    op.create_table(
        'notifications',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=36), nullable=False, comment='Recipient (staff or admin id)'),
        sa.Column('type', sa.String(length=50), nullable=False, comment='Notification type, e.g. cashbook_entry'),
        sa.Column('title', sa.String(length=255), nullable=False, comment='Short title'),
        sa.Column('message', sa.Text(), nullable=False, comment='Body text'),
        sa.Column('reference_id', sa.String(length=36), nullable=True, comment='Row the notification points at'),
        sa.Column('reference_table', sa.String(length=64), nullable=True, comment='Table of that row'),
        sa.Column('metadata', sa.JSON(), nullable=False, comment='Extra routing data for clients'),
        sa.Column('is_viewed', sa.Boolean(), server_default=sa.false(), nullable=False, comment='Viewed flag'),
        sa.Column('viewed_at', sa.DateTime(), nullable=True, comment='When it was viewed'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'])
    op.create_index(op.f('ix_notifications_type'), 'notifications', ['type'])
    op.create_index('idx_notification_user_viewed', 'notifications', ['user_id', 'is_viewed'])

    op.create_table(
        'email_outbox',
        *_base_columns(),
        sa.Column('recipients', sa.JSON(), nullable=False, comment='Recipient addresses'),
        sa.Column('subject', sa.String(length=255), nullable=False, comment='Subject line'),
        sa.Column('html', sa.Text(), nullable=False, comment='HTML body'),
        sa.Column('category', sa.String(length=50), nullable=False, comment='What produced the message'),
        sa.Column('per_recipient', sa.Boolean(), nullable=False, comment='One message per address'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending, sent or failed'),
        sa.Column('attempts', sa.Integer(), nullable=False, comment='Delivery attempts'),
        sa.Column('last_error', sa.Text(), nullable=True, comment='Error of the last failed attempt'),
        sa.Column('sent_at', sa.DateTime(), nullable=True, comment='When the message was sent'),
        sa.CheckConstraint("status IN ('pending', 'sent', 'failed')", name='valid_email_status'),
        sa.CheckConstraint('attempts >= 0', name='non_negative_attempts'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_email_outbox_category'), 'email_outbox', ['category'])
    op.create_index(op.f('ix_email_outbox_status'), 'email_outbox', ['status'])

    # Operations read by the daily report
    op.create_table(
        'tasks',
        *_base_columns(),
        sa.Column('title', sa.String(length=255), nullable=False, comment='Task title'),
        sa.Column('description', sa.Text(), nullable=True, comment='Task description'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='pending, in_progress, completed or cancelled'),
        sa.Column('priority', sa.String(length=20), nullable=True, comment='Priority'),
        sa.Column('due_date', sa.Date(), nullable=True, comment='Due date'),
        sa.Column('assigned_staff_ids', sa.JSON(), nullable=False, comment='Assigned staff ids'),
        sa.Column('assigned_team_ids', sa.JSON(), nullable=False, comment='Assigned team ids'),
        sa.Column('created_by', sa.String(length=36), nullable=True, comment='Admin who created the task'),
        sa.Column('completed_at', sa.DateTime(), nullable=True, comment='When the task was completed'),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')", name='valid_task_status'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tasks_status'), 'tasks', ['status'])
    op.create_index(op.f('ix_tasks_due_date'), 'tasks', ['due_date'])
    op.create_index('idx_task_status_due', 'tasks', ['status', 'due_date'])

    op.create_table(
        'task_update_proofs',
        *_base_columns(),
        sa.Column('task_id', sa.String(length=36), nullable=False, comment='Task'),
        sa.Column('staff_id', sa.String(length=36), nullable=True, comment='Uploading staff member'),
        sa.Column('image_url', sa.String(length=500), nullable=True, comment='Proof image'),
        sa.Column('notes', sa.Text(), nullable=True, comment='Notes'),
        sa.Column('verification_status', sa.String(length=20), nullable=False, comment='pending, approved or rejected'),
        sa.Column('verified_by', sa.String(length=36), nullable=True, comment='Verifier'),
        sa.Column('verified_at', sa.DateTime(), nullable=True, comment='When the proof was verified'),
        sa.Column('rejection_reason', sa.Text(), nullable=True, comment='Why the proof was rejected'),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_task_update_proofs_task_id'), 'task_update_proofs', ['task_id'])

    op.create_table(
        'attendance',
        *_base_columns(),
        sa.Column('staff_id', sa.String(length=36), nullable=False, comment='Staff member'),
        sa.Column('date', sa.Date(), nullable=False, comment='Day'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='present, absent or leave'),
        sa.Column('check_in', sa.DateTime(), nullable=True, comment='Check-in time'),
        sa.Column('check_out', sa.DateTime(), nullable=True, comment='Check-out time'),
        sa.CheckConstraint("status IN ('present', 'absent', 'leave')", name='valid_attendance_status'),
        sa.ForeignKeyConstraint(['staff_id'], ['staff.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_attendance_staff_id'), 'attendance', ['staff_id'])
    op.create_index(op.f('ix_attendance_date'), 'attendance', ['date'])
    op.create_index('idx_attendance_staff_date', 'attendance', ['staff_id', 'date'], unique=True)

    for name in ('maintenance_requests', 'purchase_requisitions', 'scrap_requests', 'grocery_requests'):
        _request_table(name)


def downgrade() -> None:
    """Drop all tables created in upgrade."""

    # Reverse order of creation to handle dependencies
    for name in ('grocery_requests', 'scrap_requests', 'purchase_requisitions', 'maintenance_requests'):
        op.drop_table(name)
    op.drop_table('attendance')
    op.drop_table('task_update_proofs')
    op.drop_table('tasks')
    op.drop_table('email_outbox')
    op.drop_table('notifications')
    op.drop_table('branch_opening_balances')
    op.drop_table('cash_transactions')
    op.drop_table('admins')
    op.drop_table('staff')
    op.drop_table('teams')
