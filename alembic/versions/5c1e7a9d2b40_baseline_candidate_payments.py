"""baseline_candidate_payments

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-19 09:14:03.211842

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e7a9d2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Create users, candidate plans, orders, application limits and applications."""
    from sqlalchemy import inspect

    bind = op.get_bind()
    existing = set(inspect(bind).get_table_names())

    if 'users' not in existing:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('role', sa.String(), nullable=False, server_default='candidate'),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_stripe_customer_id'), 'users', ['stripe_customer_id'], unique=False)

    op.create_table(
        'candidate_plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('daily_application_limit', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('billing_mode', sa.String(), nullable=False, server_default='external'),
        sa.Column('skip_external_billing', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stripe_product_id', sa.String(), nullable=True),
        sa.Column('stripe_price_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_candidate_plans_id'), 'candidate_plans', ['id'], unique=False)
    op.create_index(op.f('ix_candidate_plans_status'), 'candidate_plans', ['status'], unique=False)
    op.create_index('idx_candidate_plans_status_created', 'candidate_plans', ['status', 'created_at'], unique=False)

    op.create_table(
        'candidate_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=True),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['plan_id'], ['candidate_plans.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_candidate_orders_id'), 'candidate_orders', ['id'], unique=False)
    op.create_index(op.f('ix_candidate_orders_user_id'), 'candidate_orders', ['user_id'], unique=False)
    op.create_index(op.f('ix_candidate_orders_plan_id'), 'candidate_orders', ['plan_id'], unique=False)
    op.create_index(op.f('ix_candidate_orders_status'), 'candidate_orders', ['status'], unique=False)
    op.create_index(
        op.f('ix_candidate_orders_stripe_payment_intent_id'),
        'candidate_orders', ['stripe_payment_intent_id'], unique=True
    )
    op.create_index(
        'idx_candidate_orders_user_plan_status',
        'candidate_orders', ['user_id', 'plan_id', 'status'], unique=False
    )

    op.create_table(
        'application_limits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('daily_limit', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('applications_used_today', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_reset_date', sa.Date(), nullable=False),
        sa.Column('has_paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_application_limits_id'), 'application_limits', ['id'], unique=False)
    op.create_index(op.f('ix_application_limits_user_id'), 'application_limits', ['user_id'], unique=True)

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='applied'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_applications_user_id'), 'applications', ['user_id'], unique=False)
    op.create_index(op.f('ix_applications_job_id'), 'applications', ['job_id'], unique=False)


def downgrade() -> None:
    """Drop candidate payment tables; users belong to the user service and stay."""
    op.drop_index(op.f('ix_applications_job_id'), table_name='applications')
    op.drop_index(op.f('ix_applications_user_id'), table_name='applications')
    op.drop_table('applications')
    op.drop_index(op.f('ix_application_limits_user_id'), table_name='application_limits')
    op.drop_index(op.f('ix_application_limits_id'), table_name='application_limits')
    op.drop_table('application_limits')
    op.drop_index('idx_candidate_orders_user_plan_status', table_name='candidate_orders')
    op.drop_index(op.f('ix_candidate_orders_stripe_payment_intent_id'), table_name='candidate_orders')
    op.drop_index(op.f('ix_candidate_orders_status'), table_name='candidate_orders')
    op.drop_index(op.f('ix_candidate_orders_plan_id'), table_name='candidate_orders')
    op.drop_index(op.f('ix_candidate_orders_user_id'), table_name='candidate_orders')
    op.drop_index(op.f('ix_candidate_orders_id'), table_name='candidate_orders')
    op.drop_table('candidate_orders')
    op.drop_index('idx_candidate_plans_status_created', table_name='candidate_plans')
    op.drop_index(op.f('ix_candidate_plans_status'), table_name='candidate_plans')
    op.drop_index(op.f('ix_candidate_plans_id'), table_name='candidate_plans')
    op.drop_table('candidate_plans')
