"""Create booking core tables: tenants, branches, chairs, services, appointments

Revision ID: 3c9e1a7b5d20
Revises:
Create Date: 2025-11-10 10:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c9e1a7b5d20'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create tenants table
    op.create_table('tenants',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('shop_name', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Create branches table (schedule configuration lives here)
    op.create_table('branches',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('work_days', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('start_time', sa.String(length=8), nullable=False),
        sa.Column('end_time', sa.String(length=8), nullable=False),
        sa.Column('lunch_start', sa.String(length=8), nullable=True),
        sa.Column('lunch_end', sa.String(length=8), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            '(lunch_start IS NULL) = (lunch_end IS NULL)',
            name='check_lunch_window_complete',
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_branches_tenant_id', 'branches', ['tenant_id'], unique=False)

    # Create chairs table
    op.create_table('chairs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('branch_id', sa.UUID(), nullable=False),
        sa.Column('chair_number', sa.Integer(), nullable=False),
        sa.Column('commission', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_chairs_branch_id', 'chairs', ['branch_id'], unique=False)

    # Create services table
    op.create_table('services',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_services_tenant_id', 'services', ['tenant_id'], unique=False)

    # Create appointments table
    op.create_table('appointments',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('branch_id', sa.UUID(), nullable=False),
        sa.Column('chair_id', sa.UUID(), nullable=False),
        sa.Column('service_id', sa.UUID(), nullable=False),
        sa.Column('client_name', sa.String(length=200), nullable=False),
        sa.Column('client_phone', sa.String(length=30), nullable=False),
        sa.Column('appointment_date', sa.DATE(), nullable=False),
        sa.Column('appointment_time', sa.String(length=5), nullable=False),
        sa.Column('status', sa.Enum('scheduled', 'completed', 'no-show', name='appointment_status'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['chair_id'], ['chairs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create indexes for appointments table
    op.create_index('ix_appointments_tenant_id', 'appointments', ['tenant_id'], unique=False)
    op.create_index('ix_appointments_branch_id', 'appointments', ['branch_id'], unique=False)
    op.create_index('ix_appointments_client_phone', 'appointments', ['client_phone'], unique=False)
    op.create_index('ix_appointments_status', 'appointments', ['status'], unique=False)
    op.create_index(
        'idx_appointments_chair_date',
        'appointments',
        ['chair_id', 'appointment_date'],
        unique=False
    )

    # Backstop for the booking guard: one scheduled appointment per chair/date/time
    op.create_index(
        'uq_appointments_scheduled_slot',
        'appointments',
        ['chair_id', 'appointment_date', 'appointment_time'],
        unique=True,
        postgresql_where=sa.text("status = 'scheduled'")
    )


def downgrade() -> None:
    op.drop_index('uq_appointments_scheduled_slot', table_name='appointments')
    op.drop_index('idx_appointments_chair_date', table_name='appointments')
    op.drop_index('ix_appointments_status', table_name='appointments')
    op.drop_index('ix_appointments_client_phone', table_name='appointments')
    op.drop_index('ix_appointments_branch_id', table_name='appointments')
    op.drop_index('ix_appointments_tenant_id', table_name='appointments')
    op.drop_table('appointments')
    op.execute('DROP TYPE IF EXISTS appointment_status')

    op.drop_index('ix_services_tenant_id', table_name='services')
    op.drop_table('services')

    op.drop_index('ix_chairs_branch_id', table_name='chairs')
    op.drop_table('chairs')

    op.drop_index('ix_branches_tenant_id', table_name='branches')
    op.drop_table('branches')

    op.drop_table('tenants')
