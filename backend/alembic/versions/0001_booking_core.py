"""booking core: catalog, working hours, slot ledger, reservations, profiles

Revision ID: 0001_booking_core
Revises:
Create Date: 2026-10-19 10:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = '0001_booking_core'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'services',
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('duration_min', sa.Integer(), nullable=False),
        sa.Column('price', sa.Float(), server_default=sa.text('0'), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('category', sa.Text()),
        sa.Column('is_active', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'specialists',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('display_name', sa.Text()),
        sa.Column('is_active', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_table(
        'specialist_services',
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('specialist_id', sa.Integer(), sa.ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.UniqueConstraint('service_id', 'specialist_id'),
    )
    op.create_table(
        'working_hours',
        sa.Column('specialist_id', sa.Integer(), sa.ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('is_available', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='working_hours_time_valid'),
    )
    op.create_index('ix_working_hours_specialist_date', 'working_hours', ['specialist_id', 'date'])

    op.create_table(
        'slot_ledger',
        sa.Column('specialist_id', sa.Integer(), sa.ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column(
            'state',
            sa.Enum('open', 'held', 'occupied', name='ledger_state', native_enum=False),
            nullable=False,
        ),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reservation_id', sa.Integer()),
        sa.Column('hold_token', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('end_time > start_time', name='slot_time_valid'),
    )
    op.create_index('ix_slot_ledger_specialist_day', 'slot_ledger', ['specialist_id', 'work_date', 'state'])

    op.create_table(
        'ledger_day_locks',
        sa.Column('specialist_id', sa.Integer(), sa.ForeignKey('specialists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint('specialist_id', 'work_date'),
    )

    op.create_table(
        'reservations',
        sa.Column('service_id', sa.Integer(), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('specialist_id', sa.Integer(), sa.ForeignKey('specialists.id'), nullable=False),
        sa.Column('client_id', sa.Text(), nullable=False),
        sa.Column('ledger_entry_id', sa.Integer(), sa.ForeignKey('slot_ledger.id'), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('pending', 'confirmed', 'cancelled', name='reservation_status', native_enum=False),
            nullable=False,
        ),
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contact_name', sa.Text()),
        sa.Column('contact_phone', sa.Text()),
        sa.Column('contact_email', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('cancel_reason', sa.Text()),
        sa.Column('cancelled_by', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_reservations_client', 'reservations', ['client_id'])

    op.create_table(
        'profiles',
        sa.Column('client_id', sa.Text(), primary_key=True),
        sa.Column('full_name', sa.Text()),
        sa.Column('phone', sa.Text()),
        sa.Column('email', sa.Text()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
    )


def downgrade():
    op.drop_table('profiles')
    op.drop_index('ix_reservations_client', table_name='reservations')
    op.drop_table('reservations')
    op.drop_table('ledger_day_locks')
    op.drop_index('ix_slot_ledger_specialist_day', table_name='slot_ledger')
    op.drop_table('slot_ledger')
    op.drop_index('ix_working_hours_specialist_date', table_name='working_hours')
    op.drop_table('working_hours')
    op.drop_table('specialist_services')
    op.drop_table('specialists')
    op.drop_table('services')
