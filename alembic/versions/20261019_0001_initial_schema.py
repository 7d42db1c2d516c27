"""Create users, rooms, bookings and payments

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '20261019_0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

def _has_table(bind, name: str) -> bool:
    try:
        insp = inspect(bind)
        return insp.has_table(name)
    except Exception:
        return False

def upgrade() -> None:
    bind = op.get_bind()

    # Enum types store member names, matching the ORM defaults
    roomtype_enum = sa.Enum('SINGLE', 'DOUBLE', 'SUITE', 'DELUXE', name='roomtype')
    availabilitystatus_enum = sa.Enum('AVAILABLE', 'OCCUPIED', 'MAINTENANCE', name='availabilitystatus')
    bookingstatus_enum = sa.Enum('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED', name='bookingstatus')
    paymentstatus_enum = sa.Enum('PENDING', 'COMPLETED', 'FAILED', 'REFUNDED', name='paymentstatus')
    paymentmethod_enum = sa.Enum('CREDIT_CARD', 'DEBIT_CARD', 'BANK_TRANSFER', 'CASH', name='paymentmethod')

    if not _has_table(bind, 'users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('hashed_password', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=20), server_default='customer', nullable=False),
            sa.Column('phone', sa.String(length=20), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    if not _has_table(bind, 'rooms'):
        op.create_table('rooms',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('room_number', sa.String(length=20), nullable=False),
            sa.Column('room_type', roomtype_enum, nullable=False),
            sa.Column('price_per_night', sa.Numeric(10, 2), nullable=False),
            sa.Column('capacity', sa.Integer(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('amenities', sa.JSON(), nullable=False),
            sa.Column('photos', sa.JSON(), nullable=False),
            sa.Column('availability_status', availabilitystatus_enum, nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_rooms_room_number'), 'rooms', ['room_number'], unique=True)
        op.create_index(op.f('ix_rooms_room_type'), 'rooms', ['room_type'], unique=False)
        op.create_index(op.f('ix_rooms_availability_status'), 'rooms', ['availability_status'], unique=False)

    if not _has_table(bind, 'bookings'):
        op.create_table('bookings',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('room_id', sa.Integer(), nullable=False),
            sa.Column('check_in_date', sa.Date(), nullable=False),
            sa.Column('check_out_date', sa.Date(), nullable=False),
            sa.Column('guest_count', sa.Integer(), nullable=False),
            sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
            sa.Column('status', bookingstatus_enum, nullable=False),
            sa.Column('special_requests', sa.Text(), nullable=True),
            sa.Column('cancellation_reason', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.CheckConstraint('check_out_date > check_in_date', name='ck_bookings_dates_ordered'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['room_id'], ['rooms.id']),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_bookings_id'), 'bookings', ['id'], unique=False)
        op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
        op.create_index(op.f('ix_bookings_room_id'), 'bookings', ['room_id'], unique=False)
        op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
        # composite index helps overlap searches
        op.create_index('ix_bookings_room_dates', 'bookings', ['room_id', 'check_in_date', 'check_out_date'], unique=False)

    if not _has_table(bind, 'payments'):
        op.create_table('payments',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('booking_id', sa.Integer(), nullable=False),
            sa.Column('amount', sa.Numeric(10, 2), nullable=False),
            sa.Column('currency', sa.String(length=8), server_default='USD', nullable=False),
            sa.Column('method', paymentmethod_enum, nullable=False),
            sa.Column('transaction_id', sa.String(length=64), nullable=True),
            sa.Column('status', paymentstatus_enum, nullable=False),
            sa.Column('refund_reason', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('booking_id'),
            sa.UniqueConstraint('transaction_id')
        )
        op.create_index(op.f('ix_payments_id'), 'payments', ['id'], unique=False)


def downgrade() -> None:
    bind = op.get_bind()
    op.drop_table('payments')
    op.drop_table('bookings')
    op.drop_table('rooms')
    op.drop_table('users')
    if bind.dialect.name == 'postgresql':
        for name in ('paymentmethod', 'paymentstatus', 'bookingstatus', 'availabilitystatus', 'roomtype'):
            sa.Enum(name=name).drop(bind, checkfirst=True)
