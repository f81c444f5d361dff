"""registration ledger and event capacity counters

Revision ID: 4c1e9a27b3d0
Revises: 
Create Date: 2025-10-20 10:12:31.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a27b3d0'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE = "status IN ('registered', 'waitlisted')"


def upgrade():
    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('registration_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('waitlist_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('allow_registration', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('registration_deadline', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('max_participants >= 0', name='ck_events_max_participants'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_events_date', 'events', ['date'], unique=False)

    op.create_table(
        'registrations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('registered', 'waitlisted', 'cancelled',
                                    name='registration_status', native_enum=False,
                                    create_constraint=True, length=20), nullable=False),
        sa.Column('registered_at', sa.DateTime(), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_registrations_event_id', 'registrations', ['event_id'], unique=False)
    op.create_index('ix_registrations_user_id', 'registrations', ['user_id'], unique=False)
    op.create_index('idx_registrations_event_status', 'registrations', ['event_id', 'status'], unique=False)
    op.create_index('idx_registrations_user_status', 'registrations', ['user_id', 'status'], unique=False)
    # one active registration per user and event; cancelled rows are history
    op.create_index(
        'uq_registrations_active', 'registrations', ['user_id', 'event_id'], unique=True,
        postgresql_where=sa.text(ACTIVE), sqlite_where=sa.text(ACTIVE)
    )


def downgrade():
    op.drop_index('uq_registrations_active', table_name='registrations')
    op.drop_index('idx_registrations_user_status', table_name='registrations')
    op.drop_index('idx_registrations_event_status', table_name='registrations')
    op.drop_index('ix_registrations_user_id', table_name='registrations')
    op.drop_index('ix_registrations_event_id', table_name='registrations')
    op.drop_table('registrations')
    op.drop_index('ix_events_date', table_name='events')
    op.drop_table('events')
