"""create itinerary schema

Revision ID: c41e7a9d2b60
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c41e7a9d2b60'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('settings',
    sa.Column('key', sa.Text(), nullable=False),
    sa.Column('value', sa.Text(), nullable=False),
    sa.PrimaryKeyConstraint('key')
    )
    op.create_table('plans',
    sa.Column('id', sa.Text(), nullable=False),
    sa.Column('owner_id', sa.Text(), nullable=False),
    sa.Column('name', sa.Text(), nullable=False),
    sa.Column('destination_text', sa.Text(), nullable=False),
    sa.Column('date_start', sa.Date(), nullable=False),
    sa.Column('date_end', sa.Date(), nullable=False),
    sa.Column('people_count', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('note_text', sa.Text(), nullable=False, server_default=''),
    sa.Column('created_at', sa.Text(), nullable=False),
    sa.Column('updated_at', sa.Text(), nullable=False),
    sa.CheckConstraint('length(name) BETWEEN 1 AND 140', name='ck_plans_name_length'),
    sa.CheckConstraint('length(destination_text) BETWEEN 1 AND 160', name='ck_plans_destination_length'),
    sa.CheckConstraint('date_end >= date_start', name='ck_plans_date_range'),
    sa.CheckConstraint('people_count BETWEEN 1 AND 20', name='ck_plans_people_count'),
    sa.CheckConstraint('length(note_text) <= 20000', name='ck_plans_note_length'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_plans_owner_created', 'plans', ['owner_id', 'created_at'], unique=False)
    op.create_table('plan_days',
    sa.Column('id', sa.Text(), nullable=False),
    sa.Column('plan_id', sa.Text(), nullable=False),
    sa.Column('day_index', sa.Integer(), nullable=False),
    sa.Column('day_date', sa.Date(), nullable=False),
    sa.Column('created_at', sa.Text(), nullable=False),
    sa.Column('updated_at', sa.Text(), nullable=False),
    sa.CheckConstraint('day_index BETWEEN 1 AND 30', name='ck_plan_days_day_index'),
    sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('plan_id', 'day_index', name='uq_plan_days_plan_day_index'),
    sa.UniqueConstraint('plan_id', 'day_date', name='uq_plan_days_plan_day_date')
    )
    op.create_index(op.f('ix_plan_days_plan_id'), 'plan_days', ['plan_id'], unique=False)
    op.create_table('plan_activities',
    sa.Column('id', sa.Text(), nullable=False),
    sa.Column('day_id', sa.Text(), nullable=False),
    sa.Column('title', sa.Text(), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
    sa.Column('transport_minutes', sa.Integer(), nullable=True),
    sa.Column('position', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.Text(), nullable=False),
    sa.Column('updated_at', sa.Text(), nullable=False),
    sa.CheckConstraint('length(title) BETWEEN 1 AND 200', name='ck_plan_activities_title_length'),
    sa.CheckConstraint('description IS NULL OR length(description) <= 500', name='ck_plan_activities_description_length'),
    sa.CheckConstraint('duration_minutes BETWEEN 5 AND 720', name='ck_plan_activities_duration_minutes'),
    sa.CheckConstraint('transport_minutes IS NULL OR transport_minutes BETWEEN 0 AND 600', name='ck_plan_activities_transport_minutes'),
    sa.CheckConstraint('position BETWEEN 1 AND 50', name='ck_plan_activities_position'),
    sa.ForeignKeyConstraint(['day_id'], ['plan_days.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    # Not unique: range shifts renumber rows with set-based UPDATEs.
    op.create_index('ix_plan_activities_day_position', 'plan_activities', ['day_id', 'position'], unique=False)
    op.create_table('plan_events',
    sa.Column('id', sa.Text(), nullable=False),
    sa.Column('user_id', sa.Text(), nullable=False),
    sa.Column('plan_id', sa.Text(), nullable=True),
    sa.Column('event_type', sa.Enum('plan_created', 'plan_edited', 'plan_deleted', name='plan_event_type', native_enum=False, create_constraint=True), nullable=False),
    sa.Column('destination_text', sa.Text(), nullable=True),
    sa.Column('trip_length_days', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.Text(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_plan_events_user_created', 'plan_events', ['user_id', 'created_at'], unique=False)
    op.create_index('ix_plan_events_type_created', 'plan_events', ['event_type', 'created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_plan_events_type_created', table_name='plan_events')
    op.drop_index('ix_plan_events_user_created', table_name='plan_events')
    op.drop_table('plan_events')
    op.drop_index('ix_plan_activities_day_position', table_name='plan_activities')
    op.drop_table('plan_activities')
    op.drop_index(op.f('ix_plan_days_plan_id'), table_name='plan_days')
    op.drop_table('plan_days')
    op.drop_index('ix_plans_owner_created', table_name='plans')
    op.drop_table('plans')
    op.drop_table('settings')
