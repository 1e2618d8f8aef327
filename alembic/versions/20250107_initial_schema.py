"""Initial schema for ride recordings

Revision ID: 001_initial
Revises:
Create Date: 2025-01-07 00:00:00.000000

NOTE: file_url and thumbnail_url are Text (not VARCHAR(255)) to support long CDN/S3 URLs.
The partial unique index allows one active (initialized/recording/paused)
recording per (ride_id, user_id); finished recordings do not count.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_SQL = "status NOT IN ('completed', 'failed', 'deleted')"


def upgrade() -> None:
    """Create recording, consent, access log and settings tables."""
    op.create_table(
        'ride_recordings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('ride_id', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('user_type', sa.String(length=20), nullable=False),
        sa.Column('recording_type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('retention_policy', sa.String(length=20), nullable=False),
        sa.Column('file_url', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('format', sa.String(length=10), nullable=False),
        sa.Column('quality', sa.String(length=20), nullable=False),
        sa.Column('encrypted', sa.Boolean(), nullable=False),
        sa.Column('encryption_key_id', sa.String(length=255), nullable=True),
        sa.Column('upload_id', sa.String(length=255), nullable=True),
        sa.Column('chunks_received', sa.Integer(), nullable=False),
        sa.Column('total_chunks', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('ended_at', sa.DateTime(), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('device_info', sa.Text(), nullable=True),
        sa.Column('start_location', sa.JSON(), nullable=True),
        sa.Column('end_location', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_index(op.f('ix_ride_recordings_id'), 'ride_recordings', ['id'], unique=False)
    op.create_index(op.f('ix_ride_recordings_ride_id'), 'ride_recordings', ['ride_id'], unique=False)
    op.create_index(op.f('ix_ride_recordings_user_id'), 'ride_recordings', ['user_id'], unique=False)
    op.create_index(op.f('ix_ride_recordings_status'), 'ride_recordings', ['status'], unique=False)
    op.create_index(op.f('ix_ride_recordings_expires_at'), 'ride_recordings', ['expires_at'], unique=False)
    op.create_index(
        'uq_ride_recordings_active_session',
        'ride_recordings',
        ['ride_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )

    op.create_table(
        'recording_consents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('ride_id', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('user_type', sa.String(length=20), nullable=False),
        sa.Column('consented', sa.Boolean(), nullable=False),
        sa.Column('consented_at', sa.DateTime(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ride_id', 'user_id', name='uq_recording_consents_ride_user')
    )
    op.create_index(op.f('ix_recording_consents_ride_id'), 'recording_consents', ['ride_id'], unique=False)

    op.create_table(
        'recording_access_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('recording_id', sa.String(length=36), nullable=False),
        sa.Column('accessed_by', sa.String(length=100), nullable=False),
        sa.Column('access_type', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        op.f('ix_recording_access_logs_recording_id'), 'recording_access_logs', ['recording_id'], unique=False
    )
    op.create_index(
        op.f('ix_recording_access_logs_accessed_at'), 'recording_access_logs', ['accessed_at'], unique=False
    )

    op.create_table(
        'recording_settings',
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('recording_enabled', sa.Boolean(), nullable=False),
        sa.Column('default_type', sa.String(length=20), nullable=False),
        sa.Column('default_quality', sa.String(length=20), nullable=False),
        sa.Column('auto_record_night_rides', sa.Boolean(), nullable=False),
        sa.Column('auto_record_sos_rides', sa.Boolean(), nullable=False),
        sa.Column('notify_on_recording', sa.Boolean(), nullable=False),
        sa.Column('allow_driver_recording', sa.Boolean(), nullable=False),
        sa.Column('allow_rider_recording', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('user_id')
    )


def downgrade() -> None:
    """Drop all recording tables."""
    op.drop_table('recording_settings')

    op.drop_index(op.f('ix_recording_access_logs_accessed_at'), table_name='recording_access_logs')
    op.drop_index(op.f('ix_recording_access_logs_recording_id'), table_name='recording_access_logs')
    op.drop_table('recording_access_logs')

    op.drop_index(op.f('ix_recording_consents_ride_id'), table_name='recording_consents')
    op.drop_table('recording_consents')

    op.drop_index('uq_ride_recordings_active_session', table_name='ride_recordings')
    op.drop_index(op.f('ix_ride_recordings_expires_at'), table_name='ride_recordings')
    op.drop_index(op.f('ix_ride_recordings_status'), table_name='ride_recordings')
    op.drop_index(op.f('ix_ride_recordings_user_id'), table_name='ride_recordings')
    op.drop_index(op.f('ix_ride_recordings_ride_id'), table_name='ride_recordings')
    op.drop_index(op.f('ix_ride_recordings_id'), table_name='ride_recordings')
    op.drop_table('ride_recordings')
