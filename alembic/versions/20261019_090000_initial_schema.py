"""initial schema: jobs, publish records, credential artifacts, context sessions

Revision ID: 4f1c2b7d9e10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c2b7d9e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'jobs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('company', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('job_type', sa.String(), nullable=True),
        sa.Column('experience', sa.String(), nullable=True),
        sa.Column('salary_range', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requirements', sa.JSON(), nullable=False),
        sa.Column('responsibilities', sa.JSON(), nullable=False),
        sa.Column('perks', sa.Text(), nullable=True),
        sa.Column('destinations', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_jobs_active_created', 'jobs', ['is_active', 'created_at'])

    op.create_table(
        'publish_records',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('job_id', sa.String(), nullable=False),
        sa.Column('destination', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='PENDING'),
        sa.Column('post_url', sa.String(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_publish_records_job_id', 'publish_records', ['job_id'])
    op.create_index('ix_publish_records_job_status', 'publish_records', ['job_id', 'status'])

    op.create_table(
        'credential_artifacts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_key', sa.String(), nullable=False),
        sa.Column('domain', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('path', sa.String(), nullable=False, server_default='/'),
        sa.Column('expires', sa.DateTime(), nullable=True),
        sa.Column('http_only', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('secure', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('same_site', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_key', 'domain', 'name', 'path', name='uq_credential_artifact'),
    )
    op.create_index(
        'ix_credential_artifacts_account_key', 'credential_artifacts', ['account_key']
    )

    op.create_table(
        'context_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_token', sa.String(), nullable=False),
        sa.Column('publish_record_id', sa.String(), nullable=True),
        sa.Column('context_data', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('external_user_id', sa.String(), nullable=True),
        sa.Column('conversation_started', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('last_accessed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['publish_record_id'], ['publish_records.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_token'),
    )
    op.create_index(
        'ix_context_sessions_publish_record_id', 'context_sessions', ['publish_record_id']
    )
    op.create_index(
        'ix_context_sessions_user_lookup',
        'context_sessions',
        ['external_user_id', 'is_active', 'expires_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_context_sessions_user_lookup', table_name='context_sessions')
    op.drop_index('ix_context_sessions_publish_record_id', table_name='context_sessions')
    op.drop_table('context_sessions')
    op.drop_index('ix_credential_artifacts_account_key', table_name='credential_artifacts')
    op.drop_table('credential_artifacts')
    op.drop_index('ix_publish_records_job_status', table_name='publish_records')
    op.drop_index('ix_publish_records_job_id', table_name='publish_records')
    op.drop_table('publish_records')
    op.drop_index('ix_jobs_active_created', table_name='jobs')
    op.drop_table('jobs')
