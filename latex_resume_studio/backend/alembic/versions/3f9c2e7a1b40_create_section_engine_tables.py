"""create resume version, section and ai job tables

Revision ID: 3f9c2e7a1b40
Revises:
Create Date: 2026-10-16 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c2e7a1b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'resume_versions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('parent_version_id', sa.Integer(), sa.ForeignKey('resume_versions.id'), nullable=True),
        sa.Column('type', sa.String(), nullable=False, server_default='BASE'),
        sa.Column('status', sa.String(), nullable=False, server_default='DRAFT'),
        sa.Column('latex_content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Section snapshots, one set per version
    op.create_table(
        'resume_sections',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('version_id', sa.Integer(), sa.ForeignKey('resume_versions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('section_type', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('version_id', 'section_type', name='uq_section_version_type'),
        sa.UniqueConstraint('version_id', 'order_index', name='uq_section_version_order'),
    )

    op.create_table(
        'job_descriptions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('raw_text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'ai_jobs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('base_version_id', sa.Integer(), sa.ForeignKey('resume_versions.id'), nullable=False, index=True),
        sa.Column('job_description_id', sa.Integer(), sa.ForeignKey('job_descriptions.id'), nullable=True),
        sa.Column('parent_job_id', sa.Integer(), sa.ForeignKey('ai_jobs.id'), nullable=True),
        sa.Column('new_version_id', sa.Integer(), sa.ForeignKey('resume_versions.id'), nullable=True),
        sa.Column('mode', sa.String(), nullable=False, server_default='BALANCED'),
        sa.Column('status', sa.String(), nullable=False, server_default='QUEUED'),
        sa.Column('user_instructions', sa.Text(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'proposed_versions',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('ai_job_id', sa.Integer(), sa.ForeignKey('ai_jobs.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('proposed_latex_content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'section_proposals',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('ai_job_id', sa.Integer(), sa.ForeignKey('ai_jobs.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('section_type', sa.String(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('before', sa.Text(), nullable=False),
        sa.Column('after', sa.Text(), nullable=False),
        sa.Column('change_type', sa.String(), nullable=False),
        sa.UniqueConstraint('ai_job_id', 'section_type', name='uq_proposal_job_type'),
    )


def downgrade() -> None:
    op.drop_table('section_proposals')
    op.drop_table('proposed_versions')
    op.drop_table('ai_jobs')
    op.drop_table('job_descriptions')
    op.drop_table('resume_sections')
    op.drop_table('resume_versions')
