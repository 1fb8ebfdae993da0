"""Initial upload schema: templates, fields, links, sessions, files, access log

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

FIELD_TYPES = ('text', 'email', 'phone', 'date', 'select', 'multiselect', 'file',
               'textarea', 'checkbox', 'radio', 'number')
LINK_STATUSES = ('active', 'expired', 'completed', 'disabled')
SESSION_STATUSES = ('in_progress', 'completed', 'failed')
ACCESS_ACTIONS = ('view', 'download', 'delete', 'share', 'access_denied')


def upgrade() -> None:
    op.create_table(
        'form_templates',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_form_templates_is_active'), 'form_templates', ['is_active'])
    op.create_index(op.f('ix_form_templates_created_by'), 'form_templates', ['created_by'])

    op.create_table(
        'form_fields',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('template_id', sa.String(length=36),
                  sa.ForeignKey('form_templates.id', ondelete='CASCADE'), nullable=False),
        sa.Column('field_name', sa.String(length=255), nullable=False),
        sa.Column('field_type', sa.Enum(*FIELD_TYPES, name='field_type'), nullable=False),
        sa.Column('field_label', sa.String(length=255), nullable=False),
        sa.Column('field_options', sa.JSON(), nullable=True),
        sa.Column('validation_rules', sa.JSON(), nullable=True),
        sa.Column('document_data_type', sa.String(length=64), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_form_fields_template_id'), 'form_fields', ['template_id'])

    op.create_table(
        'upload_links',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('job_number', sa.String(length=100), nullable=False),
        sa.Column('form_template_id', sa.String(length=36),
                  sa.ForeignKey('form_templates.id'), nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum(*LINK_STATUSES, name='link_status'), nullable=False,
                  server_default='active'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_upload_links_job_number'), 'upload_links', ['job_number'], unique=True)
    op.create_index(op.f('ix_upload_links_form_template_id'), 'upload_links', ['form_template_id'])
    op.create_index(op.f('ix_upload_links_created_by'), 'upload_links', ['created_by'])
    op.create_index(op.f('ix_upload_links_status'), 'upload_links', ['status'])
    op.create_index(op.f('ix_upload_links_expires_at'), 'upload_links', ['expires_at'])

    op.create_table(
        'upload_sessions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('upload_link_id', sa.String(length=36),
                  sa.ForeignKey('upload_links.id', ondelete='CASCADE'), nullable=False),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('status', sa.Enum(*SESSION_STATUSES, name='session_status'), nullable=False,
                  server_default='in_progress'),
        sa.Column('client_ip', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
    )
    op.create_index(op.f('ix_upload_sessions_upload_link_id'), 'upload_sessions', ['upload_link_id'])
    op.create_index(op.f('ix_upload_sessions_status'), 'upload_sessions', ['status'])

    op.create_table(
        'uploaded_files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('session_id', sa.String(length=36),
                  sa.ForeignKey('upload_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('field_name', sa.String(length=255), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=False),
        sa.Column('stored_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=1024), nullable=False),
        sa.Column('mime_type', sa.String(length=255), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=64), nullable=True),
        sa.Column('checksum', sa.String(length=64), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_uploaded_files_session_id'), 'uploaded_files', ['session_id'])
    op.create_index(op.f('ix_uploaded_files_document_type'), 'uploaded_files', ['document_type'])

    # file_id is not a foreign key: entries outlive deleted files
    op.create_table(
        'document_access_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('file_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('action', sa.Enum(*ACCESS_ACTIONS, name='access_action'), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_document_access_log_file_id'), 'document_access_log', ['file_id'])
    op.create_index(op.f('ix_document_access_log_user_id'), 'document_access_log', ['user_id'])
    op.create_index(op.f('ix_document_access_log_action'), 'document_access_log', ['action'])
    op.create_index(op.f('ix_document_access_log_accessed_at'), 'document_access_log', ['accessed_at'])


def downgrade() -> None:
    op.drop_table('document_access_log')
    op.drop_table('uploaded_files')
    op.drop_table('upload_sessions')
    op.drop_table('upload_links')
    op.drop_table('form_fields')
    op.drop_table('form_templates')
    for enum_name in ('access_action', 'session_status', 'link_status', 'field_type'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
