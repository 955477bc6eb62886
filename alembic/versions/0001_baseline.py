"""Baseline migration - clinics, users, insurers, cases, documents and audit

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates the full ClinicRoute schema.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIMESTAMP = sa.DateTime(timezone=True)
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Tenants & identity
    # ==========================================================================
    op.create_table(
        'clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('sla_default_days', sa.Integer(), nullable=True),
        sa.Column('subscription_tier', sa.String(20), nullable=False, server_default='STARTER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('external_id', sa.String(255), nullable=True, unique=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='CLINICIAN'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_login_at', TIMESTAMP, nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_users_clinic', 'users', ['clinic_id'])

    op.create_table(
        'insurers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(50), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('portal_url', sa.String(500), nullable=True),
        sa.Column('avg_response_days', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )

    # ==========================================================================
    # Cases
    # ==========================================================================
    op.create_table(
        'cases',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('reference_number', sa.String(20), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('patient_first_name', sa.String(100), nullable=False),
        sa.Column('patient_last_name', sa.String(100), nullable=False),
        sa.Column('patient_dob', sa.Date(), nullable=False),
        sa.Column('patient_nhs_number', sa.String(20), nullable=True),
        sa.Column('patient_email', sa.String(255), nullable=True),
        sa.Column('patient_phone', sa.String(50), nullable=True),
        sa.Column('referral_type', sa.String(100), nullable=False),
        sa.Column('referring_clinician', sa.String(200), nullable=False),
        sa.Column('clinical_notes', sa.Text(), nullable=True),
        sa.Column('insurer_id', sa.Uuid(), sa.ForeignKey('insurers.id'), nullable=False),
        sa.Column('policy_number', sa.String(100), nullable=True),
        sa.Column('authorisation_code', sa.String(100), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='RECEIVED'),
        sa.Column('priority', sa.String(10), nullable=False, server_default='MEDIUM'),
        sa.Column('source', sa.String(10), nullable=False, server_default='PORTAL'),
        sa.Column('sla_deadline', TIMESTAMP, nullable=False),
        sa.Column('sla_breached', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('assigned_to_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('submitted_at', TIMESTAMP, nullable=True),
        sa.Column('approved_at', TIMESTAMP, nullable=True),
        sa.Column('completed_at', TIMESTAMP, nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.UniqueConstraint('reference_number', name='uq_cases_reference_number'),
    )
    op.create_index('idx_cases_clinic_status', 'cases', ['clinic_id', 'status'])
    op.create_index('idx_cases_clinic_updated', 'cases', ['clinic_id', 'updated_at'])
    op.create_index('idx_cases_sla', 'cases', ['sla_deadline', 'sla_breached'])

    op.create_table(
        'case_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('case_id', sa.Uuid(), sa.ForeignKey('cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(30), nullable=True),
        sa.Column('to_status', sa.String(30), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('changed_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_status_history_case', 'case_status_history', ['case_id', 'created_at'])

    op.create_table(
        'case_notes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('case_id', sa.Uuid(), sa.ForeignKey('cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_case_notes_case', 'case_notes', ['case_id', 'created_at'])

    # ==========================================================================
    # Documents
    # ==========================================================================
    op.create_table(
        'documents',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('case_id', sa.Uuid(), sa.ForeignKey('cases.id', ondelete='CASCADE'), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('mime_type', sa.String(100), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(30), nullable=False, server_default='OTHER'),
        sa.Column('storage_bucket', sa.String(255), nullable=False),
        sa.Column('storage_key', sa.String(1024), nullable=False),
        sa.Column('uploaded_by_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('deleted_at', TIMESTAMP, nullable=True),
    )
    op.create_index('idx_documents_case', 'documents', ['case_id', 'deleted_at'])

    # ==========================================================================
    # Audit
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=True),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('previous_value', JSON_TYPE, nullable=True),
        sa.Column('new_value', JSON_TYPE, nullable=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('case_id', sa.Uuid(), sa.ForeignKey('cases.id', ondelete='SET NULL'), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('request_id', sa.String(64), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
    )
    op.create_index('idx_audit_clinic_created', 'audit_logs', ['clinic_id', 'created_at'])
    op.create_index('idx_audit_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('idx_audit_case', 'audit_logs', ['case_id'])
    op.create_index('idx_audit_user', 'audit_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('audit_logs')
    op.drop_table('documents')
    op.drop_table('case_notes')
    op.drop_table('case_status_history')
    op.drop_table('cases')
    op.drop_table('insurers')
    op.drop_table('users')
    op.drop_table('clinics')
