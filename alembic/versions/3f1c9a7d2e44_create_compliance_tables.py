"""Create organization, template, certificate and compliance tables

Revision ID: 3f1c9a7d2e44
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2e44'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _party_table(name: str) -> None:
    op.create_table(name,
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('property_id', sa.Uuid(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('contact_email', sa.String(length=320), nullable=True),
        sa.Column('template_id', sa.Uuid(), nullable=True),
        sa.Column('compliance_status', sa.String(length=32), nullable=False, server_default='pending'),
        _timestamp('deleted_at', nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['template_id'], ['requirement_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(f'ix_{name}_organization_id', name, ['organization_id'])
    op.create_index(f'ix_{name}_template_id', name, ['template_id'])


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('organizations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('plan', sa.String(length=32), nullable=False, server_default='trial'),
        sa.Column('settings', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('requirement_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=True, comment='NULL for system defaults'),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('risk_level', sa.String(length=32), nullable=False),
        sa.Column('is_system_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_requirement_templates_organization_id', 'requirement_templates', ['organization_id'])

    op.create_table('coverage_requirements',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('coverage_type', sa.String(length=64), nullable=False),
        sa.Column('limit_type', sa.String(length=64), nullable=True),
        sa.Column('minimum_limit', sa.BigInteger(), nullable=True, comment='Whole dollars'),
        sa.Column('is_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('requires_additional_insured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('requires_waiver_of_subrogation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['template_id'], ['requirement_templates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'coverage_type', 'limit_type', name='uq_requirement_natural_key'),
    )
    op.create_index('ix_coverage_requirements_template', 'coverage_requirements', ['template_id', 'position'])

    op.create_table('properties',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_properties_organization_id', 'properties', ['organization_id'])

    op.create_table('property_entities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('property_id', sa.Uuid(), nullable=False),
        sa.Column('entity_name', sa.String(length=300), nullable=False),
        sa.Column('entity_address', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_property_entities_property_id', 'property_entities', ['property_id'])

    _party_table('vendors')
    _party_table('tenants')

    op.create_table('certificates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('vendor_id', sa.Uuid(), nullable=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=True),
        sa.Column('file_name', sa.String(length=500), nullable=False),
        sa.Column('file_hash', sa.String(length=64), nullable=False, comment='SHA-256 hex digest'),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('processing_status', sa.String(length=32), nullable=False, server_default='uploaded'),
        sa.Column('insured_name', sa.String(length=300), nullable=True),
        _timestamp('uploaded_at'),
        _timestamp('reviewed_at', nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), nullable=True),
        sa.Column('all_required_met', sa.Boolean(), nullable=True, comment='Last comparator verdict'),
        sa.Column('results_version', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_certificates_organization_id', 'certificates', ['organization_id'])
    op.create_index('ix_certificates_vendor_id', 'certificates', ['vendor_id'])
    op.create_index('ix_certificates_tenant_id', 'certificates', ['tenant_id'])

    op.create_table('extracted_coverages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('certificate_id', sa.Uuid(), nullable=False),
        sa.Column('coverage_type', sa.String(length=64), nullable=False),
        sa.Column('limit_type', sa.String(length=64), nullable=True),
        sa.Column('limit_amount', sa.BigInteger(), nullable=True),
        sa.Column('carrier_name', sa.String(length=300), nullable=True),
        sa.Column('policy_number', sa.String(length=100), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=True),
        sa.Column('expiration_date', sa.Date(), nullable=True),
        sa.Column('additional_insured_listed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('additional_insured_entities', sa.JSON(), nullable=False),
        sa.Column('waiver_of_subrogation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('confidence_flag', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('raw_extracted_text', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0', comment='Order in the extraction output'),
        sa.ForeignKeyConstraint(['certificate_id'], ['certificates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_extracted_coverages_certificate_id', 'extracted_coverages', ['certificate_id'])

    op.create_table('extracted_entities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('certificate_id', sa.Uuid(), nullable=False),
        sa.Column('entity_name', sa.String(length=300), nullable=False),
        sa.Column('entity_address', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('confidence_flag', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['certificate_id'], ['certificates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_extracted_entities_certificate_id', 'extracted_entities', ['certificate_id'])

    op.create_table('compliance_results',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('certificate_id', sa.Uuid(), nullable=False),
        sa.Column('coverage_requirement_id', sa.Uuid(), nullable=False),
        sa.Column('extracted_coverage_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('gap_description', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['certificate_id'], ['certificates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['coverage_requirement_id'], ['coverage_requirements.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['extracted_coverage_id'], ['extracted_coverages.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('certificate_id', 'coverage_requirement_id', name='uq_result_per_requirement'),
    )
    op.create_index('ix_compliance_results_certificate_id', 'compliance_results', ['certificate_id'])

    op.create_table('entity_compliance_results',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('certificate_id', sa.Uuid(), nullable=False),
        sa.Column('property_entity_id', sa.Uuid(), nullable=False),
        sa.Column('extracted_entity_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('match_details', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['certificate_id'], ['certificates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['property_entity_id'], ['property_entities.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['extracted_entity_id'], ['extracted_entities.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_entity_compliance_results_certificate_id', 'entity_compliance_results', ['certificate_id'])

    op.create_table('activity_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('certificate_id', sa.Uuid(), nullable=True),
        sa.Column('vendor_id', sa.Uuid(), nullable=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('performed_by', sa.Uuid(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['certificate_id'], ['certificates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['vendor_id'], ['vendors.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_logs_organization_id', 'activity_logs', ['organization_id'])


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'activity_logs',
        'entity_compliance_results',
        'compliance_results',
        'extracted_entities',
        'extracted_coverages',
        'certificates',
        'tenants',
        'vendors',
        'property_entities',
        'properties',
        'coverage_requirements',
        'requirement_templates',
        'organizations',
    ):
        op.drop_table(table)
