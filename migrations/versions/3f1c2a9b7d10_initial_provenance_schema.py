"""initial provenance schema

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-19 10:12:44.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'company',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('company_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('company_type', sa.Enum('MANUFACTURER', 'RETAILER', 'LOGISTICS', name='companytype'), nullable=False),
        sa.Column('company_scale', sa.Enum('SMALL', 'MEDIUM', 'LARGE', name='companyscale'), nullable=True),
        sa.Column('company_address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('company_zip_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('company_website', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('company_email', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('company_phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('company_logo', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('product_template_ids', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_company_wallet_address', 'company', ['wallet_address'], unique=True)
    op.create_index('ix_company_company_name', 'company', ['company_name'])

    op.create_table(
        'plant',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('plant_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('plant_code', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('city', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('state', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('country', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('postal_code', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_plant_company_address', 'plant', ['company_address'])

    op.create_table(
        'producttemplate',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('category', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('image_url', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('dimensions', sa.JSON(), nullable=True),
        sa.Column('materials', sa.JSON(), nullable=True),
        sa.Column('carbon_footprint_per_unit', sa.Float(), nullable=False),
        sa.Column('is_raw_material', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('manufacturer_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_producttemplate_template_name', 'producttemplate', ['template_name'])
    op.create_index('ix_producttemplate_manufacturer_address', 'producttemplate', ['manufacturer_address'])

    op.create_table(
        'productbatch',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('batch_number', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('plant_id', sa.Uuid(), nullable=False),
        sa.Column('manufacturer_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('production_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('batch_status', sa.Enum('PRODUCTION', 'COMPLETED', 'SHIPPED', 'DELIVERED', name='batchstatus'), nullable=False),
        sa.Column('carbon_footprint', sa.Float(), nullable=False),
        sa.Column('carbon_footprint_overridden', sa.Boolean(), nullable=False),
        sa.Column('qc_passed', sa.Boolean(), nullable=True),
        sa.Column('qc_notes', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('qc_inspector_name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('qc_inspection_date', sa.Date(), nullable=True),
        sa.Column('components', sa.JSON(), nullable=True),
        sa.Column('token_id', sa.Integer(), nullable=True),
        sa.Column('token_contract_address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('tx_hash', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('mint_status', sa.Enum('NOT_MINTED', 'SUBMITTING', 'PENDING', 'ANCHORED', 'FAILED', name='mintstatus'), nullable=False),
        sa.Column('mint_tx_hash', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('mint_error', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.ForeignKeyConstraint(['template_id'], ['producttemplate.id']),
        sa.ForeignKeyConstraint(['plant_id'], ['plant.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('manufacturer_address', 'batch_number', name='uq_batch_manufacturer_number'),
    )
    op.create_index('ix_productbatch_batch_number', 'productbatch', ['batch_number'])
    op.create_index('ix_productbatch_template_id', 'productbatch', ['template_id'])
    op.create_index('ix_productbatch_manufacturer_address', 'productbatch', ['manufacturer_address'])
    op.create_index('ix_productbatch_token_id', 'productbatch', ['token_id'], unique=True)

    op.create_table(
        'tokentransfer',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('token_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Uuid(), nullable=True),
        sa.Column('from_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('to_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('transfer_type', sa.Enum('MANUFACTURING', 'LOGISTICS', 'RETAIL', 'CONSUMER', name='transfertype'), nullable=False),
        sa.Column('transfer_reason', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('carbon_footprint', sa.Float(), nullable=True),
        sa.Column('tx_hash', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('block_number', sa.Integer(), nullable=True),
        sa.Column('gas_used', sa.Integer(), nullable=True),
        sa.Column('from_location', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('to_location', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('transport_method', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('estimated_delivery', sa.Date(), nullable=True),
        sa.Column('actual_delivery', sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(['batch_id'], ['productbatch.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tokentransfer_token_id', 'tokentransfer', ['token_id'])
    op.create_index('ix_tokentransfer_from_address', 'tokentransfer', ['from_address'])
    op.create_index('ix_tokentransfer_to_address', 'tokentransfer', ['to_address'])
    op.create_index('ix_tokentransfer_tx_hash', 'tokentransfer', ['tx_hash'])

    op.create_table(
        'partnerrelationship',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('self_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('partner_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('relationship_kind', sa.Enum('SUPPLIER', 'CUSTOMER', name='relationshipkind'), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='partnerstatus'), nullable=False),
        sa.Column('company_name', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('contact_email', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('contact_phone', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('notes', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('self_address', 'partner_address', name='uq_partner_edge'),
    )
    op.create_index('ix_partnerrelationship_self_address', 'partnerrelationship', ['self_address'])
    op.create_index('ix_partnerrelationship_partner_address', 'partnerrelationship', ['partner_address'])

    op.create_table(
        'transportation',
        *_timestamps(),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('vehicle_type', sa.Enum('TRUCK', 'VAN', 'CAR', 'MOTORCYCLE', 'SHIP', 'PLANE', name='vehicletype'), nullable=False),
        sa.Column('fuel_type', sa.Enum('DIESEL', 'GASOLINE', 'ELECTRIC', 'LPG', 'CNG', name='fueltype'), nullable=False),
        sa.Column('distance', sa.Float(), nullable=False),
        sa.Column('fuel_consumption', sa.Float(), nullable=False),
        sa.Column('carbon_footprint', sa.Float(), nullable=False),
        sa.Column('from_location', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('to_location', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('product_ids', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_transportation_company_address', 'transportation', ['company_address'])

    op.create_table(
        'signinnonce',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('wallet_address', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('nonce', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('consumed', sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('nonce'),
    )
    op.create_index('ix_signinnonce_wallet_address', 'signinnonce', ['wallet_address'])

    op.create_table(
        'auditlog',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_address', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('entity_type', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('entity_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('action', sa.Enum('CREATE', 'UPDATE', 'DELETE', 'MINT', 'ANCHOR', 'TRANSFER', name='auditaction'), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_auditlog_actor_address', 'auditlog', ['actor_address'])
    op.create_index('ix_auditlog_entity_id', 'auditlog', ['entity_id'])


def downgrade():
    for table in ('auditlog', 'signinnonce', 'transportation', 'partnerrelationship',
                  'tokentransfer', 'productbatch', 'producttemplate',
                  'plant', 'company'):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for enum_name in ('auditaction', 'fueltype', 'vehicletype', 'partnerstatus', 'relationshipkind',
                          'transfertype', 'mintstatus', 'batchstatus',
                          'companyscale', 'companytype'):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
