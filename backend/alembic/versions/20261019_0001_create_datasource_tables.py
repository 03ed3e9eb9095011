"""
Create datasource config-store tables

Revision ID: 20261019_0001_create_datasource_tables
Revises: 
Create Date: 2026-10-19
"""
revision = '20261019_0001_create_datasource_tables'
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

def upgrade():
    op.create_table(
        "datasources",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("driver", sa.String(length=32), nullable=False, server_default="mysql"),
        sa.Column("host", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("port", sa.Integer, nullable=True),
        sa.Column("database_name", sa.String(length=255), nullable=False),
        sa.Column("schema_name", sa.String(length=255), nullable=True),
        sa.Column("username", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("password_encrypted", sa.Text, nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "datasource_tables",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("datasource_id", sa.Integer, sa.ForeignKey("datasources.id", ondelete="CASCADE"), nullable=False),
        sa.Column("table_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("table_alias", sa.String(length=255), nullable=True),
        sa.Column("query_mode", sa.String(length=16), nullable=False, server_default="table"),
        sa.Column("custom_sql", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("datasource_id", "table_name", name="uq_datasource_table_name"),
    )
    op.create_index("ix_datasource_tables_datasource_id", "datasource_tables", ["datasource_id"])
    op.create_table(
        "datasource_field_mappings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("datasource_table_id", sa.Integer, sa.ForeignKey("datasource_tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("field_name", sa.String(length=255), nullable=False),
        sa.Column("field_alias", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("datasource_table_id", "field_name", name="uq_field_mapping_per_table"),
    )
    op.create_index("ix_datasource_field_mappings_datasource_table_id", "datasource_field_mappings", ["datasource_table_id"])
    op.create_table(
        "datasource_table_grants",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("datasource_table_id", sa.Integer, sa.ForeignKey("datasource_tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("principal", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("datasource_table_id", "principal", name="uq_table_grant_principal"),
    )
    op.create_index("ix_datasource_table_grants_datasource_table_id", "datasource_table_grants", ["datasource_table_id"])

def downgrade():
    op.drop_index("ix_datasource_table_grants_datasource_table_id", table_name="datasource_table_grants")
    op.drop_table("datasource_table_grants")
    op.drop_index("ix_datasource_field_mappings_datasource_table_id", table_name="datasource_field_mappings")
    op.drop_table("datasource_field_mappings")
    op.drop_index("ix_datasource_tables_datasource_id", table_name="datasource_tables")
    op.drop_table("datasource_tables")
    op.drop_table("datasources")
