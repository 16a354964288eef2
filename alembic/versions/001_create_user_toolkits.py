"""Create user_toolkits table

Revision ID: 001
Revises: 
Create Date: 2025-09-02

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'user_toolkits',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'slug', name='uq_user_toolkits_user_slug'),
    )
    op.create_index('idx_user_toolkits_user_enabled', 'user_toolkits', ['user_id', 'enabled'])


def downgrade() -> None:
    op.drop_index('idx_user_toolkits_user_enabled', table_name='user_toolkits')
    op.drop_table('user_toolkits')
