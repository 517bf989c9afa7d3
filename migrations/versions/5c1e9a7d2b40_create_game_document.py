"""create game_document

Revision ID: 5c1e9a7d2b40
Revises: 
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e9a7d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'game_document' in insp.get_table_names():
        return
    op.create_table(
        'game_document',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('data', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=True),
    )
    with op.batch_alter_table('game_document') as batch_op:
        batch_op.create_index('ix_game_document_status', ['status'])


def downgrade():
    with op.batch_alter_table('game_document') as batch_op:
        batch_op.drop_index('ix_game_document_status')
    op.drop_table('game_document')
