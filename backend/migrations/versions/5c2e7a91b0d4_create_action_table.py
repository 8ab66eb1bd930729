"""create action table for the audit log

Revision ID: 5c2e7a91b0d4
Revises:
Create Date: 2026-10-18 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e7a91b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'action' in set(insp.get_table_names()):
        return

    op.create_table(
        'action',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('user_name', sa.String(length=128), nullable=True),
        sa.Column('room_id', sa.String(length=32), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=False),
        sa.Column('user_agent', sa.String(length=512), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('action') as batch_op:
        batch_op.create_index(batch_op.f('ix_action_action'), ['action'], unique=False)
        batch_op.create_index(batch_op.f('ix_action_user_name'), ['user_name'], unique=False)
        batch_op.create_index(batch_op.f('ix_action_room_id'), ['room_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_action_timestamp'), ['timestamp'], unique=False)


def downgrade():
    with op.batch_alter_table('action') as batch_op:
        batch_op.drop_index(batch_op.f('ix_action_timestamp'))
        batch_op.drop_index(batch_op.f('ix_action_room_id'))
        batch_op.drop_index(batch_op.f('ix_action_user_name'))
        batch_op.drop_index(batch_op.f('ix_action_action'))
    op.drop_table('action')
