"""create room and player tables

Revision ID: 5a1c0e7b9d21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5a1c0e7b9d21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('id', sa.String(length=16), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('numbers_picked', sa.Text(), nullable=False),
            sa.Column('current_player_turn_id', sa.String(length=64), nullable=True),
            sa.Column('winner_id', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('pk', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.String(length=64), nullable=False),
            sa.Column('room_id', sa.String(length=16), nullable=False),
            sa.Column('name', sa.String(length=32), nullable=False),
            sa.Column('is_ready', sa.Boolean(), nullable=False),
            sa.Column('board', sa.Text(), nullable=True),
            sa.Column('joined_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['room_id'], ['room.id']),
            sa.PrimaryKeyConstraint('pk'),
            sa.UniqueConstraint('room_id', 'player_id', name='uq_player_room_player'),
        )
        with op.batch_alter_table('player') as batch_op:
            batch_op.create_index('ix_player_player_id', ['player_id'], unique=False)
            batch_op.create_index('ix_player_room_id', ['room_id'], unique=False)


def downgrade():
    with op.batch_alter_table('player') as batch_op:
        batch_op.drop_index('ix_player_room_id')
        batch_op.drop_index('ix_player_player_id')
    op.drop_table('player')
    op.drop_table('room')
