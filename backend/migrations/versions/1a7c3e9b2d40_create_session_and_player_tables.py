"""create game_session and player tables

Revision ID: 1a7c3e9b2d40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '1a7c3e9b2d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.String(length=16), nullable=False),
            sa.Column('created_at', sa.Float(), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(length=16), nullable=False),
            sa.Column('player_id', sa.String(length=64), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('total_score', sa.Integer(), nullable=False),
            sa.Column('current_round_score', sa.Integer(), nullable=False),
            sa.Column('current_round_number', sa.Integer(), nullable=False),
            sa.Column('rounds', sa.Text(), nullable=True),
            sa.Column('used_cards_this_round', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['session_id'], ['game_session.id']),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('session_id', 'player_id', name='uq_player_session_player'),
        )
        with op.batch_alter_table('player') as batch_op:
            batch_op.create_index(batch_op.f('ix_player_session_id'), ['session_id'], unique=False)


def downgrade():
    with op.batch_alter_table('player') as batch_op:
        batch_op.drop_index(batch_op.f('ix_player_session_id'))
    op.drop_table('player')
    op.drop_table('game_session')
