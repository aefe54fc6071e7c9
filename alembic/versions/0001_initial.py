"""Initial migration

Revision ID: 0001
Revises: 
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create colleges table
    op.create_table('colleges',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    # Create users table
    op.create_table('users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('username', sa.String(length=48), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('college_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('virtual_balance', sa.Numeric(precision=20, scale=2), nullable=False, server_default='100'),
        sa.Column('referral_code', sa.String(length=32), nullable=True),
        sa.Column('referral_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fest_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_guest', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['college_id'], ['colleges.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('referral_code')
    )

    # Create contests table
    op.create_table('contests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('entry_fee', sa.Numeric(precision=20, scale=2), nullable=False, server_default='0'),
        sa.Column('starting_capital', sa.Numeric(precision=20, scale=2), nullable=False, server_default='1000000'),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('fest_mode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='upcoming'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )

    # Create portfolios table
    op.create_table('portfolios',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('total_value', sa.Numeric(precision=20, scale=2), nullable=False, server_default='1000000'),
        sa.Column('roi', sa.Numeric(precision=12, scale=4), nullable=False, server_default='0'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.PrimaryKeyConstraint('id')
    )

    # Create holdings table
    op.create_table('holdings',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('portfolio_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stock_symbol', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('buy_price', sa.Numeric(precision=20, scale=2), nullable=False),
        sa.Column('current_price', sa.Numeric(precision=20, scale=2), nullable=True),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolios.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_holdings_portfolio_id', 'holdings', ['portfolio_id'])

    # Create user_contests table
    op.create_table('user_contests',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('contest_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('portfolio_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('final_roi', sa.Numeric(precision=12, scale=4), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['contest_id'], ['contests.id']),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolios.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'contest_id', name='uq_user_contest')
    )
    op.create_index('ix_user_contests_contest_id', 'user_contests', ['contest_id'])

    # Create referrals table
    op.create_table('referrals',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('referrer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('referred_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['referred_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referred_id')
    )
    op.create_index('ix_referrals_referrer_id', 'referrals', ['referrer_id'])


def downgrade() -> None:
    op.drop_index('ix_referrals_referrer_id', table_name='referrals')
    op.drop_table('referrals')
    op.drop_index('ix_user_contests_contest_id', table_name='user_contests')
    op.drop_table('user_contests')
    op.drop_index('ix_holdings_portfolio_id', table_name='holdings')
    op.drop_table('holdings')
    op.drop_table('portfolios')
    op.drop_table('contests')
    op.drop_table('users')
    op.drop_table('colleges')
