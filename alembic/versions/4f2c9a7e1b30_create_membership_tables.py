"""create users, communities and members tables

Revision ID: 4f2c9a7e1b30
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '4f2c9a7e1b30'
down_revision = None
branch_labels = None
depends_on = None

member_role = postgresql.ENUM('MEMBER', 'MODERATOR', 'ADMIN', name='member_role', create_type=False)
member_status = postgresql.ENUM('PENDING', 'APPROVED', 'REJECTED', 'BANNED', name='member_status', create_type=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(100), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('wallet_address', sa.String(64), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'communities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('require_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_public_voting', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_members', sa.Integer(), nullable=True),
        sa.Column('voting_threshold', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_communities_id', 'communities', ['id'])
    op.create_index('ix_communities_name', 'communities', ['name'], unique=True)
    op.create_index('ix_communities_created_by', 'communities', ['created_by'])

    # Enum types are created once here and referenced with create_type=False
    member_role.create(op.get_bind(), checkfirst=True)
    member_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'members',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('community_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('communities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', member_role, nullable=False),
        sa.Column('status', member_status, nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'community_id', name='uq_members_user_community'),
    )
    op.create_index('ix_members_id', 'members', ['id'])
    op.create_index('ix_members_user_id', 'members', ['user_id'])
    op.create_index('ix_members_community_id', 'members', ['community_id'])
    op.create_index('ix_members_status', 'members', ['status'])


def downgrade():
    op.drop_table('members')
    member_status.drop(op.get_bind(), checkfirst=True)
    member_role.drop(op.get_bind(), checkfirst=True)
    op.drop_table('communities')
    op.drop_table('users')
