"""identity core: users, refresh sessions and audit entries

Revision ID: 7d3e1b9a4c20
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '7d3e1b9a4c20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_role', 'users', ['role'], unique=False)

    op.create_table(
        'refresh_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'expires_at > issued_at', name=op.f('ck_refresh_sessions_expiry_after_issue')
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name=op.f('fk_refresh_sessions_user_id_users'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_refresh_sessions')),
        sa.UniqueConstraint('token', name='uq_refresh_sessions_token'),
    )
    op.create_index('ix_refresh_sessions_user_id', 'refresh_sessions', ['user_id'], unique=False)
    op.create_index(
        'ix_refresh_sessions_expires_at', 'refresh_sessions', ['expires_at'], unique=False
    )

    # actor_id has no foreign key: entries must outlive the identity they mention.
    op.create_table(
        'audit_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('target_type', sa.String(length=16), nullable=False),
        sa.Column('target_id', sa.String(length=64), nullable=True),
        sa.Column('ip', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_entries')),
    )
    op.create_index(
        'ix_audit_entries_actor_created', 'audit_entries', ['actor_id', 'created_at'], unique=False
    )
    op.create_index(
        'ix_audit_entries_action_created', 'audit_entries', ['action', 'created_at'], unique=False
    )
    op.create_index(
        'ix_audit_entries_target_created',
        'audit_entries',
        ['target_type', 'target_id', 'created_at'],
        unique=False,
    )
    op.create_index('ix_audit_entries_created_at', 'audit_entries', ['created_at'], unique=False)


def downgrade():
    op.drop_index('ix_audit_entries_created_at', table_name='audit_entries')
    op.drop_index('ix_audit_entries_target_created', table_name='audit_entries')
    op.drop_index('ix_audit_entries_action_created', table_name='audit_entries')
    op.drop_index('ix_audit_entries_actor_created', table_name='audit_entries')
    op.drop_table('audit_entries')
    op.drop_index('ix_refresh_sessions_expires_at', table_name='refresh_sessions')
    op.drop_index('ix_refresh_sessions_user_id', table_name='refresh_sessions')
    op.drop_table('refresh_sessions')
    op.drop_index('ix_users_role', table_name='users')
    op.drop_table('users')
