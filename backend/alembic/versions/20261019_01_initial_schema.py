from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'files',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('share_token', sa.String(length=32), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_path', sa.String(length=512), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('available_from', sa.DateTime(), nullable=True),
        sa.Column('available_to', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_files_share_token', 'files', ['share_token'], unique=True)
    op.create_index('ix_files_owner_id', 'files', ['owner_id'])
    op.create_index('ix_files_available_to', 'files', ['available_to'])
    op.create_index('ix_files_created_at', 'files', ['created_at'])

    op.create_table(
        'shared_with',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('file_id', 'email', name='uq_shared_with_file_email'),
    )
    op.create_index('ix_shared_with_file_id', 'shared_with', ['file_id'])
    op.create_index('ix_shared_with_email', 'shared_with', ['email'])
    op.create_index('ix_shared_with_user_id', 'shared_with', ['user_id'])

    op.create_table(
        'file_statistics',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unique_downloaders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_downloaded_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'download_history',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('file_id', sa.String(length=36), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('downloader_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('downloaded_at', sa.DateTime(), nullable=True),
        sa.Column('download_completed', sa.Boolean(), nullable=False),
    )
    op.create_index('ix_download_history_file_id', 'download_history', ['file_id'])
    op.create_index('ix_download_history_downloader_id', 'download_history', ['downloader_id'])
    op.create_index('ix_download_history_downloaded_at', 'download_history', ['downloaded_at'])

    op.create_table(
        'system_policy',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('max_file_size_mb', sa.Integer(), nullable=False),
        sa.Column('min_validity_hours', sa.Integer(), nullable=False),
        sa.Column('max_validity_days', sa.Integer(), nullable=False),
        sa.Column('default_validity_days', sa.Integer(), nullable=False),
        sa.Column('require_password_min_length', sa.Integer(), nullable=False),
    )
    op.bulk_insert(
        sa.table(
            'system_policy',
            sa.column('id', sa.Integer()),
            sa.column('max_file_size_mb', sa.Integer()),
            sa.column('min_validity_hours', sa.Integer()),
            sa.column('max_validity_days', sa.Integer()),
            sa.column('default_validity_days', sa.Integer()),
            sa.column('require_password_min_length', sa.Integer()),
        ),
        [{'id': 1, 'max_file_size_mb': 50, 'min_validity_hours': 1, 'max_validity_days': 30,
          'default_validity_days': 7, 'require_password_min_length': 8}],
    )


def downgrade() -> None:
    op.drop_table('system_policy')
    op.drop_table('download_history')
    op.drop_table('file_statistics')
    op.drop_table('shared_with')
    op.drop_table('files')
    op.drop_table('users')
