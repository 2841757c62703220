import sqlalchemy as sa
from alembic import op

revision = '1_create_mnemonic_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'branches',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('level', sa.Text(), nullable=False),
        sa.Column('reference', sa.Text(), nullable=False),
        sa.Column('parent_branch_id', sa.Text(), sa.ForeignKey('branches.id')),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('letter_constraint', sa.String(1)),
        sa.Column('created_by', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_canonical', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.Text(), nullable=False, server_default='active'),
        sa.CheckConstraint(
            "level IN ('testament', 'book', 'chapter', 'verse')", name='ck_branches_level'
        ),
        sa.CheckConstraint(
            "status IN ('active', 'archived', 'flagged')", name='ck_branches_status'
        ),
    )
    op.create_index('idx_branches_reference', 'branches', ['reference'])
    op.create_index('idx_branches_level', 'branches', ['level'])
    op.create_index('idx_branches_parent', 'branches', ['parent_branch_id'])
    op.create_index('idx_branches_canonical', 'branches', ['is_canonical'])
    op.create_index(
        'uq_branches_canonical_reference',
        'branches',
        ['reference'],
        unique=True,
        postgresql_where=sa.text('is_canonical'),
        sqlite_where=sa.text('is_canonical = 1'),
    )

    op.create_table(
        'votes',
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('branch_id', sa.Text(), sa.ForeignKey('branches.id'), nullable=False),
        sa.Column('vote_value', sa.Integer(), nullable=False),
        sa.Column('voted_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'branch_id', name='pk_votes'),
        sa.CheckConstraint('vote_value IN (-1, 1)', name='ck_votes_value'),
    )
    op.create_index('idx_votes_branch', 'votes', ['branch_id'])
    op.create_index('idx_votes_user', 'votes', ['user_id'])

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('display_name', sa.Text()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'export_versions',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('version', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('created_by', sa.Text()),
        sa.Column('branch_selections', sa.JSON(), nullable=False),
        sa.Column('json_content', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint("type IN ('canonical', 'community')", name='ck_export_versions_type'),
    )


def downgrade():
    op.drop_table('export_versions')
    op.drop_table('user_profiles')
    op.drop_index('idx_votes_user', table_name='votes')
    op.drop_index('idx_votes_branch', table_name='votes')
    op.drop_table('votes')
    op.drop_index('uq_branches_canonical_reference', table_name='branches')
    op.drop_index('idx_branches_canonical', table_name='branches')
    op.drop_index('idx_branches_parent', table_name='branches')
    op.drop_index('idx_branches_level', table_name='branches')
    op.drop_index('idx_branches_reference', table_name='branches')
    op.drop_table('branches')
