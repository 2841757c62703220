# models.py
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    false,
    func,
    text,
)

metadata = MetaData()

# One row per contributed acrostic/mnemonic
branches = Table(
    'branches',
    metadata,
    Column('id', Text, primary_key=True),
    Column('level', Text, nullable=False),
    Column('reference', Text, nullable=False),  # 'OT' | 'GEN' | 'GEN.1' | 'GEN.1.1'
    Column('parent_branch_id', Text, ForeignKey('branches.id')),
    Column('content', Text, nullable=False),
    Column('letter_constraint', String(1)),  # first letter required by the parent acrostic
    Column('created_by', Text),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    Column('is_canonical', Boolean, nullable=False, server_default=false()),
    Column('status', Text, nullable=False, server_default='active'),
    CheckConstraint(
        "level IN ('testament', 'book', 'chapter', 'verse')", name='ck_branches_level'
    ),
    CheckConstraint(
        "status IN ('active', 'archived', 'flagged')", name='ck_branches_status'
    ),
    Index('idx_branches_reference', 'reference'),
    Index('idx_branches_level', 'level'),
    Index('idx_branches_parent', 'parent_branch_id'),
    Index('idx_branches_canonical', 'is_canonical'),
    # at most one canonical branch per reference
    Index(
        'uq_branches_canonical_reference',
        'reference',
        unique=True,
        postgresql_where=text('is_canonical'),
        sqlite_where=text('is_canonical = 1'),
    ),
)

votes = Table(
    'votes',
    metadata,
    Column('user_id', Text, nullable=False),
    Column('branch_id', Text, ForeignKey('branches.id'), nullable=False),
    Column('vote_value', Integer, nullable=False),
    Column('voted_at', DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint('user_id', 'branch_id', name='pk_votes'),
    CheckConstraint('vote_value IN (-1, 1)', name='ck_votes_value'),
    Index('idx_votes_branch', 'branch_id'),
    Index('idx_votes_user', 'user_id'),
)

user_profiles = Table(
    'user_profiles',
    metadata,
    Column('id', Text, primary_key=True),
    Column('display_name', Text),
    Column('is_admin', Boolean, nullable=False, server_default=false()),
    Column('created_at', DateTime(timezone=True), nullable=False, server_default=func.now()),
)

# Compiled export snapshots
export_versions = Table(
    'export_versions',
    metadata,
    Column('id', Text, primary_key=True),
    Column('version', Text, nullable=False),
    Column('type', Text, nullable=False),
    Column('created_by', Text),
    Column('branch_selections', JSON, nullable=False),  # reference -> branch id
    Column('json_content', JSON, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('download_count', Integer, nullable=False, server_default='0'),
    CheckConstraint("type IN ('canonical', 'community')", name='ck_export_versions_type'),
)
