# branch_store.py
"""
Branch, vote, profile and export-version persistence (SQLAlchemy Core).

Every function takes an optional `engine`; when omitted the engine configured
by MNEMONIC_DATABASE_URL is used. Database failures surface as StoreError with
the SQLAlchemy exception chained; each write runs in its own transaction, so a
failed write leaves no partial row behind.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from db_mnemonic import resolve_engine
from errors import NotFoundError, StoreError
from models import branches, export_versions, user_profiles, votes

logger = logging.getLogger(__name__)

STATUSES = ('active', 'archived', 'flagged')
VOTE_VALUES = (-1, 1)

_UPDATABLE_FIELDS = {
    'content',
    'parent_branch_id',
    'letter_constraint',
    'is_canonical',
    'status',
}


@dataclass
class Vote:
    user_id: str
    branch_id: str
    value: int
    voted_at: Optional[datetime] = None


@dataclass
class Branch:
    id: str
    level: str
    reference: str
    content: str
    parent_branch_id: Optional[str] = None
    letter_constraint: Optional[str] = None
    created_by: Optional[str] = None
    is_canonical: bool = False
    status: str = 'active'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    votes: List[Vote] = field(default_factory=list)

    @classmethod
    def from_row(cls, row, vote_rows: Iterable[Vote] = ()) -> 'Branch':
        return cls(
            id=row['id'],
            level=row['level'],
            reference=row['reference'],
            content=row['content'],
            parent_branch_id=row['parent_branch_id'],
            letter_constraint=row['letter_constraint'],
            created_by=row['created_by'],
            is_canonical=bool(row['is_canonical']),
            status=row['status'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
            votes=list(vote_rows),
        )


def _now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _transaction(engine: Optional[Engine]) -> Iterator[Connection]:
    try:
        with resolve_engine(engine).begin() as conn:
            yield conn
    except SQLAlchemyError as e:
        logger.error('Branch store failure: %s', e)
        raise StoreError(str(e)) from e


def _upsert(conn: Connection, table, values: Dict[str, Any], keys: Sequence[str], update_cols: Sequence[str]):
    """INSERT ... ON CONFLICT DO UPDATE for PostgreSQL and SQLite, delete+insert elsewhere."""
    dialect = conn.dialect.name
    if dialect in ('postgresql', 'sqlite'):
        insert = postgresql.insert if dialect == 'postgresql' else sqlite.insert
        stmt = insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(keys),
            set_={c: stmt.excluded[c] for c in update_cols},
        )
        conn.execute(stmt)
        return
    match = [table.c[k] == values[k] for k in keys]
    conn.execute(delete(table).where(*match))
    conn.execute(table.insert().values(**values))


# ---------- Branches ----------
def insert_branch(
    level: str,
    reference: str,
    content: str,
    parent_branch_id: Optional[str] = None,
    letter_constraint: Optional[str] = None,
    is_canonical: bool = False,
    created_by: Optional[str] = None,
    engine: Optional[Engine] = None,
) -> Branch:
    now = _now()
    values = {
        'id': str(uuid4()),
        'level': level,
        'reference': reference,
        'parent_branch_id': parent_branch_id,
        'content': content,
        'letter_constraint': letter_constraint.upper() if letter_constraint else None,
        'created_by': created_by,
        'created_at': now,
        'updated_at': now,
        'is_canonical': is_canonical,
        'status': 'active',
    }
    with _transaction(engine) as conn:
        conn.execute(branches.insert().values(**values))
    logger.debug('Inserted %s branch %s for %s', level, values['id'], reference)
    return Branch.from_row(values)


def _votes_for(conn: Connection, branch_ids: List[str]) -> Dict[str, List[Vote]]:
    out: Dict[str, List[Vote]] = {bid: [] for bid in branch_ids}
    if not branch_ids:
        return out
    stmt = select(votes).where(votes.c.branch_id.in_(branch_ids)).order_by(votes.c.voted_at.asc())
    for r in conn.execute(stmt).mappings():
        out[r['branch_id']].append(
            Vote(r['user_id'], r['branch_id'], int(r['vote_value']), r['voted_at'])
        )
    return out


def find_branches(
    level: Optional[str] = None,
    reference: Optional[str] = None,
    reference_in: Optional[Sequence[str]] = None,
    is_canonical: Optional[bool] = None,
    parent_branch_id: Optional[str] = None,
    status: Optional[str] = None,
    with_votes: bool = True,
    engine: Optional[Engine] = None,
) -> List[Branch]:
    """
    Branches matching every given filter, oldest first (ties by id), each with
    its vote rows attached unless `with_votes` is False.
    """
    stmt = select(branches).order_by(branches.c.created_at.asc(), branches.c.id.asc())
    if level is not None:
        stmt = stmt.where(branches.c.level == level)
    if reference is not None:
        stmt = stmt.where(branches.c.reference == reference)
    if reference_in is not None:
        stmt = stmt.where(branches.c.reference.in_(list(reference_in)))
    if is_canonical is not None:
        stmt = stmt.where(branches.c.is_canonical.is_(is_canonical))
    if parent_branch_id is not None:
        stmt = stmt.where(branches.c.parent_branch_id == parent_branch_id)
    if status is not None:
        stmt = stmt.where(branches.c.status == status)

    with _transaction(engine) as conn:
        rows = conn.execute(stmt).mappings().all()
        vote_map = _votes_for(conn, [r['id'] for r in rows]) if with_votes else {}
    return [Branch.from_row(r, vote_map.get(r['id'], ())) for r in rows]


def get_branch(branch_id: str, engine: Optional[Engine] = None) -> Optional[Branch]:
    with _transaction(engine) as conn:
        row = conn.execute(select(branches).where(branches.c.id == branch_id)).mappings().first()
        if row is None:
            return None
        vote_map = _votes_for(conn, [branch_id])
    return Branch.from_row(row, vote_map[branch_id])


def update_branch(branch_id: str, engine: Optional[Engine] = None, **fields) -> Branch:
    unknown = set(fields) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f'Cannot update branch fields: {", ".join(sorted(unknown))}')
    if 'status' in fields and fields['status'] not in STATUSES:
        raise ValueError(f'Invalid branch status: {fields["status"]!r}')
    fields['updated_at'] = _now()
    with _transaction(engine) as conn:
        res = conn.execute(update(branches).where(branches.c.id == branch_id).values(**fields))
        if res.rowcount == 0:
            raise NotFoundError(f'Branch not found: {branch_id}')
    return get_branch(branch_id, engine=engine)


def set_canonical(branch_id: str, canonical: bool = True, engine: Optional[Engine] = None) -> Branch:
    """
    Flag a branch canonical, clearing the flag on every other branch at the
    same reference in the same transaction.
    """
    now = _now()
    with _transaction(engine) as conn:
        row = conn.execute(
            select(branches.c.reference).where(branches.c.id == branch_id)
        ).first()
        if row is None:
            raise NotFoundError(f'Branch not found: {branch_id}')
        if canonical:
            conn.execute(
                update(branches)
                .where(
                    branches.c.reference == row.reference,
                    branches.c.id != branch_id,
                    branches.c.is_canonical.is_(True),
                )
                .values(is_canonical=False, updated_at=now)
            )
        conn.execute(
            update(branches)
            .where(branches.c.id == branch_id)
            .values(is_canonical=canonical, updated_at=now)
        )
    return get_branch(branch_id, engine=engine)


# ---------- Votes ----------
def _check_vote_value(value: int) -> None:
    if value not in VOTE_VALUES:
        raise ValueError(f'Vote value must be +1 or -1, got {value!r}')


def upsert_vote(user_id: str, branch_id: str, value: int, engine: Optional[Engine] = None) -> None:
    _check_vote_value(value)
    with _transaction(engine) as conn:
        _upsert(
            conn,
            votes,
            {'user_id': user_id, 'branch_id': branch_id, 'vote_value': value, 'voted_at': _now()},
            keys=('user_id', 'branch_id'),
            update_cols=('vote_value', 'voted_at'),
        )


def delete_vote(user_id: str, branch_id: str, engine: Optional[Engine] = None) -> None:
    with _transaction(engine) as conn:
        conn.execute(delete(votes).where(votes.c.user_id == user_id, votes.c.branch_id == branch_id))


def get_vote(user_id: str, branch_id: str, engine: Optional[Engine] = None) -> Optional[int]:
    with _transaction(engine) as conn:
        value = conn.execute(
            select(votes.c.vote_value).where(votes.c.user_id == user_id, votes.c.branch_id == branch_id)
        ).scalar()
    return int(value) if value is not None else None


def toggle_vote(user_id: str, branch_id: str, value: int, engine: Optional[Engine] = None) -> Optional[int]:
    """
    Apply a vote click: no vote -> insert, opposite vote -> switch, same vote ->
    retract. Runs in one transaction with the existing row locked where the
    dialect supports it. Returns the user's vote after the click (None when
    retracted).
    """
    _check_vote_value(value)
    with _transaction(engine) as conn:
        exists = conn.execute(select(branches.c.id).where(branches.c.id == branch_id)).first()
        if exists is None:
            raise NotFoundError(f'Branch not found: {branch_id}')
        current = conn.execute(
            select(votes.c.vote_value)
            .where(votes.c.user_id == user_id, votes.c.branch_id == branch_id)
            .with_for_update()
        ).scalar()
        if current == value:
            conn.execute(delete(votes).where(votes.c.user_id == user_id, votes.c.branch_id == branch_id))
            return None
        _upsert(
            conn,
            votes,
            {'user_id': user_id, 'branch_id': branch_id, 'vote_value': value, 'voted_at': _now()},
            keys=('user_id', 'branch_id'),
            update_cols=('vote_value', 'voted_at'),
        )
    return value


def branch_scores(branch_ids: Sequence[str], engine: Optional[Engine] = None) -> Dict[str, int]:
    """Net vote score per branch, summed from the stored vote rows."""
    out = {bid: 0 for bid in branch_ids}
    if not branch_ids:
        return out
    stmt = (
        select(votes.c.branch_id, func.coalesce(func.sum(votes.c.vote_value), 0))
        .where(votes.c.branch_id.in_(list(branch_ids)))
        .group_by(votes.c.branch_id)
    )
    with _transaction(engine) as conn:
        for branch_id, total in conn.execute(stmt):
            out[branch_id] = int(total)
    return out


# ---------- Profiles ----------
def is_admin(user_id: Optional[str], engine: Optional[Engine] = None) -> bool:
    if not user_id:
        return False
    with _transaction(engine) as conn:
        flag = conn.execute(
            select(user_profiles.c.is_admin).where(user_profiles.c.id == user_id)
        ).scalar()
    return bool(flag)


def set_admin(
    user_id: str,
    admin: bool = True,
    display_name: Optional[str] = None,
    engine: Optional[Engine] = None,
) -> None:
    values = {'id': user_id, 'is_admin': admin, 'display_name': display_name}
    update_cols = ['is_admin'] + (['display_name'] if display_name else [])
    with _transaction(engine) as conn:
        _upsert(conn, user_profiles, values, keys=('id',), update_cols=update_cols)


# ---------- Export versions ----------
def save_export_version(
    document: Dict[str, Any],
    branch_selections: Dict[str, str],
    created_by: Optional[str] = None,
    export_type: str = 'canonical',
    engine: Optional[Engine] = None,
) -> str:
    version_id = str(uuid4())
    with _transaction(engine) as conn:
        conn.execute(
            export_versions.insert().values(
                id=version_id,
                version=document.get('meta', {}).get('version', ''),
                type=export_type,
                created_by=created_by,
                branch_selections=branch_selections,
                json_content=document,
                created_at=_now(),
                download_count=0,
            )
        )
    logger.info('Saved %s export version %s', export_type, version_id)
    return version_id


def get_export_version(version_id: str, engine: Optional[Engine] = None) -> Optional[Dict[str, Any]]:
    with _transaction(engine) as conn:
        row = conn.execute(
            select(export_versions).where(export_versions.c.id == version_id)
        ).mappings().first()
    return dict(row) if row else None


def record_download(version_id: str, engine: Optional[Engine] = None) -> Dict[str, Any]:
    """Bump the download counter of an export version and return the stored row."""
    with _transaction(engine) as conn:
        res = conn.execute(
            update(export_versions)
            .where(export_versions.c.id == version_id)
            .values(download_count=export_versions.c.download_count + 1)
        )
        if res.rowcount == 0:
            raise NotFoundError(f'Export version not found: {version_id}')
        row = conn.execute(
            select(export_versions).where(export_versions.c.id == version_id)
        ).mappings().first()
    return dict(row)
