# canonical_export.py
"""
Compile the canonical mnemonic tree into a single nested export document.

Shape:
    {
      "meta": {"version", "description", "generated_at"},
      "testaments": {"OT": {"mnemonic"}, "NT": {...}},
      "books": {"GEN": {"mnemonic", "chapters": {"1": {"mnemonic", "verses": {"1": {"mnemonic"}}}}}}
    }

A book or chapter appears when it has a canonical branch of its own or when
something below it does; in the second case its mnemonic is null. Verses
appear only with a canonical mnemonic.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.engine import Engine

from bible_data import TESTAMENTS, books_in_testament, get_book_info
from branch_store import Branch, find_branches, save_export_version

logger = logging.getLogger(__name__)

EXPORT_VERSION = '1.0'
EXPORT_DESCRIPTION = 'Hierarchical mnemonics for Bible memorization'


def index_by_reference(branches: Iterable[Branch]) -> Dict[str, Branch]:
    """
    Map reference -> branch. When a reference has more than one canonical
    branch the first one seen wins.
    """
    index: Dict[str, Branch] = {}
    for b in branches:
        kept = index.get(b.reference)
        if kept is not None:
            logger.warning(
                'Multiple canonical branches for %s; keeping %s, ignoring %s',
                b.reference,
                kept.id,
                b.id,
            )
            continue
        index[b.reference] = b
    return index


def _mnemonic(branch: Optional[Branch]) -> Optional[str]:
    return branch.content if branch is not None else None


def _build_chapter(index: Dict[str, Branch], book_code: str, chapter: int, verse_count: int) -> Optional[Dict[str, Any]]:
    ref = f'{book_code}.{chapter}'
    chapter_branch = index.get(ref)
    verses: Dict[str, Dict[str, str]] = {}
    for v in range(1, verse_count + 1):
        verse_branch = index.get(f'{ref}.{v}')
        if verse_branch is not None:
            verses[str(v)] = {'mnemonic': verse_branch.content}
    if chapter_branch is None and not verses:
        return None
    return {'mnemonic': _mnemonic(chapter_branch), 'verses': verses}


def _build_book(index: Dict[str, Branch], book_code: str) -> Optional[Dict[str, Any]]:
    book = get_book_info(book_code)
    book_branch = index.get(book_code)
    chapters: Dict[str, Dict[str, Any]] = {}
    for c, verse_count in enumerate(book.verses_per_chapter, start=1):
        chapter = _build_chapter(index, book_code, c, verse_count)
        if chapter is not None:
            chapters[str(c)] = chapter
    if book_branch is None and not chapters:
        return None
    return {'mnemonic': _mnemonic(book_branch), 'chapters': chapters}


def build_export(branches: Iterable[Branch], generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Assemble the export document from canonical branches. No I/O."""
    index = index_by_reference(branches)
    generated_at = generated_at or datetime.now(timezone.utc)

    output: Dict[str, Any] = {
        'meta': {
            'version': EXPORT_VERSION,
            'description': EXPORT_DESCRIPTION,
            'generated_at': generated_at.isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
        },
        'testaments': {},
        'books': {},
    }

    for testament in TESTAMENTS:
        testament_branch = index.get(testament)
        if testament_branch is not None:
            output['testaments'][testament] = {'mnemonic': testament_branch.content}
        for book_code in books_in_testament(testament):
            book = _build_book(index, book_code)
            if book is not None:
                output['books'][book_code] = book

    return output


def branch_selections(branches: Iterable[Branch]) -> Dict[str, str]:
    """reference -> id of the branch the export used for it."""
    return {ref: b.id for ref, b in index_by_reference(branches).items()}


def _canonical_branches(engine: Optional[Engine]) -> List[Branch]:
    # Oldest first, so duplicate canonical branches resolve to the oldest.
    return find_branches(is_canonical=True, with_votes=False, engine=engine)


def compile_export(engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Build the export from the store. A store failure raises StoreError and no
    document is produced.
    """
    canonical = _canonical_branches(engine)
    document = build_export(canonical)
    logger.info(
        'Compiled canonical export: %d canonical branches, %d books',
        len(canonical),
        len(document['books']),
    )
    return document


def publish_export(
    created_by: Optional[str] = None,
    export_type: str = 'canonical',
    engine: Optional[Engine] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Compile the export and store it as a new export version."""
    canonical = _canonical_branches(engine)
    document = build_export(canonical)
    version_id = save_export_version(
        document,
        branch_selections(canonical),
        created_by=created_by,
        export_type=export_type,
        engine=engine,
    )
    return version_id, document
