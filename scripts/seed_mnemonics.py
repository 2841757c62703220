#!/usr/bin/env python3
# scripts/seed_mnemonics.py
"""
Load canonical mnemonics from a JSON corpus into the branch store.

The corpus has the same shape as the canonical export:
  {"testaments": {"OT": {"mnemonic": ...}},
   "books": {"GEN": {"mnemonic": ..., "chapters": {"1": {"mnemonic": ..., "verses": {"1": {"mnemonic": ...}}}}}}}

Existing canonical branches are updated in place, missing ones are inserted.
Each child's letter constraint is derived from its parent's acrostic.
"""
import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine

from acrostic import BOOK, CHAPTER, TESTAMENT, VERSE, letter_constraint_for, parse_reference, validate_acrostic
from bible_data import TESTAMENTS, get_book_info
from branch_store import find_branches, insert_branch, update_branch
from db_mnemonic import get_engine

logger = logging.getLogger('seed_mnemonics')


@dataclass
class SeedReport:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    invalid: List[str] = field(default_factory=list)


@dataclass
class _Node:
    id: Optional[str]
    content: Optional[str]


def _mnemonic_of(node: Any) -> str:
    if isinstance(node, dict):
        return (node.get('mnemonic') or '').strip()
    return ''


def _seed_node(
    level: str,
    reference: str,
    content: str,
    parent: Optional[_Node],
    report: SeedReport,
    engine: Optional[Engine],
    dry_run: bool,
    strict: bool,
) -> _Node:
    if not content:
        report.skipped += 1
        return _Node(None, None)

    ref = parse_reference(reference, level)
    if ref is None:
        report.invalid.append(f'{reference}: not a valid {level} reference')
        report.skipped += 1
        return _Node(None, None)

    parent_content = parent.content if parent else None
    letter = letter_constraint_for(ref, parent_content)
    result = validate_acrostic(content, level, reference, letter)
    if not result.valid:
        report.invalid.append(f'{reference}: {result.error}')
        if strict:
            report.skipped += 1
            return _Node(None, content)

    existing = find_branches(
        level=level, reference=reference, is_canonical=True, with_votes=False, engine=engine
    )
    parent_id = parent.id if parent else None
    if dry_run:
        return _Node(existing[0].id if existing else None, content)

    if existing:
        branch_id = existing[0].id
        update_branch(
            branch_id,
            engine=engine,
            content=content,
            parent_branch_id=parent_id,
            letter_constraint=letter,
        )
        report.updated += 1
    else:
        branch_id = insert_branch(
            level,
            reference,
            content,
            parent_branch_id=parent_id,
            letter_constraint=letter,
            is_canonical=True,
            engine=engine,
        ).id
        report.inserted += 1
    logger.debug('Seeded %s %s', level, reference)
    return _Node(branch_id, content)


def seed_corpus(
    corpus: Dict[str, Any],
    engine: Optional[Engine] = None,
    dry_run: bool = False,
    strict: bool = False,
) -> SeedReport:
    report = SeedReport()
    opts = dict(report=report, engine=engine, dry_run=dry_run, strict=strict)

    testaments: Dict[str, _Node] = {}
    for t in TESTAMENTS:
        t_data = (corpus.get('testaments') or {}).get(t)
        testaments[t] = _seed_node(TESTAMENT, t, _mnemonic_of(t_data), None, **opts)

    for code, b_data in (corpus.get('books') or {}).items():
        info = get_book_info(code)
        if info is None:
            report.invalid.append(f'{code}: unknown book code')
            report.skipped += 1
            continue
        logger.info('Processing book %s', info.code)
        book_node = _seed_node(BOOK, info.code, _mnemonic_of(b_data), testaments[info.testament], **opts)

        for chap_num, c_data in ((b_data or {}).get('chapters') or {}).items():
            chap_ref = f'{info.code}.{chap_num}'
            chap_node = _seed_node(CHAPTER, chap_ref, _mnemonic_of(c_data), book_node, **opts)

            for verse_num, v_data in ((c_data or {}).get('verses') or {}).items():
                _seed_node(VERSE, f'{chap_ref}.{verse_num}', _mnemonic_of(v_data), chap_node, **opts)

    return report


def main():
    ap = argparse.ArgumentParser(description='Seed canonical mnemonics from a JSON corpus')
    ap.add_argument('corpus', help='JSON file shaped like the canonical export')
    ap.add_argument('--dry-run', action='store_true', help='Validate only, write nothing')
    ap.add_argument('--strict', action='store_true', help='Skip entries that break the acrostic rules')
    args = ap.parse_args()

    logging.basicConfig(
        level=os.getenv('MNEMONIC_LOG_LEVEL', 'INFO'),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    )

    path = Path(args.corpus)
    if not path.exists():
        print(f'Corpus not found: {path}')
        sys.exit(1)
    corpus = json.loads(path.read_text(encoding='utf-8'))

    report = seed_corpus(corpus, engine=get_engine(), dry_run=args.dry_run, strict=args.strict)

    for line in report.invalid:
        print(f'[WARN] {line}')
    print(
        f'Inserted {report.inserted}, updated {report.updated}, skipped {report.skipped}, '
        f'invalid {len(report.invalid)}.'
    )


if __name__ == '__main__':
    main()
