from datetime import datetime, timezone

import pytest

import canonical_export
from branch_store import Branch, get_export_version, insert_branch
from canonical_export import build_export, compile_export, publish_export
from errors import StoreError


def canon(reference, content, level='book', branch_id=None):
    return Branch(
        id=branch_id or f'id-{reference}',
        level=level,
        reference=reference,
        content=content,
        is_canonical=True,
    )


def test_meta_block():
    doc = build_export([], generated_at=datetime(2024, 3, 1, 12, 30, 5, 250000, tzinfo=timezone.utc))
    assert doc['meta'] == {
        'version': '1.0',
        'description': 'Hierarchical mnemonics for Bible memorization',
        'generated_at': '2024-03-01T12:30:05.250Z',
    }
    assert doc['testaments'] == {}
    assert doc['books'] == {}


def test_testament_only():
    doc = build_export([canon('OT', 'ot text', 'testament')])
    assert doc['testaments'] == {'OT': {'mnemonic': 'ot text'}}
    assert doc['books'] == {}


def test_lone_verse_gets_null_ancestors():
    doc = build_export([canon('GEN.1.1', 'In the beginning', 'verse')])
    assert doc['testaments'] == {}
    assert doc['books'] == {
        'GEN': {
            'mnemonic': None,
            'chapters': {
                '1': {'mnemonic': None, 'verses': {'1': {'mnemonic': 'In the beginning'}}},
            },
        }
    }


def test_book_without_chapters():
    doc = build_export([canon('RUT', 'Ruth')])
    assert doc['books'] == {'RUT': {'mnemonic': 'Ruth', 'chapters': {}}}


def test_chapter_without_verses_and_pruning():
    doc = build_export([
        canon('EXO.3', 'burning bush', 'chapter'),
        canon('EXO', 'exodus'),
    ])
    assert list(doc['books']) == ['EXO']
    assert doc['books']['EXO']['chapters'] == {'3': {'mnemonic': 'burning bush', 'verses': {}}}


def test_books_follow_canonical_order():
    doc = build_export([
        canon('REV', 'rev'),
        canon('MAL', 'mal'),
        canon('GEN', 'gen'),
        canon('MAT', 'mat'),
    ])
    assert list(doc['books']) == ['GEN', 'MAL', 'MAT', 'REV']


def test_chapter_and_verse_keys_are_strings_in_order():
    doc = build_export([
        canon('PSA.119.10', 'ten', 'verse'),
        canon('PSA.119.2', 'two', 'verse'),
        canon('PSA.23', 'shepherd', 'chapter'),
    ])
    chapters = doc['books']['PSA']['chapters']
    assert list(chapters) == ['23', '119']
    assert list(chapters['119']['verses']) == ['2', '10']


def test_duplicate_canonical_first_wins(caplog):
    first = canon('GEN', 'older', branch_id='a')
    second = canon('GEN', 'newer', branch_id='b')
    with caplog.at_level('WARNING', logger='canonical_export'):
        doc = build_export([first, second])
    assert doc['books']['GEN']['mnemonic'] == 'older'
    assert 'Multiple canonical branches for GEN' in caplog.text


def test_unknown_references_are_ignored():
    doc = build_export([canon('XYZ', 'nothing'), canon('GEN.99', 'nothing', 'chapter')])
    assert doc['books'] == {}


def test_compile_export_reads_only_canonical(engine):
    insert_branch('testament', 'NT', 'nt canon', is_canonical=True, engine=engine)
    insert_branch('testament', 'NT', 'nt alternative', engine=engine)
    insert_branch('book', 'JHN', 'not canonical', engine=engine)
    insert_branch('verse', 'JHN.3.16', 'God so loved', is_canonical=True, engine=engine)

    doc = compile_export(engine=engine)

    assert doc['testaments'] == {'NT': {'mnemonic': 'nt canon'}}
    assert doc['books'] == {
        'JHN': {
            'mnemonic': None,
            'chapters': {'3': {'mnemonic': None, 'verses': {'16': {'mnemonic': 'God so loved'}}}},
        }
    }


def test_compile_export_propagates_store_failure(monkeypatch):
    def broken(**kwargs):
        raise StoreError('database is down')

    monkeypatch.setattr(canonical_export, 'find_branches', broken)
    with pytest.raises(StoreError):
        compile_export()


def test_publish_export_saves_version(engine):
    gen = insert_branch('book', 'GEN', 'genesis', is_canonical=True, engine=engine)

    version_id, doc = publish_export(created_by='admin', engine=engine)

    stored = get_export_version(version_id, engine=engine)
    assert stored['type'] == 'canonical'
    assert stored['created_by'] == 'admin'
    assert stored['branch_selections'] == {'GEN': gen.id}
    assert stored['json_content']['books'] == doc['books']
