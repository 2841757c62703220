import pytest
from fastapi.testclient import TestClient

import mnemonic_api
from branch_store import insert_branch, update_branch, upsert_vote
from canonical_export import publish_export
from db_mnemonic import get_engine
from errors import StoreError

GENESIS_ACROSTIC = 'FIRST GOD CREATES ADAM THEN CHOOSES ABRAHAM ISAAC AND JACOB'


@pytest.fixture
def client(engine):
    mnemonic_api.app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(mnemonic_api.app)
    mnemonic_api.app.dependency_overrides.clear()


def test_canonical_export(client, engine):
    insert_branch('testament', 'OT', 'ot', is_canonical=True, engine=engine)
    insert_branch('verse', 'GEN.1.1', 'beginning', is_canonical=True, engine=engine)

    resp = client.get('/export/canonical')

    assert resp.status_code == 200
    body = resp.json()
    assert body['meta']['version'] == '1.0'
    assert body['testaments'] == {'OT': {'mnemonic': 'ot'}}
    assert body['books']['GEN']['chapters']['1']['verses'] == {'1': {'mnemonic': 'beginning'}}


def test_canonical_export_store_failure(client, monkeypatch):
    def broken(engine=None):
        raise StoreError('connection refused')

    monkeypatch.setattr(mnemonic_api, 'compile_export', broken)
    resp = client.get('/export/canonical')
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Internal Server Error'}


def test_export_version_download(client, engine):
    insert_branch('book', 'RUT', 'Ruth', is_canonical=True, engine=engine)
    version_id, document = publish_export(engine=engine)

    resp = client.get(f'/exports/{version_id}')
    assert resp.status_code == 200
    assert resp.json()['books'] == document['books']

    assert client.get('/exports/nope').status_code == 404


def test_branches_for_reference(client, engine):
    older = insert_branch('book', 'GEN', GENESIS_ACROSTIC, engine=engine)
    newer = insert_branch('book', 'GEN', GENESIS_ACROSTIC.lower(), engine=engine)
    hidden = insert_branch('book', 'GEN', GENESIS_ACROSTIC, engine=engine)
    upsert_vote('u1', newer.id, 1, engine=engine)
    upsert_vote('u1', older.id, -1, engine=engine)
    update_branch(hidden.id, engine=engine, status='archived')

    resp = client.get('/branches/GEN')

    assert resp.status_code == 200
    body = resp.json()
    assert body['reference'] == 'GEN'
    assert body['display'] == 'Genesis'
    assert body['level'] == 'book'
    assert body['required_count'] == 50
    assert body['winner_id'] == newer.id
    assert body['alternatives_count'] == 1
    assert [b['id'] for b in body['branches']] == [newer.id, older.id]
    assert [b['score'] for b in body['branches']] == [1, -1]
    assert body['child_letters']['GEN.1'] == 'F'
    assert body['child_letters']['GEN.2'] == 'I'
    assert len(body['child_letters']) == 50


def test_branches_empty_reference(client):
    body = client.get('/branches/GEN.1.1').json()
    assert body['level'] == 'verse'
    assert body['winner_id'] is None
    assert body['alternatives_count'] == 0
    assert body['branches'] == []
    assert body['child_letters'] == {}


@pytest.mark.parametrize('reference', ['gen', 'GEN.0', 'GEN.51', 'GEN.1.32', 'XYZ', 'GEN.1.1.1'])
def test_branches_bad_reference(client, reference):
    resp = client.get(f'/branches/{reference}')
    assert resp.status_code == 400
    assert resp.json()['detail'] == 'Invalid reference format'


def test_validate_endpoint(client):
    resp = client.post(
        '/validate',
        json={'text': 'IN EDEN GOD MADE A WOMAN FOR HIM', 'level': 'chapter', 'reference': 'GEN.1'},
    )
    assert resp.status_code == 200
    assert resp.json() == {'valid': False, 'error': 'Must have exactly 31 letters (currently 25)'}

    resp = client.post(
        '/validate',
        json={'text': GENESIS_ACROSTIC, 'level': 'book', 'reference': 'GEN', 'required_first_letter': 'f'},
    )
    assert resp.json() == {'valid': True, 'error': None}


def test_chapter_text(client, monkeypatch):
    calls = []

    def fake_text(book, chapter):
        calls.append((book, chapter))
        return {2: 'Now the earth was formless', 1: 'In the beginning'}

    monkeypatch.setattr(mnemonic_api, 'get_chapter_text', fake_text)

    resp = client.get('/chapters/gen/1/text')

    assert resp.status_code == 200
    assert resp.json() == {
        'reference': 'GEN.1',
        'verses': {'1': 'In the beginning', '2': 'Now the earth was formless'},
    }
    assert calls == [('GEN', 1)]


def test_chapter_text_unknown_chapter(client):
    assert client.get('/chapters/GEN/51/text').status_code == 404
    assert client.get('/chapters/XYZ/1/text').status_code == 404


@pytest.fixture
def quiet_client(engine):
    mnemonic_api.app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(mnemonic_api.app, raise_server_exceptions=False)
    mnemonic_api.app.dependency_overrides.clear()


def test_unexpected_error_returns_json_body(quiet_client, monkeypatch):
    def broken(engine=None):
        raise RuntimeError('boom')

    monkeypatch.setattr(mnemonic_api, 'compile_export', broken)
    resp = quiet_client.get('/export/canonical')
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Internal Server Error'}


def test_unconfigured_database_returns_json_body(quiet_client):
    def no_engine():
        raise RuntimeError('MNEMONIC_DATABASE_URL must be set for the mnemonic DB')

    mnemonic_api.app.dependency_overrides[get_engine] = no_engine
    resp = quiet_client.get('/export/canonical')
    assert resp.status_code == 500
    assert resp.json() == {'error': 'Internal Server Error'}


def test_testament_tree(client, engine):
    insert_branch('testament', 'NT', 'JESUS SENT HIS SPIRIT TO ALL OF US', engine=engine)
    mark = insert_branch('book', 'MRK', 'x', engine=engine)
    popular = insert_branch('book', 'MRK', 'y', engine=engine)
    insert_branch('book', 'MRK', 'z', engine=engine)
    archived = insert_branch('book', 'JHN', 'hidden', engine=engine)
    update_branch(archived.id, engine=engine, status='archived')
    insert_branch('chapter', 'MRK.1', 'not in the tree', engine=engine)
    upsert_vote('u1', popular.id, 1, engine=engine)

    resp = client.get('/tree/NT')

    assert resp.status_code == 200
    body = resp.json()
    assert body['testament']['mnemonic'] == 'JESUS SENT HIS SPIRIT TO ALL OF US'
    assert body['testament']['alternatives_count'] == 0
    assert body['sections'][0]['name'] == 'THE GOSPELS'
    books = {b['reference']: b for s in body['sections'] for b in s['books']}
    assert len(books) == 27
    assert books['MRK']['winner_id'] == popular.id
    assert books['MRK']['mnemonic'] == 'y'
    assert books['MRK']['score'] == 1
    assert books['MRK']['alternatives_count'] == 2
    assert books['MRK']['display'] == 'Mark'
    assert books['JHN']['winner_id'] is None
    assert books['JHN']['alternatives_count'] == 0
    assert mark.id not in {b['winner_id'] for b in books.values()}


def test_tree_unknown_testament(client):
    assert client.get('/tree/XX').status_code == 404
