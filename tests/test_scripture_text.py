import requests

import scripture_text
from scripture_text import chapter_url, get_chapter_text, parse_chapter_payload

PAYLOAD = {
    'translation': {'id': 'BSB'},
    'chapter': {
        'number': 1,
        'content': [
            {'type': 'heading', 'content': ['The Creation']},
            {'type': 'verse', 'number': 1, 'content': ['In the beginning God created the heavens and the earth.']},
            {
                'type': 'verse',
                'number': 2,
                'content': [
                    'Now the earth was formless and void,',
                    {'text': 'and darkness was over the surface of the deep.'},
                    {'noteId': 3},
                ],
            },
            {'type': 'line_break'},
            {'type': 'verse', 'number': 2, 'content': ['And the Spirit of God was hovering over the waters.']},
            {'type': 'verse', 'number': 3, 'content': []},
        ],
    },
}


class FakeResponse:
    def __init__(self, status_code=200, data=None, reason='OK'):
        self.status_code = status_code
        self.reason = reason
        self._data = data

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError('No JSON object could be decoded')
        return self._data


def test_chapter_url():
    assert chapter_url('gen', 1) == 'https://bible.helloao.org/api/BSB/GEN/1.json'
    assert chapter_url('JHN', 3, 'KJV').endswith('/KJV/JHN/3.json')


def test_parse_chapter_payload():
    verses = parse_chapter_payload(PAYLOAD)
    assert verses == {
        1: 'In the beginning God created the heavens and the earth.',
        2: 'Now the earth was formless and void, and darkness was over the surface of the deep. '
        'And the Spirit of God was hovering over the waters.',
    }


def test_parse_chapter_payload_malformed():
    assert parse_chapter_payload(None) == {}
    assert parse_chapter_payload({'chapter': {}}) == {}
    assert parse_chapter_payload({'chapter': {'content': 'nope'}}) == {}


def test_get_chapter_text_success(monkeypatch):
    seen = {}

    def fake_get(url, headers=None, timeout=None):
        seen['url'] = url
        seen['timeout'] = timeout
        return FakeResponse(data=PAYLOAD)

    monkeypatch.setattr(scripture_text.requests, 'get', fake_get)
    verses = get_chapter_text('GEN', 1)
    assert sorted(verses) == [1, 2]
    assert seen['url'].endswith('/BSB/GEN/1.json')
    assert seen['timeout'] == scripture_text.HTTP_TIMEOUT


def test_get_chapter_text_http_error(monkeypatch, caplog):
    monkeypatch.setattr(
        scripture_text.requests, 'get', lambda *a, **kw: FakeResponse(404, reason='Not Found')
    )
    with caplog.at_level('WARNING', logger='scripture_text'):
        assert get_chapter_text('GEN', 1) == {}
    assert '404' in caplog.text


def test_get_chapter_text_network_error(monkeypatch):
    def fail(*args, **kwargs):
        raise requests.exceptions.ConnectionError('no route to host')

    monkeypatch.setattr(scripture_text.requests, 'get', fail)
    assert get_chapter_text('GEN', 1) == {}


def test_get_chapter_text_bad_json(monkeypatch):
    monkeypatch.setattr(scripture_text.requests, 'get', lambda *a, **kw: FakeResponse(data=None))
    assert get_chapter_text('GEN', 1) == {}
