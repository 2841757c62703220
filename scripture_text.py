# scripture_text.py
"""
Verse text for a chapter from the public BSB text provider
(https://bible.helloao.org), shown next to verse mnemonics.
"""
import logging
import os
from typing import Any, Dict, Optional

import requests

SCRIPTURE_API_BASE = os.getenv('SCRIPTURE_API_BASE', 'https://bible.helloao.org/api')
SCRIPTURE_TRANSLATION = os.getenv('SCRIPTURE_TRANSLATION', 'BSB')
HTTP_TIMEOUT = float(os.getenv('SCRIPTURE_HTTP_TIMEOUT', '10'))

logger = logging.getLogger(__name__)


def chapter_url(book: str, chapter: int, translation: Optional[str] = None) -> str:
    translation = translation or SCRIPTURE_TRANSLATION
    return f'{SCRIPTURE_API_BASE}/{translation}/{book.upper()}/{chapter}.json'


def _segment_text(segment: Any) -> str:
    if isinstance(segment, str):
        return segment
    if isinstance(segment, dict):
        return segment.get('text') or ''
    return ''


def parse_chapter_payload(data: Any) -> Dict[int, str]:
    """
    Pull {verse number: text} out of a provider chapter payload. Text segments
    are joined with single spaces; a verse split across several items is
    concatenated.
    """
    verses: Dict[int, str] = {}
    chapter = data.get('chapter') if isinstance(data, dict) else None
    content = chapter.get('content') if isinstance(chapter, dict) else None
    if not isinstance(content, list):
        return verses

    for item in content:
        if not isinstance(item, dict) or item.get('type') != 'verse' or not item.get('number'):
            continue
        segments = item.get('content')
        if not isinstance(segments, list):
            continue
        text = ' '.join(s for s in (_segment_text(seg) for seg in segments) if s)
        if not text:
            continue
        number = int(item['number'])
        verses[number] = f'{verses[number]} {text}' if number in verses else text
    return verses


def get_chapter_text(book: str, chapter: int, translation: Optional[str] = None) -> Dict[int, str]:
    """Verse texts of one chapter, or {} when the provider cannot be reached."""
    url = chapter_url(book, chapter, translation)
    try:
        response = requests.get(url, headers={'Accept': 'application/json'}, timeout=HTTP_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logger.warning('Network error fetching %s: %s', url, e)
        return {}
    if not response.ok:
        logger.warning('Failed to fetch Bible text %s: %s %s', url, response.status_code, response.reason)
        return {}
    try:
        data = response.json()
    except ValueError:
        logger.warning('Invalid JSON from Bible text provider: %s', url)
        return {}
    return parse_chapter_payload(data)
