# acrostic.py
"""
Acrostic rules for the four mnemonic levels.

A testament acrostic has one letter per book, a book acrostic one letter per
chapter and a chapter acrostic one letter per verse. Letters are counted after
dropping everything that is not an ASCII letter, so one long word can carry
several units. Verse mnemonics are free text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

from bible_data import (
    TESTAMENT_BOOK_COUNTS,
    TESTAMENTS,
    books_in_testament,
    get_book_info,
    get_chapter_verse_count,
)

TESTAMENT = 'testament'
BOOK = 'book'
CHAPTER = 'chapter'
VERSE = 'verse'
LEVELS = (TESTAMENT, BOOK, CHAPTER, VERSE)

# Level one rung above each level; testaments have no parent.
PARENT_LEVEL = {BOOK: TESTAMENT, CHAPTER: BOOK, VERSE: CHAPTER}

_NON_LETTER_RE = re.compile(r'[^A-Za-z]')
_NUMBER_RE = re.compile(r'^[1-9]\d*$')


def _exact_book(code: str):
    """Book info for an exact upper-case code; lower-case codes do not resolve."""
    book = get_book_info(code)
    return book if book is not None and book.code == code else None


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class Reference:
    level: str
    code: str
    chapter: Optional[int] = None
    verse: Optional[int] = None

    def __str__(self) -> str:
        parts = [self.code]
        if self.chapter is not None:
            parts.append(str(self.chapter))
        if self.verse is not None:
            parts.append(str(self.verse))
        return '.'.join(parts)

    @property
    def parent(self) -> Optional['Reference']:
        """Reference of the unit this one is nested under."""
        if self.level == VERSE:
            return Reference(CHAPTER, self.code, self.chapter)
        if self.level == CHAPTER:
            return Reference(BOOK, self.code)
        if self.level == BOOK:
            return Reference(TESTAMENT, get_book_info(self.code).testament)
        return None

    @property
    def position(self) -> int:
        """1-based index of this unit inside its parent's acrostic, 0 for testaments."""
        if self.level == VERSE:
            return self.verse
        if self.level == CHAPTER:
            return self.chapter
        if self.level == BOOK:
            book = get_book_info(self.code)
            return books_in_testament(book.testament).index(book.code) + 1
        return 0


def parse_reference(reference: str, level: Optional[str] = None) -> Optional[Reference]:
    """
    Parse 'OT', 'GEN', 'GEN.1' or 'GEN.1.1'. Returns None when the reference is
    malformed, names an unknown book or an out-of-range chapter/verse, or does
    not match `level` when one is given.
    """
    if not reference:
        return None
    parts = reference.strip().split('.')
    if len(parts) == 1 and parts[0] in TESTAMENTS:
        ref = Reference(TESTAMENT, parts[0])
    else:
        book = _exact_book(parts[0])
        if book is None or len(parts) > 3:
            return None
        if not all(_NUMBER_RE.match(p) for p in parts[1:]):
            return None
        numbers = [int(p) for p in parts[1:]]
        if len(numbers) == 0:
            ref = Reference(BOOK, book.code)
        elif len(numbers) == 1:
            if numbers[0] > book.chapter_count:
                return None
            ref = Reference(CHAPTER, book.code, numbers[0])
        else:
            chapter, verse = numbers
            if verse > get_chapter_verse_count(book.code, chapter):
                return None
            ref = Reference(VERSE, book.code, chapter, verse)
    if level is not None and ref.level != level:
        return None
    return ref


def required_count(level: str, reference: str) -> int:
    """
    Number of letters an acrostic at `level` for `reference` must contain.
    0 means no count constraint applies (verses, unknown levels or references).
    References are read as strictly as parse_reference reads them.
    """
    if level == TESTAMENT:
        return TESTAMENT_BOOK_COUNTS.get(reference, 0)
    if level == BOOK:
        book = _exact_book(reference)
        return book.chapter_count if book else 0
    if level == CHAPTER:
        parts = (reference or '').split('.')
        if len(parts) != 2 or not _NUMBER_RE.match(parts[1]) or _exact_book(parts[0]) is None:
            return 0
        return get_chapter_verse_count(parts[0], int(parts[1]))
    return 0


def clean_letters(text: str) -> str:
    return _NON_LETTER_RE.sub('', text or '')


def validate_acrostic(
    text: str,
    level: str,
    reference: str,
    required_first_letter: Optional[str] = None,
) -> ValidationResult:
    if not text or not text.strip():
        return ValidationResult(False, 'Content cannot be empty')

    if level == VERSE:
        return ValidationResult(True)

    clean_text = clean_letters(text)
    expected = required_count(level, reference)
    if expected > 0 and len(clean_text) != expected:
        return ValidationResult(
            False,
            f'Must have exactly {expected} letters (currently {len(clean_text)})',
        )

    if required_first_letter and clean_text:
        first = clean_text[0].upper()
        wanted = required_first_letter.strip().upper()
        if first != wanted:
            return ValidationResult(
                False,
                f'Must start with letter "{wanted}" (currently starts with "{first}")',
            )

    return ValidationResult(True)


def child_letter(parent_content: str, position: int) -> Optional[str]:
    """
    Upper-cased letter of `parent_content` that the child at `position`
    (1-based) must start with, or None when the parent is too short.
    """
    letters = clean_letters(parent_content)
    if position < 1 or position > len(letters):
        return None
    return letters[position - 1].upper()


def child_letters(parent_level: str, parent_reference: str, parent_content: str) -> Dict[str, Optional[str]]:
    """
    Map every child reference of a parent unit to the letter its acrostic must
    start with. Children beyond the end of a short parent map to None.
    """
    if parent_level == TESTAMENT:
        children = books_in_testament(parent_reference)
    elif parent_level == BOOK:
        book = _exact_book(parent_reference)
        count = book.chapter_count if book else 0
        children = [f'{parent_reference}.{c}' for c in range(1, count + 1)]
    elif parent_level == CHAPTER:
        count = required_count(CHAPTER, parent_reference)
        children = [f'{parent_reference}.{v}' for v in range(1, count + 1)]
    else:
        return {}
    return {ref: child_letter(parent_content, i) for i, ref in enumerate(children, start=1)}


def letter_constraint_for(reference: Reference, parent_content: Optional[str]) -> Optional[str]:
    if reference.level == TESTAMENT or not parent_content:
        return None
    return child_letter(parent_content, reference.position)
