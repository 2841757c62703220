#!/usr/bin/env python3
# mnemonic_api.py
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.engine import Engine

from acrostic import VERSE, child_letters, parse_reference, required_count, validate_acrostic
from bible_data import TESTAMENTS, display_reference, get_book_info, testament_sections
from branch_store import find_branches, record_download
from canonical_export import compile_export
from db_mnemonic import get_engine
from errors import NotFoundError, StoreError
from scripture_text import get_chapter_text
from selection import Selection, alternatives_count, rank_branches, score, select_winner, winners_by_reference

logger = logging.getLogger(__name__)

app = FastAPI(title='Bible Mnemonic API', version='1.0.0')


class ValidateRequest(BaseModel):
    text: str
    level: str
    reference: str
    required_first_letter: Optional[str] = None


class ValidateResponse(BaseModel):
    valid: bool
    error: Optional[str] = None


class BranchOut(BaseModel):
    id: str
    level: str
    reference: str
    content: str
    parent_branch_id: Optional[str] = None
    letter_constraint: Optional[str] = None
    is_canonical: bool
    status: str
    score: int


class BranchListResponse(BaseModel):
    reference: str  # e.g., "GEN.1"
    display: str  # "Genesis 1"
    level: str
    required_count: int
    winner_id: Optional[str] = None
    alternatives_count: int
    branches: List[BranchOut]
    child_letters: Dict[str, Optional[str]]


class TreeNode(BaseModel):
    reference: str
    display: str
    winner_id: Optional[str] = None
    mnemonic: Optional[str] = None
    score: int = 0
    alternatives_count: int = 0


class TreeSection(BaseModel):
    name: str
    books: List[TreeNode]


class TreeResponse(BaseModel):
    testament: TreeNode
    sections: List[TreeSection]


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.error('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return _error_response(500, 'Internal Server Error')


def _tree_node(reference: str, selection: Optional[Selection]) -> TreeNode:
    winner = selection.winner if selection else None
    return TreeNode(
        reference=reference,
        display=display_reference(reference),
        winner_id=winner.id if winner else None,
        mnemonic=winner.content if winner else None,
        score=score(winner) if winner else 0,
        alternatives_count=selection.alternatives_count if selection else 0,
    )


@app.get('/export/canonical')
def get_canonical_export(engine: Engine = Depends(get_engine)):
    try:
        return compile_export(engine=engine)
    except StoreError:
        logger.exception('Export failed')
        return _error_response(500, 'Internal Server Error')


@app.get('/exports/{version_id}')
def download_export_version(version_id: str, engine: Engine = Depends(get_engine)):
    try:
        row = record_download(version_id, engine=engine)
    except NotFoundError:
        raise HTTPException(status_code=404, detail='Export version not found')
    except StoreError:
        logger.exception('Export download failed')
        return _error_response(500, 'Internal Server Error')
    return row['json_content']


@app.get('/branches/{reference}', response_model=BranchListResponse)
def get_branches(reference: str, engine: Engine = Depends(get_engine)):
    ref = parse_reference(reference)
    if ref is None:
        raise HTTPException(status_code=400, detail='Invalid reference format')

    try:
        siblings = find_branches(reference=str(ref), status='active', engine=engine)
    except StoreError:
        logger.exception('Branch lookup failed for %s', reference)
        return _error_response(500, 'Internal Server Error')

    ranked = rank_branches(siblings)
    winner = select_winner(ranked)
    letters: Dict[str, Optional[str]] = {}
    if winner is not None and ref.level != VERSE:
        letters = child_letters(ref.level, str(ref), winner.content)

    return BranchListResponse(
        reference=str(ref),
        display=display_reference(str(ref)),
        level=ref.level,
        required_count=required_count(ref.level, str(ref)),
        winner_id=winner.id if winner else None,
        alternatives_count=alternatives_count(ranked),
        branches=[
            BranchOut(
                id=b.id,
                level=b.level,
                reference=b.reference,
                content=b.content,
                parent_branch_id=b.parent_branch_id,
                letter_constraint=b.letter_constraint,
                is_canonical=b.is_canonical,
                status=b.status,
                score=score(b),
            )
            for b in ranked
        ],
        child_letters=letters,
    )


@app.get('/tree/{testament}', response_model=TreeResponse)
def get_tree(testament: str, engine: Engine = Depends(get_engine)):
    """Best active branch of the testament and of each of its books, grouped by section."""
    if testament not in TESTAMENTS:
        raise HTTPException(status_code=404, detail='Testament not found')

    sections = testament_sections(testament)
    references = [testament] + [code for _, codes in sections for code in codes]
    try:
        active = find_branches(reference_in=references, status='active', engine=engine)
    except StoreError:
        logger.exception('Tree lookup failed for %s', testament)
        return _error_response(500, 'Internal Server Error')

    selections = winners_by_reference(active)
    return TreeResponse(
        testament=_tree_node(testament, selections.get(testament)),
        sections=[
            TreeSection(name=name, books=[_tree_node(code, selections.get(code)) for code in codes])
            for name, codes in sections
        ],
    )


@app.post('/validate', response_model=ValidateResponse)
def post_validate(req: ValidateRequest):
    result = validate_acrostic(req.text, req.level, req.reference, req.required_first_letter)
    return ValidateResponse(valid=result.valid, error=result.error)


@app.get('/chapters/{book}/{chapter}/text')
def get_chapter(book: str, chapter: int) -> Dict[str, Any]:
    info = get_book_info(book)
    if info is None or chapter < 1 or chapter > info.chapter_count:
        raise HTTPException(status_code=404, detail='Chapter not found')
    verses = get_chapter_text(info.code, chapter)
    return {
        'reference': f'{info.code}.{chapter}',
        'verses': {str(n): verses[n] for n in sorted(verses)},
    }


if __name__ == '__main__':
    import uvicorn

    logging.basicConfig(
        level=os.getenv('MNEMONIC_LOG_LEVEL', 'INFO'),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
    )
    uvicorn.run(app, host='0.0.0.0', port=int(os.getenv('MNEMONIC_API_PORT', '8000')))
