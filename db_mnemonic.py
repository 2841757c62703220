# db_mnemonic.py
import os
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

MNEMONIC_DATABASE_URL = os.getenv('MNEMONIC_DATABASE_URL')

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        if not MNEMONIC_DATABASE_URL:
            raise RuntimeError('MNEMONIC_DATABASE_URL must be set for the mnemonic DB')
        _engine = create_engine(MNEMONIC_DATABASE_URL, future=True)
    return _engine


def resolve_engine(engine: Optional[Engine] = None) -> Engine:
    return engine if engine is not None else get_engine()
