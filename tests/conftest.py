import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from models import metadata


@pytest.fixture
def engine():
    eng = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
        future=True,
    )
    metadata.create_all(eng)
    yield eng
    eng.dispose()
