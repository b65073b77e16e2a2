import random

import pytest
from fastapi.testclient import TestClient

from database import Base, Settings, make_engine, make_session_factory
from core.ledger import Ledger
from core.round_scheduler import RoundScheduler
from main import create_app


class FixedDraw:
    """randint 永遠回傳固定號碼，讓開獎結果可預期"""

    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        assert a <= self.value <= b
        return self.value


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'lottery.db'}"


@pytest.fixture
def engine(database_url):
    engine = make_engine(database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def ledger(engine):
    return Ledger(make_session_factory(engine), default_balance=1000)


@pytest.fixture
def scheduler(ledger):
    scheduler = RoundScheduler(ledger, round_seconds=60, retry_seconds=0.01, rng=random.Random(7))
    scheduler.open()
    return scheduler


@pytest.fixture
def client(engine, database_url):
    settings = Settings(database_url=database_url, round_seconds=60, default_balance=1000)
    app = create_app(settings=settings, engine=engine, rng=FixedDraw(250), start_scheduler=False)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def fixed_draw():
    return FixedDraw
