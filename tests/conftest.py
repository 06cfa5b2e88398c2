import pytest
from fastapi.testclient import TestClient

from app import create_app
from database import Database


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'agritrust-test.db'}"


@pytest.fixture
def database(database_url):
    database = Database(database_url)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(database_url):
    with TestClient(create_app(database_url)) as c:
        yield c


@pytest.fixture
def wheat_reading():
    return {
        "landId": "L1",
        "cropType": "Wheat",
        "soilMoisture": 42,
        "temperature": 21,
        "cid": "bafy123",
        "producerId": "P1",
    }
