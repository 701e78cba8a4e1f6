# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from storefront.config import Settings
from storefront.main import create_app
from tests.helpers import STORE_KINDS, make_store


@pytest.fixture(params=STORE_KINDS)
def store(request, tmp_path):
    return make_store(request.param, tmp_path)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_file=tmp_path / "store.json",
        sqlite_path=tmp_path / "tienda.db",
        upload_dir=tmp_path / "uploads",
        whatsapp_number="929528308",
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c
