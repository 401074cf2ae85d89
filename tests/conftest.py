import os
import sys
from pathlib import Path

import pytest
import anyio
import httpx
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///" + str(BASE_DIR / "test.db"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("ENRICHMENT_MAX_WORKERS", "1")

from catalog_paths.core.config import get_settings
from catalog_paths.core import db as db_module
from catalog_paths.core.cache import InMemoryCacheBackend, cache_manager
from catalog_paths.core.dependencies import get_db
from catalog_paths.models import Base, Category, Product, product_categories
from catalog_paths.main import app

get_settings.cache_clear()

db_module._engine = None
db_module._SessionLocal = None
_db_path = BASE_DIR / "test.db"


def _create_engine():
    settings = get_settings()
    connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
    return create_engine(settings.DATABASE_URL, connect_args=connect_args)


def _create_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="session")
def engine():
    engine = _create_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if _db_path.exists():
        _db_path.unlink()


@pytest.fixture(scope="session")
def session_factory(engine):
    return _create_session_factory(engine)


@pytest.fixture(autouse=True)
def cache_backend():
    backend = InMemoryCacheBackend()
    cache_manager.use_backend(backend)
    yield backend
    cache_manager.use_backend(InMemoryCacheBackend())


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
        cleanup = session_factory()
        try:
            cleanup.execute(delete(product_categories))
            cleanup.execute(delete(Product))
            cleanup.execute(delete(Category))
            cleanup.commit()
        finally:
            cleanup.close()


@pytest.fixture()
def make_category(db_session):
    def _make(name, slug, parent=None, parent_id=None):
        if parent is not None:
            parent_id = parent.id
        category = Category(name=name, slug=slug, parent_id=parent_id)
        db_session.add(category)
        db_session.commit()
        return category

    return _make


@pytest.fixture()
def make_product(db_session):
    def _make(name, slug, categories=(), price="9.99", **kwargs):
        product = Product(name=name, slug=slug, price=price, **kwargs)
        product.categories = list(categories)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture()
def client(session_factory, db_session):
    def _get_test_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db

    class _SyncASGIClient:
        def __init__(self, fastapi_app):
            self._client = httpx.AsyncClient(
                transport=httpx.ASGITransport(app=fastapi_app),
                base_url="http://testserver",
            )

        def request(self, method: str, url: str, **kwargs):
            async def _do_request():
                return await self._client.request(method, url, **kwargs)

            return anyio.run(_do_request)

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def close(self):
            async def _do_close():
                await self._client.aclose()

            anyio.run(_do_close)

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            self.close()

    with _SyncASGIClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
