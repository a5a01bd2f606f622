"""
Pytest configuration and fixtures
"""
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from releasehub.core.config import Settings
from releasehub.core.db import get_engine, init_db, make_session_factory
from releasehub.factory import build_app
from releasehub.services.admission import ReleaseAdmissionController
from releasehub.services.blob_store import LocalBlobStore
from releasehub.services.broadcaster import SyncBroadcaster
from releasehub.services.catalog_store import VersionCatalogStore
from releasehub.services.transfer import ArtifactTransferPipeline


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        sqlite_path=str(tmp_path / "catalog.sqlite3"),
        data_dir=str(tmp_path),
        blob_root=str(tmp_path / "blobs"),
        public_base_url="http://testserver/blobs",
        transfer_chunk_size=64 * 1024,
        log_level="DEBUG",
    )


@pytest.fixture
def engine(settings: Settings):
    engine = get_engine(settings.sqlite_path)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def broadcaster(settings: Settings) -> SyncBroadcaster:
    return SyncBroadcaster(queue_size=settings.subscriber_queue_size)


@pytest.fixture
def store(engine, broadcaster: SyncBroadcaster) -> VersionCatalogStore:
    return VersionCatalogStore(make_session_factory(engine), broadcaster)


@pytest.fixture
def blob_store(settings: Settings) -> LocalBlobStore:
    return LocalBlobStore(settings.blob_root, settings.public_base_url)


@pytest.fixture
def pipeline(blob_store: LocalBlobStore, settings: Settings) -> ArtifactTransferPipeline:
    return ArtifactTransferPipeline(blob_store, settings)


@pytest.fixture
def controller(store: VersionCatalogStore, pipeline: ArtifactTransferPipeline, settings: Settings) -> ReleaseAdmissionController:
    return ReleaseAdmissionController(store, pipeline, settings)


@pytest.fixture
def client(settings: Settings, engine, blob_store: LocalBlobStore):
    app = build_app(settings=settings, engine=engine, blob_store=blob_store)
    with TestClient(app) as c:
        yield c
