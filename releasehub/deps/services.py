from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from sqlalchemy.engine import Engine

from releasehub.core.config import Settings
from releasehub.core.db import make_session_factory
from releasehub.services.admission import ReleaseAdmissionController
from releasehub.services.blob_store import BlobStore, build_blob_store
from releasehub.services.broadcaster import SyncBroadcaster
from releasehub.services.catalog_store import VersionCatalogStore
from releasehub.services.transfer import ArtifactTransferPipeline


@dataclass
class Services:
    settings: Settings
    store: VersionCatalogStore
    pipeline: ArtifactTransferPipeline
    admission: ReleaseAdmissionController


def build_services(settings: Settings, engine: Engine, blob_store: BlobStore | None = None) -> Services:
    broadcaster = SyncBroadcaster(queue_size=settings.subscriber_queue_size)
    store = VersionCatalogStore(make_session_factory(engine), broadcaster)
    pipeline = ArtifactTransferPipeline(blob_store or build_blob_store(settings), settings)
    admission = ReleaseAdmissionController(store, pipeline, settings)
    return Services(settings=settings, store=store, pipeline=pipeline, admission=admission)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(request: Request) -> VersionCatalogStore:
    return get_services(request).store


def get_admission(request: Request) -> ReleaseAdmissionController:
    return get_services(request).admission
