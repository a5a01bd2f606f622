from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from releasehub.core.config import Settings, get_settings
from releasehub.core.db import get_engine, init_db
from releasehub.deps.services import build_services
from releasehub.services.blob_store import BlobStore, LocalBlobStore


def build_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    engine = engine or get_engine(settings.sqlite_path)
    services = build_services(settings, engine, blob_store)

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", include_in_schema=False)
    def _root() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    @app.get("/favicon.ico", include_in_schema=False)
    def _favicon() -> Response:
        # 避免日志刷 404
        return Response(status_code=204)

    @app.get("/health", tags=["system"])  # 健康检查
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "subscribers": services.store.broadcaster.subscriber_count})

    # ---- Catalog wiring ----
    from releasehub.api.versions import router as versions_router
    from releasehub.api.update import router as update_router
    from releasehub.api.ws import router as ws_router

    app.include_router(versions_router)
    app.include_router(update_router)
    app.include_router(ws_router)

    # 本地存储后端直接提供下载
    store_backend = services.pipeline.blob_store
    if isinstance(store_backend, LocalBlobStore):
        root = Path(store_backend.root)
        root.mkdir(parents=True, exist_ok=True)
        app.mount("/blobs", StaticFiles(directory=str(root)), name="blobs")

    # ---- DB init on startup ----
    @app.on_event("startup")
    def _ensure_tables() -> None:
        init_db(engine)

    return app
