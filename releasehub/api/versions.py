"""
版本目录API接口
"""
from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool

from releasehub.core.errors import ErrorKind, ReleaseError
from releasehub.core.units import format_file_size
from releasehub.deps.auth import get_uploader_identity
from releasehub.deps.services import get_admission, get_store
from releasehub.schemas.version import (
    ActiveToggleRequest,
    ReleaseLinkRequest,
    UploadResponse,
    ValidationResponse,
    Version,
)
from releasehub.services.admission import AdmissionAttempt, ReleaseAdmissionController
from releasehub.services.catalog_store import VersionCatalogStore
from releasehub.services.transfer import ProgressEvent
from releasehub.services.validation import Artifact, ReleaseDraft


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/versions", tags=["版本目录"])

_STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.TRANSFER_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.URL_RESOLUTION_FAILURE: status.HTTP_502_BAD_GATEWAY,
    # client closed request
    ErrorKind.CANCELLED: 499,
}


def raise_for_error(error: ReleaseError) -> NoReturn:
    raise HTTPException(status_code=_STATUS_BY_KIND[error.kind], detail=error.to_dict())


def _published(attempt: AdmissionAttempt) -> Version:
    result = attempt.result
    if result is None:
        raise HTTPException(status_code=500, detail=f"admission_incomplete: {attempt.state.value}")
    if result.is_err():
        raise_for_error(result.unwrap_err())
    return result.unwrap()


def _draft_from_link(body: ReleaseLinkRequest) -> ReleaseDraft:
    return ReleaseDraft(
        version_name=body.version_name,
        version_code=body.version_code,
        changelog=body.changelog,
        is_critical=body.is_critical,
        download_url=body.download_url,
        file_size=body.file_size,
    )


@router.get("", response_model=List[Version], summary="版本目录（按 versionCode 降序）")
def list_versions(store: VersionCatalogStore = Depends(get_store)) -> List[Version]:
    return store.snapshot()


@router.get("/latest", response_model=Version, summary="最新版本")
def latest_version(store: VersionCatalogStore = Depends(get_store)) -> Version:
    latest = store.latest()
    if latest is None:
        raise HTTPException(status_code=404, detail="catalog_empty")
    return latest


@router.get("/{version_code}", response_model=Version, summary="按版本代码查询")
def get_version(version_code: int, store: VersionCatalogStore = Depends(get_store)) -> Version:
    version = store.get(version_code)
    if version is None:
        raise HTTPException(status_code=404, detail="version_not_found")
    return version


@router.post("/validate", response_model=ValidationResponse, summary="校验发布草稿（不提交）")
def validate_release(
    body: ReleaseLinkRequest,
    admission: ReleaseAdmissionController = Depends(get_admission),
) -> ValidationResponse:
    errors = admission.check(_draft_from_link(body))
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("", response_model=Version, status_code=status.HTTP_201_CREATED, summary="外链模式发布")
def create_release(
    body: ReleaseLinkRequest,
    uploaded_by: str = Depends(get_uploader_identity),
    admission: ReleaseAdmissionController = Depends(get_admission),
) -> Version:
    """
    使用外部托管的下载链接发布新版本

    - **versionCode**: 唯一的正整数，重复时返回 409
    - **downloadUrl**: 绝对地址
    - **fileSize**: 字节数，> 0
    """
    attempt = admission.admit(_draft_from_link(body), uploaded_by)
    return _published(attempt)


def _progress_logger(version_name: str):
    last_decile = [-1]

    def _log(event: ProgressEvent) -> None:
        decile = int(event.fraction * 10)
        if decile > last_decile[0]:
            last_decile[0] = decile
            logger.info("upload.progress name=%s %.0f%%", version_name, event.fraction * 100)

    return _log


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED, summary="上传安装包并发布")
async def upload_release(
    request: Request,
    file: UploadFile = File(...),
    version_name: str = Form("", alias="versionName"),
    version_code: str = Form("", alias="versionCode"),
    changelog: str = Form(""),
    is_critical: bool = Form(False, alias="isCritical"),
    uploaded_by: str = Depends(get_uploader_identity),
    admission: ReleaseAdmissionController = Depends(get_admission),
) -> UploadResponse:
    settings = admission.settings
    tmp_path: Optional[str] = None
    local_size = 0
    try:
        # 将流保存到临时文件；超过上限后不再继续读取，由校验给出错误
        with tempfile.NamedTemporaryFile(prefix="release_ul_", delete=False) as tmp:
            tmp_path = tmp.name
            while local_size <= settings.max_artifact_bytes:
                chunk = await file.read(settings.transfer_chunk_size)
                if not chunk:
                    break
                tmp.write(chunk)
                local_size += len(chunk)

        spooled = tmp_path
        draft = ReleaseDraft(
            version_name=version_name,
            version_code=version_code,
            changelog=changelog,
            is_critical=is_critical,
            artifact=Artifact(
                filename=file.filename or "",
                size=local_size,
                open=lambda: open(spooled, "rb"),
            ),
        )
        cancel = threading.Event()
        task = asyncio.ensure_future(
            run_in_threadpool(admission.admit, draft, uploaded_by, _progress_logger(version_name.strip()), cancel)
        )
        while not task.done():
            done, _ = await asyncio.wait({task}, timeout=0.5)
            if not done and await request.is_disconnected():
                logger.warning("upload.client_gone name=%s", version_name)
                cancel.set()
        attempt = task.result()
        version = _published(attempt)
        return UploadResponse(version=version, size_label=format_file_size(version.file_size))
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)


@router.patch("/{version_code}/active", response_model=Version, summary="发布 / 下架版本")
def set_version_active(
    version_code: int,
    body: ActiveToggleRequest,
    store: VersionCatalogStore = Depends(get_store),
) -> Version:
    result = store.set_active(version_code, body.is_active)
    if result.is_err():
        raise_for_error(result.unwrap_err())
    return result.unwrap()
