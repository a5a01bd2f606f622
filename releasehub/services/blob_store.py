"""
制品存储后端

``put`` 以生成器形式逐块写入并产出累计字节数，``resolve_url`` 返回可公开下载的地址。
同一个 key 重复上传会覆盖旧对象。
"""
from __future__ import annotations

import logging
import os
import queue
import threading
import tempfile
from pathlib import Path
from typing import BinaryIO, Generator, Optional, Protocol
from urllib.parse import quote

import requests

from releasehub.core.config import Settings
from releasehub.core.errors import TransferError, UrlResolutionError


logger = logging.getLogger(__name__)

_DONE = object()


class BlobStore(Protocol):
    def put(self, key: str, stream: BinaryIO, total_bytes: int, chunk_size: int) -> Generator[int, None, None]: ...

    def resolve_url(self, key: str) -> str: ...


def destination_key(version_name: str, settings: Settings) -> str:
    """由版本名推导存储 key，例如 releases/1.10.apk"""
    key = settings.release_key_template.format(version_name=version_name)
    if not key.endswith(settings.artifact_extension):
        key += settings.artifact_extension
    return key


def _public_url(base: str, key: str) -> str:
    # key 来自版本名，可能含 # ? % 空格等，按路径段转义
    return f"{base.rstrip('/')}/{quote(key.lstrip('/'), safe='/')}"


class LocalBlobStore:
    def __init__(self, root: str | Path, public_base_url: str) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise TransferError(f"key_outside_root: {key}")
        return path

    def put(self, key: str, stream: BinaryIO, total_bytes: int, chunk_size: int) -> Generator[int, None, None]:
        target = self._path_for(key)
        written = 0
        tmp_path: Optional[str] = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(prefix=".ul_", dir=target.parent, delete=False) as tmp:
                tmp_path = tmp.name
                while True:
                    chunk = stream.read(chunk_size)
                    if not chunk:
                        break
                    tmp.write(chunk)
                    written += len(chunk)
                    yield written
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            raise TransferError(f"local_write_failed: {e}") from e
        finally:
            # 中途失败或被放弃时清理临时文件
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
        logger.info("blob.local.stored key=%s bytes=%s", key, written)

    def resolve_url(self, key: str) -> str:
        if not self._path_for(key).is_file():
            raise UrlResolutionError(f"blob_not_found: {key}")
        return _public_url(self.public_base_url, key)


class _ProgressReader:
    """带长度的只读包装：requests 据此只发 Content-Length，不走 chunked 编码"""

    def __init__(self, stream: BinaryIO, total_bytes: int, chunk_size: int, updates: "queue.Queue[object]", abandoned: threading.Event) -> None:
        self._stream = stream
        self._total = total_bytes
        self._chunk_size = chunk_size
        self._updates = updates
        self._abandoned = abandoned
        self.sent = 0

    def __len__(self) -> int:
        return self._total

    def read(self, size: int = -1) -> bytes:
        if self._abandoned.is_set():
            raise TransferError("upload_abandoned")
        if size is None or size < 0 or size > self._chunk_size:
            size = self._chunk_size
        chunk = self._stream.read(size)
        if chunk:
            self.sent += len(chunk)
            self._updates.put(self.sent)
        return chunk


class HttpBlobStore:
    """通过 HTTP PUT 上传到对象存储（预签名地址或兼容网关）

    requests 在后台线程里读取 ``_ProgressReader``，每读出一块就把累计字节数放入队列，
    ``put`` 在调用方线程按顺序产出这些进度。
    """

    def __init__(self, base_url: str, public_base_url: str, timeout: int = 300, session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url
        self.public_base_url = public_base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def put(self, key: str, stream: BinaryIO, total_bytes: int, chunk_size: int) -> Generator[int, None, None]:
        url = _public_url(self.base_url, key)
        updates: "queue.Queue[object]" = queue.Queue()
        abandoned = threading.Event()
        body = _ProgressReader(stream, total_bytes, chunk_size, updates, abandoned)

        def _send() -> None:
            try:
                resp = self.session.put(
                    url,
                    data=body,
                    headers={"Content-Type": "application/octet-stream"},
                    timeout=self.timeout,
                )
                resp.raise_for_status()
            except Exception as e:  # 交给调用方线程处理
                updates.put(e)
            else:
                updates.put(_DONE)

        worker = threading.Thread(target=_send, name=f"blob-put:{key}", daemon=True)
        worker.start()
        written = 0
        try:
            while True:
                item = updates.get()
                if item is _DONE:
                    break
                if isinstance(item, Exception):
                    raise TransferError(f"http_put_failed: {item}") from item
                written = int(item)  # type: ignore[call-overload]
                yield written
        finally:
            abandoned.set()
        logger.info("blob.http.stored key=%s bytes=%s", key, written)

    def resolve_url(self, key: str) -> str:
        url = _public_url(self.public_base_url, key)
        try:
            resp = self.session.head(url, timeout=self.timeout, allow_redirects=True)
        except requests.exceptions.RequestException as e:
            raise UrlResolutionError(f"url_check_failed: {e}") from e
        if not resp.ok:
            raise UrlResolutionError(f"url_not_fetchable: {url} status={resp.status_code}")
        return url


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.blob_backend == "http":
        if not settings.blob_base_url:
            raise ValueError("APP_BLOB_BASE_URL is required for the http blob backend")
        return HttpBlobStore(settings.blob_base_url, settings.public_base_url, settings.blob_http_timeout_seconds)
    if settings.blob_backend == "local":
        return LocalBlobStore(settings.blob_root, settings.public_base_url)
    raise ValueError(f"unknown blob backend: {settings.blob_backend}")
