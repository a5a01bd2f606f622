"""
制品传输流水线（二进制模式）

``transfer`` 是一个事件流：若干 ProgressEvent（进度单调不减），最后以
TransferSucceeded 或 TransferFailed 结束。传输失败不会触碰版本目录；
重试从头开始，同一版本名写入同一个 key，会覆盖上次的残留对象。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from releasehub.core.config import Settings
from releasehub.core.errors import ErrorKind, ReleaseError, TransferError, UrlResolutionError
from releasehub.services.blob_store import BlobStore, destination_key
from releasehub.services.validation import Artifact


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    bytes_transferred: int
    total_bytes: int
    fraction: float


@dataclass(frozen=True)
class TransferSucceeded:
    key: str
    url: str
    size: int


@dataclass(frozen=True)
class TransferFailed:
    key: str
    error: ReleaseError


TransferEvent = Union[ProgressEvent, TransferSucceeded, TransferFailed]


class ArtifactTransferPipeline:
    def __init__(self, blob_store: BlobStore, settings: Settings) -> None:
        self.blob_store = blob_store
        self.settings = settings

    def key_for(self, version_name: str) -> str:
        return destination_key(version_name, self.settings)

    def transfer(
        self,
        artifact: Artifact,
        destination: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[TransferEvent]:
        total = max(int(artifact.size), 0)
        last_fraction = 0.0
        transferred = 0
        logger.info("transfer.start key=%s file=%s total=%s", destination, artifact.filename, total)
        try:
            with artifact.open() as stream:
                chunks = self.blob_store.put(destination, stream, total, self.settings.transfer_chunk_size)
                try:
                    for transferred in chunks:
                        if cancel is not None and cancel.is_set():
                            logger.warning("transfer.cancelled key=%s at=%s/%s", destination, transferred, total)
                            yield TransferFailed(destination, ReleaseError(ErrorKind.CANCELLED, "Upload cancelled"))
                            return
                        fraction = min(transferred / total, 1.0) if total else 0.0
                        # 进度只增不减
                        last_fraction = max(last_fraction, fraction)
                        logger.debug("transfer.progress key=%s fraction=%.3f", destination, last_fraction)
                        yield ProgressEvent(transferred, total, last_fraction)
                finally:
                    chunks.close()
        except (TransferError, OSError) as e:
            logger.warning("transfer.failed key=%s error=%s", destination, e)
            yield TransferFailed(destination, ReleaseError(ErrorKind.TRANSFER_FAILURE, f"Upload failed: {e}"))
            return

        if cancel is not None and cancel.is_set():
            yield TransferFailed(destination, ReleaseError(ErrorKind.CANCELLED, "Upload cancelled"))
            return

        if last_fraction < 1.0:
            yield ProgressEvent(transferred, total, 1.0)

        try:
            url = self.blob_store.resolve_url(destination)
        except UrlResolutionError as e:
            logger.warning("transfer.url_failed key=%s error=%s", destination, e)
            yield TransferFailed(destination, ReleaseError(ErrorKind.URL_RESOLUTION_FAILURE, f"Could not resolve download URL: {e}"))
            return

        logger.info("transfer.done key=%s url=%s", destination, url)
        yield TransferSucceeded(destination, url, transferred)
