"""
测试数据构造
"""
import io
from datetime import datetime, timezone

from releasehub.core.errors import TransferError
from releasehub.schemas.version import Version
from releasehub.services.validation import Artifact, ReleaseDraft


def make_version(code: int, name: str = None, **overrides) -> Version:
    fields = dict(
        version_code=code,
        version_name=name or f"1.{code}",
        download_url=f"https://example.com/app-{code}.apk",
        changelog="fixes",
        file_size=1000000,
        uploaded_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        uploaded_by="admin",
        is_critical=False,
        is_active=True,
        download_count=0,
    )
    fields.update(overrides)
    return Version(**fields)


def make_artifact(payload: bytes, filename: str = "app-release.apk") -> Artifact:
    return Artifact(filename=filename, size=len(payload), open=lambda: io.BytesIO(payload))


def link_draft(code=18, **overrides) -> ReleaseDraft:
    fields = dict(
        version_name="1.10",
        version_code=code,
        changelog="fixes",
        download_url="https://example.com/a.apk",
        file_size=1000000,
        is_critical=True,
    )
    fields.update(overrides)
    return ReleaseDraft(**fields)


def binary_draft(payload: bytes, code=18, filename="app-release.apk", **overrides) -> ReleaseDraft:
    fields = dict(
        version_name="1.10",
        version_code=code,
        changelog="fixes",
        artifact=make_artifact(payload, filename),
    )
    fields.update(overrides)
    return ReleaseDraft(**fields)


class FailingBlobStore:
    def __init__(self, fail_after_chunks: int = 1) -> None:
        self.fail_after_chunks = fail_after_chunks

    def put(self, key, stream, total_bytes, chunk_size):
        written = 0
        for _ in range(self.fail_after_chunks):
            written += len(stream.read(chunk_size))
            yield written
        raise TransferError("connection reset")

    def resolve_url(self, key):
        raise AssertionError("must not resolve after a failed transfer")
