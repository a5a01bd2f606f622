"""
Artifact transfer pipeline tests
"""
import threading
from pathlib import Path

import pytest

from releasehub.core.errors import ErrorKind, TransferError, UrlResolutionError
from releasehub.services.blob_store import LocalBlobStore, destination_key
from releasehub.services.transfer import (
    ArtifactTransferPipeline,
    ProgressEvent,
    TransferFailed,
    TransferSucceeded,
)
from tests.factories import FailingBlobStore, make_artifact


pytestmark = pytest.mark.unit


class UnresolvableBlobStore(LocalBlobStore):
    def resolve_url(self, key):
        raise UrlResolutionError("permission denied")


def _run(pipeline, artifact, key="releases/1.10.apk", cancel=None):
    return list(pipeline.transfer(artifact, key, cancel=cancel))


def test_progress_is_monotonic_and_ends_at_one(pipeline, settings):
    payload = b"x" * (settings.transfer_chunk_size * 3 + 17)
    events = _run(pipeline, make_artifact(payload))
    progress = [e.fraction for e in events if isinstance(e, ProgressEvent)]
    assert progress == sorted(progress)
    assert all(0.0 <= f <= 1.0 for f in progress)
    assert progress[-1] == 1.0
    done = events[-1]
    assert isinstance(done, TransferSucceeded)
    assert done.size == len(payload)
    assert done.url == "http://testserver/blobs/releases/1.10.apk"


def test_stored_bytes_match_and_retry_overwrites(pipeline, settings):
    _run(pipeline, make_artifact(b"first build"))
    _run(pipeline, make_artifact(b"second"))
    stored = Path(settings.blob_root) / "releases" / "1.10.apk"
    assert stored.read_bytes() == b"second"
    assert [p.name for p in stored.parent.iterdir()] == ["1.10.apk"]


def test_empty_artifact_still_completes(pipeline):
    events = _run(pipeline, make_artifact(b""))
    assert events[-2] == ProgressEvent(0, 0, 1.0)
    assert isinstance(events[-1], TransferSucceeded)


def test_transport_failure_is_terminal(settings):
    pipeline = ArtifactTransferPipeline(FailingBlobStore(fail_after_chunks=2), settings)
    events = _run(pipeline, make_artifact(b"y" * settings.transfer_chunk_size * 4))
    assert isinstance(events[-1], TransferFailed)
    assert events[-1].error.kind is ErrorKind.TRANSFER_FAILURE
    assert sum(isinstance(e, ProgressEvent) for e in events) == 2


def test_url_resolution_failure_is_distinct(settings):
    blob_store = UnresolvableBlobStore(settings.blob_root, settings.public_base_url)
    pipeline = ArtifactTransferPipeline(blob_store, settings)
    events = _run(pipeline, make_artifact(b"payload"))
    assert events[-1].error.kind is ErrorKind.URL_RESOLUTION_FAILURE


def test_cancel_stops_transfer_without_leaving_partial_blob(pipeline, settings):
    cancel = threading.Event()
    payload = b"z" * (settings.transfer_chunk_size * 5)
    events = []
    for event in pipeline.transfer(make_artifact(payload), "releases/2.0.apk", cancel=cancel):
        events.append(event)
        if isinstance(event, ProgressEvent):
            cancel.set()
    assert events[-1].error.kind is ErrorKind.CANCELLED
    target_dir = Path(settings.blob_root) / "releases"
    assert list(target_dir.iterdir()) == []


def test_local_store_rejects_keys_outside_root(blob_store):
    with pytest.raises(TransferError):
        list(blob_store.put("../escape.apk", None, 0, 1024))


def test_destination_key_from_version_name(settings):
    assert destination_key("1.10", settings) == "releases/1.10.apk"
    custom = settings.model_copy(update={"release_key_template": "apk_updates/app-release-v{version_name}.apk"})
    assert destination_key("1.10", custom) == "apk_updates/app-release-v1.10.apk"
