"""
HTTP blob store tests against a local http.server
"""
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from releasehub.core.errors import ErrorKind, TransferError, UrlResolutionError
from releasehub.services.blob_store import HttpBlobStore
from releasehub.services.transfer import ArtifactTransferPipeline, ProgressEvent, TransferSucceeded
from tests.factories import make_artifact


pytestmark = pytest.mark.unit


class _ObjectStoreHandler(BaseHTTPRequestHandler):
    def do_PUT(self):
        headers = {k.lower(): v for k, v in self.headers.items()}
        self.server.put_headers.append(headers)
        body = self.rfile.read(int(headers["content-length"]))
        self.server.objects[self.path] = body
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_HEAD(self):
        self.send_response(200 if self.path in self.server.objects else 404)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, *args):
        pass


class _BrokenSession:
    def put(self, *args, **kwargs):
        raise ValueError("adapter misconfigured")


@pytest.fixture
def object_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), _ObjectStoreHandler)
    server.objects = {}
    server.put_headers = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def base_url(object_server):
    return f"http://127.0.0.1:{object_server.server_port}/bucket"


def _transfer(blob_store, settings, payload, key="releases/1.10.apk"):
    pipeline = ArtifactTransferPipeline(blob_store, settings)
    return list(pipeline.transfer(make_artifact(payload), key))


def test_put_uses_content_length_framing(object_server, base_url, settings):
    payload = b"K" * (settings.transfer_chunk_size * 3 + 5)
    events = _transfer(HttpBlobStore(base_url, base_url, timeout=5), settings, payload)

    done = events[-1]
    assert isinstance(done, TransferSucceeded)
    assert done.url == f"{base_url}/releases/1.10.apk"
    assert done.size == len(payload)

    headers = object_server.put_headers[0]
    assert headers["content-length"] == str(len(payload))
    assert "transfer-encoding" not in headers
    assert object_server.objects["/bucket/releases/1.10.apk"] == payload

    progress = [e.fraction for e in events if isinstance(e, ProgressEvent)]
    assert progress == sorted(progress)
    assert progress[-1] == 1.0


def test_key_is_percent_encoded(object_server, base_url, settings):
    events = _transfer(HttpBlobStore(base_url, base_url, timeout=5), settings, b"rc build", key="releases/1.0#rc.apk")
    assert events[-1].url == f"{base_url}/releases/1.0%23rc.apk"
    assert object_server.objects["/bucket/releases/1.0%23rc.apk"] == b"rc build"


def test_missing_object_fails_url_resolution(base_url):
    with pytest.raises(UrlResolutionError):
        HttpBlobStore(base_url, base_url, timeout=5).resolve_url("releases/none.apk")


def test_unreachable_endpoint_is_transfer_failure(settings):
    server = ThreadingHTTPServer(("127.0.0.1", 0), _ObjectStoreHandler)
    port = server.server_port
    server.server_close()
    blob_store = HttpBlobStore(f"http://127.0.0.1:{port}", f"http://127.0.0.1:{port}", timeout=5)
    with pytest.raises(TransferError):
        list(blob_store.put("releases/1.10.apk", make_artifact(b"x").open(), 1, 1024))


def test_unexpected_worker_error_becomes_transfer_failure(base_url, settings):
    blob_store = HttpBlobStore(base_url, base_url, timeout=5, session=_BrokenSession())
    events = _transfer(blob_store, settings, b"payload")
    assert events[-1].error.kind is ErrorKind.TRANSFER_FAILURE
    assert "adapter misconfigured" in events[-1].error.message
