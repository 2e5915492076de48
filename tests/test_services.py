"""Tests for album_uploader services."""
import asyncio
import io
import json
import logging
import time

import httpx
import pytest
from PIL import Image

from album_uploader.errors import APIError, TransferError
from album_uploader.models import (
    MediaFile,
    MediaKind,
    Notification,
    UploadCandidate,
    UploadConfig,
    ValidationResult,
)
from album_uploader.orchestrator.file_collector import FileCollector, is_media
from album_uploader.services.api_client import HTTPAPIClient
from album_uploader.services.compression import ImageCompressor
from album_uploader.services.destination import PREPARED_PERCENT, SENT_PERCENT, HTTPDestinationStore
from album_uploader.services.notifications import LoggingNotificationSink
from album_uploader.services.permissions import HTTPPermissionGuard


def _candidate(file: MediaFile) -> UploadCandidate:
    return UploadCandidate(file, MediaKind.from_content_type(file.content_type), ValidationResult.ok())


def _photo(tmp_path, name="photo.jpg", size=(3000, 2000)) -> UploadCandidate:
    path = tmp_path / name
    Image.new("RGB", size, color=(30, 120, 200)).save(path, "JPEG", quality=95)
    return _candidate(MediaFile.from_path(path))


class TestImageCompressor:
    def test_downscales_large_image(self, tmp_path):
        candidate = _photo(tmp_path)

        payload = ImageCompressor().prepare(candidate)

        assert max(payload.width, payload.height) <= 1920
        assert payload.width / payload.height == pytest.approx(1.5, rel=0.01)
        assert payload.metadata["original_size"] == candidate.size
        assert payload.metadata["compressed_size"] == len(payload.content)
        with Image.open(io.BytesIO(payload.content)) as img:
            assert img.format == "JPEG"

    def test_video_passes_through(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
        payload = ImageCompressor().prepare(_candidate(MediaFile.from_path(path)))
        assert payload.content == path.read_bytes()
        assert payload.width is None
        assert payload.metadata == {"original_size": path.stat().st_size}

    def test_disabled_compression_keeps_bytes(self, tmp_path):
        candidate = _photo(tmp_path)
        payload = ImageCompressor(UploadConfig(compress_images=False)).prepare(candidate)
        assert payload.content == candidate.path.read_bytes()
        assert (payload.width, payload.height) == (3000, 2000)

    def test_unreadable_image_passes_through(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not really a jpeg")
        payload = ImageCompressor().prepare(_candidate(MediaFile.from_path(path)))
        assert payload.content == b"not really a jpeg"
        assert payload.metadata["compression_ratio"] == 1

    def test_oversized_image_passes_through(self, tmp_path, monkeypatch):
        path = tmp_path / "scan.png"
        Image.new("1", (200, 200)).save(path, "PNG")
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        payload = ImageCompressor().prepare(_candidate(MediaFile.from_path(path)))
        assert payload.content == path.read_bytes()
        assert payload.metadata["compression_ratio"] == 1

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            ImageCompressor().prepare(_candidate(MediaFile("a.jpg", 1, "image/jpeg")))


class _Backend:
    """httpx.MockTransport handler recording requests to the album API."""

    def __init__(self, status_code=201, payload=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {"id": "item-9", "url": "https://cdn.test/item-9"}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def backend():
    return _Backend()


class TestHTTPDestinationStore:
    @pytest.mark.asyncio
    async def test_commit_streams_item_with_metadata(self, tmp_path, backend):
        candidate = _photo(tmp_path)
        reports = []

        async with HTTPAPIClient("http://album.test", token="secret", transport=httpx.MockTransport(backend)) as api:
            store = HTTPDestinationStore(api)
            unit = await store.commit_one(candidate, "album-1", progress_callback=reports.append)

        assert unit.item_id == "item-9"
        assert unit.url == "https://cdn.test/item-9"
        assert unit.candidate_id == candidate.id
        assert unit.collection_id == "album-1"

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/collections/album-1/items"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "image/jpeg"
        assert int(request.headers["Content-Length"]) == len(request.content)
        params = request.url.params
        assert params["original_filename"] == "photo.jpg"
        assert params["file_type"] == "image"
        assert int(params["file_size"]) == len(request.content)
        assert int(params["width"]) <= 1920
        assert json.loads(params["metadata"])["original_size"] == candidate.size

        assert reports[0] == PREPARED_PERCENT
        assert reports == sorted(reports)
        assert reports[-1] == SENT_PERCENT

    @pytest.mark.asyncio
    async def test_backend_error_is_transfer_error(self, tmp_path):
        backend = _Backend(status_code=500, payload={"detail": "disk full"})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            with pytest.raises(TransferError, match="500"):
                await HTTPDestinationStore(api).commit_one(_photo(tmp_path), "album-1")
        assert len(backend.requests) == 1

    @pytest.mark.asyncio
    async def test_response_without_id(self, tmp_path):
        backend = _Backend(payload={"status": "ok"})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            with pytest.raises(TransferError, match="Unexpected response"):
                await HTTPDestinationStore(api).commit_one(_photo(tmp_path), "album-1")

    @pytest.mark.asyncio
    async def test_missing_local_file(self, backend):
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            with pytest.raises(TransferError, match="Cannot read"):
                await HTTPDestinationStore(api).commit_one(_candidate(MediaFile("a.jpg", 1, "image/jpeg")), "album-1")
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_compression_does_not_block_event_loop(self, tmp_path, backend, monkeypatch):
        prepare = ImageCompressor.prepare

        def slow_prepare(self, candidate):
            time.sleep(0.3)
            return prepare(self, candidate)

        monkeypatch.setattr(ImageCompressor, "prepare", slow_prepare)
        ticks = []

        async def ticker():
            while True:
                ticks.append(time.monotonic())
                await asyncio.sleep(0.01)

        task = asyncio.create_task(ticker())
        try:
            async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
                await HTTPDestinationStore(api).commit_one(_photo(tmp_path, size=(64, 48)), "album-1")
        finally:
            task.cancel()

        assert len(backend.requests) == 1
        assert len(ticks) >= 10
        assert max(b - a for a, b in zip(ticks, ticks[1:])) < 0.2

    @pytest.mark.asyncio
    async def test_list_collection_items(self):
        backend = _Backend(status_code=200, payload={"items": [{"id": "1"}, {"id": "2"}]})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            items = await HTTPDestinationStore(api).list_collection_items("album-1")
        assert [item["id"] for item in items] == ["1", "2"]
        assert backend.requests[0].url.path == "/collections/album-1/items"


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            await HTTPAPIClient("http://album.test").get("/x")

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        statuses = [503, 200]

        def handler(request):
            return httpx.Response(statuses.pop(0), json={"ok": True})

        async with HTTPAPIClient("http://album.test", max_retries=2, transport=httpx.MockTransport(handler)) as api:
            response = await api.get("/health")

        assert response.status_code == 200
        assert statuses == []

    @pytest.mark.asyncio
    async def test_client_error_raises_api_error(self):
        handler = lambda request: httpx.Response(404, json={"detail": "no such album"})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(handler)) as api:
            with pytest.raises(APIError) as excinfo:
                await api.get("/collections/missing")
        assert excinfo.value.status_code == 404
        assert "no such album" in str(excinfo.value)


class TestHTTPPermissionGuard:
    @pytest.mark.asyncio
    async def test_allowed(self):
        backend = _Backend(status_code=200, payload={"can_upload": True, "can_view": True})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            assert await HTTPPermissionGuard(api).can_upload("album-1") is True
        assert backend.requests[0].url.path == "/collections/album-1/permissions"

    @pytest.mark.asyncio
    async def test_forbidden_is_false(self):
        backend = _Backend(status_code=403, payload={"detail": "forbidden"})
        async with HTTPAPIClient("http://album.test", transport=httpx.MockTransport(backend)) as api:
            assert await HTTPPermissionGuard(api).can_upload("album-1") is False

    @pytest.mark.asyncio
    async def test_server_error_propagates(self):
        backend = _Backend(status_code=500, payload={"detail": "boom"})
        async with HTTPAPIClient("http://album.test", max_retries=1, transport=httpx.MockTransport(backend)) as api:
            with pytest.raises(APIError):
                await HTTPPermissionGuard(api).can_upload("album-1")


def test_logging_sink_maps_levels(caplog):
    sink = LoggingNotificationSink(logging.getLogger("album_uploader.test"))
    with caplog.at_level(logging.INFO, logger="album_uploader.test"):
        sink.notify(Notification.info("uploaded"))
        sink.notify(Notification.error("failed"))
    assert [(r.levelno, r.getMessage()) for r in caplog.records] == [
        (logging.INFO, "uploaded"),
        (logging.ERROR, "failed"),
    ]


class TestFileCollector:
    def test_is_media(self, tmp_path):
        assert is_media(tmp_path / "a.JPG")
        assert is_media(tmp_path / "b.mp4")
        assert not is_media(tmp_path / "notes.txt")

    def test_collect_folder_recursive_media_only(self, tmp_path):
        (tmp_path / "sub").mkdir()
        for name in ("b.jpg", "a.png", "sub/c.mp4", "readme.txt"):
            (tmp_path / name).write_bytes(b"x")

        files = FileCollector.collect([tmp_path])

        assert [f.name for f in files] == ["a.png", "b.jpg", "c.mp4"]

    def test_explicit_file_kept_whatever_type(self, tmp_path):
        doc = tmp_path / "doc.pdf"
        doc.write_bytes(b"%PDF")
        files = FileCollector.collect([doc])
        assert files[0].content_type == "application/pdf"

    def test_missing_source(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FileCollector.collect([tmp_path / "nope"])
