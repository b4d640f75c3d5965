"""Tests for streaming downloads, filename safety and cleanup."""

from __future__ import annotations

import httpx
import pytest

from linkrelay.core.errors import FileIOError
from linkrelay.services.pipeline.materializer import Materializer, sanitize_filename

from conftest import MEDIA_URL


@pytest.fixture
def materializer(tmp_path, fake_extraction) -> Materializer:
    return Materializer(download_dir=str(tmp_path / "dl"), transport=fake_extraction.transport)


class TestSanitizeFilename:
    def test_keeps_safe_chars(self):
        assert sanitize_filename("12_My-Clip.v2.mp4") == "12_My-Clip.v2.mp4"

    def test_replaces_spaces_and_symbols(self):
        assert sanitize_filename("3_hello world?.mp4") == "3_hello_world_.mp4"

    def test_traversal_neutralised(self):
        name = sanitize_filename("../../etc/passwd")
        assert "/" not in name
        assert ".." not in name
        assert not name.startswith(".")

    def test_unicode_title(self):
        assert sanitize_filename("5_видео.mp4") == "5_" + "_" * 5 + ".mp4"

    def test_long_name_keeps_extension(self):
        name = sanitize_filename("1_" + "a" * 500 + ".mp4")
        assert len(name) <= 180
        assert name.endswith(".mp4")

    def test_empty_falls_back(self):
        assert sanitize_filename("...") == "download"


class TestDownload:
    async def test_streams_to_disk(self, materializer):
        result = await materializer.download(MEDIA_URL, "7_T.mp4")
        assert result.success
        assert result.file_size == 10
        assert result.file_path.read_bytes() == b"0123456789"
        assert result.file_path.parent == materializer.download_dir.resolve()

    async def test_http_error_leaves_nothing(self, materializer, fake_extraction):
        fake_extraction.media_status = 404
        result = await materializer.download(MEDIA_URL, "7_T.mp4")
        assert not result.success
        assert result.error == "HTTP error! status: 404"
        assert list(materializer.download_dir.iterdir()) == []

    async def test_empty_body(self, materializer, fake_extraction):
        fake_extraction.body = b""
        result = await materializer.download(MEDIA_URL, "7_T.mp4")
        assert not result.success
        assert result.error == "No response body received"
        assert list(materializer.download_dir.iterdir()) == []

    async def test_timeout(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("slow")
        materializer = Materializer(
            download_dir=str(tmp_path), timeout=3, transport=httpx.MockTransport(handler),
        )
        result = await materializer.download(MEDIA_URL, "1_x.mp4")
        assert not result.success
        assert result.error == "Download timed out after 3s"

    async def test_invalid_url_reported_not_raised(self, materializer):
        result = await materializer.download("http://[::1", "1_x.mp4")
        assert not result.success
        assert result.error.startswith("Download request failed")
        assert list(materializer.download_dir.iterdir()) == []

    async def test_hostile_title_stays_in_download_dir(self, materializer):
        result = await materializer.download(MEDIA_URL, "9_../../escape.mp4")
        assert result.success
        assert result.file_path.parent == materializer.download_dir.resolve()


class TestCleanup:
    async def test_removes_file(self, materializer):
        result = await materializer.download(MEDIA_URL, "7_T.mp4")
        assert await materializer.cleanup(result.file_path)
        assert not result.file_path.exists()

    async def test_already_gone_is_success(self, materializer, tmp_path):
        assert await materializer.cleanup(tmp_path / "never-existed.mp4")

    async def test_none_is_success(self, materializer):
        assert await materializer.cleanup(None)

    async def test_cleanup_twice(self, materializer):
        result = await materializer.download(MEDIA_URL, "7_T.mp4")
        assert await materializer.cleanup(result.file_path)
        assert await materializer.cleanup(result.file_path)


class TestDiscardForLink:
    def test_removes_only_that_links_files(self, materializer):
        materializer.download_dir.mkdir(parents=True)
        (materializer.download_dir / "4_a.mp4").write_bytes(b"x")
        (materializer.download_dir / "4_b.mp4.part").write_bytes(b"x")
        (materializer.download_dir / "44_c.mp4").write_bytes(b"x")
        assert materializer.discard_for_link(4) == 2
        assert [p.name for p in materializer.download_dir.iterdir()] == ["44_c.mp4"]

    def test_missing_dir(self, materializer):
        assert materializer.discard_for_link(1) == 0

    def test_os_error_surfaces(self, materializer, monkeypatch):
        materializer.download_dir.mkdir(parents=True)
        (materializer.download_dir / "4_a.mp4").write_bytes(b"x")

        def deny(self, missing_ok=False):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("pathlib.Path.unlink", deny)
        with pytest.raises(FileIOError, match="Cannot remove 4_a.mp4"):
            materializer.discard_for_link(4)
