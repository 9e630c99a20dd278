"""Tests for the diagram file cache."""

import asyncio
import hashlib
import stat
from pathlib import Path

import pytest

from kroki_embed.config import ConfigError, EmbedConfig

from .lib import CACHE_BUCKET, FILE_MODE, CacheError, DiagramCache, content_hash


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _failing_chunks():
    yield b"<svg"
    raise ConnectionResetError("peer went away")


class TestContentHash:
    """Tests for content_hash."""

    @pytest.mark.unit
    def test_sha256_hex(self):
        """Hash is the SHA-256 hex digest of the UTF-8 bytes."""
        source = "@startuml\nA -> B\n@enduml"
        assert content_hash(source) == hashlib.sha256(source.encode()).hexdigest()
        assert len(content_hash(source)) == 64


class TestCacheEntry:
    """Tests for cache path layout."""

    @pytest.mark.unit
    def test_layout(self, tmp_path):
        """Files go to <public>/<asset>/puml/<hash>.<format>."""
        cache = DiagramCache(tmp_path / "public", "assert")
        entry = cache.entry("A -> B", "svg")
        key = content_hash("A -> B")

        assert entry.key == key
        expected = tmp_path / "public" / "assert" / CACHE_BUCKET / f"{key}.svg"
        assert entry.path == expected
        assert entry.url == f"/assert/puml/{key}.svg"

    @pytest.mark.unit
    def test_nested_asset_path(self, tmp_path):
        """Nested asset paths appear in the URL with forward slashes."""
        cache = DiagramCache(tmp_path, "static/img/")
        entry = cache.entry("x", "png")
        assert entry.url == f"/static/img/puml/{content_hash('x')}.png"

    @pytest.mark.unit
    def test_leading_slash_stays_under_public_dir(self, tmp_path):
        """A rooted asset path still resolves inside public_dir."""
        cache = DiagramCache(tmp_path, "/assets")
        assert cache.directory == tmp_path / "assets" / CACHE_BUCKET

    @pytest.mark.unit
    def test_parent_segments_rejected(self, tmp_path):
        """An asset path climbing out of public_dir is a config error."""
        with pytest.raises(ConfigError, match="inside public_dir"):
            DiagramCache(tmp_path, "../outside")
        with pytest.raises(ConfigError):
            DiagramCache(tmp_path, "assets/../../x")

    @pytest.mark.unit
    def test_same_content_same_path(self, tmp_path):
        """Identical content and format share one file."""
        cache = DiagramCache(tmp_path, "a")
        assert cache.entry("same", "svg") == cache.entry("same", "svg")

    @pytest.mark.unit
    def test_different_content_or_format_differs(self, tmp_path):
        """Content and format both distinguish entries."""
        cache = DiagramCache(tmp_path, "a")
        assert cache.entry("one", "svg").path != cache.entry("two", "svg").path
        assert cache.entry("one", "svg").path != cache.entry("one", "png").path

    @pytest.mark.unit
    def test_from_config(self):
        """Directories come from EmbedConfig."""
        cache = DiagramCache.from_config(EmbedConfig(public_dir="site", asset_path="x"))
        assert cache.directory == Path("site") / "x" / CACHE_BUCKET


class TestStore:
    """Tests for writing cache files."""

    @pytest.mark.unit
    def test_creates_directories_and_writes(self, tmp_path):
        """Missing directories are created recursively."""
        cache = DiagramCache(tmp_path / "public", "deep/assets")
        entry = cache.entry("src", "svg")
        assert not entry.exists()

        written = asyncio.run(cache.store(entry, _chunks(b"<svg>", b"</svg>")))

        assert written == 11
        assert entry.path.read_bytes() == b"<svg></svg>"
        assert entry.exists()

    @pytest.mark.unit
    def test_overwrites_existing(self, tmp_path):
        """A second store replaces the file."""
        cache = DiagramCache(tmp_path, "a")
        entry = cache.entry("src", "svg")
        asyncio.run(cache.store(entry, _chunks(b"old")))
        asyncio.run(cache.store(entry, _chunks(b"new")))
        assert entry.path.read_bytes() == b"new"

    @pytest.mark.unit
    def test_failed_stream_leaves_no_files(self, tmp_path):
        """Errors from the source propagate and clean up the temp file."""
        cache = DiagramCache(tmp_path, "a")
        entry = cache.entry("src", "svg")

        with pytest.raises(ConnectionResetError):
            asyncio.run(cache.store(entry, _failing_chunks()))

        assert list(cache.directory.iterdir()) == []

    @pytest.mark.unit
    def test_directory_error_wrapped(self, tmp_path):
        """File system errors surface as CacheError."""
        blocker = tmp_path / "public"
        blocker.write_text("not a directory")
        cache = DiagramCache(blocker, "a")

        with pytest.raises(CacheError, match="Cannot create cache directory"):
            cache.ensure_directory()

    @pytest.mark.unit
    def test_file_mode_matches_plain_write(self, tmp_path):
        """Cached files are readable like any file written into the site."""
        cache = DiagramCache(tmp_path, "a")
        entry = cache.entry("src", "svg")
        asyncio.run(cache.store(entry, _chunks(b"<svg/>")))

        plain = cache.directory / "plain.svg"
        plain.write_bytes(b"<svg/>")

        cached_mode = stat.S_IMODE(entry.path.stat().st_mode)
        assert cached_mode == stat.S_IMODE(plain.stat().st_mode)
        assert cached_mode == FILE_MODE

    @pytest.mark.unit
    def test_replace_error_wrapped(self, tmp_path):
        """A failed rename surfaces as CacheError and removes the temp file."""
        cache = DiagramCache(tmp_path, "a")
        entry = cache.entry("src", "svg")
        entry.path.mkdir(parents=True)
        (entry.path / "occupied").write_text("x")

        with pytest.raises(CacheError, match="Cannot write cache file"):
            asyncio.run(cache.store(entry, _chunks(b"<svg/>")))

        assert list(cache.directory.iterdir()) == [entry.path]
