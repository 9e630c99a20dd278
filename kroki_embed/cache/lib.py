"""Content-addressed diagram file cache.

Files live at ``<public_dir>/<asset_path>/puml/<sha256>.<format>`` where the
hash is taken over the final (post-insertion) diagram source. The ``puml``
bucket is fixed for every diagram type so existing sites keep their links.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from collections.abc import AsyncIterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from kroki_embed.config import (
    ConfigError,
    EmbedConfig,
    OutputFormat,
    parse_output_format,
)
from kroki_embed.core import KrokiEmbedError, get_logger

logger = get_logger("cache")

CACHE_BUCKET = "puml"

# mkstemp creates files 0600; cached images get the usual umask-based mode.
_UMASK = os.umask(0)
os.umask(_UMASK)
FILE_MODE = 0o666 & ~_UMASK


class CacheError(KrokiEmbedError):
    """Cache directory or file could not be written."""


def content_hash(source: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded source."""
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """Location of one cached diagram.

    Attributes:
        key: Content hash of the diagram source.
        path: File system path of the cached image.
        url: Site-root-relative URL of the image (``public_dir`` stripped).
    """

    key: str
    path: Path
    url: str

    def exists(self) -> bool:
        """Whether the file is already on disk."""
        return self.path.is_file()


class DiagramCache:
    """Maps diagram sources to files under a public directory.

    Example:
        >>> cache = DiagramCache("public", "assets")
        >>> entry = cache.entry(source, "svg")
        >>> entry.path  # public/assets/puml/<sha256>.svg
        >>> entry.url   # /assets/puml/<sha256>.svg
    """

    def __init__(self, public_dir: str | Path, asset_path: str = "") -> None:
        """Initialize cache.

        Raises:
            ConfigError: If ``asset_path`` contains ``..`` segments.
        """
        self.public_dir = Path(public_dir)
        parts = PurePosixPath(str(asset_path)).parts
        if ".." in parts:
            raise ConfigError(
                f"asset_path must stay inside public_dir: {asset_path!r}"
            )
        # A leading "/" is dropped so files always land under public_dir.
        self._asset_parts = tuple(part for part in parts if part != "/")

    @classmethod
    def from_config(cls, config: EmbedConfig) -> DiagramCache:
        """Build a cache for the directories named in ``config``."""
        return cls(config.public_dir, config.asset_path)

    @property
    def directory(self) -> Path:
        """Directory that holds cached files."""
        return self.public_dir.joinpath(*self._asset_parts, CACHE_BUCKET)

    def entry(self, source: str, output_format: OutputFormat | str) -> CacheEntry:
        """Cache location for ``source`` rendered as ``output_format``."""
        fmt = parse_output_format(output_format)
        key = content_hash(source)
        filename = f"{key}.{fmt.extension}"
        relative = PurePosixPath(*self._asset_parts, CACHE_BUCKET, filename)
        url = "/" + relative.as_posix()
        return CacheEntry(key=key, path=self.directory / filename, url=url)

    def ensure_directory(self) -> Path:
        """Create the cache directory (and parents) if missing.

        Raises:
            CacheError: If the directory cannot be created.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(
                f"Cannot create cache directory {self.directory}: {e}"
            ) from e
        return self.directory

    async def store(self, entry: CacheEntry, chunks: AsyncIterable[bytes]) -> int:
        """Stream ``chunks`` into ``entry.path``.

        Data goes to a temporary file in the cache directory which is then
        renamed over the target, so readers never see a partial image.
        Concurrent writers of the same key race; the last rename wins. The
        file gets ``FILE_MODE`` (0666 minus the umask), like any other file
        written into the site.

        Returns:
            Number of bytes written.

        Raises:
            CacheError: On file system errors. Errors raised by ``chunks``
                propagate unchanged. The temporary file is removed either way.
        """
        self.ensure_directory()
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=entry.path.parent, prefix=f".{entry.key}.", suffix=".part"
            )
        except OSError as e:
            raise _write_error(entry, e) from e

        written = 0
        try:
            with os.fdopen(fd, "wb") as f:
                async for chunk in chunks:
                    try:
                        f.write(chunk)
                    except OSError as e:
                        raise _write_error(entry, e) from e
                    written += len(chunk)
            try:
                os.chmod(tmp_name, FILE_MODE)
                os.replace(tmp_name, entry.path)
            except OSError as e:
                raise _write_error(entry, e) from e
        except BaseException:
            _discard(tmp_name)
            raise

        logger.debug(f"Cached {written} bytes at {entry.path}")
        return written


def _write_error(entry: CacheEntry, error: OSError) -> CacheError:
    return CacheError(f"Cannot write cache file {entry.path}: {error}")


def _discard(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


__all__ = [
    "CACHE_BUCKET",
    "FILE_MODE",
    "CacheEntry",
    "CacheError",
    "DiagramCache",
    "content_hash",
]
