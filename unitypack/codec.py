from __future__ import annotations

import gzip
import zlib
from typing import BinaryIO, Optional

from .constants import (
    CODEC_NONE,
    CODEC_GZIP,
    CODEC_ZSTD,
    CODEC_NAMES,
    DEFAULT_CODEC_ID,
    DEFAULT_GZIP_LEVEL,
    DEFAULT_ZSTD_LEVEL,
    GZIP_MAGIC,
    ZSTD_MAGIC,
)

_HAS_ZSTD = False
_zstd_mod = None
_ZstdError = RuntimeError
try:  # zstd output is optional at runtime; gzip is what the importer reads
    import zstandard as _zstd_mod  # type: ignore
    from zstandard import ZstdError as _ZstdError  # type: ignore
    _HAS_ZSTD = True
except ImportError:
    _zstd_mod = None
    _HAS_ZSTD = False

# deflate window with a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS


def codec_from_name(name: str) -> int:
    try:
        return CODEC_NAMES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown codec: {name!r} (choose from {', '.join(sorted(CODEC_NAMES))})") from None


def codec_name(codec_id: int) -> str:
    for name, cid in CODEC_NAMES.items():
        if cid == codec_id:
            return name
    return str(codec_id)


class CompressionSink:
    """Write-only stream that compresses everything written into ``fh``.

    The sink owns the compressor, not ``fh``: closing it writes the codec's
    trailer and flushes ``fh`` but leaves it open. A sink that is dropped
    without ``close`` writes nothing more.
    """

    def __init__(self, fh: BinaryIO, codec_id: int = DEFAULT_CODEC_ID, level: Optional[int] = None):
        self.fh = fh
        self.codec_id = codec_id
        self.level = level
        self.closed = False
        self._cobj = self._open_compressor()

    def _open_compressor(self):
        if self.codec_id == CODEC_NONE:
            return None
        if self.codec_id == CODEC_GZIP:
            # gzip container with zero mtime and no filename, so output is reproducible
            level = self.level if self.level is not None else DEFAULT_GZIP_LEVEL
            return zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
        if self.codec_id == CODEC_ZSTD:
            if not (_HAS_ZSTD and _zstd_mod is not None):
                raise RuntimeError("zstd codec selected but the zstandard module is not available")
            cctx = _zstd_mod.ZstdCompressor(level=self.level if self.level is not None else DEFAULT_ZSTD_LEVEL)
            return cctx.compressobj()
        raise RuntimeError(f"unsupported codec id: {self.codec_id}")

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed compression sink")
        if self._cobj is None:
            self.fh.write(data)
        else:
            try:
                out = self._cobj.compress(data)
            except _ZstdError as e:
                raise RuntimeError(f"zstd compression failed: {e}")
            if out:
                self.fh.write(out)
        return len(data)

    def flush(self) -> None:
        # Compressor state is left alone so no extra sync markers enter the stream
        if not self.closed:
            self.fh.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        cobj, self._cobj = self._cobj, None
        if cobj is not None:
            try:
                tail = cobj.flush()
            except _ZstdError as e:
                raise RuntimeError(f"zstd compression failed: {e}")
            if tail:
                self.fh.write(tail)
        self.fh.flush()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def sniff_codec(head: bytes) -> int:
    if head.startswith(GZIP_MAGIC):
        return CODEC_GZIP
    if head.startswith(ZSTD_MAGIC):
        return CODEC_ZSTD
    return CODEC_NONE


def open_decompressed(fh: BinaryIO) -> BinaryIO:
    """Return a readable stream of the tar bytes inside ``fh``.

    The codec is detected from the leading magic bytes; ``fh`` must support
    either ``peek`` or ``seek``.
    """
    if hasattr(fh, "peek"):
        head = fh.peek(4)[:4]
    else:
        pos = fh.tell()
        head = fh.read(4)
        fh.seek(pos)
    codec_id = sniff_codec(head)
    if codec_id == CODEC_GZIP:
        return gzip.GzipFile(fileobj=fh, mode="rb")
    if codec_id == CODEC_ZSTD:
        if not (_HAS_ZSTD and _zstd_mod is not None):
            raise RuntimeError("zstd codec not available to decompress")
        return _zstd_mod.ZstdDecompressor().stream_reader(fh, closefd=False)
    return fh
