from __future__ import annotations

import os
import tempfile
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterable, Optional

from .codec import CompressionSink
from .constants import DEFAULT_CODEC_ID, TERMINATOR_SIZE
from .entries import Asset, LogicalEntry, Segment, build_segment, iter_segments
from .errors import ExportIOError


@dataclass
class ExportSummary:
    assets: int
    members: int
    tar_bytes: int
    package_bytes: int
    elapsed: float


class ArchiveWriter:
    """Single-pass writer producing a compressed ustar package.

    Members are written in the order they are added; ``finalize`` appends the
    two zero blocks that end the archive and closes the compression sink.

    With ``out_path`` the package is built in a temporary file next to the
    destination and renamed into place by ``finalize``; closing without
    finalizing discards it. With ``fileobj`` bytes go straight to the caller's
    stream, which is left open.
    """

    def __init__(
        self,
        out_path: Optional[str] = None,
        *,
        fileobj: Optional[BinaryIO] = None,
        codec_id: int = DEFAULT_CODEC_ID,
        level: Optional[int] = None,
    ):
        if (out_path is None) == (fileobj is None):
            raise ValueError("Provide exactly one of out_path or fileobj")
        self.out_path = out_path
        self.fileobj = fileobj
        self.codec_id = codec_id
        self.level = level
        self.f: Optional[BinaryIO] = None
        self.sink: Optional[CompressionSink] = None
        self.finalized = False
        self.bytes_written = 0
        self.asset_count = 0
        self.member_count = 0
        self._temp_path: Optional[str] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.sink is not None:
            return
        if self.finalized:
            raise RuntimeError("Archive already finalized")
        if self.fileobj is not None:
            self.f = self.fileobj
        else:
            out_dir = os.path.dirname(os.path.abspath(self.out_path))
            try:
                fd, self._temp_path = tempfile.mkstemp(prefix=".unitypack-", suffix=".tmp", dir=out_dir)
            except OSError as exc:
                raise ExportIOError(f"Cannot create package in {out_dir}: {exc}") from exc
            self.f = os.fdopen(fd, "wb")
        try:
            self.sink = CompressionSink(self.f, self.codec_id, self.level)
        except (RuntimeError, OSError):
            self.close()
            raise

    def close(self):
        """Release the destination. An export that was not finalized is abandoned."""
        self.sink = None
        try:
            if self.fileobj is None and self.f is not None:
                self.f.close()
        finally:
            self.f = None
            if self._temp_path is not None:
                try:
                    os.unlink(self._temp_path)
                except FileNotFoundError:
                    pass
                self._temp_path = None

    def add_asset(self, asset: Asset) -> int:
        """Write every member of one asset; returns the uncompressed bytes written."""
        self._require_open()
        # all headers are encoded before the first byte of this asset goes out
        segments = list(iter_segments(asset))
        written = sum(self._write_segment(seg) for seg in segments)
        self.asset_count += 1
        return written

    def add_entry(self, entry: LogicalEntry) -> int:
        self._require_open()
        return self._write_segment(build_segment(entry))

    def finalize(self):
        """Write the end-of-archive marker, close the sink and commit the output."""
        sink = self._require_open()
        self._write(bytes(TERMINATOR_SIZE))
        try:
            sink.close()
            if self.fileobj is None:
                self.f.flush()
                os.fsync(self.f.fileno())
                self.f.close()
                self.f = None
                os.chmod(self._temp_path, _default_file_mode())
                os.replace(self._temp_path, self.out_path)
                self._temp_path = None
        except OSError as exc:
            raise ExportIOError(f"Failed to finish package: {exc}") from exc
        self.sink = None
        self.finalized = True

    # internals
    def _require_open(self) -> CompressionSink:
        if self.sink is None:
            raise RuntimeError("Archive not open")
        return self.sink

    def _write_segment(self, seg: Segment) -> int:
        for chunk in seg.chunks():
            self._write(chunk)
        self.member_count += 1
        return seg.size

    def _write(self, data: bytes):
        try:
            self.sink.write(data)
        except OSError as exc:
            raise ExportIOError(f"Failed to write package data: {exc}") from exc
        self.bytes_written += len(data)


def _default_file_mode() -> int:
    # mkstemp creates 0600 files; published packages follow the umask instead
    mask = os.umask(0)
    os.umask(mask)
    return 0o666 & ~mask


def export_assets(
    assets: Iterable[Asset],
    out_path: str,
    *,
    codec_id: int = DEFAULT_CODEC_ID,
    level: Optional[int] = None,
    progress: Optional[Callable[[int, Asset], None]] = None,
) -> ExportSummary:
    """Write ``assets`` (consumed once, in order) to a package at ``out_path``.

    Args:
        assets: Iterable of assets, typically a lazy generator.
        out_path: Destination package path; replaced atomically on success.
        codec_id: Compression codec for the package stream.
        level: Optional compression level.
        progress: Called as ``progress(index, asset)`` after each asset is written.
    """
    t0 = time.time()
    with ArchiveWriter(out_path, codec_id=codec_id, level=level) as w:
        for i, asset in enumerate(assets):
            w.add_asset(asset)
            if progress is not None:
                progress(i, asset)
        w.finalize()
    return ExportSummary(
        assets=w.asset_count,
        members=w.member_count,
        tar_bytes=w.bytes_written,
        package_bytes=os.path.getsize(out_path),
        elapsed=time.time() - t0,
    )
