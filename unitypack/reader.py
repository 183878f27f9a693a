from __future__ import annotations

import os
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple

from .codec import open_decompressed
from .constants import BLOCK_SIZE, ASSET_SUFFIX, META_SUFFIX, META_EXT, PATHNAME_SUFFIX
from .entries import Asset, padding_for
from .errors import HeaderFormatError, TruncatedArchive
from .header import HeaderRecord, decode
from .pathutil import safe_join


class ArchiveReader:
    """Sequential reader for packages written by ArchiveWriter.

    Every call to ``members`` (and the helpers built on it) walks the stream
    from the beginning; there is no index and no random access.
    """

    def __init__(self, path: Optional[str] = None, *, fileobj: Optional[BinaryIO] = None, verify_checksums: bool = True):
        if (path is None) == (fileobj is None):
            raise ValueError("Provide exactly one of path or fileobj")
        self.path = path
        self.fileobj = fileobj
        self.verify_checksums = verify_checksums
        self.raw: Optional[BinaryIO] = None
        self._start = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.raw is not None:
            return
        if self.fileobj is not None:
            self.raw = self.fileobj
            self._start = self.fileobj.tell()
        else:
            self.raw = open(self.path, "rb")
            self._start = 0

    def close(self):
        if self.raw is not None and self.fileobj is None:
            self.raw.close()
        self.raw = None

    def members(self) -> Iterator[Tuple[HeaderRecord, bytes]]:
        """Yield (header, payload) for each member up to the end-of-archive marker.

        A stream that ends cleanly on a block boundary without the marker is
        accepted; one that ends inside a header or payload is not.

        Raises:
            CorruptHeader: a header checksum does not match (when verifying).
            TruncatedArchive: the stream ends mid-member.
        """
        if self.raw is None:
            raise RuntimeError("Archive not open")
        self.raw.seek(self._start)
        f = open_decompressed(self.raw)
        while True:
            block = _read_block(f)
            if not block:
                return
            header = decode(block, verify_checksum=self.verify_checksums)
            if header is None:
                return
            payload = _read_exact(f, header.size, header.path)
            _read_exact(f, padding_for(header.size), header.path)
            yield header, payload

    def list(self) -> List[HeaderRecord]:
        return [header for header, _payload in self.members()]

    def assets(self) -> Iterator[Asset]:
        """Regroup members into assets by their leading identifier.

        Members other than the asset, sidecar and pathname files (for example
        preview images written by other exporters) are skipped.
        """
        current: Optional[Dict] = None
        for header, payload in self.members():
            guid, _, leaf = header.path.partition("/")
            if current is None or current["guid"] != guid:
                if current is not None:
                    yield _finish_asset(current)
                current = {"guid": guid, "mtime": header.mtime, "user": header.uname, "group": header.gname}
            if not leaf:
                current["dir_mode"] = header.mode
            elif leaf == ASSET_SUFFIX:
                current["data"] = payload
                current["mtime"] = header.mtime
                current["file_mode"] = header.mode
            elif leaf == META_SUFFIX:
                current["meta"] = payload
                current["meta_mtime"] = header.mtime
            elif leaf == PATHNAME_SUFFIX:
                # older exporters append a second line after the path
                lines = payload.decode("utf-8").splitlines()
                current["pathname"] = lines[0] if lines else ""
        if current is not None:
            yield _finish_asset(current)

    def extract(self, outdir: str, *, overwrite: bool = False) -> List[str]:
        """Write every asset to ``outdir/<pathname>`` with its sidecar beside it.

        Returns the list of files and folders created.
        """
        written: List[str] = []
        for asset in self.assets():
            target = safe_join(outdir, asset.pathname)
            if asset.data is None:
                os.makedirs(target, exist_ok=True)
                written.append(target)
            else:
                _write_file(target, asset.data, asset.mtime, overwrite)
                written.append(target)
            if asset.meta is not None:
                meta_mtime = asset.meta_mtime if asset.meta_mtime is not None else asset.mtime
                _write_file(target + META_EXT, asset.meta, meta_mtime, overwrite)
                written.append(target + META_EXT)
        return written


def _finish_asset(parts: Dict) -> Asset:
    if "pathname" not in parts:
        raise HeaderFormatError(f"Asset {parts['guid']} has no pathname member")
    return Asset(
        guid=parts["guid"],
        data=parts.get("data"),
        pathname=parts["pathname"],
        mtime=parts["mtime"],
        user=parts["user"],
        group=parts["group"],
        meta=parts.get("meta"),
        meta_mtime=parts.get("meta_mtime"),
        file_mode=parts.get("file_mode"),
        dir_mode=parts.get("dir_mode"),
    )


def _write_file(path: str, data: bytes, mtime: int, overwrite: bool):
    if os.path.lexists(path) and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing file: {path}")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as wf:
        wf.write(data)
    if mtime:
        os.utime(path, (mtime, mtime))


def _read_block(f: BinaryIO) -> bytes:
    block = f.read(BLOCK_SIZE)
    if not block:
        return b""
    if len(block) < BLOCK_SIZE:
        block += _read_exact(f, BLOCK_SIZE - len(block), "<header>")
    return block


def _read_exact(f: BinaryIO, n: int, what: str) -> bytes:
    if n == 0:
        return b""
    parts = []
    remaining = n
    while remaining:
        b = f.read(remaining)
        if not b:
            raise TruncatedArchive(f"Unexpected end of archive while reading {what}")
        parts.append(b)
        remaining -= len(b)
    return b"".join(parts)
