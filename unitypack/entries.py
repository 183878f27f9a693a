from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

from .constants import (
    BLOCK_SIZE,
    KIND_FILE,
    KIND_CONTAINER,
    ASSET_SUFFIX,
    META_SUFFIX,
    PATHNAME_SUFFIX,
    DEFAULT_FILE_MODE,
    DEFAULT_DIR_MODE,
)
from .header import HeaderRecord, directory_header, encode, file_header
from .pathutil import check_identifier, norm_path


@dataclass(frozen=True)
class Asset:
    """One project file as supplied by the entry enumerator."""
    guid: str
    data: Optional[bytes]  # None for folder assets, which carry no content member
    pathname: str
    mtime: int = 0
    user: str = ""
    group: str = ""
    meta: Optional[bytes] = None
    meta_mtime: Optional[int] = None
    file_mode: Optional[int] = None
    dir_mode: Optional[int] = None


@dataclass(frozen=True)
class LogicalEntry:
    name: str
    kind: int  # 0=file, 1=container
    data: bytes = b""
    mtime: int = 0
    user: str = ""
    group: str = ""
    mode: Optional[int] = None

    def header(self) -> HeaderRecord:
        if self.kind == KIND_CONTAINER:
            mode = DEFAULT_DIR_MODE if self.mode is None else self.mode
            return directory_header(self.name, self.mtime, self.user, self.group, mode=mode)
        mode = DEFAULT_FILE_MODE if self.mode is None else self.mode
        return file_header(self.name, len(self.data), self.mtime, self.user, self.group, mode=mode)


@dataclass(frozen=True)
class Segment:
    header: bytes
    payload: bytes = b""
    padding: bytes = b""

    @property
    def size(self) -> int:
        return len(self.header) + len(self.payload) + len(self.padding)

    def chunks(self) -> Iterator[bytes]:
        yield self.header
        if self.payload:
            yield self.payload
        if self.padding:
            yield self.padding


def padding_for(length: int) -> int:
    """Zero bytes needed after a payload of ``length`` to reach a block boundary."""
    return -length % BLOCK_SIZE


def build_segment(entry: LogicalEntry) -> Segment:
    if entry.kind not in (KIND_FILE, KIND_CONTAINER):
        raise ValueError(f"Unknown entry kind: {entry.kind}")
    if entry.kind == KIND_CONTAINER:
        if entry.data:
            raise ValueError(f"Container entry {entry.name!r} cannot carry data")
        return Segment(encode(entry.header(), recalculate_checksum=True))
    header = encode(entry.header(), recalculate_checksum=True)
    return Segment(header, entry.data, bytes(padding_for(len(entry.data))))


def members(asset: Asset) -> Iterator[LogicalEntry]:
    """Expand an asset into its ordered archive members.

    Order: container ``{guid}``, ``{guid}/asset`` (omitted for folder
    assets), optional ``{guid}/asset.meta``, then ``{guid}/pathname`` holding
    the original project path.
    """
    guid = check_identifier(asset.guid)
    pathname = norm_path(asset.pathname)
    if not pathname:
        raise ValueError(f"Asset {guid} has an empty pathname")
    owner = {"user": asset.user, "group": asset.group}

    yield LogicalEntry(guid, KIND_CONTAINER, mtime=asset.mtime, mode=asset.dir_mode, **owner)
    if asset.data is not None:
        yield LogicalEntry(f"{guid}/{ASSET_SUFFIX}", KIND_FILE, asset.data, asset.mtime, mode=asset.file_mode, **owner)
    if asset.meta is not None:
        meta_mtime = asset.mtime if asset.meta_mtime is None else asset.meta_mtime
        yield LogicalEntry(f"{guid}/{META_SUFFIX}", KIND_FILE, asset.meta, meta_mtime, mode=asset.file_mode, **owner)
    yield LogicalEntry(
        f"{guid}/{PATHNAME_SUFFIX}",
        KIND_FILE,
        pathname.encode("utf-8"),
        asset.mtime,
        mode=asset.file_mode,
        **owner,
    )


def iter_segments(asset: Asset) -> Iterator[Segment]:
    for entry in members(asset):
        yield build_segment(entry)
