"""
Fixed 512-byte ustar header records.

Each field is ASCII text at a fixed offset. Numeric fields hold zero-padded
octal digits; size and mtime carry a trailing space, the checksum a NUL and a
space. Unused bytes are zero.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

from .constants import (
    BLOCK_SIZE,
    CHECKSUM_OFFSET,
    CHECKSUM_LEN,
    NAME_LEN,
    PREFIX_LEN,
    USER_NAME_LEN,
    GROUP_NAME_LEN,
    USTAR_MAGIC,
    USTAR_VERSION,
    TYPE_FILE,
    TYPE_DIRECTORY,
    DEFAULT_FILE_MODE,
    DEFAULT_DIR_MODE,
    DEFAULT_OWNER_ID,
    DEFAULT_GROUP_ID,
)
from .errors import CorruptHeader, FieldOverflow, HeaderFormatError, NameTooLong


# (attribute, offset, length) in on-disk order; bytes 500..511 stay zero
_FIELDS: Tuple[Tuple[str, int, int], ...] = (
    ("name", 0, NAME_LEN),
    ("mode", 100, 8),
    ("uid", 108, 8),
    ("gid", 116, 8),
    ("size", 124, 12),
    ("mtime", 136, 12),
    ("checksum", 148, 8),
    ("type_char", 156, 1),
    ("linkname", 157, 100),
    ("magic", 257, 6),
    ("version", 263, 2),
    ("uname", 265, USER_NAME_LEN),
    ("gname", 297, GROUP_NAME_LEN),
    ("devmajor", 329, 8),
    ("devminor", 337, 8),
    ("prefix", 345, PREFIX_LEN),
)

# numeric attribute -> (octal digits, suffix)
_NUMERIC = {
    "mode": (6, b""),
    "uid": (6, b""),
    "gid": (6, b""),
    "size": (11, b" "),
    "mtime": (11, b" "),
    "devmajor": (6, b""),
    "devminor": (6, b""),
}

_CHECKSUM_DIGITS = 6
_CHECKSUM_SUFFIX = b"\x00 "
_BLANK_CHECKSUM = b" " * CHECKSUM_LEN


class TypeFlag(IntEnum):
    UNKNOWN = -1
    NORMAL_FILE = 0
    HARD_LINK = 1
    SYMBOLIC_LINK = 2
    CHARACTER_SPECIAL = 3
    BLOCK_SPECIAL = 4
    DIRECTORY = 5
    FIFO = 6
    CONTIGUOUS_FILE = 7

    @classmethod
    def parse(cls, char: str) -> "TypeFlag":
        """Map a raw type flag character to a member; anything else is UNKNOWN."""
        try:
            return cls(int(char))
        except ValueError:
            return cls.UNKNOWN


@dataclass
class HeaderRecord:
    name: str
    mode: int = DEFAULT_FILE_MODE
    uid: int = 0
    gid: int = 0
    size: int = 0
    mtime: int = 0
    checksum: int = 0
    type_char: str = TYPE_FILE
    linkname: str = ""
    magic: str = USTAR_MAGIC
    version: str = USTAR_VERSION
    uname: str = ""
    gname: str = ""
    devmajor: int = 0
    devminor: int = 0
    prefix: str = ""

    @property
    def type_flag(self) -> TypeFlag:
        return TypeFlag.parse(self.type_char)

    @property
    def is_ustar(self) -> bool:
        return self.magic.lower() == USTAR_MAGIC

    @property
    def is_dir(self) -> bool:
        return self.type_flag == TypeFlag.DIRECTORY

    @property
    def path(self) -> str:
        """Full member path, rejoining the ustar prefix when one is present."""
        if self.prefix:
            return f"{self.prefix}/{self.name}"
        return self.name

    def describe(self) -> str:
        mtime = datetime.datetime.fromtimestamp(self.mtime, tz=datetime.timezone.utc)
        lines = [
            f"File Name: {self.name}",
            f"File Mode: {self.mode:06o}",
            f"Owner ID: {self.uid:06o}",
            f"Group ID: {self.gid:06o}",
            f"File Size (bytes): {self.size}",
            f"Last Modified Time: {mtime.isoformat()}",
            f"Checksum: {self.checksum}",
            f"Type Flag: {self.type_char} ({self.type_flag.name})",
            f"UStar Indicator: {self.magic}",
            f"UStar Version: {self.version}",
            f"Owner User Name: {self.uname}",
            f"Owner Group Name: {self.gname}",
            f"Device Major Number: {self.devmajor:06o}",
            f"Device Minor Number: {self.devminor:06o}",
            f"Filename Prefix: {self.prefix}",
        ]
        return "\n".join(lines)


def file_header(
    name: str,
    size: int = 0,
    mtime: int = 0,
    user: str = "",
    group: str = "",
    mode: int = DEFAULT_FILE_MODE,
) -> HeaderRecord:
    return HeaderRecord(
        name=name,
        mode=mode,
        uid=DEFAULT_OWNER_ID,
        gid=DEFAULT_GROUP_ID,
        size=size,
        mtime=mtime,
        type_char=TYPE_FILE,
        uname=user,
        gname=group,
    )


def directory_header(
    name: str,
    mtime: int = 0,
    user: str = "",
    group: str = "",
    mode: int = DEFAULT_DIR_MODE,
) -> HeaderRecord:
    return HeaderRecord(
        name=name,
        mode=mode,
        uid=DEFAULT_OWNER_ID,
        gid=DEFAULT_GROUP_ID,
        size=0,
        mtime=mtime,
        type_char=TYPE_DIRECTORY,
        uname=user,
        gname=group,
    )


def compute_checksum(block: bytes) -> int:
    """Unsigned byte sum of a header with the checksum field read as spaces."""
    if len(block) != BLOCK_SIZE:
        raise HeaderFormatError(f"Header block must be {BLOCK_SIZE} bytes, got {len(block)}")
    end = CHECKSUM_OFFSET + CHECKSUM_LEN
    return sum(block[:CHECKSUM_OFFSET]) + sum(_BLANK_CHECKSUM) + sum(block[end:])


def split_name(path: str) -> Tuple[str, str]:
    """Split a long path into (name, prefix) at a '/' so both fit ustar limits.

    Returns (path, "") when the path already fits the name field. The
    shortest prefix that works is chosen, which keeps as much of the path as
    possible in the name field.

    Raises:
        NameTooLong: when no '/' yields a name <= 100 bytes and a prefix
            <= 155 bytes.
    """
    if len(path.encode("utf-8")) <= NAME_LEN:
        return path, ""
    components = path.split("/")
    for i in range(1, len(components)):
        prefix = "/".join(components[:i])
        name = "/".join(components[i:])
        if not prefix or not name:
            continue
        if len(prefix.encode("utf-8")) <= PREFIX_LEN and len(name.encode("utf-8")) <= NAME_LEN:
            return name, prefix
    raise NameTooLong(path)


def encode(record: HeaderRecord, recalculate_checksum: bool = True) -> bytes:
    """Encode a record into exactly 512 bytes.

    A record whose name is empty or whitespace encodes as an all-zero block,
    the form used for the end-of-archive marker. Names longer than the name
    field are moved partly into the prefix field when the prefix is unused.

    Args:
        record: Header values to write.
        recalculate_checksum: When True (default) the checksum field is blanked,
            the block summed, and the sum written at offset 148. When False the
            record's stored checksum is written as-is.

    Raises:
        NameTooLong: if a long name cannot be split.
        FieldOverflow: if any other value does not fit its field.
    """
    buf = bytearray(BLOCK_SIZE)
    if not record.name.strip():
        return bytes(buf)

    overrides = {}
    if not record.prefix and len(record.name.encode("utf-8")) > NAME_LEN:
        overrides["name"], overrides["prefix"] = split_name(record.name)

    for attr, offset, length in _FIELDS:
        value = overrides.get(attr, getattr(record, attr))
        if attr == "checksum":
            if recalculate_checksum:
                raw = _BLANK_CHECKSUM
            else:
                raw = _octal(attr, value, _CHECKSUM_DIGITS) + _CHECKSUM_SUFFIX
        elif attr in _NUMERIC:
            digits, suffix = _NUMERIC[attr]
            raw = _octal(attr, value, digits) + suffix
        else:
            raw = _text(attr, value, length)
        buf[offset:offset + len(raw)] = raw

    if recalculate_checksum:
        total = compute_checksum(buf)
        buf[CHECKSUM_OFFSET:CHECKSUM_OFFSET + CHECKSUM_LEN] = _octal("checksum", total, _CHECKSUM_DIGITS) + _CHECKSUM_SUFFIX
    return bytes(buf)


def decode(block: bytes, verify_checksum: bool = True) -> Optional[HeaderRecord]:
    """Decode a 512-byte header block.

    Returns None when the name field is empty (a zero/terminator block); no
    other field is read in that case.

    Raises:
        HeaderFormatError: wrong block length or an unparsable field.
        CorruptHeader: when verify_checksum is set and the stored checksum
            does not match the block contents.
    """
    if len(block) != BLOCK_SIZE:
        raise HeaderFormatError(f"Header block must be {BLOCK_SIZE} bytes, got {len(block)}")
    raw_name = block[:NAME_LEN].split(b"\x00", 1)[0]
    if not raw_name.strip():
        return None

    # checked before parsing so a damaged field reports as corruption
    if verify_checksum:
        stored = _parse_octal("checksum", block[CHECKSUM_OFFSET:CHECKSUM_OFFSET + CHECKSUM_LEN])
        computed = compute_checksum(block)
        if computed != stored:
            raise CorruptHeader(raw_name.decode("utf-8", errors="replace"), stored, computed)

    values = {}
    for attr, offset, length in _FIELDS:
        raw = block[offset:offset + length]
        if attr == "checksum" or attr in _NUMERIC:
            values[attr] = _parse_octal(attr, raw)
        else:
            values[attr] = _parse_text(attr, raw)
    return HeaderRecord(**values)


def _octal(field: str, value: int, digits: int) -> bytes:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise FieldOverflow(field, value, digits)
    text = format(value, "o").zfill(digits)
    if len(text) > digits:
        raise FieldOverflow(field, value, digits)
    return text.encode("ascii")


def _text(field: str, value: str, width: int) -> bytes:
    data = value.encode("utf-8")
    if len(data) > width:
        raise FieldOverflow(field, value, width)
    return data


def _parse_octal(field: str, raw: bytes) -> int:
    text = raw.replace(b"\x00", b" ").strip()
    if not text:
        return 0
    try:
        return int(text.decode("ascii"), 8)
    except (UnicodeDecodeError, ValueError) as exc:
        raise HeaderFormatError(f"Invalid octal value in {field} field: {raw!r}") from exc


def _parse_text(field: str, raw: bytes) -> str:
    try:
        return raw.split(b"\x00", 1)[0].decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise HeaderFormatError(f"Invalid text in {field} field: {raw!r}") from exc
