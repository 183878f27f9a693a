from __future__ import annotations

import dataclasses
import tarfile
import unittest

from unitypack.constants import BLOCK_SIZE, DEFAULT_OWNER_ID, DEFAULT_GROUP_ID
from unitypack.errors import CorruptHeader, FieldOverflow, HeaderFormatError, NameTooLong
from unitypack.header import (
    HeaderRecord,
    TypeFlag,
    compute_checksum,
    decode,
    directory_header,
    encode,
    file_header,
    split_name,
)


def _sample_record() -> HeaderRecord:
    return file_header("0123456789abcdef0123456789abcdef/asset", size=600, mtime=1_700_000_000, user="adrian", group="staff")


def _flip(block: bytes, offset: int) -> bytes:
    buf = bytearray(block)
    buf[offset] ^= 0x01
    return bytes(buf)


class HeaderEncodeTests(unittest.TestCase):
    def test_block_is_512_bytes_with_zero_tail(self):
        block = encode(_sample_record())
        self.assertEqual(len(block), BLOCK_SIZE)
        self.assertEqual(block[500:], bytes(12))

    def test_field_layout(self):
        block = encode(_sample_record())
        self.assertEqual(block[0:38], b"0123456789abcdef0123456789abcdef/asset")
        self.assertEqual(block[38:100], bytes(62))
        self.assertEqual(block[100:108], b"000644\x00\x00")
        self.assertEqual(block[108:116], b"000765\x00\x00")
        self.assertEqual(block[116:124], b"000024\x00\x00")
        self.assertEqual(block[124:136], b"00000001130 ")  # 600 in octal
        self.assertEqual(block[136:148], b"14524770400 ")
        self.assertEqual(block[156:157], b"0")
        self.assertEqual(block[257:263], b"ustar\x00")
        self.assertEqual(block[263:265], b"00")
        self.assertEqual(block[265:271], b"adrian")
        self.assertEqual(block[297:302], b"staff")
        self.assertEqual(block[329:337], b"000000\x00\x00")
        self.assertEqual(block[337:345], b"000000\x00\x00")

    def test_checksum_format_and_value(self):
        block = encode(_sample_record())
        field = block[148:156]
        self.assertEqual(field[6:], b"\x00 ")
        self.assertTrue(all(0x30 <= c <= 0x37 for c in field[:6]))
        blanked = block[:148] + b" " * 8 + block[156:]
        self.assertEqual(int(field[:6], 8), sum(blanked))
        self.assertEqual(int(field[:6], 8), compute_checksum(block))

    def test_checksum_ignores_previous_value(self):
        rec = _sample_record()
        first = encode(rec)
        second = encode(dataclasses.replace(rec, checksum=0o7777))
        self.assertEqual(first, second)
        self.assertEqual(encode(rec), encode(rec))

    def test_stored_checksum_written_without_recalculation(self):
        rec = dataclasses.replace(_sample_record(), checksum=0o1234)
        block = encode(rec, recalculate_checksum=False)
        self.assertEqual(block[148:156], b"001234\x00 ")

    def test_empty_name_encodes_zero_block(self):
        self.assertEqual(encode(HeaderRecord(name="")), bytes(BLOCK_SIZE))
        self.assertEqual(encode(HeaderRecord(name="   ")), bytes(BLOCK_SIZE))

    def test_directory_defaults(self):
        rec = directory_header("0123456789abcdef0123456789abcdef", mtime=5, user="u", group="g")
        block = encode(rec)
        self.assertEqual(block[100:108], b"000755\x00\x00")
        self.assertEqual(block[124:136], b"00000000000 ")
        self.assertEqual(block[156:157], b"5")

    def test_text_overflow_raises(self):
        rec = dataclasses.replace(_sample_record(), uname="x" * 33)
        with self.assertRaises(FieldOverflow) as ctx:
            encode(rec)
        self.assertEqual(ctx.exception.field, "uname")
        with self.assertRaises(FieldOverflow):
            encode(dataclasses.replace(_sample_record(), linkname="l" * 101))

    def test_numeric_overflow_raises(self):
        with self.assertRaises(FieldOverflow):
            encode(dataclasses.replace(_sample_record(), size=8 ** 11))
        with self.assertRaises(FieldOverflow):
            encode(dataclasses.replace(_sample_record(), mtime=-1))
        with self.assertRaises(FieldOverflow):
            encode(dataclasses.replace(_sample_record(), mode=0o7777777))
        with self.assertRaises(FieldOverflow) as ctx:
            encode(file_header("a/asset", size=1, mtime=1.5))
        self.assertEqual(ctx.exception.field, "mtime")
        with self.assertRaises(FieldOverflow):
            encode(dataclasses.replace(_sample_record(), size="600"))
        # largest size that fits 11 octal digits
        block = encode(dataclasses.replace(_sample_record(), size=8 ** 11 - 1))
        self.assertEqual(block[124:136], b"77777777777 ")


class LongNameTests(unittest.TestCase):
    def test_150_char_name_uses_prefix(self):
        name = "a" * 60 + "/" + "b" * 89
        self.assertEqual(len(name), 150)
        block = encode(file_header(name, size=1))
        self.assertEqual(block[0:89], b"b" * 89)
        self.assertEqual(block[89:100], bytes(11))
        self.assertEqual(block[345:405], b"a" * 60)
        rec = decode(block)
        self.assertEqual(rec.name, "b" * 89)
        self.assertEqual(rec.prefix, "a" * 60)
        self.assertEqual(rec.path, name)

    def test_split_picks_shortest_prefix(self):
        path = "/".join(["d" * 30] * 5)  # 154 chars
        name, prefix = split_name(path)
        self.assertEqual(prefix, "d" * 30 + "/" + "d" * 30)
        self.assertEqual(name, "/".join(["d" * 30] * 3))

    def test_short_name_is_not_split(self):
        self.assertEqual(split_name("abc/asset"), ("abc/asset", ""))

    def test_unsplittable_name_raises(self):
        with self.assertRaises(NameTooLong):
            encode(file_header("n" * 150))
        with self.assertRaises(NameTooLong):
            encode(file_header("p" * 10 + "/" + "n" * 140))
        with self.assertRaises(NameTooLong):
            encode(file_header("p" * 160 + "/" + "n" * 10))

    def test_name_too_long_is_field_overflow(self):
        self.assertTrue(issubclass(NameTooLong, FieldOverflow))
        self.assertTrue(issubclass(NameTooLong, ValueError))

    def test_stdlib_tarfile_rejoins_prefix(self):
        name = "a" * 60 + "/" + "b" * 89
        info = tarfile.TarInfo.frombuf(encode(file_header(name, size=3)), "utf-8", "surrogateescape")
        self.assertEqual(info.name, name)
        self.assertEqual(info.size, 3)


class HeaderDecodeTests(unittest.TestCase):
    def test_round_trip_reproduces_fields(self):
        rec = _sample_record()
        block = encode(rec)
        out = decode(block)
        self.assertEqual(out, dataclasses.replace(rec, checksum=compute_checksum(block)))

    def test_round_trip_directory_and_device_numbers(self):
        rec = dataclasses.replace(
            directory_header("guid", mtime=42, user="u", group="g"),
            devmajor=0o12,
            devminor=0o34,
            linkname="target",
        )
        block = encode(rec)
        out = decode(block)
        self.assertEqual(out, dataclasses.replace(rec, checksum=compute_checksum(block)))
        self.assertTrue(out.is_dir)
        self.assertTrue(out.is_ustar)
        self.assertEqual(out.uid, DEFAULT_OWNER_ID)
        self.assertEqual(out.gid, DEFAULT_GROUP_ID)

    def test_zero_block_is_terminator(self):
        self.assertIsNone(decode(bytes(BLOCK_SIZE)))

    def test_blank_name_skips_other_fields(self):
        block = bytearray(BLOCK_SIZE)
        block[124:136] = b"not-octal!!!"
        self.assertIsNone(decode(bytes(block)))

    def test_wrong_length_raises(self):
        with self.assertRaises(HeaderFormatError):
            decode(bytes(100))
        with self.assertRaises(HeaderFormatError):
            compute_checksum(bytes(513))

    def test_corrupt_byte_raises(self):
        block = encode(_sample_record())
        for offset in (0, 130, 270, 499):
            with self.assertRaises(CorruptHeader) as ctx:
                decode(_flip(block, offset))
            self.assertNotEqual(ctx.exception.stored, ctx.exception.computed)

    def test_corruption_ignored_when_not_verifying(self):
        block = _flip(encode(_sample_record()), 270)
        rec = decode(block, verify_checksum=False)
        self.assertEqual(rec.uname, "adriao")

    def test_invalid_octal_raises_format_error(self):
        block = bytearray(encode(_sample_record()))
        block[124:136] = b"12x45678901 "
        with self.assertRaises(HeaderFormatError):
            decode(bytes(block), verify_checksum=False)

    def test_stdlib_tarfile_accepts_header(self):
        block = encode(directory_header("0123456789abcdef0123456789abcdef", mtime=7, user="u", group="g"))
        info = tarfile.TarInfo.frombuf(block, "utf-8", "surrogateescape")
        self.assertTrue(info.isdir())
        self.assertEqual(info.mode, 0o755)
        self.assertEqual(info.mtime, 7)
        self.assertEqual(info.uname, "u")

    def test_tarfile_header_decodes(self):
        info = tarfile.TarInfo("guid/asset")
        info.size = 10
        info.mtime = 99
        info.uname = "someone"
        block = info.tobuf(format=tarfile.USTAR_FORMAT)[:BLOCK_SIZE]
        rec = decode(block)
        self.assertEqual(rec.path, "guid/asset")
        self.assertEqual(rec.size, 10)
        self.assertEqual(rec.mtime, 99)
        self.assertEqual(rec.uname, "someone")
        self.assertEqual(rec.type_flag, TypeFlag.NORMAL_FILE)


class TypeFlagTests(unittest.TestCase):
    def test_known_flags(self):
        self.assertEqual(TypeFlag.parse("0"), TypeFlag.NORMAL_FILE)
        self.assertEqual(TypeFlag.parse("2"), TypeFlag.SYMBOLIC_LINK)
        self.assertEqual(TypeFlag.parse("5"), TypeFlag.DIRECTORY)
        self.assertEqual(TypeFlag.parse("7"), TypeFlag.CONTIGUOUS_FILE)

    def test_unknown_flags(self):
        for char in ("", "x", "L", "9", "K"):
            self.assertEqual(TypeFlag.parse(char), TypeFlag.UNKNOWN)

    def test_unknown_flag_survives_round_trip(self):
        rec = dataclasses.replace(_sample_record(), type_char="x")
        out = decode(encode(rec))
        self.assertEqual(out.type_char, "x")
        self.assertEqual(out.type_flag, TypeFlag.UNKNOWN)

    def test_describe(self):
        text = directory_header("guid", mtime=0, user="u", group="g").describe()
        self.assertIn("File Name: guid", text)
        self.assertIn("File Mode: 000755", text)
        self.assertIn("Type Flag: 5 (DIRECTORY)", text)
        self.assertIn("Last Modified Time: 1970-01-01T00:00:00+00:00", text)


if __name__ == "__main__":
    unittest.main()
