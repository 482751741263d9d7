"""Tests for the little-endian primitive reader and writer."""

from __future__ import annotations

import io
import math
import struct

import pytest

from lw_errors import (FieldOutOfRange, HeaderMismatch, InvalidTextLength,
                       InvalidUtf8Text, UnexpectedEof)
from lw_model import NanF32, Quat, Vec3, Version
from lw_stream import HEADER_MAGIC, SaveReader, SaveWriter


class TrickleStream:
    """Returns at most one byte per read, like a slow pipe."""

    def __init__(self, data: bytes) -> None:
        self._inner = io.BytesIO(data)

    def read(self, n: int) -> bytes:
        return self._inner.read(min(n, 1))


def reader(data: bytes) -> SaveReader:
    return SaveReader(io.BytesIO(data))


def test_fixed_width_reads_are_little_endian() -> None:
    data = bytes([0xFE]) + struct.pack("<H", 0xBEEF) + struct.pack("<i", -2) + struct.pack("<I", 0xFFFFFFFF) + struct.pack("<f", 1.5)
    r = reader(data)

    assert r.read_u8() == 0xFE
    assert r.read_u16() == 0xBEEF
    assert r.read_i32() == -2
    assert r.read_u32() == 0xFFFFFFFF
    assert r.read_f32() == 1.5
    assert r.offset == len(data)


def test_short_reads_from_slow_stream_are_not_truncation() -> None:
    r = SaveReader(TrickleStream(struct.pack("<i", 123456)))

    assert r.read_i32() == 123456


def test_truncated_read_reports_offset_and_sizes() -> None:
    r = reader(b"\x01\x02\x03\x04\x05")
    r.read_u8()

    with pytest.raises(UnexpectedEof) as excinfo:
        r.read_bytes(8)

    assert excinfo.value.offset == 1
    assert excinfo.value.wanted == 8
    assert excinfo.value.got == 4


def test_value_types() -> None:
    data = struct.pack("<4i", 1, 2, 3, 4) + struct.pack("<3i", -5, 6, 7) + struct.pack("<4f", 0.0, 0.5, 1.0, -2.0)
    r = reader(data)

    assert r.read_version() == Version(1, 2, 3, 4)
    assert r.read_vec3() == Vec3(-5, 6, 7)
    assert r.read_quat() == Quat(0.0, 0.5, 1.0, -2.0)


def test_text_is_length_prefixed_utf8() -> None:
    encoded = "Würfel".encode("utf-8")
    r = reader(struct.pack("<i", len(encoded)) + encoded)

    assert r.read_text() == "Würfel"


def test_empty_text() -> None:
    assert reader(struct.pack("<i", 0)).read_text() == ""


def test_negative_text_length_is_rejected() -> None:
    with pytest.raises(InvalidTextLength):
        reader(struct.pack("<i", -3) + b"abc").read_text()


def test_text_longer_than_stream_is_truncation() -> None:
    with pytest.raises(UnexpectedEof):
        reader(struct.pack("<i", 10) + b"abc").read_text()


def test_invalid_utf8_text() -> None:
    with pytest.raises(InvalidUtf8Text) as excinfo:
        reader(struct.pack("<i", 2) + b"\xff\xfe").read_text()

    assert excinfo.value.offset == 4


def test_magic_mismatch_reports_expected_and_observed() -> None:
    r = reader(b"Logic World SAVE" + b"more")

    with pytest.raises(HeaderMismatch) as excinfo:
        r.expect_magic(HEADER_MAGIC, HeaderMismatch)

    assert excinfo.value.expected == "Logic World save"
    assert excinfo.value.observed == "Logic World SAVE"
    assert excinfo.value.offset == 0
    assert r.offset == 16


def test_writer_mirrors_reader() -> None:
    w = SaveWriter()
    w.write_u8(7)
    w.write_u16(513)
    w.write_i32(-1)
    w.write_u32(4000000000)
    w.write_f32(0.25)
    w.write_text("MHG.Button")
    w.write_version(Version(0, 91, 3, 0))

    r = reader(w.getvalue())
    assert r.read_u8() == 7
    assert r.read_u16() == 513
    assert r.read_i32() == -1
    assert r.read_u32() == 4000000000
    assert r.read_f32() == 0.25
    assert r.read_text() == "MHG.Button"
    assert r.read_version() == Version(0, 91, 3, 0)


@pytest.mark.parametrize(
    "method, value",
    [
        ("write_u8", 256),
        ("write_u16", -1),
        ("write_i32", 2**31),
        ("write_u32", -5),
    ],
)
def test_writer_rejects_out_of_range_values(method: str, value: int) -> None:
    with pytest.raises(FieldOutOfRange):
        getattr(SaveWriter(), method)(value)


class RecordingStream(io.BytesIO):
    """BytesIO that remembers the largest read it was asked for."""

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.largest_request = 0

    def read(self, n: int = -1) -> bytes:
        self.largest_request = max(self.largest_request, n)
        return super().read(n)


def test_huge_declared_length_reads_in_bounded_chunks() -> None:
    stream = RecordingStream(struct.pack("<i", 0x7FFFFFF0) + b"MHG")
    r = SaveReader(stream)

    with pytest.raises(UnexpectedEof) as excinfo:
        r.read_text()

    assert excinfo.value.wanted == 0x7FFFFFF0
    assert excinfo.value.got == 3
    assert stream.largest_request <= 1 << 16


def test_nan_keeps_its_bit_pattern() -> None:
    raw = bytes.fromhex("0100807f")
    value = reader(raw).read_f32()

    assert math.isnan(value)
    assert isinstance(value, NanF32)
    assert value.bits == 0x7F800001

    w = SaveWriter()
    w.write_f32(value)
    w.write_f32(float("inf"))
    assert w.getvalue() == raw + struct.pack("<f", float("inf"))
