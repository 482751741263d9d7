#!/usr/bin/env python3
"""
Logic World Save Primitives
===========================

Little-endian primitive readers and writers for the save format.

| Primitive | Size    | struct | Notes                                   |
|-----------|---------|--------|-----------------------------------------|
| u8        | 1 byte  | <B     | tags (format version, save type, peg)   |
| u16       | 2 bytes | <H     | component type ids                      |
| i32       | 4 bytes | <i     | counts, positions, state ids, indices   |
| u32       | 4 bytes | <I     | component addresses                     |
| f32       | 4 bytes | <f     | rotations                               |
| text      | 4 + N   | <i + N | int32 byte length, then UTF-8 bytes     |
| magic     | 16      | raw    | ASCII literal, no length prefix         |
"""

import math
import struct
from typing import Type

from lw_errors import (FieldOutOfRange, InvalidTextLength, InvalidUtf8Text,
                       SaveFormatError, UnexpectedEof)
from lw_model import NanF32, Quat, Vec3, Version

# =============================================================================
# File Format Constants
# =============================================================================

HEADER_MAGIC = b'Logic World save'
FOOTER_MAGIC = b'redstone sux lol'
FORMAT_VERSION = 7
SAVE_TYPE_WORLD = 1

_U8 = struct.Struct('<B')
_U16 = struct.Struct('<H')
_I32 = struct.Struct('<i')
_U32 = struct.Struct('<I')
_F32 = struct.Struct('<f')

# Largest single stream read; declared lengths never size an allocation.
_READ_CHUNK = 1 << 16


class SaveReader:
    """Sequential reader over a binary stream (anything with .read(n))."""

    def __init__(self, stream):
        self.stream = stream
        self.offset = 0

    def read_exact(self, count: int) -> bytes:
        start = self.offset
        chunks = []
        remaining = count
        while remaining > 0:
            chunk = self.stream.read(min(remaining, _READ_CHUNK))
            if not chunk:
                got = count - remaining
                self.offset += got
                raise UnexpectedEof(start, count, got)
            chunks.append(chunk)
            remaining -= len(chunk)
        self.offset += count
        return b''.join(chunks)

    def _unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.read_exact(fmt.size))[0]

    def read_u8(self) -> int:
        return self._unpack(_U8)

    def read_u16(self) -> int:
        return self._unpack(_U16)

    def read_i32(self) -> int:
        return self._unpack(_I32)

    def read_u32(self) -> int:
        return self._unpack(_U32)

    def read_f32(self) -> float:
        raw = self.read_exact(4)
        value = _F32.unpack(raw)[0]
        if math.isnan(value):
            return NanF32(_U32.unpack(raw)[0])
        return value

    def read_bytes(self, count: int) -> bytes:
        return self.read_exact(max(count, 0))

    def read_version(self) -> Version:
        return Version(self.read_i32(), self.read_i32(), self.read_i32(), self.read_i32())

    def read_vec3(self) -> Vec3:
        return Vec3(self.read_i32(), self.read_i32(), self.read_i32())

    def read_quat(self) -> Quat:
        return Quat(self.read_f32(), self.read_f32(), self.read_f32(), self.read_f32())

    def read_text(self) -> str:
        length_offset = self.offset
        length = self.read_i32()
        if length < 0:
            raise InvalidTextLength(length_offset, length)
        text_offset = self.offset
        data = self.read_exact(length)
        try:
            return data.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidUtf8Text(text_offset, str(e)) from None

    def expect_magic(self, literal: bytes, error_cls: Type[SaveFormatError]):
        """Read len(literal) raw bytes and fail with error_cls if they differ."""
        offset = self.offset
        observed = self.read_exact(len(literal))
        if observed != literal:
            raise error_cls(literal.decode('ascii'),
                            observed.decode('ascii', errors='replace'), offset)


class SaveWriter:
    """Appends primitives into one owned in-memory buffer."""

    def __init__(self):
        self.buffer = bytearray()

    def _pack(self, fmt: struct.Struct, value, label: str):
        try:
            self.buffer.extend(fmt.pack(value))
        except (struct.error, OverflowError) as e:
            raise FieldOutOfRange(f"{label} value {value!r} does not fit: {e}") from None

    def write_u8(self, value: int):
        self._pack(_U8, value, "u8")

    def write_u16(self, value: int):
        self._pack(_U16, value, "u16")

    def write_i32(self, value: int):
        self._pack(_I32, value, "i32")

    def write_u32(self, value: int):
        self._pack(_U32, value, "u32")

    def write_f32(self, value: float):
        if isinstance(value, NanF32):
            self._pack(_U32, value.bits, "f32 bits")
        else:
            self._pack(_F32, value, "f32")

    def write_raw(self, data: bytes):
        self.buffer.extend(data)

    def write_version(self, version: Version):
        for part in version:
            self.write_i32(part)

    def write_vec3(self, vec: Vec3):
        for part in vec:
            self.write_i32(part)

    def write_quat(self, quat: Quat):
        for part in quat:
            self.write_f32(part)

    def write_text(self, text: str):
        data = text.encode('utf-8')
        self.write_i32(len(data))
        self.buffer.extend(data)

    def getvalue(self) -> bytes:
        return bytes(self.buffer)

    def __len__(self):
        return len(self.buffer)
