"""Big-endian integer primitives for the NRB wire format.

Every multi-byte field is stored most-significant byte first.  The 32-bit
and 64-bit fields reserve their top bit: a value with that bit set is a
decode failure on read and refused on write.

Readers raise :class:`DecodeError` on a short read or a reserved-bit
violation.  Writers raise plain ``ValueError`` for out-of-range input;
the document model only ever hands them in-range values, so hitting one
is a programming error rather than bad data.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

MAX_U16 = 0xFFFF
MAX_U32 = 0x7FFF_FFFF  # top bit reserved
MAX_U64 = 0x7FFF_FFFF_FFFF_FFFF  # top bit reserved

BIAS8 = 128
MIN_BIAS8 = -128
MAX_BIAS8 = 127

_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_U64 = struct.Struct(">Q")


class DecodeError(ValueError):
    """Raised when a stream does not hold a well-formed NRB field."""


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    # raw streams may return fewer bytes than asked for before EOF
    data = b""
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            raise DecodeError(
                f"unexpected end of stream reading {what} ({len(data)}/{size} bytes)"
            )
        data += chunk
    return data


def read_u8(stream: BinaryIO, what: str = "byte") -> int:
    return _read_exact(stream, 1, what)[0]


def read_u16(stream: BinaryIO, what: str = "u16") -> int:
    return _U16.unpack(_read_exact(stream, 2, what))[0]


def read_u32(stream: BinaryIO, what: str = "u32") -> int:
    value = _U32.unpack(_read_exact(stream, 4, what))[0]
    if value > MAX_U32:
        raise DecodeError(f"{what} 0x{value:08X} has the reserved top bit set")
    return value


def read_u64(stream: BinaryIO, what: str = "u64") -> int:
    value = _U64.unpack(_read_exact(stream, 8, what))[0]
    if value > MAX_U64:
        raise DecodeError(f"{what} 0x{value:016X} has the reserved top bit set")
    return value


def read_bias8(stream: BinaryIO, what: str = "biased byte") -> int:
    """Read one byte and remove the +128 bias, giving a value in [-128, 127]."""

    return read_u8(stream, what) - BIAS8


def skip_reserved(stream: BinaryIO, count: int) -> None:
    """Read and discard `count` reserved 32-bit header fields."""

    for idx in range(count):
        read_u32(stream, f"reserved field {idx}")


def _check_range(value: int, low: int, high: int, what: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    if not (low <= value <= high):
        raise ValueError(f"{what} {value} outside [{low}, {high}]")


def write_u8(sink: BinaryIO, value: int) -> None:
    _check_range(value, 0, 0xFF, "u8")
    sink.write(bytes((value,)))


def write_u16(sink: BinaryIO, value: int) -> None:
    _check_range(value, 0, MAX_U16, "u16")
    sink.write(_U16.pack(value))


def write_u32(sink: BinaryIO, value: int) -> None:
    _check_range(value, 0, MAX_U32, "u32")
    sink.write(_U32.pack(value))


def write_u64(sink: BinaryIO, value: int) -> None:
    _check_range(value, 0, MAX_U64, "u64")
    sink.write(_U64.pack(value))


def write_bias8(sink: BinaryIO, value: int) -> None:
    _check_range(value, MIN_BIAS8, MAX_BIAS8, "biased byte")
    write_u8(sink, value + BIAS8)
