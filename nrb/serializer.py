from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional

from .binio import write_bias8, write_u8, write_u16, write_u32, write_u64
from .composition import Composition
from .parser import (
    RESERVED_FIELDS,
    SIGNATURE_PRIMARY,
    SIGNATURE_SECONDARY,
    VERSION_MAJOR,
    VERSION_MINOR,
)

logger = logging.getLogger(__name__)


def serialize(composition: Composition, sink: BinaryIO) -> bool:
    """Write `composition` to `sink` in NRB format.

    Notes are written in their current order; call ``sort()`` first if
    the file should be time-ordered.  Returns False, writing nothing,
    when the composition has no notes.
    """

    if composition.note_count < 1:
        logger.debug("refusing to serialize a composition with no notes")
        return False

    write_u32(sink, SIGNATURE_PRIMARY)
    write_u32(sink, SIGNATURE_SECONDARY)
    write_u8(sink, VERSION_MAJOR)
    write_u8(sink, VERSION_MINOR)
    write_u16(sink, composition.section_count)
    write_u32(sink, composition.note_count)
    for _ in range(RESERVED_FIELDS):
        write_u32(sink, 0)

    for offset in composition.sections:
        write_u64(sink, offset)

    for note in composition:
        write_u64(sink, note.start)
        write_u64(sink, note.release)
        write_bias8(sink, note.pitch)
        write_u8(sink, note.articulation)
        write_u16(sink, note.ramp)
        write_u16(sink, note.section)
        write_u16(sink, note.layer)

    return True


def serialize_bytes(composition: Composition) -> Optional[bytes]:
    """Return the NRB encoding of `composition`, or None if it has no notes."""

    buf = io.BytesIO()
    if not serialize(composition, buf):
        return None
    return buf.getvalue()


def serialize_path(composition: Composition, path: Path | str) -> bool:
    """Write `composition` to `path`; the file is left alone when there are no notes."""

    data = serialize_bytes(composition)
    if data is None:
        return False
    out_path = Path(path).expanduser()
    out_path.write_bytes(data)
    return True
