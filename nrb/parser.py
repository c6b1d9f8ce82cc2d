"""Decode NRB byte streams into :class:`Composition` objects.

The stream is read front to back exactly once; nothing is seeked and
bytes after the note table are left unread.  Every field is checked as
it arrives and the first problem abandons the whole parse: callers get
either a complete, valid composition or none at all.

The version status is reported separately from success.  A file with an
unknown minor version may still parse cleanly, and callers are expected
to warn about it either way.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import BinaryIO, List, Optional

from .binio import DecodeError, read_bias8, read_u8, read_u16, read_u32, read_u64, skip_reserved
from .composition import Composition
from .notes import MAX_NOTES, MAX_SECTIONS, Note, note_problem

logger = logging.getLogger(__name__)

SIGNATURE_PRIMARY = 1928196216
SIGNATURE_SECONDARY = 778990178
VERSION_MAJOR = 1
VERSION_MINOR = 0
RESERVED_FIELDS = 4

# sig-A, sig-B, major, minor, section count, note count, reserved fields
HEADER_SIZE = 4 + 4 + 1 + 1 + 2 + 4 + 4 * RESERVED_FIELDS


class VersionStatus(IntEnum):
    OK = 0  # version understood
    MINOR_UNSUPPORTED = 1  # newer minor version; parse may still succeed
    MAJOR_UNSUPPORTED = 2  # unknown major version; parse always fails
    UNREADABLE = 3  # no NRB signature/version; not an NRB stream


@dataclass(frozen=True)
class ParseResult:
    composition: Optional[Composition]
    version: VersionStatus
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.composition is not None


def _read_version(stream: BinaryIO) -> VersionStatus:
    """Check the signature and version bytes and classify them.

    Raises DecodeError only when the stream is not NRB at all; the caller
    treats that as UNREADABLE.
    """

    if read_u32(stream, "primary signature") != SIGNATURE_PRIMARY:
        raise DecodeError("primary signature mismatch")
    if read_u32(stream, "secondary signature") != SIGNATURE_SECONDARY:
        raise DecodeError("secondary signature mismatch")

    major = read_u8(stream, "major version")
    minor = read_u8(stream, "minor version")
    if major != VERSION_MAJOR:
        logger.debug("unsupported major version %d.%d", major, minor)
        return VersionStatus.MAJOR_UNSUPPORTED
    if minor != VERSION_MINOR:
        logger.debug("unsupported minor version %d.%d; continuing", major, minor)
        return VersionStatus.MINOR_UNSUPPORTED
    return VersionStatus.OK


def _read_sections(stream: BinaryIO, count: int) -> List[int]:
    sections: List[int] = []
    for idx in range(count):
        offset = read_u64(stream, f"section {idx} offset")
        if idx == 0:
            if offset != 0:
                raise DecodeError(f"section 0 offset must be 0, got {offset}")
        elif offset < sections[-1]:
            raise DecodeError(
                f"section {idx} offset {offset} precedes previous offset {sections[-1]}"
            )
        sections.append(offset)
    return sections


def _read_note(stream: BinaryIO, sections: List[int], idx: int) -> Note:
    where = f"note {idx}"
    note = Note(
        start=read_u64(stream, f"{where} start"),
        release=read_u64(stream, f"{where} release"),
        pitch=read_bias8(stream, f"{where} pitch"),
        articulation=read_u8(stream, f"{where} articulation"),
        ramp=read_u16(stream, f"{where} ramp"),
        section=read_u16(stream, f"{where} section"),
        layer=read_u16(stream, f"{where} layer"),
    )
    problem = note_problem(note, sections)
    if problem is not None:
        raise DecodeError(f"{where}: {problem}")
    return note


def _read_body(stream: BinaryIO) -> Composition:
    section_count = read_u16(stream, "section count")
    if not (1 <= section_count <= MAX_SECTIONS):
        raise DecodeError(f"section count {section_count} outside [1, {MAX_SECTIONS}]")
    note_count = read_u32(stream, "note count")
    if not (0 <= note_count <= MAX_NOTES):
        raise DecodeError(f"note count {note_count} outside [0, {MAX_NOTES}]")
    skip_reserved(stream, RESERVED_FIELDS)

    sections = _read_sections(stream, section_count)
    notes = [_read_note(stream, sections, idx) for idx in range(note_count)]
    return Composition._from_tables(sections, notes)


def parse_stream(stream: BinaryIO) -> ParseResult:
    """Parse one NRB document from the current position of `stream`."""

    try:
        version = _read_version(stream)
    except DecodeError as exc:
        logger.debug("rejecting stream: %s", exc)
        return ParseResult(None, VersionStatus.UNREADABLE, str(exc))

    if version == VersionStatus.MAJOR_UNSUPPORTED:
        return ParseResult(None, version, "unsupported major version")

    try:
        composition = _read_body(stream)
    except DecodeError as exc:
        logger.debug("rejecting stream: %s", exc)
        return ParseResult(None, version, str(exc))

    logger.debug(
        "parsed %d sections, %d notes (version status %s)",
        composition.section_count,
        composition.note_count,
        version.name,
    )
    return ParseResult(composition, version)


def parse_bytes(data: bytes) -> ParseResult:
    return parse_stream(io.BytesIO(data))


def parse_path(path: Path | str) -> ParseResult:
    """Open `path` and parse it; an unopenable file counts as UNREADABLE."""

    file_path = Path(path).expanduser()
    try:
        fh = file_path.open("rb")
    except OSError as exc:
        logger.debug("cannot open %s: %s", file_path, exc)
        return ParseResult(None, VersionStatus.UNREADABLE, f"cannot open {file_path}: {exc.strerror}")
    with fh:
        return parse_stream(fh)
