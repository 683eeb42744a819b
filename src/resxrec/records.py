# Copyright (c) 2013-2025, Andrea Zoppi
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice,
#    this list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

r"""Record streams: dialect detection and stream transforms.

A *payload* is the byte string obtained by decoding a container block.
It holds one record per line, either in the colon dialect (H86, handled by
:class:`resxrec.formats.ihex.IhexRecord`) or in the Motorola dialect
(handled by :class:`resxrec.formats.srec.SrecRecord`).

Transforms work line by line: each line is parsed into a record, checked
against a predicate, and either kept byte-for-byte or dropped.
Lines are never re-serialized, so any retained line keeps its original
content, including checksum and letter case.
"""

import logging
from typing import Iterator
from typing import List
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from typing import Tuple
from typing import Type

from bytesparse import Memory

from .base import AnyBytes
from .base import BaseRecord
from .base import MalformedRecord
from .formats.ihex import IhexRecord
from .formats.srec import BLANK_BYTE
from .formats.srec import SrecRecord
from .utils import split_end
from .utils import split_lines

log = logging.getLogger(__name__)

record_types: Mapping[str, Type[BaseRecord]] = {
    'ihex': IhexRecord,
    'srec': SrecRecord,
}
r"""Record type for each supported dialect."""

DIALECT_MARKERS: Mapping[int, str] = {
    ord(':'): 'ihex',
    ord('S'): 'srec',
    ord('s'): 'srec',
}
r"""Dialect name for each record start marker."""

DEFAULT_NEWLINE: bytes = b'\r\n'
r"""Line terminator used when a payload does not declare any."""


class ReduceResult(NamedTuple):
    r"""Outcome of :func:`reduce`."""

    payload: bytes
    r"""Reduced payload."""

    removed: int
    r"""Number of bytes removed from the payload."""

    records: int
    r"""Number of records removed from the payload."""

    elided: Memory
    r"""Data of the removed records, at their addresses."""

    def spans(self) -> List[Tuple[int, int]]:
        r"""Lists the elided address ranges.

        Returns:
            list of int couples: `(start, endex)` of each contiguous range
            within :attr:`elided`, by address.
        """

        return [(start, start + len(data)) for start, data in self.elided.to_blocks()]


def guess_newline(payload: AnyBytes) -> bytes:
    r"""Guesses the line terminator of a payload.

    Args:
        payload (bytes):
            Decoded payload.

    Returns:
        bytes: ``\r\n`` if any line ends that way, else ``\n`` if any line
        break exists, else :data:`DEFAULT_NEWLINE`.

    Examples:
        >>> guess_newline(b'S9030000FC\n')
        b'\n'
        >>> guess_newline(b':00000001FF')
        b'\r\n'
    """

    if b'\r\n' in payload:
        return b'\r\n'
    if b'\n' in payload:
        return b'\n'
    return DEFAULT_NEWLINE


def guess_dialect(payload: AnyBytes) -> Optional[str]:
    r"""Guesses the record dialect of a payload.

    The first non-blank line decides.

    Returns:
        str: Dialect name (key of :data:`record_types`), or ``None``.

    Examples:
        >>> guess_dialect(b'\r\n:00000001FF\r\n')
        'ihex'
        >>> guess_dialect(b'S0030000FC\r\n')
        'srec'
        >>> guess_dialect(b'garbage') is None
        True
    """

    for line in split_lines(payload):
        body = line.strip()
        if body:
            return DIALECT_MARKERS.get(body[0])
    return None


def parse_line(
    line: AnyBytes,
    lineno: int = -1,
    strict: bool = False,
) -> Optional[BaseRecord]:
    r"""Parses a payload line into a record.

    The dialect is selected by the first non-blank character; neither count
    nor checksum are validated.

    Args:
        line (bytes):
            Payload line, with or without its terminator.

        lineno (int):
            Line index, stored into :attr:`BaseRecord.coords`.

        strict (bool):
            Raise :class:`MalformedRecord` for lines not matching any
            grammar, instead of returning ``None``.

    Returns:
        :class:`BaseRecord`: Parsed record, or ``None`` for blank or
        malformed lines.

    Raises:
        :class:`MalformedRecord`: Malformed line, in `strict` mode only.

    Examples:
        >>> parse_line(b':00000001FF\r\n').tag
        <IhexTag.END_OF_FILE: 1>
        >>> parse_line(b'S30800000000FFFFFF00\n').tag
        <SrecTag.DATA_32: 3>
        >>> parse_line(b'?') is None
        True
    """

    body, _ = split_end(line)
    stripped = body.strip()
    if not stripped:
        return None

    dialect = DIALECT_MARKERS.get(stripped[0])
    if dialect is not None:
        Record = record_types[dialect]
        try:
            record = Record.parse(body)
        except ValueError:
            pass
        else:
            record.coords = (lineno, -1)
            return record

    if strict:
        raise MalformedRecord(body, lineno)
    log.debug('leaving malformed record untouched at line %d: %r', lineno, body)
    return None


def iter_records(
    payload: AnyBytes,
    strict: bool = False,
) -> Iterator[Tuple[bytes, Optional[BaseRecord]]]:
    r"""Iterates over the lines of a payload.

    Args:
        payload (bytes):
            Decoded payload.

        strict (bool):
            See :func:`parse_line`.

    Yields:
        (bytes, :class:`BaseRecord`): Line with its terminator, and its
        parsed record (``None`` for blank or malformed lines).
    """

    for lineno, line in enumerate(split_lines(payload)):
        yield line, parse_line(line, lineno=lineno, strict=strict)


def is_blank(record: Optional[BaseRecord], value: int = BLANK_BYTE) -> bool:
    r"""Tells whether a record can be elided.

    Only Motorola *data* records (``S1``, ``S2``, ``S3``) whose data is all
    `value` can be elided; anything else carries meaning.

    Examples:
        >>> is_blank(parse_line(b'S30800000000FFFFFF00'))
        True
        >>> is_blank(parse_line(b':03000000FFFFFF00'))
        False
        >>> is_blank(None)
        False
    """

    if isinstance(record, SrecRecord):
        return record.is_blank(value)
    return False


def repair(
    payload: AnyBytes,
    newline: Optional[bytes] = None,
    strict: bool = False,
) -> bytes:
    r"""Restores missing line breaks between colon records.

    A line break is inserted before every ``:`` which is neither at the
    start of the payload nor at the start of a line.
    Repairing an already repaired payload changes nothing.

    A ``:`` within the data field of a record would be split as well; colon
    records only carry hexadecimal digits, so this never happens with
    well-formed records.

    Args:
        payload (bytes):
            Decoded payload.

        newline (bytes):
            Line terminator to insert; ``None`` to use :func:`guess_newline`.

        strict (bool):
            Check that every resulting line is a record.

    Returns:
        bytes: Repaired payload.

    Raises:
        :class:`MalformedRecord`: Malformed line, in `strict` mode only.

    Examples:
        >>> repair(b':10000000AA:00000001FF')
        b':10000000AA\r\n:00000001FF'
        >>> repair(b':10000000AA\n:00000001FF\n')
        b':10000000AA\n:00000001FF\n'
    """

    if newline is None:
        newline = guess_newline(payload)

    chunks: List[bytes] = []
    for line in split_lines(payload):
        body, end = split_end(line)
        head, *tails = body.split(b':')
        pieces = [head] if head else []
        pieces.extend(b':' + tail for tail in tails)
        chunks.append(newline.join(pieces) + end)
    repaired = b''.join(chunks)

    if strict:
        for _ in iter_records(repaired, strict=True):
            pass

    return repaired


def reduce(
    payload: AnyBytes,
    strict: bool = False,
    value: int = BLANK_BYTE,
) -> ReduceResult:
    r"""Removes blank records from a Motorola payload.

    Each record for which :func:`is_blank` holds is dropped together with
    its own line terminator.
    All the other lines are kept as they are, in the same order.

    Args:
        payload (bytes):
            Decoded payload.

        strict (bool):
            See :func:`parse_line`.

        value (int):
            Erased byte value.

    Returns:
        :class:`ReduceResult`: Reduced payload and statistics.

    Raises:
        :class:`MalformedRecord`: Malformed line, in `strict` mode only.

    Examples:
        >>> result = reduce(b'S30800000000FFFFFF00\r\nS3080000000300FF0100\r\n')
        >>> result.payload
        b'S3080000000300FF0100\r\n'
        >>> result.removed, result.records
        (22, 1)
        >>> result.spans()
        [(0, 3)]
    """

    payload = bytes(payload)
    kept: List[bytes] = []
    elided = Memory()
    records = 0

    for line, record in iter_records(payload, strict=strict):
        if is_blank(record, value):
            elided.write(record.address, record.data)
            records += 1
        else:
            kept.append(line)

    reduced = b''.join(kept)
    removed = len(payload) - len(reduced)
    log.debug('removed %d blank records (%d bytes)', records, removed)
    return ReduceResult(reduced, removed, records, elided)
