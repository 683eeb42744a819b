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

r"""Generic utility functions."""

import binascii
import os
import re
from typing import Iterator
from typing import List
from typing import Tuple

from .base import AnyBytes
from .base import AnyPath
from .base import WriteFailure

LINE_END_REGEX = re.compile(b'\\r?\\n\\Z')
r"""Line terminator at the end of a line."""


def chop(
    vector: AnyBytes,
    window: int,
) -> Iterator[AnyBytes]:
    r"""Chops a vector.

    Iterates through the vector grouping its items into windows.

    Args:
        vector (items):
            Vector to chop.

        window (int):
            Window length.

    Yields:
        list or items: `vector` slices of up to `window` elements.

    Examples:
        >>> list(chop(b'ABCDEFG', 2))
        [b'AB', b'CD', b'EF', b'G']

        >>> ':'.join(chop('ABCDEFG', 3))
        'ABC:DEF:G'
    """
    window = int(window)
    if window <= 0:
        raise ValueError('non-positive window')

    for i in range(0, len(vector), window):
        yield vector[i:(i + window)]


def unhexlify(hexstr: AnyBytes) -> bytes:
    r"""Converts a hexadecimal byte string into raw bytes.

    Examples:
        >>> unhexlify(b'AABBcc')
        b'\xaa\xbb\xcc'
    """

    return binascii.unhexlify(bytes(hexstr))


def split_end(line: AnyBytes) -> Tuple[bytes, bytes]:
    r"""Splits a line from its terminator.

    Only ``\n`` and ``\r\n`` are considered line terminators.

    Args:
        line (bytes):
            Line, with or without terminator.

    Returns:
        (bytes, bytes): Line body and line terminator (possibly empty).

    Examples:
        >>> split_end(b'S9030000FC\r\n')
        (b'S9030000FC', b'\r\n')
        >>> split_end(b':00000001FF')
        (b':00000001FF', b'')
    """

    line = bytes(line)
    match = LINE_END_REGEX.search(line)
    if match:
        start = match.start()
        return line[:start], line[start:]
    return line, b''


def split_lines(text: AnyBytes) -> List[bytes]:
    r"""Splits text into lines, keeping their terminators.

    Unlike :meth:`bytes.splitlines`, only ``\n`` ends a line, so that a lone
    ``\r`` stays part of the line body.

    Examples:
        >>> split_lines(b'a\r\nb\nc')
        [b'a\r\n', b'b\n', b'c']
        >>> split_lines(b'')
        []
    """

    lines = bytes(text).split(b'\n')
    tail = lines.pop()
    lines = [line + b'\n' for line in lines]
    if tail:
        lines.append(tail)
    return lines


def read_file(path: AnyPath) -> bytes:
    r"""Reads the whole content of a file."""

    with open(path, 'rb') as stream:
        return stream.read()


def write_file(path: AnyPath, data: AnyBytes) -> None:
    r"""Writes the whole content of a file.

    Args:
        path (str):
            File path.

        data (bytes):
            File content.

    Raises:
        :class:`WriteFailure`: Cannot write the file.
    """

    try:
        with open(path, 'wb') as stream:
            stream.write(data)
    except OSError as exc:
        raise WriteFailure(f'{os.fspath(path)}: {exc.strerror or exc}') from exc
