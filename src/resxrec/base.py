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

r"""Base types, classes and exceptions."""

import abc
import os
from typing import Any
from typing import Optional
from typing import Tuple
from typing import Type
from typing import TypeVar
from typing import Union

try:
    from typing import TypeAlias
except ImportError:  # pragma: no cover
    TypeAlias = Any  # Python < 3.10

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

AnyBytes: TypeAlias = Union[bytes, bytearray, memoryview]
AnyPath: TypeAlias = Union[str, os.PathLike]


class ResxrecError(Exception):
    r"""Error affecting the processing of a single file.

    The batch driver catches these errors, reports them, and moves on to the
    next file.
    """


class IntegrityMismatch(ResxrecError):
    r"""Checksum sidecar missing, empty, or not matching the file content."""

    def __init__(self, path: AnyPath, reason: str = 'hash mismatch'):
        self.path: str = os.fspath(path)
        self.reason: str = reason
        super().__init__(reason)


class MalformedRecord(ResxrecError, ValueError):
    r"""Payload line not matching any of the supported record grammars."""

    def __init__(self, line: AnyBytes, lineno: int = -1):
        self.line: bytes = bytes(line)
        self.lineno: int = lineno
        super().__init__(f'malformed record at line {lineno}: {self.line!r}')


class WriteFailure(ResxrecError, OSError):
    r"""Output file could not be written."""


class ContainerError(ResxrecError, ValueError):
    r"""Container document cannot be parsed or rewritten."""


class BaseTag:
    r"""Record tag.

    The *record tag* indicates the *nature* of a record.
    The record tag class usually enumerates all the possible natures of a
    record within a *record file format*.
    """

    @abc.abstractmethod
    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        Returns:
            bool: This is a data record tag.

        Examples:
            >>> from resxrec.formats.ihex import IhexTag
            >>> IhexTag.DATA.is_data()
            True
            >>> IhexTag.END_OF_FILE.is_data()
            False
        """
        ...


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='BaseRecord')


class BaseRecord(abc.ABC):
    r"""Record.

    A *record* is a line of text carrying some binary data in hexadecimal
    representation, or some *meta* information (e.g. *start address*,
    *record count*), usually allocated at some *address*.

    Both supported formats also carry a *count* and a *checksum*.
    These are stored as parsed, and never checked: a record is only ever
    classified, while its line is kept or dropped as a whole.

    Attributes:
        tag (:class:`BaseTag`):
            The mandatory *tag*, indicating the *nature* of the record.

        address (int):
            Position in memory where the provided *data* must be stored, or
            some *meta* value (*start address*, *record count*).

        data (bytes):
            Chunk of binary data, or *meta* data like the *header string*.

        count (int):
            Count field, as serialized.

        checksum (int):
            Checksum field, as serialized.

        before (bytes):
            Whitespace found before the canonical syntax.

        after (bytes):
            Whitespace found after the canonical syntax, before the line end.

        coords (int couple):
            Line index and byte offset of the parsed record within its
            payload; ``(-1, -1)`` if not parsed from a payload.
    """

    Tag: Type[BaseTag] = None  # override
    r"""Tag object type."""

    def __init__(
        self,
        tag: BaseTag,
        address: int = 0,
        data: AnyBytes = b'',
        count: Optional[int] = None,
        checksum: Optional[int] = None,
        before: Union[bytes, bytearray] = b'',
        after: Union[bytes, bytearray] = b'',
        coords: Tuple[int, int] = (-1, -1),
    ):

        self.address: int = address.__index__()
        self.after: Union[bytes, bytearray] = after
        self.before: Union[bytes, bytearray] = before
        self.checksum: Optional[int] = checksum
        self.coords: Tuple[int, int] = coords
        self.count: Optional[int] = count
        self.data: AnyBytes = data
        self.tag: BaseTag = tag

    @classmethod
    @abc.abstractmethod
    def parse(cls, line: AnyBytes) -> Self:
        r"""Parses a record from bytes.

        Neither the count nor the checksum field are validated.

        Args:
            line (bytes):
                String of bytes to parse, optionally ending with either
                ``\n`` or ``\r\n``.

        Returns:
            :class:`BaseRecord`: Parsed record.

        Raises:
            ValueError: Syntax error.
        """
        ...
