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

r"""Motorola S-record format.

Only the parts needed to classify stream lines are handled here: a line is
split into its fields, and data records can be told blank.
Count and checksum fields are stored as found, never checked.

See Also:
    `<https://en.wikipedia.org/wiki/SREC_(file_format)>`_
"""

import enum
import re
from typing import Any
from typing import Mapping
from typing import Type
from typing import TypeVar
from typing import cast as _cast

from ..base import AnyBytes
from ..base import BaseRecord
from ..base import BaseTag
from ..base import TypeAlias
from ..utils import unhexlify

try:
    from typing import Self
except ImportError:  # pragma: no cover
    Self: TypeAlias = Any  # Python < 3.11
__TYPING_HAS_SELF = Self is not Any

BLANK_BYTE: int = 0xFF
r"""Erased flash memory byte value."""


class SrecTag(BaseTag, enum.IntEnum):
    r"""Motorola S-record tag."""

    HEADER = 0
    r"""Header string. Optional."""

    DATA_16 = 1
    r"""16-bit address data record."""

    DATA_24 = 2
    r"""24-bit address data record."""

    DATA_32 = 3
    r"""32-bit address data record."""

    RESERVED = 4
    r"""Reserved tag."""

    COUNT_16 = 5
    r"""16-bit record count. Optional."""

    COUNT_24 = 6
    r"""24-bit record count. Optional."""

    START_32 = 7
    r"""32-bit start address. Terminates :attr:`DATA_32`."""

    START_24 = 8
    r"""24-bit start address. Terminates :attr:`DATA_24`."""

    START_16 = 9
    r"""16-bit start address. Terminates :attr:`DATA_16`."""

    def get_address_size(self) -> int:
        r"""Gets the address field size.

        Returns:
            int: *Address* field size, in bytes; zero if not supported.

        Examples:
            >>> SrecTag.DATA_16.get_address_size()
            2
            >>> SrecTag.DATA_24.get_address_size()
            3
            >>> SrecTag.DATA_32.get_address_size()
            4
            >>> SrecTag.RESERVED.get_address_size()
            0
        """

        return ADDRESS_SIZES[self]

    def is_data(self) -> bool:
        r"""Tells whether this is a data record tag.

        Examples:
            >>> SrecTag.DATA_16.is_data()
            True
            >>> SrecTag.HEADER.is_data()
            False
        """

        return ((self == self.DATA_16) or
                (self == self.DATA_24) or
                (self == self.DATA_32))


ADDRESS_SIZES: Mapping[SrecTag, int] = {
    SrecTag.HEADER: 2,
    SrecTag.DATA_16: 2,
    SrecTag.DATA_24: 3,
    SrecTag.DATA_32: 4,
    SrecTag.RESERVED: 0,
    SrecTag.COUNT_16: 2,
    SrecTag.COUNT_24: 3,
    SrecTag.START_32: 4,
    SrecTag.START_24: 3,
    SrecTag.START_16: 2,
}
r"""Address field size, in bytes, for each tag."""


if not __TYPING_HAS_SELF:  # pragma: no cover
    del Self
    Self = TypeVar('Self', bound='SrecRecord')


class SrecRecord(BaseRecord):
    r"""Motorola S-record record object."""

    Tag: Type[SrecTag] = SrecTag

    LINE1_REGEX = re.compile(
        b'^(?P<before>[ \\t]*)[Ss]'
        b'(?P<tag>[0-9])'
        b'(?P<count>[0-9A-Fa-f]{2})'
    )
    r"""Line parser regex, part 1."""

    LINE2_REGEX = [re.compile(
        b'^(?P<address>[0-9A-Fa-f]{%d})' % (4 + (i * 2))
    ) for i in range(3)]
    r"""Line parser regex, part 2."""

    LINE3_REGEX = re.compile(
        b'^(?P<data>([0-9A-Fa-f]{2})*)'
        b'(?P<checksum>[0-9A-Fa-f]{2})'
        b'(?P<after>[ \\t]*)\\r?\\n?$'
    )
    r"""Line parser regex, part 3."""

    def is_blank(self, value: int = BLANK_BYTE) -> bool:
        r"""Tells whether this is a blank data record.

        A *blank* record is a *data* record (``S1``, ``S2``, ``S3``) whose
        *data* field is made only of the erased flash value.
        Dropping it is lossless, as long as the consumer fills unspecified
        memory ranges with the same value.

        The *address* and *checksum* fields are not taken into account.

        Args:
            value (int):
                Erased byte value.

        Returns:
            bool: This is a blank data record.

        Examples:
            >>> SrecRecord.parse(b'S30800000000FFFFFF00').is_blank()
            True
            >>> SrecRecord.parse(b'S3080000000000FF0100').is_blank()
            False
            >>> SrecRecord.parse(b'S0050000FFFF00').is_blank()
            False
        """

        tag = _cast(SrecTag, self.tag)
        if not tag.is_data():
            return False

        data = self.data
        return bool(data) and data.count(value) == len(data)

    @classmethod
    def parse(cls, line: AnyBytes) -> Self:
        r"""Parses a record from bytes.

        Examples:
            >>> record = SrecRecord.parse(b'S1061234616263FF\r\n')
            >>> record.tag, hex(record.address), record.data, record.checksum
            (<SrecTag.DATA_16: 1>, '0x1234', b'abc', 255)
        """

        Tag = cls.Tag
        line = memoryview(line)

        match = cls.LINE1_REGEX.match(line)
        if not match:
            raise ValueError('syntax error')
        groups = match.groupdict()
        before = groups['before']
        tag = Tag(int(groups['tag'], 16))
        count = int(groups['count'], 16)
        if tag == Tag.RESERVED:
            raise ValueError('reserved tag')

        addridx = tag.get_address_size() - 2
        line = line[match.span()[1]:]
        match = cls.LINE2_REGEX[addridx].match(line)
        if not match:
            raise ValueError('syntax error')
        groups = match.groupdict()
        address = int(groups['address'], 16)

        line = line[match.span()[1]:]
        match = cls.LINE3_REGEX.match(line)
        if not match:
            raise ValueError('syntax error')
        groups = match.groupdict()
        data = unhexlify(groups['data'])
        checksum = int(groups['checksum'], 16)
        after = groups['after']

        record = cls(tag,
                     address=address,
                     data=data,
                     count=count,
                     checksum=checksum,
                     before=before,
                     after=after)
        return record
