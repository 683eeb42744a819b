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

r"""Resource containers.

A *container* is a ``.resx`` XML document holding named ``<data>`` entries,
each one with a ``<value>`` element.
Some entries carry firmware record streams, encoded as wrapped base64 text.

The maintenance tool reading these documents back is picky about their
exact formatting, so a container is never re-serialized from its element
tree: the original document text is kept, and only the ``<value>`` text of
modified blocks is replaced.
Encoding, byte order mark, XML declaration, indentation and newlines of the
rest of the document are reproduced exactly.

Examples:
    >>> document = (b'<?xml version="1.0" encoding="utf-8"?>\r\n'
    ...             b'<root>\r\n'
    ...             b'  <data name="R360_32_BasicSystem">\r\n'
    ...             b'    <value>UzkwMzAwMDBGQw0K</value>\r\n'
    ...             b'  </data>\r\n'
    ...             b'</root>\r\n')
    >>> container = Container.parse(document)
    >>> container.encoding, container.newline, container.indent
    ('utf-8', '\r\n', 2)
    >>> [block.name for block in container.blocks]
    ['R360_32_BasicSystem']
    >>> container.blocks[0].payload
    b'S9030000FC\r\n'
    >>> container.to_bytes() == document
    True
"""

import base64
import binascii
import codecs
import logging
import re
from typing import Iterator
from typing import List
from typing import Optional
from typing import Pattern
from typing import Sequence
from typing import Tuple
from typing import Union
from xml.etree import ElementTree
from xml.sax.saxutils import escape
from xml.sax.saxutils import unescape

from .base import AnyBytes
from .base import AnyPath
from .base import ContainerError
from .utils import chop
from .utils import write_file

log = logging.getLogger(__name__)

WRAP_WIDTH: int = 80
r"""Base64 line width of wrapped values."""

WRAP_INDENT: int = 8
r"""Leading spaces of each wrapped base64 line."""

DEFAULT_ENCODING: str = 'utf-8'
r"""Encoding of documents without any declaration."""

DEFAULT_INDENT: int = 2
r"""Indentation width of documents without indented lines."""

BOM_ENCODINGS: Sequence[Tuple[bytes, str]] = (
    (codecs.BOM_UTF16_LE, 'utf-16-le'),
    (codecs.BOM_UTF16_BE, 'utf-16-be'),
)
r"""Endian-specific codec for each UTF-16 byte order mark."""

XML_DECL_REGEX = re.compile(
    b'^(?:\\xef\\xbb\\xbf)?\\s*<\\?xml\\b[^>]*?'
    b'\\bencoding\\s*=\\s*["\'](?P<encoding>[A-Za-z0-9._-]+)["\']'
)
r"""XML declaration encoding parser regex."""

INDENT_REGEX = re.compile(r'^(?P<indent>[ ]+)<', re.MULTILINE)
r"""First indented element regex."""

TOKEN_REGEX = re.compile(
    r'<!--.*?-->'
    r'|<!\[CDATA\[.*?\]\]>'
    r'|<\?.*?\?>'
    r'|<data\b(?P<attrs>[^>]*?)(?:/>|>(?P<body>.*?)</data\s*>)',
    re.DOTALL,
)
r"""Document tokenizer regex.

Comments, CDATA sections and processing instructions are matched only to be
skipped, as ``.resx`` headers usually show sample ``<data>`` entries within
a comment.
"""

NAME_REGEX = re.compile(r'\bname\s*=\s*(?P<quote>["\'])(?P<name>.*?)(?P=quote)', re.DOTALL)
r"""Entry name attribute regex."""

VALUE_REGEX = re.compile(r'<value\s*>(?P<value>.*?)</value\s*>|<value\s*/>', re.DOTALL)
r"""Entry value element regex."""

ATTR_ENTITIES = {'&quot;': '"', '&apos;': "'"}
r"""Attribute entities, besides the ones handled by :func:`unescape`."""


def detect_encoding(data: AnyBytes) -> str:
    r"""Detects the text encoding of a document.

    Args:
        data (bytes):
            Document bytes.

    A byte order mark selects an endian-specific codec, so that the mark
    itself is decoded as a character and written back unchanged.

    Returns:
        str: Codec name.

    Examples:
        >>> detect_encoding(b'<?xml version="1.0" encoding="utf-8"?><root/>')
        'utf-8'
        >>> detect_encoding(codecs.BOM_UTF16_LE + '<root/>'.encode('utf-16-le'))
        'utf-16-le'
        >>> detect_encoding(codecs.BOM_UTF16_BE + '<root/>'.encode('utf-16-be'))
        'utf-16-be'
        >>> detect_encoding(b'<root/>')
        'utf-8'
    """

    data = bytes(data)
    for bom, encoding in BOM_ENCODINGS:
        if data.startswith(bom):
            return encoding

    match = XML_DECL_REGEX.match(data)
    if match:
        encoding = match.group('encoding').decode('ascii')
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise ContainerError(f'unknown encoding: {encoding!r}')
        return encoding

    return DEFAULT_ENCODING


def wrap_base64(
    data: AnyBytes,
    newline: str = '\r\n',
    width: int = WRAP_WIDTH,
    indent: int = WRAP_INDENT,
) -> str:
    r"""Encodes bytes as wrapped base64 text.

    Base64 text longer than `width` is split into lines of `width`
    characters, each one indented by `indent` spaces and preceded by a line
    break; a final line break closes the text.
    Shorter text is kept on a single line, as the maintenance tool does.

    Args:
        data (bytes):
            Raw bytes to encode.

        newline (str):
            Line terminator.

        width (int):
            Maximum base64 characters per line.

        indent (int):
            Leading spaces per line.

    Returns:
        str: Wrapped base64 text.

    Examples:
        >>> wrap_base64(b'abc')
        'YWJj'
        >>> wrap_base64(b'abcdefgh', newline='\n', width=4, indent=2)
        '\n  YWJj\n  ZGVm\n  Z2g=\n'
    """

    encoded = base64.b64encode(bytes(data)).decode('ascii')
    if len(encoded) <= width:
        return encoded

    prefix = ' ' * indent
    chunks = [newline + prefix + chunk for chunk in chop(encoded, width)]
    return ''.join(chunks) + newline


class Block:
    r"""Named container entry.

    Attributes:
        name (str):
            Entry name; identity of the block.

        span (int couple):
            Start and end offsets of the ``<value>`` text within the
            document text; ``None`` if there is no text to replace.

    Args:
        name (str):
            See :attr:`name`.

        value (str):
            Unescaped ``<value>`` text.

        span (int couple):
            See :attr:`span`.
    """

    def __init__(
        self,
        name: str,
        value: str = '',
        span: Optional[Tuple[int, int]] = None,
    ):

        self.name: str = name
        self.span: Optional[Tuple[int, int]] = span
        self._value: str = value
        self._modified: bool = False

    def __repr__(self) -> str:

        return f'<{self.__class__.__name__} {self.name!r}>'

    @property
    def modified(self) -> bool:
        r"""bool: :attr:`value` was assigned since parsing."""

        return self._modified

    @property
    def payload(self) -> bytes:
        r"""bytes: Base64 decoding of :attr:`value`.

        Whitespace and line breaks within the value are ignored.

        Raises:
            :class:`ContainerError`: Invalid base64 text.
        """

        try:
            return base64.b64decode(self._value, validate=False)
        except (binascii.Error, ValueError) as exc:
            raise ContainerError(f'block {self.name!r}: invalid base64 ({exc})') from exc

    def set_payload(
        self,
        payload: AnyBytes,
        newline: str = '\r\n',
        width: int = WRAP_WIDTH,
        indent: int = WRAP_INDENT,
    ) -> 'Block':
        r"""Assigns a payload, encoding it as wrapped base64.

        See Also:
            :func:`wrap_base64`
        """

        self.value = wrap_base64(payload, newline=newline, width=width, indent=indent)
        return self

    @property
    def value(self) -> str:
        r"""str: Base64 text, as found within the ``<value>`` element."""

        return self._value

    @value.setter
    def value(self, value: str) -> None:

        if self.span is None:
            raise ContainerError(f'block {self.name!r} has no value text to replace')
        self._value = value
        self._modified = True


class Container:
    r"""Resource container document.

    Attributes:
        text (str):
            Decoded document text, as parsed.

        encoding (str):
            Document encoding.

        newline (str):
            Newline convention of the document: ``\r\n`` or ``\n``.

        indent (int):
            Indentation width of the document structure.

        blocks (list of :class:`Block`):
            Data entries, in document order.
    """

    def __init__(
        self,
        text: str,
        encoding: str = DEFAULT_ENCODING,
        blocks: Optional[List[Block]] = None,
    ):

        self.text: str = text
        self.encoding: str = encoding
        self.newline: str = '\r\n' if '\r\n' in text else '\n'
        match = INDENT_REGEX.search(text)
        self.indent: int = len(match.group('indent')) if match else DEFAULT_INDENT
        self.blocks: List[Block] = list(blocks or ())

    @classmethod
    def parse(cls, data: AnyBytes) -> 'Container':
        r"""Parses a document.

        Args:
            data (bytes):
                Document bytes.

        Returns:
            :class:`Container`: Parsed container.

        Raises:
            :class:`ContainerError`: Invalid document.
        """

        data = bytes(data)
        encoding = detect_encoding(data)
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError as exc:
            raise ContainerError(f'cannot decode document as {encoding}: {exc}') from exc

        # Text input makes the XML parser ignore the declared encoding
        try:
            root = ElementTree.fromstring(text)
        except (ElementTree.ParseError, ValueError) as exc:
            raise ContainerError(f'invalid document: {exc}') from exc

        elements = list(root.iter('data'))
        entries = list(cls._scan(text))
        if len(elements) != len(entries):
            raise ContainerError(f'found {len(entries)} data entries, expected {len(elements)}')

        blocks = []
        for element, (name, span) in zip(elements, entries):
            if name != element.get('name'):
                raise ContainerError(f'data entry mismatch: {name!r} != {element.get("name")!r}')
            value_element = element.find('value')
            value = (value_element.text or '') if value_element is not None else ''
            blocks.append(Block(name, value, span))

        container = cls(text, encoding=encoding, blocks=blocks)
        log.debug('parsed %d blocks, encoding=%s indent=%d newline=%r',
                  len(blocks), encoding, container.indent, container.newline)
        return container

    @staticmethod
    def _scan(text: str) -> Iterator[Tuple[Optional[str], Optional[Tuple[int, int]]]]:

        for match in TOKEN_REGEX.finditer(text):
            attrs = match.group('attrs')
            if attrs is None:
                continue  # comment, CDATA, processing instruction

            name_match = NAME_REGEX.search(attrs)
            name = None
            if name_match:
                name = unescape(name_match.group('name'), ATTR_ENTITIES)

            span = None
            body = match.group('body')
            if body is not None:
                value_match = VALUE_REGEX.search(body)
                if value_match and value_match.group('value') is not None:
                    offset = match.start('body')
                    start, endex = value_match.span('value')
                    span = (offset + start, offset + endex)

            yield name, span

    def __getitem__(self, name: str) -> Block:

        for block in self.blocks:
            if block.name == name:
                return block
        raise KeyError(name)

    def select(self, pattern: Union[str, Pattern]) -> List[Block]:
        r"""Selects blocks by name.

        Args:
            pattern (str or regex):
                Regular expression, which must match the whole block name.

        Returns:
            list of :class:`Block`: Matching blocks, in document order.

        Examples:
            >>> container = Container('', blocks=[Block('R360_32_BasicSystem'),
            ...                                   Block('Logo'),
            ...                                   Block('R360Line_32_EEPROMData')])
            >>> [block.name for block in container.select(r'\w*_32(_\w+)?')]
            ['R360_32_BasicSystem', 'R360Line_32_EEPROMData']
        """

        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        return [block for block in self.blocks if regex.fullmatch(block.name)]

    def to_bytes(self) -> bytes:
        r"""Serializes the document.

        Only the value text of modified blocks changes with respect to the
        parsed document.

        Returns:
            bytes: Document bytes.
        """

        text = self.text
        chunks = []
        cursor = 0
        modified = sorted((block for block in self.blocks if block.modified),
                          key=lambda block: block.span[0])

        for block in modified:
            start, endex = block.span
            chunks.append(text[cursor:start])
            chunks.append(escape(block.value))
            cursor = endex

        chunks.append(text[cursor:])
        return ''.join(chunks).encode(self.encoding)

    def save(self, path: AnyPath) -> bytes:
        r"""Writes the serialized document to a file.

        Args:
            path (str):
                Output file path.

        Returns:
            bytes: Written document bytes.

        Raises:
            :class:`WriteFailure`: Cannot write the file.
        """

        data = self.to_bytes()
        write_file(path, data)
        return data
