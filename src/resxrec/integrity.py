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

r"""Checksum sidecar files.

Each container comes with a *sidecar* file, in the same folder and with the
same name, but with the ``.md5`` extension.
The sidecar holds the MD5 hash of the container as a single line of
hexadecimal digits.

A container is processed only if its sidecar matches its content, and every
derived file gets its own sidecar once written.
"""

import hashlib
import logging
import os
from typing import Optional

from .base import AnyBytes
from .base import AnyPath
from .base import IntegrityMismatch
from .utils import read_file
from .utils import write_file

log = logging.getLogger(__name__)

SIDECAR_EXT: str = '.md5'
r"""Sidecar file extension."""


def sidecar_path(path: AnyPath) -> str:
    r"""Computes the sidecar path of a file.

    Args:
        path (str):
            File path.

    Returns:
        str: Sidecar file path.

    Examples:
        >>> sidecar_path('firmware/A.resx')
        'firmware/A.md5'
        >>> sidecar_path('A Reduced.resx')
        'A Reduced.md5'
    """

    root, _ = os.path.splitext(os.fspath(path))
    return root + SIDECAR_EXT


def compute_hash(data: AnyBytes) -> str:
    r"""Computes the content hash.

    Args:
        data (bytes):
            File content.

    Returns:
        str: Lowercase hexadecimal MD5 hash.

    Examples:
        >>> compute_hash(b'')
        'd41d8cd98f00b204e9800998ecf8427e'
    """

    return hashlib.md5(bytes(data)).hexdigest()


def read_sidecar(path: AnyPath) -> Optional[str]:
    r"""Reads the hash stored by the sidecar of a file.

    Only the first whitespace-separated token is taken into account, so that
    ``md5sum`` style lines (hash, spaces, file name) are accepted too.

    Args:
        path (str):
            Path of the file owning the sidecar (not the sidecar itself).

    Returns:
        str: Stored hash, ``None`` if the sidecar is missing or empty.

    Raises:
        :class:`IntegrityMismatch`: Sidecar exists but cannot be read.
    """

    try:
        text = read_file(sidecar_path(path)).decode('ascii', errors='replace')
    except FileNotFoundError:
        return None
    except OSError as exc:
        reason = f'cannot read checksum file {sidecar_path(path)!r}: {exc.strerror or exc}'
        raise IntegrityMismatch(path, reason) from exc

    tokens = text.split()
    return tokens[0] if tokens else None


def verify(path: AnyPath, data: Optional[AnyBytes] = None) -> bytes:
    r"""Verifies a file against its sidecar.

    Args:
        path (str):
            File path.

        data (bytes):
            File content, if already read; ``None`` reads the file.
            Passing the very bytes to be processed ensures they are the
            verified ones.

    Returns:
        bytes: Verified file content.

    Raises:
        :class:`IntegrityMismatch`: Sidecar missing, empty, or mismatching.
    """

    if data is None:
        data = read_file(path)

    expected = read_sidecar(path)
    if expected is None:
        raise IntegrityMismatch(path, f'missing checksum file {sidecar_path(path)!r}')

    expected = expected.lower()
    actual = compute_hash(data)
    if actual != expected:
        raise IntegrityMismatch(path, f'hash mismatch (expected {expected}, found {actual})')

    log.debug('verified %s: %s', os.fspath(path), actual)
    return bytes(data)


def publish(path: AnyPath, data: Optional[AnyBytes] = None) -> str:
    r"""Writes the sidecar of a file.

    Args:
        path (str):
            Path of the file just written.

        data (bytes):
            Content just written; ``None`` reads the file.

    Returns:
        str: Published hash.

    Raises:
        :class:`WriteFailure`: Cannot write the sidecar.
    """

    if data is None:
        data = read_file(path)

    digest = compute_hash(data)
    write_file(sidecar_path(path), digest.encode('ascii'))
    log.debug('published %s: %s', sidecar_path(path), digest)
    return digest
