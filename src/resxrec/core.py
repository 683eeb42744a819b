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

r"""Container processing pipeline.

Each operation takes the path of a single container, and:

#. reads it and verifies it against its checksum sidecar;
#. parses it, and skips it if no firmware blocks are found;
#. transforms the selected blocks in memory;
#. writes a derived file beside the source, then publishes its sidecar.

The source container is never modified.

:func:`process_batch` applies an operation to a sequence of paths, usually
collected by :func:`discover_files`, reporting per-file failures without
stopping.
"""

import logging
import os
from typing import Any
from typing import Callable
from typing import Iterable
from typing import List
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from typing import Sequence
from typing import Tuple

from .base import AnyPath
from .base import ContainerError
from .base import ResxrecError
from .container import Container
from .integrity import publish
from .integrity import verify
from .records import guess_dialect
from .records import iter_records
from .records import reduce
from .records import repair
from .utils import read_file
from .utils import write_file

log = logging.getLogger(__name__)

CONTAINER_EXT: str = '.resx'
r"""Container file extension."""

PRECHECK_PATTERN: str = r'(?:[A-Za-z0-9]+_)?32(?:_[A-Za-z0-9]+)*'
r"""Firmware block name pattern.

It matches names carrying the 32-bit architecture token, optionally
preceded by a platform token and followed by sub-tokens, e.g. ``R360_32``,
``R360_32_BasicSystem``, ``R360Line_32_EEPROMData``.
Containers without such blocks are skipped.
"""

PLATFORM_PATTERN: str = r'(?:[A-Za-z0-9]+_32_)?'
r"""Optional platform prefix of module block names."""

TARGET_PATTERNS: Mapping[str, str] = {
    'reduce': PLATFORM_PATTERN + r'(?:BasicSystem|Bootloader|OperatingSystem|Application)',
    'repair': PLATFORM_PATTERN + r'(?:EEPROMData|ParameterData)',
}
r"""Name pattern of the blocks transformed by each operation.

Motorola S-record modules are reduced; H86 colon-record modules are
repaired.
"""

OUTPUT_SUFFIXES: Mapping[str, str] = {
    'reduce': ' Reduced',
    'repair': ' Repaired',
}
r"""File name suffix of the container derived by each operation."""

EXTRACT_EXTS: Mapping[Optional[str], str] = {
    'ihex': '.h86',
    'srec': '.mot',
    None: '.txt',
}
r"""Extracted file extension, by record dialect."""


class BlockReport(NamedTuple):
    r"""Outcome of a block transform."""

    name: str
    r"""Block name."""

    removed: int = 0
    r"""Bytes removed from the decoded payload; negative if added."""

    records: int = 0
    r"""Records removed from the decoded payload."""

    spans: Sequence[Tuple[int, int]] = ()
    r"""Elided address ranges, as ``(start, endex)`` couples."""

    def describe(self) -> str:
        r"""Describes the size change.

        Examples:
            >>> BlockReport('A', 6, 1).describe()
            '6 bytes removed (1 records)'
            >>> BlockReport('A', -2).describe()
            '2 bytes added'
        """

        if self.removed < 0:
            return f'{-self.removed} bytes added'
        return f'{self.removed} bytes removed ({self.records} records)'


class FileReport(NamedTuple):
    r"""Outcome of a file operation."""

    path: str
    r"""Source file path."""

    status: str
    r"""One of ``written``, ``verified``, ``skipped``, ``failed``."""

    outputs: Sequence[str] = ()
    r"""Written file paths (sidecars excluded)."""

    blocks: Sequence[BlockReport] = ()
    r"""Transformed blocks."""

    error: Optional[Exception] = None
    r"""Failure cause."""


def output_path(path: AnyPath, operation: str) -> str:
    r"""Computes the path of a derived container.

    Examples:
        >>> output_path('fw/A.resx', 'reduce')
        'fw/A Reduced.resx'
        >>> output_path('fw/A.resx', 'repair')
        'fw/A Repaired.resx'
    """

    root, ext = os.path.splitext(os.fspath(path))
    return root + OUTPUT_SUFFIXES[operation] + ext


def extract_path(path: AnyPath, name: str, dialect: Optional[str]) -> str:
    r"""Computes the path of an extracted record stream.

    Examples:
        >>> extract_path('fw/A.resx', 'R360_32_BasicSystem', 'srec')
        'fw/A R360_32_BasicSystem.mot'
    """

    root, _ = os.path.splitext(os.fspath(path))
    return f'{root} {name}{EXTRACT_EXTS.get(dialect, EXTRACT_EXTS[None])}'


def is_derived(path: AnyPath) -> bool:
    r"""Tells whether a path names a derived container.

    Examples:
        >>> is_derived('A Reduced.resx')
        True
        >>> is_derived('A.resx')
        False
    """

    stem, _ = os.path.splitext(os.path.basename(os.fspath(path)))
    return any(stem.endswith(suffix) for suffix in OUTPUT_SUFFIXES.values())


def is_candidate(path: AnyPath, ext: str = CONTAINER_EXT) -> bool:
    r"""Tells whether a path names a source container."""

    _, path_ext = os.path.splitext(os.fspath(path))
    return path_ext.lower() == ext.lower() and not is_derived(path)


def discover_files(
    roots: Iterable[AnyPath],
    recursive: bool = False,
    depth: Optional[int] = None,
    ext: str = CONTAINER_EXT,
) -> List[str]:
    r"""Collects source containers.

    Args:
        roots (list of str):
            Files or folders to search.

        recursive (bool):
            Descend into subfolders.

        depth (int):
            Maximum subfolder depth when `recursive`; zero searches the root
            folders only, ``None`` is unbounded.

        ext (str):
            Container file extension.

    Returns:
        list of str: Container paths, sorted by folder then by name.
        Derived containers are excluded.
    """

    found: List[str] = []

    for root in roots:
        root = os.fspath(root)

        if os.path.isfile(root):
            candidates = [root]

        elif os.path.isdir(root):
            candidates = []
            for dirpath, dirnames, filenames in os.walk(root):
                relpath = os.path.relpath(dirpath, root)
                level = 0 if relpath == os.curdir else relpath.count(os.sep) + 1

                if not recursive or (depth is not None and level >= depth):
                    dirnames[:] = []
                else:
                    dirnames.sort()

                candidates.extend(os.path.join(dirpath, filename)
                                  for filename in sorted(filenames))
        else:
            log.warning('%s: no such file or directory', root)
            continue

        for path in candidates:
            if is_candidate(path, ext) and path not in found:
                found.append(path)

    log.info('found %d containers', len(found))
    return found


def load_verified(path: AnyPath) -> Container:
    r"""Loads a container, once verified against its sidecar.

    Raises:
        :class:`IntegrityMismatch`: Sidecar missing or mismatching.

        :class:`ContainerError`: Unreadable or invalid document.
    """

    try:
        data = read_file(path)
    except OSError as exc:
        raise ContainerError(f'cannot read file: {exc.strerror or exc}') from exc

    data = verify(path, data)
    return Container.parse(data)


def transform_file(
    path: AnyPath,
    operation: str,
    precheck: Optional[str] = None,
    target: Optional[str] = None,
    strict: bool = False,
) -> FileReport:
    r"""Transforms the firmware blocks of a container.

    Args:
        path (str):
            Source container path.

        operation (str):
            Either ``reduce`` or ``repair``.

        precheck (str):
            Firmware block name pattern; ``None`` for
            :data:`PRECHECK_PATTERN`.

        target (str):
            Transformed block name pattern; ``None`` for the operation
            default within :data:`TARGET_PATTERNS`.

        strict (bool):
            Fail on malformed records, instead of leaving them untouched.

    Returns:
        :class:`FileReport`: Operation outcome.

    Raises:
        :class:`ResxrecError`: Processing failed.
    """

    path = os.fspath(path)
    container = load_verified(path)

    if not container.select(precheck or PRECHECK_PATTERN):
        log.info('%s: no firmware blocks, skipped', path)
        return FileReport(path, 'skipped')

    newline = container.newline
    reports = []

    for block in container.select(target or TARGET_PATTERNS[operation]):
        payload = block.payload

        if operation == 'reduce':
            result = reduce(payload, strict=strict)
            block.set_payload(result.payload, newline=newline)
            spans = result.spans()
            report = BlockReport(block.name, result.removed, result.records, spans)

        elif operation == 'repair':
            repaired = repair(payload, strict=strict)
            block.set_payload(repaired, newline=newline)
            report = BlockReport(block.name, len(payload) - len(repaired))

        else:
            raise ValueError(f'unknown operation: {operation!r}')

        log.info('%s: %s %s, %s', path, operation, block.name, report.describe())
        reports.append(report)

    outpath = output_path(path, operation)
    written = container.save(outpath)
    publish(outpath, written)
    return FileReport(path, 'written', [outpath], reports)


def reduce_file(path: AnyPath, **kwargs: Any) -> FileReport:
    r"""Removes blank S-records from a container; see :func:`transform_file`."""

    return transform_file(path, 'reduce', **kwargs)


def repair_file(path: AnyPath, **kwargs: Any) -> FileReport:
    r"""Restores H86 record line breaks of a container; see :func:`transform_file`."""

    return transform_file(path, 'repair', **kwargs)


def extract_file(
    path: AnyPath,
    names: Optional[Sequence[str]] = None,
    target: Optional[str] = None,
    repair_records: bool = False,
    strict: bool = False,
) -> FileReport:
    r"""Extracts the record streams of a container.

    Each selected block is decoded and written beside the container, named
    after the container and the block, with an extension depending on the
    record dialect (see :data:`EXTRACT_EXTS`).

    Args:
        path (str):
            Source container path.

        names (list of str):
            Names of the blocks to extract; ``None`` selects them via
            `target`.

        target (str):
            Extracted block name pattern; ``None`` for
            :data:`PRECHECK_PATTERN`.

        repair_records (bool):
            Restore missing record line breaks; see :func:`repair`.

        strict (bool):
            Fail on malformed records.

    Returns:
        :class:`FileReport`: Operation outcome.

    Raises:
        :class:`ResxrecError`: Processing failed.
    """

    path = os.fspath(path)
    container = load_verified(path)

    if names:
        try:
            blocks = [container[name] for name in names]
        except KeyError as exc:
            raise ContainerError(f'block not found: {exc.args[0]!r}') from exc
    else:
        blocks = container.select(target or PRECHECK_PATTERN)

    if not blocks:
        log.info('%s: no blocks to extract, skipped', path)
        return FileReport(path, 'skipped')

    outputs = []
    for block in blocks:
        payload = block.payload
        if repair_records:
            payload = repair(payload, strict=strict)
        elif strict:
            for _ in iter_records(payload, strict=True):
                pass

        outpath = extract_path(path, block.name, guess_dialect(payload))
        write_file(outpath, payload)
        publish(outpath, payload)
        outputs.append(outpath)
        log.info('%s: extracted %s to %s', path, block.name, outpath)

    return FileReport(path, 'written', outputs)


def verify_file(path: AnyPath) -> FileReport:
    r"""Verifies a file against its sidecar, without processing it."""

    path = os.fspath(path)
    try:
        data = read_file(path)
    except OSError as exc:
        raise ContainerError(f'cannot read file: {exc.strerror or exc}') from exc

    verify(path, data)
    return FileReport(path, 'verified')


def process_batch(
    paths: Iterable[AnyPath],
    operation: Callable[..., FileReport],
    **kwargs: Any,
) -> List[FileReport]:
    r"""Applies an operation to each file, one after the other.

    A failing file is reported, and processing goes on with the next one.

    Args:
        paths (list of str):
            File paths.

        operation (callable):
            File operation, e.g. :func:`reduce_file`.

        kwargs:
            Forwarded to `operation`.

    Returns:
        list of :class:`FileReport`: One report per file, in order.
    """

    reports = []

    for path in paths:
        path = os.fspath(path)
        try:
            report = operation(path, **kwargs)
        except ResxrecError as exc:
            log.info('%s: failed: %s', path, exc)
            report = FileReport(path, 'failed', error=exc)
        reports.append(report)

    return reports
