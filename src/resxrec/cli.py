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

"""
Module that contains the command line app.

Why does this file exist, and why not put this in __main__?

  You might be tempted to import things from __main__ later, but that will cause
  problems: the code will get executed twice:

  - When you run `python -m resxrec` python will execute
    ``__main__.py`` as a script. That means there won't be any
    ``resxrec.__main__`` in ``sys.modules``.
  - When you import __main__ it will get executed again (as a module) because
    there's no ``resxrec.__main__`` in ``sys.modules``.

  Also see (1) from https://click.palletsprojects.com/en/stable/setuptools/#setuptools-integration
"""

import logging
import re
from typing import Optional
from typing import Sequence
from typing import Tuple

import click

from .__init__ import __version__
from .core import PRECHECK_PATTERN
from .core import TARGET_PATTERNS
from .core import FileReport
from .core import discover_files
from .core import extract_file
from .core import process_batch
from .core import reduce_file
from .core import repair_file
from .core import verify_file


class RegexParamType(click.ParamType):
    name = 'regex'

    def convert(self, value, param, ctx):
        try:
            re.compile(value)
            return value
        except re.error as exc:
            self.fail(f'invalid regular expression: {value!r} ({exc})', param, ctx)


REGEX = RegexParamType()

FILE_PATH_IN = click.Path(dir_okay=False, readable=True, exists=True)
SEARCH_PATH = click.Path(exists=True)

LOG_LEVELS: Sequence[int] = (logging.WARNING, logging.INFO, logging.DEBUG)
r"""Logging level for each ``--verbose`` count."""


# ----------------------------------------------------------------------------

def print_version(ctx, _, value):

    if not value or ctx.resilient_parsing:
        return

    click.echo(str(__version__))
    ctx.exit()


def echo_reports(reports: Sequence[FileReport]) -> int:
    r"""Prints file reports.

    Args:
        reports (list of :class:`FileReport`):
            Reports to print.

    Returns:
        int: Number of failed files.
    """

    failed = 0

    for report in reports:
        if report.status == 'failed':
            failed += 1
            click.secho(f'{report.path}: {report.error}', fg='red', err=True)
            continue

        if report.status == 'skipped':
            click.echo(f'{report.path}: no firmware blocks, skipped')
            continue

        if report.status == 'verified':
            click.echo(f'{report.path}: OK')
            continue

        for block in report.blocks:
            click.echo(f'{report.path}: {block.name}: {block.describe()}')
            for start, endex in block.spans:
                click.echo(f'    elided 0x{start:08X}-0x{endex:08X}')

        for output in report.outputs:
            click.echo(f'{report.path}: wrote {output}')

    return failed


def finish(ctx: click.Context, reports: Sequence[FileReport]) -> None:

    failed = echo_reports(reports)
    if failed:
        click.secho(f'{failed} of {len(reports)} files failed', fg='red', err=True)
        ctx.exit(1)


# ============================================================================

@click.group()
@click.option('-v', '--verbose', count=True, help="""
    Increases logging verbosity; repeat for debug output.
""")
@click.option('-V', '--version', is_flag=True, is_eager=True,
              expose_value=False, callback=print_version, help="""
    Print version and exit.
""")
def main(verbose: int) -> None:
    """
    Tools for firmware images stored within ``.resx`` resource containers.

    Every container must come with its ``.md5`` checksum file, which is
    checked before reading it.
    Containers are never modified: each command writes derived files beside
    the source, each one with its own ``.md5`` checksum file.
    """

    level = LOG_LEVELS[min(verbose, len(LOG_LEVELS) - 1)]
    logging.basicConfig(level=level, format='%(levelname)s:%(name)s:%(message)s')


# ----------------------------------------------------------------------------

@main.command()
@click.option('-r', '--recursive', is_flag=True, help="""
    Searches folders recursively.
""")
@click.option('-d', '--depth', type=click.IntRange(min=0), help="""
    Maximum recursion depth; zero searches the given folders only.
    By default it is unbounded.
""")
@click.option('--precheck', type=REGEX, default=PRECHECK_PATTERN, show_default=True, help="""
    Firmware block name pattern.
    Containers without any matching blocks are skipped.
""")
@click.option('--target', type=REGEX, default=TARGET_PATTERNS['reduce'], show_default=True, help="""
    Name pattern of the S-record blocks to reduce.
""")
@click.option('--strict', is_flag=True, help="""
    Fails on malformed records, instead of leaving them untouched.
""")
@click.argument('paths', type=SEARCH_PATH, nargs=-1, required=True)
@click.pass_context
def reduce(
    ctx: click.Context,
    recursive: bool,
    depth: Optional[int],
    precheck: str,
    target: str,
    strict: bool,
    paths: Tuple[str, ...],
) -> None:
    r"""Removes blank S-records.

    Every S1/S2/S3 record whose data is all ``FF`` (erased flash) is
    removed from the target blocks.
    The result is written as ``<name> Reduced.resx``.

    ``PATHS`` are container files, or folders to search for ``*.resx``.
    """

    files = discover_files(paths, recursive=recursive, depth=depth)
    reports = process_batch(files, reduce_file, precheck=precheck, target=target, strict=strict)
    finish(ctx, reports)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-r', '--recursive', is_flag=True, help="""
    Searches folders recursively.
""")
@click.option('-d', '--depth', type=click.IntRange(min=0), help="""
    Maximum recursion depth; zero searches the given folders only.
    By default it is unbounded.
""")
@click.option('--precheck', type=REGEX, default=PRECHECK_PATTERN, show_default=True, help="""
    Firmware block name pattern.
    Containers without any matching blocks are skipped.
""")
@click.option('--target', type=REGEX, default=TARGET_PATTERNS['repair'], show_default=True, help="""
    Name pattern of the H86 blocks to repair.
""")
@click.option('--strict', is_flag=True, help="""
    Fails on malformed records, instead of leaving them untouched.
""")
@click.argument('paths', type=SEARCH_PATH, nargs=-1, required=True)
@click.pass_context
def repair(
    ctx: click.Context,
    recursive: bool,
    depth: Optional[int],
    precheck: str,
    target: str,
    strict: bool,
    paths: Tuple[str, ...],
) -> None:
    r"""Restores missing H86 record line breaks.

    A line break is inserted before each ``:`` record marker not already
    starting a line.
    The result is written as ``<name> Repaired.resx``.

    ``PATHS`` are container files, or folders to search for ``*.resx``.
    """

    files = discover_files(paths, recursive=recursive, depth=depth)
    reports = process_batch(files, repair_file, precheck=precheck, target=target, strict=strict)
    finish(ctx, reports)


# ----------------------------------------------------------------------------

@main.command()
@click.option('-b', '--block', 'names', multiple=True, help="""
    Name of a block to extract; repeat for more blocks.
    By default, all the blocks matching ``--target`` are extracted.
""")
@click.option('--target', type=REGEX, default=PRECHECK_PATTERN, show_default=True, help="""
    Name pattern of the blocks to extract.
""")
@click.option('--repair', 'repair_records', is_flag=True, help="""
    Restores missing record line breaks before writing.
""")
@click.option('--strict', is_flag=True, help="""
    Fails on malformed records.
""")
@click.argument('infiles', type=FILE_PATH_IN, nargs=-1, required=True)
@click.pass_context
def extract(
    ctx: click.Context,
    names: Tuple[str, ...],
    target: str,
    repair_records: bool,
    strict: bool,
    infiles: Tuple[str, ...],
) -> None:
    r"""Extracts record streams.

    Each selected block is decoded and written as
    ``<name> <block>.h86`` (colon records) or ``<name> <block>.mot``
    (S-records).

    ``INFILES`` are container files.
    """

    reports = process_batch(infiles, extract_file, names=names, target=target,
                            repair_records=repair_records, strict=strict)
    finish(ctx, reports)


# ----------------------------------------------------------------------------

@main.command()
@click.argument('infiles', type=FILE_PATH_IN, nargs=-1, required=True)
@click.pass_context
def verify(
    ctx: click.Context,
    infiles: Tuple[str, ...],
) -> None:
    r"""Checks files against their ``.md5`` checksum files.

    ``INFILES`` are the files to check.
    """

    reports = process_batch(infiles, verify_file)
    finish(ctx, reports)
