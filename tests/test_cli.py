import os
from typing import cast as _cast

from click.core import Command
from click.testing import CliRunner
from conftest import make_resx
from conftest import write_with_sidecar

from resxrec import __version__ as _version
from resxrec.__main__ import main as _main
from resxrec.cli import *
from resxrec.container import Container

main = _cast(Command, main)  # suppress warnings

SREC_PAYLOAD = (
    b'S00F000068656C6C6F202020202000003C\r\n'
    b'S30800000000FFFFFF00\r\n'
    b'S3080000000300FF0100\r\n'
    b'S70500000000FA\r\n'
)

IHEX_PAYLOAD = b':0400000001020304F2:00000001FF'

ENTRIES = [
    ('R360_32_BasicSystem', SREC_PAYLOAD),
    ('R360_32_EEPROMData', IHEX_PAYLOAD),
]


def make_source(path):
    return write_with_sidecar(path, make_resx(ENTRIES))


def test_main():
    try:
        _main('__main__')
    except SystemExit:
        pass


def test_help():
    commands = ('reduce', 'repair', 'extract', 'verify')
    runner = CliRunner()

    for command in commands:
        result = runner.invoke(main, [command, '--help'])
        assert result.exit_code == 0
        assert result.output.strip().startswith('Usage:')


def test_version():
    runner = CliRunner()

    result = runner.invoke(main, ['--version'])
    assert result.exit_code == 0
    assert result.output.strip() == str(_version)

    result = runner.invoke(main, ['-V'])
    assert result.exit_code == 0
    assert result.output.strip() == str(_version)


def test_missing_paths():
    runner = CliRunner()

    for command in ('reduce', 'repair', 'extract', 'verify'):
        result = runner.invoke(main, [command])
        assert result.exit_code == 2


def test_nonexistent_path(tmppath):
    runner = CliRunner()
    result = runner.invoke(main, ['reduce', str(tmppath / 'missing.resx')])
    assert result.exit_code == 2


def test_invalid_regex(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()

    for option in ('--precheck', '--target'):
        result = runner.invoke(main, ['reduce', option, '(', str(tmppath)])
        assert result.exit_code == 2
        assert 'invalid regular expression' in result.output


def test_reduce(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()
    result = runner.invoke(main, ['reduce', str(tmppath)])

    assert result.exit_code == 0
    assert 'R360_32_BasicSystem: 22 bytes removed (1 records)' in result.output
    assert 'elided 0x00000000-0x00000003' in result.output
    assert f'wrote {tmppath / "A Reduced.resx"}' in result.output

    container = Container.parse((tmppath / 'A Reduced.resx').read_bytes())
    assert b'FFFFFF00' not in container['R360_32_BasicSystem'].payload
    assert (tmppath / 'A Reduced.md5').is_file()


def test_reduce_batch_failure(tmppath):
    make_source(tmppath / 'A.resx')
    (tmppath / 'B.resx').write_bytes(make_resx(ENTRIES))
    runner = CliRunner()
    result = runner.invoke(main, ['reduce', str(tmppath)])

    assert result.exit_code == 1
    assert f'{tmppath / "B.resx"}: missing checksum file' in result.output
    assert '1 of 2 files failed' in result.output
    assert (tmppath / 'A Reduced.resx').is_file()
    assert not (tmppath / 'B Reduced.resx').exists()
    assert not (tmppath / 'B Reduced.md5').exists()


def test_reduce_recursive(tmppath):
    (tmppath / 'sub').mkdir()
    make_source(tmppath / 'sub' / 'A.resx')
    runner = CliRunner()

    result = runner.invoke(main, ['reduce', str(tmppath)])
    assert result.exit_code == 0
    assert not (tmppath / 'sub' / 'A Reduced.resx').exists()

    result = runner.invoke(main, ['reduce', '--depth', '0', '-r', str(tmppath)])
    assert result.exit_code == 0
    assert not (tmppath / 'sub' / 'A Reduced.resx').exists()

    result = runner.invoke(main, ['reduce', '-r', str(tmppath)])
    assert result.exit_code == 0
    assert (tmppath / 'sub' / 'A Reduced.resx').is_file()


def test_reduce_skipped(tmppath):
    write_with_sidecar(tmppath / 'A.resx', make_resx([('Logo', b'abc')]))
    runner = CliRunner()
    result = runner.invoke(main, ['reduce', str(tmppath / 'A.resx')])

    assert result.exit_code == 0
    assert 'no firmware blocks, skipped' in result.output
    assert not (tmppath / 'A Reduced.resx').exists()


def test_reduce_strict(tmppath):
    entries = [('R360_32_BasicSystem', SREC_PAYLOAD + b'S3garbage\r\n')]
    write_with_sidecar(tmppath / 'A.resx', make_resx(entries))
    runner = CliRunner()

    result = runner.invoke(main, ['reduce', '--strict', str(tmppath)])
    assert result.exit_code == 1
    assert 'malformed record' in result.output

    result = runner.invoke(main, ['-vv', 'reduce', str(tmppath)])
    assert result.exit_code == 0


def test_repair(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()
    result = runner.invoke(main, ['repair', str(tmppath / 'A.resx')])

    assert result.exit_code == 0
    assert f'wrote {tmppath / "A Repaired.resx"}' in result.output
    assert 'R360_32_EEPROMData: 2 bytes added' in result.output
    assert '-2 bytes' not in result.output

    container = Container.parse((tmppath / 'A Repaired.resx').read_bytes())
    payload = container['R360_32_EEPROMData'].payload
    assert payload == b':0400000001020304F2\r\n:00000001FF'
    assert container['R360_32_BasicSystem'].payload == SREC_PAYLOAD


def test_extract(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()
    args = ['extract', '--repair', '-b', 'R360_32_EEPROMData', str(tmppath / 'A.resx')]
    result = runner.invoke(main, args)

    assert result.exit_code == 0
    path = tmppath / 'A R360_32_EEPROMData.h86'
    assert path.read_bytes() == b':0400000001020304F2\r\n:00000001FF'
    assert (tmppath / 'A R360_32_EEPROMData.md5').is_file()
    assert not (tmppath / 'A R360_32_BasicSystem.mot').exists()


def test_extract_all(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()
    result = runner.invoke(main, ['extract', str(tmppath / 'A.resx')])

    assert result.exit_code == 0
    assert (tmppath / 'A R360_32_BasicSystem.mot').read_bytes() == SREC_PAYLOAD
    assert (tmppath / 'A R360_32_EEPROMData.h86').read_bytes() == IHEX_PAYLOAD


def test_extract_missing_block(tmppath):
    make_source(tmppath / 'A.resx')
    runner = CliRunner()
    result = runner.invoke(main, ['extract', '-b', 'Missing', str(tmppath / 'A.resx')])

    assert result.exit_code == 1
    assert 'block not found' in result.output


def test_verify(tmppath):
    make_source(tmppath / 'A.resx')
    (tmppath / 'B.resx').write_bytes(b'<root/>')
    runner = CliRunner()

    result = runner.invoke(main, ['verify', str(tmppath / 'A.resx')])
    assert result.exit_code == 0
    assert f'{tmppath / "A.resx"}: OK' in result.output

    result = runner.invoke(main, ['verify', str(tmppath / 'A.resx'), str(tmppath / 'B.resx')])
    assert result.exit_code == 1
    assert '1 of 2 files failed' in result.output


def test_verify_mismatch(tmppath):
    path = make_source(tmppath / 'A.resx')
    path.write_bytes(path.read_bytes() + b'\n')
    runner = CliRunner()
    result = runner.invoke(main, ['verify', str(path)])

    assert result.exit_code == 1
    assert 'hash mismatch' in result.output
    assert os.path.isfile(str(path))
