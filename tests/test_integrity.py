import hashlib

import pytest

from resxrec.base import IntegrityMismatch
from resxrec.base import WriteFailure
from resxrec.integrity import compute_hash
from resxrec.integrity import publish
from resxrec.integrity import read_sidecar
from resxrec.integrity import sidecar_path
from resxrec.integrity import verify

DATA = b'<root/>\r\n'
DIGEST = hashlib.md5(DATA).hexdigest()


def test_sidecar_path():
    assert sidecar_path('A.resx') == 'A.md5'
    assert sidecar_path('firmware/A Reduced.resx') == 'firmware/A Reduced.md5'
    assert sidecar_path('firmware/A R360_32_BasicSystem.mot') == 'firmware/A R360_32_BasicSystem.md5'
    assert sidecar_path('noext') == 'noext.md5'


def test_compute_hash():
    assert compute_hash(b'') == 'd41d8cd98f00b204e9800998ecf8427e'
    assert compute_hash(DATA) == DIGEST
    assert compute_hash(bytearray(DATA)) == DIGEST
    assert compute_hash(memoryview(DATA)) == DIGEST


class TestReadSidecar:

    def test_missing(self, tmppath):
        assert read_sidecar(tmppath / 'A.resx') is None

    def test_empty(self, tmppath):
        (tmppath / 'A.md5').write_text('  \r\n')
        assert read_sidecar(tmppath / 'A.resx') is None

    def test_plain(self, tmppath):
        (tmppath / 'A.md5').write_text(DIGEST)
        assert read_sidecar(tmppath / 'A.resx') == DIGEST

    def test_md5sum_style(self, tmppath):
        (tmppath / 'A.md5').write_text(f'{DIGEST}  A.resx\n')
        assert read_sidecar(tmppath / 'A.resx') == DIGEST

    def test_unreadable(self, tmppath):
        (tmppath / 'A.md5').mkdir()
        with pytest.raises(IntegrityMismatch, match='cannot read checksum file') as excinfo:
            read_sidecar(tmppath / 'A.resx')
        assert excinfo.value.path == str(tmppath / 'A.resx')


class TestVerify:

    def test_match(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        (tmppath / 'A.md5').write_text(DIGEST)
        assert verify(path) == DATA
        assert verify(path, DATA) == DATA

    def test_match_uppercase(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        (tmppath / 'A.md5').write_text(DIGEST.upper() + '\r\n')
        assert verify(path) == DATA

    def test_given_data(self, tmppath):
        path = tmppath / 'A.resx'
        (tmppath / 'A.md5').write_text(DIGEST)
        assert verify(path, bytearray(DATA)) == DATA

    def test_missing(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        with pytest.raises(IntegrityMismatch, match='missing checksum file') as excinfo:
            verify(path)
        assert excinfo.value.path == str(path)

    def test_empty(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        (tmppath / 'A.md5').write_text('')
        with pytest.raises(IntegrityMismatch, match='missing checksum file'):
            verify(path)

    def test_mismatch(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA + b' ')
        (tmppath / 'A.md5').write_text(DIGEST)
        with pytest.raises(IntegrityMismatch, match='hash mismatch') as excinfo:
            verify(path)
        assert DIGEST in excinfo.value.reason
        assert str(excinfo.value) == excinfo.value.reason

    def test_unreadable(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        (tmppath / 'A.md5').mkdir()
        with pytest.raises(IntegrityMismatch, match='cannot read checksum file'):
            verify(path)


class TestPublish:

    def test_data(self, tmppath):
        path = tmppath / 'A Reduced.resx'
        assert publish(path, DATA) == DIGEST
        assert (tmppath / 'A Reduced.md5').read_text() == DIGEST

    def test_read(self, tmppath):
        path = tmppath / 'A Reduced.resx'
        path.write_bytes(DATA)
        assert publish(path) == DIGEST
        assert verify(path) == DATA

    def test_overwrite(self, tmppath):
        path = tmppath / 'A.resx'
        path.write_bytes(DATA)
        (tmppath / 'A.md5').write_text('0' * 32)
        publish(path)
        assert read_sidecar(path) == DIGEST

    def test_raises(self, tmppath):
        path = tmppath / 'missing' / 'A.resx'
        with pytest.raises(WriteFailure):
            publish(path, DATA)
