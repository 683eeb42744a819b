import pytest
from bytesparse import Memory

from resxrec.base import MalformedRecord
from resxrec.formats.ihex import IhexRecord
from resxrec.formats.ihex import IhexTag
from resxrec.formats.srec import SrecRecord
from resxrec.formats.srec import SrecTag
from resxrec.records import ReduceResult
from resxrec.records import guess_dialect
from resxrec.records import guess_newline
from resxrec.records import is_blank
from resxrec.records import iter_records
from resxrec.records import parse_line
from resxrec.records import reduce
from resxrec.records import repair

SREC_PAYLOAD = (
    b'S00F000068656C6C6F202020202000003C\r\n'
    b'S30800000000FFFFFF00\r\n'
    b'S3080000000300FF0100\r\n'
    b'S2070A0000FFFFFF00\r\n'
    b'S106000AFFFFFF00\r\n'
    b'S30500000010EA\r\n'
    b'S5030003F9\r\n'
    b'S70500000000FA\r\n'
)

SREC_REDUCED = (
    b'S00F000068656C6C6F202020202000003C\r\n'
    b'S3080000000300FF0100\r\n'
    b'S30500000010EA\r\n'
    b'S5030003F9\r\n'
    b'S70500000000FA\r\n'
)

IHEX_PAYLOAD = (
    b':0400000001020304F2\r\n'
    b':04000400FFFFFFFFFC\r\n'
    b':00000001FF\r\n'
)


class TestGuessNewline:

    def test_crlf(self):
        assert guess_newline(b'a\nb\r\nc') == b'\r\n'

    def test_lf(self):
        assert guess_newline(b'S9030000FC\n') == b'\n'

    def test_default(self):
        assert guess_newline(b':00000001FF') == b'\r\n'
        assert guess_newline(b'') == b'\r\n'


class TestGuessDialect:

    def test_ihex(self):
        assert guess_dialect(IHEX_PAYLOAD) == 'ihex'
        assert guess_dialect(b'\r\n  :00000001FF\r\n') == 'ihex'

    def test_srec(self):
        assert guess_dialect(SREC_PAYLOAD) == 'srec'
        assert guess_dialect(b's9030000fc') == 'srec'

    def test_unknown(self):
        assert guess_dialect(b'') is None
        assert guess_dialect(b'\r\n\r\n') is None
        assert guess_dialect(b'Hello, World!') is None


class TestParseLine:

    def test_ihex(self):
        record = parse_line(b':00000001FF\r\n', lineno=5)
        assert isinstance(record, IhexRecord)
        assert record.tag == IhexTag.END_OF_FILE
        assert record.coords == (5, -1)

    def test_srec(self):
        record = parse_line(b'S30800000000FFFFFF00\n')
        assert isinstance(record, SrecRecord)
        assert record.tag == SrecTag.DATA_32
        assert record.data == b'\xFF\xFF\xFF'

    def test_blank_line(self):
        assert parse_line(b'') is None
        assert parse_line(b'\r\n') is None
        assert parse_line(b'  \t\n') is None

    def test_blank_line_strict(self):
        assert parse_line(b'\r\n', strict=True) is None

    def test_malformed(self):
        assert parse_line(b'?') is None
        assert parse_line(b'S1xx') is None
        assert parse_line(b':10000000AA:00000001FF') is None

    def test_malformed_strict(self):
        with pytest.raises(MalformedRecord) as excinfo:
            parse_line(b'S1xx\r\n', lineno=7, strict=True)
        assert excinfo.value.line == b'S1xx'
        assert excinfo.value.lineno == 7
        assert 'line 7' in str(excinfo.value)

    def test_malformed_strict_is_value_error(self):
        with pytest.raises(ValueError):
            parse_line(b'?', strict=True)

    def test_checksum_not_validated(self):
        record = parse_line(b'S1061234616263FF')
        assert record.checksum == 0xFF
        assert record.data == b'abc'


class TestIterRecords:

    def test_lines(self):
        items = list(iter_records(b'S0030000FC\r\n\r\n?\nS9030000FC'))
        lines = [line for line, _ in items]
        assert lines == [b'S0030000FC\r\n', b'\r\n', b'?\n', b'S9030000FC']
        assert items[0][1].tag == SrecTag.HEADER
        assert items[1][1] is None
        assert items[2][1] is None
        assert items[3][1].tag == SrecTag.START_16
        assert items[3][1].coords == (3, -1)

    def test_strict(self):
        with pytest.raises(MalformedRecord):
            list(iter_records(b'S0030000FC\r\n?\n', strict=True))


class TestIsBlank:

    def test_srec(self):
        assert is_blank(parse_line(b'S30800000000FFFFFF00')) is True
        assert is_blank(parse_line(b'S3080000000300FF0100')) is False

    def test_value(self):
        record = parse_line(b'S308000000000000000000')
        assert is_blank(record) is False
        assert is_blank(record, 0x00) is True

    def test_ihex_never(self):
        assert is_blank(parse_line(b':04000400FFFFFFFFFC')) is False

    def test_none(self):
        assert is_blank(None) is False


class TestRepair:

    def test_fused_records(self):
        assert repair(b':10000000AA:00000001FF') == b':10000000AA\r\n:00000001FF'

    def test_fused_records_newline(self):
        assert repair(b':10000000AA:00000001FF', newline=b'\n') == b':10000000AA\n:00000001FF'

    def test_detected_newline(self):
        payload = b':0400000001020304F2\n:04000400FFFFFFFFFC:00000001FF\n'
        expected = b':0400000001020304F2\n:04000400FFFFFFFFFC\n:00000001FF\n'
        assert repair(payload) == expected

    def test_many_fused(self):
        payload = IHEX_PAYLOAD.replace(b'\r\n', b'')
        assert repair(payload) == IHEX_PAYLOAD[:-2]

    def test_untouched(self):
        assert repair(IHEX_PAYLOAD) == IHEX_PAYLOAD
        assert repair(b'') == b''
        assert repair(b':00000001FF') == b':00000001FF'

    def test_leading_colon_kept(self):
        assert repair(b'\r\n:00000001FF\r\n') == b'\r\n:00000001FF\r\n'

    def test_idempotent(self):
        payloads = [
            b':10000000AA:00000001FF',
            IHEX_PAYLOAD.replace(b'\r\n', b''),
            b'junk:00000001FF\n::\n',
            SREC_PAYLOAD,
        ]
        for payload in payloads:
            once = repair(payload)
            assert repair(once) == once

    def test_junk_before_colon(self):
        assert repair(b'junk:00000001FF') == b'junk\r\n:00000001FF'

    def test_only_adds_newlines(self):
        payload = IHEX_PAYLOAD.replace(b'\r\n', b'')
        repaired = repair(payload)
        assert repaired.replace(b'\r\n', b'') == payload

    def test_strict(self):
        assert repair(b':10000000AA:00000001FF', strict=True)

        with pytest.raises(MalformedRecord):
            repair(b':00000001FF\r\n?\r\n', strict=True)

    def test_lenient(self):
        assert repair(b':00000001FF\r\n?\r\n') == b':00000001FF\r\n?\r\n'


class TestReduce:

    def test_scenario(self):
        payload = b'S30800000000FFFFFF00\r\nS3080000000300FF0100\r\n'
        result = reduce(payload)
        assert isinstance(result, ReduceResult)
        assert result.payload == b'S3080000000300FF0100\r\n'
        assert result.removed == 22
        assert result.records == 1
        assert result.spans() == [(0, 3)]
        blocks = [(start, bytes(data)) for start, data in result.elided.to_blocks()]
        assert blocks == [(0, b'\xFF\xFF\xFF')]

    def test_mixed(self):
        result = reduce(SREC_PAYLOAD)
        assert result.payload == SREC_REDUCED
        assert result.records == 3
        assert result.removed == len(SREC_PAYLOAD) - len(SREC_REDUCED)
        assert result.spans() == [
            (0x00000000, 0x00000003),
            (0x0000000A, 0x0000000D),
            (0x000A0000, 0x000A0003),
        ]

    def test_never_grows(self):
        for payload in (SREC_PAYLOAD, SREC_REDUCED, IHEX_PAYLOAD, b''):
            assert len(reduce(payload).payload) <= len(payload)

    def test_nothing_to_remove(self):
        result = reduce(SREC_REDUCED)
        assert result.payload == SREC_REDUCED
        assert result.removed == 0
        assert result.records == 0
        assert isinstance(result.elided, Memory)
        assert result.spans() == []

    def test_idempotent(self):
        once = reduce(SREC_PAYLOAD).payload
        assert reduce(once).payload == once

    def test_keeps_non_blank_lines(self):
        reduced = reduce(SREC_PAYLOAD).payload
        kept = [line for line, record in iter_records(SREC_PAYLOAD)
                if not is_blank(record)]
        assert reduced == b''.join(kept)

    def test_keeps_non_data_records(self):
        payload = (
            b'S0060000FFFFFF00\r\n'
            b'S5030003F9\r\n'
            b'S9030000FC\r\n'
        )
        assert reduce(payload).payload == payload

    def test_keeps_empty_data(self):
        payload = b'S30500000000FA\r\n'
        assert reduce(payload).payload == payload

    def test_keeps_ihex(self):
        assert reduce(IHEX_PAYLOAD).payload == IHEX_PAYLOAD

    def test_keeps_line_content(self):
        payload = b's30800000010ffffff00\n  S3080000000301FFFF00  \nS30800000020FFFFFF77'
        result = reduce(payload)
        assert result.payload == b'  S3080000000301FFFF00  \n'
        assert result.records == 2

    def test_ignores_checksum(self):
        result = reduce(b'S30800000000FFFFFFAA\r\n')
        assert result.payload == b''
        assert result.records == 1

    def test_value(self):
        payload = b'S308000000000000000000\r\nS30800000000FFFFFF00\r\n'
        result = reduce(payload, value=0x00)
        assert result.payload == b'S30800000000FFFFFF00\r\n'

    def test_malformed_lenient(self):
        payload = b'S30800000000FFFFFF00\r\nS3garbage\r\n'
        result = reduce(payload)
        assert result.payload == b'S3garbage\r\n'

    def test_malformed_strict(self):
        payload = b'S30800000000FFFFFF00\r\nS3garbage\r\n'
        with pytest.raises(MalformedRecord) as excinfo:
            reduce(payload, strict=True)
        assert excinfo.value.lineno == 1
