import base64
import codecs
import hashlib
from pathlib import Path

import pytest

BYTEARRAY_ATTRS = ('type="System.Byte[], mscorlib" '
                   'mimetype="application/x-microsoft.net.object.bytearray.base64"')

RESX_HEAD = '''<?xml version="1.0" encoding="{encoding}"?>
<root>
  <!--
    Microsoft ResX Schema

    Example:

    <data name="Name1"><value>this is my long string</value><comment>this is a comment</comment></data>
    <data name="Bitmap1" mimetype="application/x-microsoft.net.object.binary.base64">
        <value>[base64 mime encoded serialized .NET Framework object]</value>
    </data>
  -->
  <resheader name="resmimetype">
    <value>text/microsoft-resx</value>
  </resheader>
  <resheader name="version">
    <value>2.0</value>
  </resheader>'''

RESX_TAIL = '</root>\n'


def dotnet_base64(payload):
    encoded = base64.b64encode(payload).decode('ascii')
    if len(encoded) <= 80:
        return encoded
    lines = [encoded[i:(i + 80)] for i in range(0, len(encoded), 80)]
    return ''.join('\n        ' + line for line in lines) + '\n'


def make_resx(entries, newline='\r\n', encoding='utf-8', bom=False):
    r"""Builds a container document.

    `entries` is a sequence of ``(name, value)`` couples: a ``bytes`` value
    becomes a byte array entry, a ``str`` value a plain string entry, and
    ``None`` an entry without any value.
    """
    lines = [RESX_HEAD.format(encoding=encoding)]
    for name, value in entries:
        if value is None:
            lines.append(f'  <data name="{name}" />')
        elif isinstance(value, str):
            lines.append(f'  <data name="{name}" xml:space="preserve">')
            lines.append(f'    <value>{value}</value>')
            lines.append('  </data>')
        else:
            lines.append(f'  <data name="{name}" {BYTEARRAY_ATTRS}>')
            lines.append(f'    <value>{dotnet_base64(value)}</value>')
            lines.append('  </data>')
    lines.append(RESX_TAIL)

    text = '\n'.join(lines).replace('\n', newline)
    data = text.encode(encoding)
    if bom:
        data = codecs.BOM_UTF8 + data
    return data


def write_with_sidecar(path, data, digest=None):
    path = Path(path)
    path.write_bytes(data)
    if digest is None:
        digest = hashlib.md5(data).hexdigest()
    path.with_suffix('.md5').write_text(digest)
    return path


@pytest.fixture
def tmppath(tmpdir):
    return Path(str(tmpdir))
